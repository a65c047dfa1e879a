"""Credential blob conversion.

Callers submit credentials as a JSON list of ``{"key": ..., "value": ...}``
entries (a browser cookie export). The remote service expects them as a
single ``key=value; key=value`` header string.
"""

import json
from typing import Any, Iterable, List, Optional

from cadence_cli.errors import CredentialFormatError


def _parse_entries(blob: str) -> List[dict[str, Any]]:
    try:
        entries = json.loads(blob)
    except (TypeError, ValueError) as e:
        raise CredentialFormatError(f"Error processing credential: {e}") from e

    if not isinstance(entries, list):
        raise CredentialFormatError("Invalid credential format: must be an array")
    if not entries:
        raise CredentialFormatError("Invalid credential format: no entries")

    for index, entry in enumerate(entries):
        if not isinstance(entry, dict) or "key" not in entry or "value" not in entry:
            raise CredentialFormatError(
                "Invalid credential format: entry without key/value",
                details={"index": index},
            )
    return entries


def convert_credential(blob: str, required_keys: Iterable[str] = ()) -> str:
    """Convert a JSON credential blob into a header string.

    Required keys are emitted first, in the order given, followed by the
    remaining entries in their original order.

    Args:
        blob: JSON text of a list of key/value entries
        required_keys: Keys that must be present

    Returns:
        Header string such as ``"sid=abc; lang=en"``

    Raises:
        CredentialFormatError: If the blob is malformed or a required key
            is missing
    """
    entries = _parse_entries(blob)
    by_key = {str(e["key"]): e for e in entries}

    ordered: List[dict[str, Any]] = []
    for key in required_keys:
        if key not in by_key:
            raise CredentialFormatError(
                f"Invalid credential: missing '{key}' entry", details={"key": key}
            )
        ordered.append(by_key[key])

    seen = {id(e) for e in ordered}
    ordered.extend(e for e in entries if id(e) not in seen)

    return "; ".join(f"{e['key']}={e['value']}" for e in ordered)


def credential_value(blob: str, key: str) -> Optional[str]:
    """Return the value of a single credential entry, or None."""
    for entry in _parse_entries(blob):
        if entry["key"] == key:
            return str(entry["value"])
    return None

"""Exception taxonomy for Cadence.

Every error raised on purpose inside Cadence derives from CadenceError.
Each class carries the exit code the CLI uses and the HTTP status the
API answers with, so both surfaces report failures consistently.
"""

from typing import Any

from cadence_cli.exit_codes import ExitCode


class CadenceError(Exception):
    """Base exception for Cadence.

    Attributes:
        message: Error message
        exit_code: Exit code to use when exiting the CLI
        status_code: HTTP status returned by the API
        details: Optional dictionary of additional error details
    """

    exit_code: int = ExitCode.GENERAL_ERROR
    status_code: int = 500

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if exit_code is not None:
            self.exit_code = exit_code
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ConfigurationError(CadenceError):
    """Configuration file, environment or endpoint settings are unusable."""

    exit_code = ExitCode.CONFIGURATION_ERROR
    status_code = 500


class ValidationError(CadenceError):
    """User input failed validation (missing fields, non-positive counts)."""

    exit_code = ExitCode.INVALID_ARGUMENT
    status_code = 400


class NotFoundError(CadenceError):
    """A requested job or session does not exist."""

    exit_code = ExitCode.NOT_FOUND
    status_code = 404


class NetworkError(CadenceError):
    """The Cadence server itself could not be reached (CLI side)."""

    exit_code = ExitCode.NETWORK_ERROR
    status_code = 502


class CredentialFormatError(CadenceError):
    """Credential blob is not a well-formed list of key/value entries.

    Examples:
        - Not valid JSON
        - JSON that is not a list
        - An entry without ``key`` or ``value``
        - A required key is missing
    """

    exit_code = ExitCode.INVALID_ARGUMENT
    status_code = 400


class ResolutionError(CadenceError):
    """Target URL could not be mapped to a content identifier.

    Raised before any job state exists: either the URL is invalid or the
    content is not visible to the caller.
    """

    exit_code = ExitCode.REMOTE_REJECTED
    status_code = 400


class AuthError(CadenceError):
    """Credential could not be exchanged for a bearer token."""

    exit_code = ExitCode.REMOTE_REJECTED
    status_code = 400


class TickFailure(CadenceError):
    """A remote write failed after its job had started.

    Never surfaced to a caller; the runner absorbs it and terminates
    the job.
    """

    exit_code = ExitCode.NETWORK_ERROR
    status_code = 502

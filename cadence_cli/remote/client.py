"""Remote service adapters.

Cadence depends on three capabilities of the external service:

- resolve a target URL into an opaque content identifier
- exchange a credential for a short-lived bearer token
- perform one write against a content identifier

Resolution and token derivation report failure by returning None. A
failed write raises TickFailure. None of them retries.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from cadence_cli.config import RemoteConfig
from cadence_cli.errors import ConfigurationError, TickFailure

logger = logging.getLogger(__name__)

_TOKEN_PATTERN = re.compile(r'"access_?token"\s*:\s*"([^"]+)"', re.IGNORECASE)


class RemoteService(ABC):
    """Abstract interface to the external service."""

    async def initialize(self) -> None:
        """Acquire resources. Called once before first use."""

    async def close(self) -> None:
        """Release resources."""

    @abstractmethod
    async def resolve_content_id(self, url: str) -> Optional[str]:
        """Map a target URL to a content identifier, or None."""
        ...

    @abstractmethod
    async def derive_access_token(self, credential: str) -> Optional[str]:
        """Exchange a credential header string for a bearer token, or None."""
        ...

    @abstractmethod
    async def write(self, resolved_id: str, token: str) -> None:
        """Perform one remote write.

        Raises:
            TickFailure: On any transport error or non-success response
        """
        ...


class HttpRemoteService(RemoteService):
    """RemoteService backed by configurable HTTP endpoints.

    Example:
        remote = HttpRemoteService(config.remote)
        await remote.initialize()
        content_id = await remote.resolve_content_id("https://example.com/post/1")
    """

    def __init__(self, config: RemoteConfig) -> None:
        self.config = config
        self._client: Optional[httpx.AsyncClient] = None

    async def initialize(self) -> None:
        """Initialize the HTTP client."""
        if self._client is not None:
            return

        missing = [
            name
            for name in ("resolver_url", "token_url", "write_url")
            if not getattr(self.config, name)
        ]
        if missing:
            raise ConfigurationError(
                "Remote endpoints not configured",
                details={"missing": ", ".join(missing)},
            )

        self._client = httpx.AsyncClient(timeout=self.config.timeout)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _require_client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("Remote service not initialized")
        return self._client

    async def resolve_content_id(self, url: str) -> Optional[str]:
        client = self._require_client()
        try:
            response = await client.post(
                self.config.resolver_url,
                data={"link": url},
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Get content id error: {e}")
            return None

        content_id = data.get("id") if isinstance(data, dict) else None
        if content_id in (None, ""):
            logger.info(f"Resolver returned no id for {url}")
            return None
        return str(content_id)

    async def derive_access_token(self, credential: str) -> Optional[str]:
        client = self._require_client()
        try:
            response = await client.get(
                self.config.token_url,
                headers={"cookie": credential},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Get access token error: {e}")
            return None

        try:
            data = response.json()
        except ValueError:
            data = None

        if isinstance(data, dict):
            token = data.get("access_token") or data.get("accessToken")
            if token:
                return str(token)

        match = _TOKEN_PATTERN.search(response.text)
        if match:
            return match.group(1)

        logger.info("Token endpoint answered without an access token")
        return None

    async def write(self, resolved_id: str, token: str) -> None:
        client = self._require_client()
        try:
            response = await client.post(
                self.config.write_url,
                params={"id": resolved_id},
                headers={"Authorization": f"Bearer {token}"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TickFailure(
                f"Remote write rejected: {e.response.status_code}",
                details={"resolved_id": resolved_id},
            ) from e
        except httpx.HTTPError as e:
            raise TickFailure(
                f"Remote write failed: {e}",
                details={"resolved_id": resolved_id},
            ) from e

"""Shared fixtures: a scripted remote service and a controllable clock."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Set

import pytest

from cadence_cli.errors import TickFailure
from cadence_cli.remote.client import RemoteService


class FakeRemote(RemoteService):
    """Remote service whose answers are set by the test.

    ``fail_on`` lists 1-based write numbers that raise TickFailure.
    When ``gate`` is set, every write waits for it before answering.
    """

    def __init__(
        self,
        content_id: Optional[str] = "post123",
        token: Optional[str] = "token-abc",
        fail_on: Set[int] = frozenset(),
    ) -> None:
        self.content_id = content_id
        self.token = token
        self.fail_on = set(fail_on)
        self.gate: Optional[asyncio.Event] = None
        self.writes = 0
        self.resolved_urls: List[str] = []
        self.credentials: List[str] = []
        self.initialized = False
        self.closed = False

    async def initialize(self) -> None:
        self.initialized = True

    async def close(self) -> None:
        self.closed = True

    async def resolve_content_id(self, url: str) -> Optional[str]:
        self.resolved_urls.append(url)
        return self.content_id

    async def derive_access_token(self, credential: str) -> Optional[str]:
        self.credentials.append(credential)
        return self.token

    async def write(self, resolved_id: str, token: str) -> None:
        self.writes += 1
        number = self.writes
        if self.gate is not None:
            await self.gate.wait()
        if number in self.fail_on:
            raise TickFailure(f"write {number} rejected")


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def fake_remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def credential_blob() -> str:
    """Credential export with three entries."""
    return '[{"key": "sb", "value": "abc"}, {"key": "c_user", "value": "1001"}, {"key": "xs", "value": "42"}]'

import asyncio
from typing import List, Optional

import pytest

from daystart.storage import MemoryStore


class FakeRemote:
    """Stand-in for the remote settings store and identity endpoint."""

    def __init__(self, day_start_time: Optional[str] = "05:00", user=None):
        self.day_start_time = day_start_time
        self.user = user
        self.fetch_error: Optional[Exception] = None
        self.push_error: Optional[Exception] = None
        self.auth_error: Optional[Exception] = None
        self.fetch_gate: Optional[asyncio.Event] = None
        self.push_gate: Optional[asyncio.Event] = None
        self.fetch_calls = 0
        self.auth_calls = 0
        self.pushed: List[str] = []

    async def fetch_day_start_time(self):
        self.fetch_calls += 1
        # Read before waiting so a gated fetch returns what the store held when it was issued.
        value = self.day_start_time
        if self.fetch_gate is not None:
            await self.fetch_gate.wait()
        if self.fetch_error is not None:
            raise self.fetch_error
        return value

    async def push_day_start_time(self, value):
        if self.push_gate is not None:
            await self.push_gate.wait()
        if self.push_error is not None:
            raise self.push_error
        self.pushed.append(value)
        self.day_start_time = value
        return value

    async def fetch_current_user(self):
        self.auth_calls += 1
        if self.auth_error is not None:
            raise self.auth_error
        return self.user


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def remote():
    return FakeRemote()

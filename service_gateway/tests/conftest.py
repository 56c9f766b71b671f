"""
Shared fixtures for Gateway tests.
"""

import asyncio
from typing import Dict, Optional
from unittest.mock import AsyncMock

import pytest


class CounterStore:
    """Dict-backed double for the Redis commands the rate limiter issues.

    Every command is an ``AsyncMock`` so tests can assert on calls or inject
    failures through ``side_effect``. With ``yield_on_get`` set, ``get``
    hands control back to the event loop after reading, letting concurrent
    callers all observe the same value before anyone increments.
    """

    def __init__(self):
        self.values: Dict[str, int] = {}
        self.ttls: Dict[str, int] = {}
        self.yield_on_get = False
        self.get = AsyncMock(side_effect=self._get)
        self.incr = AsyncMock(side_effect=self._incr)
        self.expire = AsyncMock(side_effect=self._expire)
        self.ping = AsyncMock(return_value=True)
        self.aclose = AsyncMock()

    async def _get(self, key: str) -> Optional[str]:
        value = self.values.get(key)
        if self.yield_on_get:
            await asyncio.sleep(0)
        return None if value is None else str(value)

    async def _incr(self, key: str) -> int:
        self.values[key] = self.values.get(key, 0) + 1
        return self.values[key]

    async def _expire(self, key: str, seconds: int) -> bool:
        self.ttls[key] = seconds
        return True

    def end_window(self) -> None:
        """Simulate every key reaching its TTL."""
        self.values.clear()
        self.ttls.clear()


@pytest.fixture
def counter_store():
    """Fresh in-memory counter store."""
    return CounterStore()

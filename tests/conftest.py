"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before anything imports the settings module,
so the suite never reads a developer's .env file or talks to a real Redis.
"""

import asyncio
import math
import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"
os.environ.setdefault("APP_ADMIN_KEY_REQUIRED", "true")
os.environ.setdefault("APP_ADMIN_API_KEYS", "admin-key-123,admin-key-456")
os.environ.setdefault("APP_RATE_LIMIT_REQUESTS", "3")
os.environ.setdefault("APP_RATE_LIMIT_WINDOW_SECONDS", "60")
os.environ.setdefault("APP_RATE_LIMIT_NAMESPACE", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest  # noqa: E402

from windowgate.adapters.store.base import CounterStore  # noqa: E402
from windowgate.core.errors import StoreOperationError  # noqa: E402


class ManualClock:
    """Callable time source the tests move by hand."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class FakeCounterStore(CounterStore):
    """Dict-backed store honouring the atomic contract.

    Each primitive yields to the event loop once before running its body
    without further awaits, so concurrent callers interleave between
    operations but never inside one. Expiry follows the shared clock.
    """

    def __init__(self, clock: ManualClock) -> None:
        self.clock = clock
        self.available = True
        self.connected = False
        self.closed = False
        self.fail_with: Exception | None = None
        self.values: dict[str, int] = {}
        self.expires_at: dict[str, float] = {}
        self.calls: list[tuple[str, str]] = []

    def is_available(self) -> bool:
        return self.available

    async def connect(self) -> None:
        self.connected = True

    async def ping(self) -> bool:
        return self.available

    async def close(self) -> None:
        self.closed = True

    async def _enter(self, operation: str, key: str) -> None:
        await asyncio.sleep(0)
        self.calls.append((operation, key))
        if self.fail_with is not None:
            raise self.fail_with
        expires = self.expires_at.get(key)
        if expires is not None and expires <= self.clock():
            self.values.pop(key, None)
            self.expires_at.pop(key, None)

    def _ttl(self, key: str) -> int:
        if key not in self.values:
            return -2
        if key not in self.expires_at:
            return -1
        return math.ceil(self.expires_at[key] - self.clock())

    async def set_if_absent_with_ttl(self, key: str, initial_value: int, ttl_seconds: int) -> bool:
        await self._enter("set_if_absent_with_ttl", key)
        if key in self.values:
            return False
        self.values[key] = initial_value
        self.expires_at[key] = self.clock() + ttl_seconds
        return True

    async def increment(self, key: str) -> int:
        await self._enter("increment", key)
        self.values[key] = self.values.get(key, 0) + 1
        return self.values[key]

    async def get_ttl(self, key: str) -> int:
        await self._enter("get_ttl", key)
        return self._ttl(key)

    async def delete(self, key: str) -> int:
        await self._enter("delete", key)
        self.expires_at.pop(key, None)
        return 1 if self.values.pop(key, None) is not None else 0

    async def get_with_ttl(self, key: str) -> tuple[int | None, int]:
        await self._enter("get_with_ttl", key)
        return self.values.get(key), self._ttl(key)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def store(clock: ManualClock) -> FakeCounterStore:
    return FakeCounterStore(clock)


@pytest.fixture
def store_failure() -> StoreOperationError:
    return StoreOperationError(code="store_operation_failed", message="Redis increment failed: TimeoutError")

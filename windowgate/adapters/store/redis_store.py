"""Redis-backed counter store.

Maps the ``CounterStore`` primitives onto single Redis commands:

- ``SET key value EX ttl NX`` for the conditional create
- ``INCR`` for the atomic increment
- ``TTL`` and ``DEL``
- ``MULTI``/``GET``/``TTL``/``EXEC`` for the consistent status read

Every ``RedisError`` (connection refused, timeout, protocol error) is wrapped
in ``StoreOperationError`` so callers see a single failure kind. No retries
are attempted here; the client's socket timeouts are the only timeouts.
"""

from __future__ import annotations

import logging
import time
from typing import Awaitable, Callable, TypeVar

from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from windowgate.adapters.store.base import CounterStore
from windowgate.core.config import RedisSettings
from windowgate.core.errors import StoreOperationError, StoreUnavailableError
from windowgate.core.logging import hash_identifier

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Errors that mean the server is unreachable, as opposed to a bad command.
_CONNECTIVITY_ERRORS = (RedisConnectionError, RedisTimeoutError)


class RedisCounterStore(CounterStore):
    """Counter store over an asyncio Redis client.

    Readiness is tracked locally so the limiter can refuse work without
    paying for a doomed round-trip:

    - ``connect()``, a successful ``ping()`` or any successful command mark
      the store ready.
    - A failed ``ping()`` or a connection/timeout error on a command mark it
      down and start a cool-down of ``retry_interval_seconds``.
    - Once the cool-down has passed, ``is_available()`` reports True again so
      the next command probes the server. Success restores readiness; another
      connectivity failure restarts the cool-down.
    - ``close()`` marks it down for good.
    """

    def __init__(
        self,
        client: Redis,
        *,
        ready: bool = False,
        retry_interval_seconds: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._ready = ready
        self._retry_interval = retry_interval_seconds
        self._clock = clock
        self._failed_at: float | None = None

    @classmethod
    def from_settings(cls, redis_settings: RedisSettings) -> "RedisCounterStore":
        client = Redis.from_url(
            redis_settings.url,
            decode_responses=True,
            socket_timeout=redis_settings.socket_timeout_seconds,
            socket_connect_timeout=redis_settings.connect_timeout_seconds,
        )
        return cls(client, retry_interval_seconds=redis_settings.retry_interval_seconds)

    @property
    def client(self) -> Redis:
        return self._client

    def is_available(self) -> bool:
        if self._ready:
            return True
        if self._failed_at is None:
            return False
        return self._clock() - self._failed_at >= self._retry_interval

    def _mark_ready(self) -> None:
        if not self._ready and self._failed_at is not None:
            logger.info("store.recovered")
        self._ready = True
        self._failed_at = None

    def _mark_down(self) -> None:
        self._ready = False
        self._failed_at = self._clock()

    async def connect(self) -> None:
        """Verify connectivity and mark the store ready.

        Raises:
            StoreUnavailableError: If the server does not answer PING. The
                store still recovers on its own once the server is back.
        """
        if not await self.ping():
            raise StoreUnavailableError(
                code="store_unavailable",
                message="Redis did not answer PING",
            )
        logger.info("store.connected")

    async def ping(self) -> bool:
        """Network liveness probe; updates the readiness state."""
        try:
            await self._client.ping()
        except RedisError as exc:
            self._mark_down()
            logger.warning(
                "store.ping_failed",
                extra={
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                    "retry_in_s": self._retry_interval,
                },
            )
            return False
        self._mark_ready()
        return True

    async def close(self) -> None:
        self._ready = False
        self._failed_at = None
        await self._client.aclose()
        logger.info("store.closed")

    async def _execute(self, operation: str, key: str, command: Callable[[], Awaitable[T]]) -> T:
        try:
            result = await command()
        except RedisError as exc:
            if isinstance(exc, _CONNECTIVITY_ERRORS):
                self._mark_down()
            raise _operation_failed(exc, operation, key) from exc
        self._mark_ready()
        return result

    async def set_if_absent_with_ttl(self, key: str, initial_value: int, ttl_seconds: int) -> bool:
        created = await self._execute(
            "set_if_absent_with_ttl",
            key,
            lambda: self._client.set(key, initial_value, ex=ttl_seconds, nx=True),
        )
        return bool(created)

    async def increment(self, key: str) -> int:
        return int(await self._execute("increment", key, lambda: self._client.incr(key)))

    async def get_ttl(self, key: str) -> int:
        return int(await self._execute("get_ttl", key, lambda: self._client.ttl(key)))

    async def delete(self, key: str) -> int:
        return int(await self._execute("delete", key, lambda: self._client.delete(key)))

    async def get_with_ttl(self, key: str) -> tuple[int | None, int]:
        async def read() -> list:
            async with self._client.pipeline(transaction=True) as pipe:
                return await pipe.get(key).ttl(key).execute()

        value, ttl = await self._execute("get_with_ttl", key, read)

        try:
            return (None if value is None else int(value)), int(ttl)
        except (TypeError, ValueError) as exc:
            # Something other than a counter lives under this key.
            raise _operation_failed(exc, "get_with_ttl", key) from exc


def _operation_failed(exc: Exception, operation: str, key: str) -> StoreOperationError:
    return StoreOperationError(
        code="store_operation_failed",
        message=f"Redis {operation} failed: {type(exc).__name__}",
        details={"operation": operation, "key_hash": hash_identifier(key)},
    )

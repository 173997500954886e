"""Fixed-window rate limiter backed by a shared counter store.

Notes:
- Stateless per process: every call is a fresh round-trip, so any number of
  workers or hosts can share one store and enforce one limit.
- No locks: correctness rests on the store's atomic SET NX EX and INCR.
- The window starts at the first request for a key and ends when the store
  expires it. Window start times are never tracked locally.
- Bursts straddling a window boundary can admit up to ``2 * quota`` requests
  in a short span. This is a known property of fixed windows.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable

from windowgate.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult, WindowStatus
from windowgate.adapters.store.base import CounterStore
from windowgate.core.errors import (
    InvalidArgumentError,
    InvalidConfigurationError,
    StoreUnavailableError,
)
from windowgate.core.logging import hash_identifier

_module_logger = logging.getLogger(__name__)


def _is_positive_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


@dataclass(frozen=True)
class RateLimitConfig:
    """Immutable limiter configuration.

    Attributes:
        quota: Maximum requests admitted per window.
        window_seconds: Window length in seconds, also the counter TTL.
        namespace: Key prefix separating independent limiters on one store.

    Raises:
        InvalidConfigurationError: If any field is out of range.
    """

    quota: int
    window_seconds: int
    namespace: str

    def __post_init__(self) -> None:
        if not _is_positive_int(self.quota):
            raise InvalidConfigurationError(
                code="invalid_quota",
                message="quota must be a positive integer",
                details={"field": "quota", "actual_value": self.quota},
            )
        if not _is_positive_int(self.window_seconds):
            raise InvalidConfigurationError(
                code="invalid_window",
                message="window_seconds must be a positive integer",
                details={"field": "window_seconds", "actual_value": self.window_seconds},
            )
        if not isinstance(self.namespace, str) or not self.namespace.strip():
            raise InvalidConfigurationError(
                code="invalid_namespace",
                message="namespace must be a non-empty string",
                details={"field": "namespace"},
            )

    def build_key(self, identifier: str) -> str:
        """Store key for ``identifier``; external tooling relies on this exact format."""
        return f"{self.namespace}:{identifier}"


class FixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter counting requests per identifier in store-expired windows.

    Each ``check`` issues three store operations: a conditional create that
    sets the window origin and TTL, an atomic increment, and a TTL read. A
    request that tips the count over quota is still counted, and the counter
    is never rolled back, so every later request in the window is rejected
    too.
    """

    def __init__(
        self,
        *,
        config: RateLimitConfig,
        store: CounterStore,
        logger: logging.Logger | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            config: Validated quota/window/namespace.
            store: Shared counter store; must be connected before first use.
            logger: Logger for decision events; defaults to this module's logger.
            clock: Time source returning UNIX time in seconds.

        Raises:
            InvalidConfigurationError: If no store is supplied.
        """
        if store is None:
            raise InvalidConfigurationError(
                code="missing_store",
                message="a counter store is required",
                details={"field": "store"},
            )
        self._config = config
        self._store = store
        self._logger = logger or _module_logger
        self._clock = clock

    @classmethod
    def create(
        cls,
        *,
        quota: int,
        window_seconds: int,
        namespace: str,
        store: CounterStore,
        logger: logging.Logger | None = None,
        clock: Callable[[], float] = time.time,
    ) -> "FixedWindowRateLimiter":
        config = RateLimitConfig(quota=quota, window_seconds=window_seconds, namespace=namespace)
        return cls(config=config, store=store, logger=logger, clock=clock)

    @property
    def config(self) -> RateLimitConfig:
        return self._config

    @property
    def limit(self) -> int:
        return self._config.quota

    def _prepare(self, identifier: str) -> str:
        """Validate preconditions shared by every operation and build the key.

        Raises:
            InvalidArgumentError: If the identifier is blank.
            StoreUnavailableError: If the store reports itself not ready.
        """
        if not isinstance(identifier, str) or not identifier.strip():
            raise InvalidArgumentError(
                code="invalid_identifier",
                message="identifier cannot be empty",
                details={"field": "identifier"},
            )
        if not self._store.is_available():
            raise StoreUnavailableError(
                code="store_unavailable",
                message="counter store is not available",
            )
        return self._config.build_key(identifier)

    async def check(self, identifier: str) -> RateLimitResult:
        """Count one request for ``identifier`` and decide whether to admit it.

        Args:
            identifier: Subject being limited (user id, IP, API key...).

        Returns:
            RateLimitResult with the decision and window metadata.

        Raises:
            InvalidArgumentError: If identifier is blank.
            StoreUnavailableError: If the store is not ready.
            StoreOperationError: If any store round-trip fails.
        """
        key = self._prepare(identifier)
        quota = self._config.quota
        window = self._config.window_seconds

        # Read before the round-trips; reset_at can lag by their latency.
        now = self._clock()

        await self._store.set_if_absent_with_ttl(key, 0, window)
        current_count = await self._store.increment(key)
        ttl = await self._store.get_ttl(key)

        # A key seen without a TTL raced with expiry; assume a fresh window.
        if ttl > 0:
            ttl_seconds = ttl
            reset_at = math.ceil(now + ttl)
        else:
            ttl_seconds = window
            reset_at = math.ceil(now + window)

        remaining = max(0, quota - current_count)
        allowed = current_count <= quota

        self._logger.info(
            "rate_limit.check",
            extra={
                "namespace": self._config.namespace,
                "key_hash": hash_identifier(key),
                "count": current_count,
                "limit": quota,
                "remaining": remaining,
                "allowed": allowed,
                "ttl_s": ttl_seconds,
            },
        )

        return RateLimitResult(
            allowed=allowed,
            limit=quota,
            remaining=remaining,
            reset_at=int(reset_at),
            ttl_seconds=ttl_seconds,
            current_count=current_count,
            retry_after_seconds=None if allowed else ttl_seconds,
        )

    async def reset(self, identifier: str) -> bool:
        """Delete the window for ``identifier``.

        Returns:
            True if a window existed and was removed.
        """
        key = self._prepare(identifier)
        removed = await self._store.delete(key)

        self._logger.info(
            "rate_limit.reset",
            extra={
                "namespace": self._config.namespace,
                "key_hash": hash_identifier(key),
                "removed": removed > 0,
            },
        )
        return removed > 0

    async def status(self, identifier: str) -> WindowStatus | None:
        """Snapshot the current window without counting a request.

        Value and TTL come from one atomic multi-read. A key that is absent,
        or that the store reports without a positive TTL, has no active
        window.
        """
        key = self._prepare(identifier)
        value, ttl = await self._store.get_with_ttl(key)
        if value is None or ttl <= 0:
            return None
        return WindowStatus(count=value, ttl_seconds=ttl)

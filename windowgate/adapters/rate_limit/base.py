"""Rate limiter interfaces and value types.

The API should depend on this abstraction (not the concrete implementation)
so the HTTP layer never touches the counter store directly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a single admit/reject decision.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Configured quota for the window.
        remaining: Requests left in the current window, never negative.
        reset_at: UNIX epoch seconds when the current window is expected to expire.
        ttl_seconds: Seconds left in the current window as reported by the store.
        current_count: Post-increment counter value that produced the decision.
        retry_after_seconds: Suggested wait when blocked, None when allowed.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    ttl_seconds: int
    current_count: int
    retry_after_seconds: int | None = None


@dataclass(frozen=True)
class WindowStatus:
    """Read-only snapshot of an active window."""

    count: int
    ttl_seconds: int


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @property
    @abstractmethod
    def limit(self) -> int:
        """Requests admitted per window."""
        raise NotImplementedError

    @abstractmethod
    async def check(self, identifier: str) -> RateLimitResult:
        """Count one request for ``identifier`` and decide whether to admit it."""
        raise NotImplementedError

    @abstractmethod
    async def reset(self, identifier: str) -> bool:
        """Drop the current window for ``identifier``; True if one existed."""
        raise NotImplementedError

    @abstractmethod
    async def status(self, identifier: str) -> WindowStatus | None:
        """Return the current window without counting a request, or None."""
        raise NotImplementedError

"""Counter store interface.

The limiter needs a handful of primitives from an external key-value store,
each atomic and immediately consistent for every caller. Cross-process
coordination relies entirely on that atomicity, so implementations must not
emulate a primitive with read-then-write.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class CounterStore(ABC):
    """Interface for shared atomic counter stores."""

    @abstractmethod
    def is_available(self) -> bool:
        """Best-effort readiness flag; must not perform a network round-trip."""
        raise NotImplementedError

    @abstractmethod
    async def set_if_absent_with_ttl(self, key: str, initial_value: int, ttl_seconds: int) -> bool:
        """Create ``key`` with ``initial_value`` and an expiry, only if it does not exist.

        Returns:
            True when the key was created, False when it already existed.
        """
        raise NotImplementedError

    @abstractmethod
    async def increment(self, key: str) -> int:
        """Atomically add one to ``key`` and return the post-increment value."""
        raise NotImplementedError

    @abstractmethod
    async def get_ttl(self, key: str) -> int:
        """Seconds until ``key`` expires; negative when absent or without expiry."""
        raise NotImplementedError

    @abstractmethod
    async def delete(self, key: str) -> int:
        """Remove ``key``; returns the number of keys removed (0 or 1)."""
        raise NotImplementedError

    @abstractmethod
    async def get_with_ttl(self, key: str) -> tuple[int | None, int]:
        """Read the value and TTL of ``key`` as of a single instant.

        Returns:
            ``(value, ttl)`` where ``value`` is None when the key is absent.
        """
        raise NotImplementedError

    async def connect(self) -> None:
        """Establish/verify connectivity; stores that need no setup keep the default."""
        return None

    async def ping(self) -> bool:
        """Liveness probe that may touch the network; defaults to the local flag."""
        return self.is_available()

    async def close(self) -> None:
        return None

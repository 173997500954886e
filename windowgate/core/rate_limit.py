"""Rate limiting dependency for FastAPI routes.

This module wires the fixed-window limiter into the HTTP layer.

Design goals:
- Minimal coupling: routes depend on a dependency callable only.
- The limiter reports store failures; this layer owns the fail-open /
  fail-closed policy and the HTTP mapping (429 when rejected, 503 when
  failing closed).
- Identifier derivation and skip rules run before the limiter is reached.

Default strategy:
- Fixed-window limit per client IP (first X-Forwarded-For hop when proxy
  headers are trusted).
- Custom extractors may key on user id or API key instead; returning None
  or a blank string falls back to the client IP.
"""

from __future__ import annotations

import logging
from typing import Callable

from fastapi import HTTPException, Request, Response, status

from windowgate.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from windowgate.core.config import FailStrategy, settings
from windowgate.core.errors import StoreAppError
from windowgate.core.logging import hash_identifier
from windowgate.utils.ip import get_default_identifier

logger = logging.getLogger(__name__)

IdentifierExtractor = Callable[[Request], "str | None"]
SkipPredicate = Callable[[Request], bool]
LimiterGetter = Callable[[Request], AbstractRateLimiter]

DEFAULT_MESSAGE = "Too many requests. Please try again later."
UNAVAILABLE_MESSAGE = "Service temporarily unavailable. Please try again later."

# Below this share of the quota left, admitted requests are logged as near the limit.
NEAR_LIMIT_RATIO = 0.2


def get_rate_limiter(request: Request) -> AbstractRateLimiter:
    """Return the limiter built by the application lifespan.

    Raises:
        RuntimeError: If the app was started without its lifespan.
    """

    limiter = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        raise RuntimeError("rate limiter is not initialized; was the app lifespan run?")
    return limiter


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Standard rate limit headers for a decision."""

    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_at),
    }
    if result.retry_after_seconds is not None:
        headers["Retry-After"] = str(result.retry_after_seconds)
    return headers


class RateLimitDependency:
    """Configurable FastAPI dependency enforcing a fixed-window limit.

    Usage:
        limit_writes = RateLimitDependency(
            identifier=lambda request: request.headers.get("X-User-ID"),
            fail_strategy="closed",
        )

        @router.post("/resource", dependencies=[Depends(limit_writes)])
        async def create_resource(): ...
    """

    def __init__(
        self,
        *,
        limiter: AbstractRateLimiter | None = None,
        limiter_getter: LimiterGetter = get_rate_limiter,
        identifier: IdentifierExtractor | None = None,
        skip: SkipPredicate | None = None,
        fail_strategy: FailStrategy = "open",
        include_headers: bool = True,
        message: str = DEFAULT_MESSAGE,
        trust_proxy_headers: bool = True,
        enabled: bool = True,
    ) -> None:
        if fail_strategy not in ("open", "closed"):
            raise ValueError("fail_strategy must be 'open' or 'closed'")
        self._limiter = limiter
        self._limiter_getter = limiter_getter
        self._identifier = identifier
        self._skip = skip
        self._fail_strategy = fail_strategy
        self._include_headers = include_headers
        self._message = message
        self._trust_proxy_headers = trust_proxy_headers
        self._enabled = enabled

    def _resolve_identifier(self, request: Request) -> tuple[str, str]:
        """Return ``(identifier, key_type)`` for the request."""

        if self._identifier is not None:
            custom = self._identifier(request)
            if custom and custom.strip():
                return custom, "custom"
        return (
            get_default_identifier(request, trust_proxy_headers=self._trust_proxy_headers),
            "ip",
        )

    def _on_store_failure(self, exc: StoreAppError, *, key_type: str, key_hash: str) -> None:
        logger.error(
            "rate_limit.store_failure",
            extra={
                "error_code": exc.code,
                "error_type": type(exc).__name__,
                "key_type": key_type,
                "key_hash": key_hash,
                "fail_strategy": self._fail_strategy,
            },
        )
        if self._fail_strategy == "closed":
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail=UNAVAILABLE_MESSAGE,
            ) from exc

        logger.warning("rate_limit.fail_open", extra={"key_type": key_type, "key_hash": key_hash})

    async def __call__(self, request: Request, response: Response) -> None:
        """Consume one request from the caller's budget.

        Raises:
            HTTPException: 429 when the limit is exceeded, 503 when the store
                fails and the strategy is fail-closed.
        """

        if not self._enabled:
            return
        if self._skip is not None and self._skip(request):
            return

        identifier, key_type = self._resolve_identifier(request)
        key_hash = hash_identifier(identifier)
        limiter = self._limiter or self._limiter_getter(request)

        try:
            result = await limiter.check(identifier)
        except StoreAppError as exc:
            self._on_store_failure(exc, key_type=key_type, key_hash=key_hash)
            return

        headers = rate_limit_headers(result) if self._include_headers else {}

        if not result.allowed:
            logger.warning(
                "rate_limit.exceeded",
                extra={
                    "key_type": key_type,
                    "key_hash": key_hash,
                    "limit": result.limit,
                    "count": result.current_count,
                    "retry_after_s": result.retry_after_seconds,
                },
            )
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail={
                    "error": self._message,
                    "retry_after": result.retry_after_seconds,
                    "limit": result.limit,
                    "remaining": result.remaining,
                    "reset": result.reset_at,
                },
                headers=headers or None,
            )

        if result.remaining < result.limit * NEAR_LIMIT_RATIO:
            logger.info(
                "rate_limit.near_limit",
                extra={
                    "key_type": key_type,
                    "key_hash": key_hash,
                    "limit": result.limit,
                    "remaining": result.remaining,
                },
            )

        response.headers.update(headers)


async def enforce_rate_limit(request: Request, response: Response) -> None:
    """Settings-driven rate limit dependency used by the service routes.

    Settings are read per request so toggles (primarily in tests) apply
    without rebuilding the app.
    """

    cfg = settings.app
    dependency = RateLimitDependency(
        fail_strategy=cfg.rate_limit_fail_strategy,
        include_headers=cfg.rate_limit_include_headers,
        message=cfg.rate_limit_message,
        trust_proxy_headers=cfg.trust_proxy_headers,
        enabled=cfg.rate_limit_enabled,
    )
    await dependency(request, response)

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from windowgate.adapters.rate_limit.base import AbstractRateLimiter
from windowgate.core.auth import verify_admin_key
from windowgate.core.rate_limit import enforce_rate_limit, get_rate_limiter
from windowgate.schemas.limits import PingResponse, ResetResponse, WindowStatusResponse

router = APIRouter(tags=["Limits"])

Limiter = Annotated[AbstractRateLimiter, Depends(get_rate_limiter)]


@router.get(
    "/ping",
    response_model=PingResponse,
    dependencies=[Depends(enforce_rate_limit)],
)
async def ping() -> PingResponse:
    """Rate limited endpoint for clients and smoke tests.

    Responses carry the X-RateLimit-* headers; once the caller's quota is
    spent the request is rejected with 429 before reaching this handler.
    """
    return PingResponse(status="ok")


@router.get(
    "/limits/{identifier}",
    response_model=WindowStatusResponse,
    dependencies=[Depends(verify_admin_key)],
)
async def get_window_status(identifier: str, limiter: Limiter) -> WindowStatusResponse:
    """Inspect an identifier's window without counting a request."""
    snapshot = await limiter.status(identifier)
    if snapshot is None:
        return WindowStatusResponse(identifier=identifier, active=False, limit=limiter.limit)
    return WindowStatusResponse(
        identifier=identifier,
        active=True,
        count=snapshot.count,
        ttl_seconds=snapshot.ttl_seconds,
        limit=limiter.limit,
    )


@router.delete(
    "/limits/{identifier}",
    response_model=ResetResponse,
    dependencies=[Depends(verify_admin_key)],
)
async def reset_window(identifier: str, limiter: Limiter) -> ResetResponse:
    """Clear an identifier's window so its next request starts a fresh one."""
    return ResetResponse(identifier=identifier, reset=await limiter.reset(identifier))

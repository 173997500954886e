from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness check.

    Returns a static status so load balancers can tell the process is up,
    independently of the counter store.
    """

    return {"status": "ok"}


@router.get("/health/ready")
async def readiness_check(request: Request) -> JSONResponse:
    """Readiness check: pings the counter store.

    A successful ping also marks the store ready, which can end an outage
    cool-down early.
    """

    store = getattr(request.app.state, "counter_store", None)
    if store is None or not await store.ping():
        return JSONResponse(status_code=503, content={"status": "unavailable"})
    return JSONResponse(status_code=200, content={"status": "ready"})

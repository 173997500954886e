"""Application factory for the FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers and
the counter store lifecycle) so tests can build an app around their own
store.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from windowgate.adapters.rate_limit.fixed_window import FixedWindowRateLimiter
from windowgate.adapters.store.base import CounterStore
from windowgate.adapters.store.redis_store import RedisCounterStore
from windowgate.api.routes import health_router, limits_router
from windowgate.core.config import Settings, settings
from windowgate.core.errors import StoreUnavailableError
from windowgate.core.exception_handlers import setup_exception_handlers
from windowgate.core.logging import configure_logging
from windowgate.core.middleware import request_id_middleware

logger = logging.getLogger(__name__)


def build_rate_limiter(store: CounterStore, app_settings: Settings | None = None) -> FixedWindowRateLimiter:
    """Build the service limiter from settings.

    Raises:
        InvalidConfigurationError: If the configured quota/window/namespace are invalid.
    """
    cfg = (app_settings or settings).app
    return FixedWindowRateLimiter.create(
        quota=cfg.rate_limit_requests,
        window_seconds=cfg.rate_limit_window_seconds,
        namespace=cfg.rate_limit_namespace,
        store=store,
        logger=logging.getLogger("windowgate.rate_limit"),
    )


def create_app(store: CounterStore | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        store: Counter store to use; a Redis store built from settings when omitted.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    counter_store = store or RedisCounterStore.from_settings(settings.redis)
    # Validate configuration eagerly; a bad quota must fail at startup.
    limiter = build_rate_limiter(counter_store)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            await counter_store.connect()
        except StoreUnavailableError:
            # Keep serving; the fail strategy decides until the store reconnects on its own.
            logger.warning("store.connect_failed", extra={"fail_strategy": settings.app.rate_limit_fail_strategy})
        app.state.counter_store = counter_store
        app.state.rate_limiter = limiter
        try:
            yield
        finally:
            await counter_store.close()

    app = FastAPI(
        title="windowgate",
        description=(
            "Distributed fixed-window rate limiting backed by Redis. Exposes a "
            "rate limited ping endpoint, admin endpoints to inspect and reset "
            "windows, and health/readiness probes."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    app.middleware("http")(request_id_middleware)
    setup_exception_handlers(app)

    app.include_router(limits_router, prefix="/v1")
    app.include_router(health_router)

    return app

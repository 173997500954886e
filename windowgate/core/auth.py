"""Admin API key authentication.

The admin endpoints can inspect and clear other clients' windows, so they are
guarded by keys listed in ``APP_ADMIN_API_KEYS``. The check can be disabled
with ``APP_ADMIN_KEY_REQUIRED=false`` for local development.
"""

from __future__ import annotations

import hmac
import logging
from typing import Annotated

from fastapi import Header, HTTPException, status

from windowgate.core.config import settings
from windowgate.core.errors import AuthenticationAppError
from windowgate.core.logging import hash_identifier

logger = logging.getLogger(__name__)


def parse_api_keys(keys_string: str | None) -> set[str]:
    """Parse comma-separated API keys into a set.

    Examples:
        >>> sorted(parse_api_keys("key1, key2 ,key1"))
        ['key1', 'key2']
        >>> parse_api_keys(None)
        set()
    """
    if not keys_string:
        return set()
    return {key.strip() for key in keys_string.split(",") if key.strip()}


def validate_admin_key(provided_key: str) -> None:
    """Check ``provided_key`` against the configured admin keys.

    Raises:
        AuthenticationAppError: If no keys are configured or the key does not match.
    """
    if not settings.app.admin_key_required:
        return

    valid_keys = parse_api_keys(settings.app.admin_api_keys)
    if not valid_keys:
        logger.error("admin_auth.failed", extra={"reason": "admin_keys_not_configured"})
        raise AuthenticationAppError(
            code="admin_keys_not_configured",
            message="Admin authentication is enabled but no admin keys are configured",
            details={"hint": "Set APP_ADMIN_API_KEYS or disable with APP_ADMIN_KEY_REQUIRED=false"},
        )

    if not any(hmac.compare_digest(provided_key, key) for key in valid_keys):
        logger.warning(
            "admin_auth.failed",
            extra={"reason": "invalid_api_key", "api_key_hash": hash_identifier(provided_key)},
        )
        raise AuthenticationAppError(
            code="invalid_api_key",
            message="Invalid or missing API key",
        )


async def verify_admin_key(
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency guarding the admin routes.

    Raises:
        HTTPException: 403 Forbidden if authentication fails.
    """
    if not settings.app.admin_key_required:
        return

    if not x_api_key:
        logger.warning("admin_auth.missing_key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Missing API key. Provide X-API-Key header.",
        )

    try:
        validate_admin_key(x_api_key)
    except AuthenticationAppError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=exc.message,
        ) from exc

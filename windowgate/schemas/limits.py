"""Pydantic schemas for rate limit admin and demo responses."""

from __future__ import annotations

from pydantic import BaseModel, Field


class WindowStatusResponse(BaseModel):
    """Snapshot of an identifier's current window."""

    identifier: str = Field(..., description="Identifier the window belongs to.")
    active: bool = Field(..., description="Whether a window is currently open.")
    count: int = Field(0, description="Requests counted in the open window (0 when inactive).")
    ttl_seconds: int | None = Field(
        None, description="Seconds until the window expires (None when inactive)."
    )
    limit: int = Field(..., description="Configured quota per window.")


class ResetResponse(BaseModel):
    """Outcome of clearing an identifier's window."""

    identifier: str = Field(..., description="Identifier whose window was targeted.")
    reset: bool = Field(..., description="True if an open window existed and was removed.")


class PingResponse(BaseModel):
    status: str = Field("ok", description="Always 'ok' when the request was admitted.")

# parceltrack/shared/models/common.py
"""
Models shared by all endpoints.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error body. `error` is what the client displays."""

    error: str
    error_code: str
    details: dict[str, Any] | None = None


class HealthStatus(BaseModel):
    """Service health."""

    service: str
    status: str = "healthy"  # healthy, degraded, unhealthy
    version: str | None = None
    dependencies: dict[str, str] = Field(default_factory=dict)
    # dependencies: {"storage": "healthy", "realtime": "healthy"}

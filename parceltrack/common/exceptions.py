# parceltrack/common/exceptions.py
"""
Error taxonomy of the shipment engine.

Business-rule failures derive from ParcelTrackError and carry an error code
and an HTTP status for the API layer. StorageUnavailableError marks
infrastructure failures and is kept apart from the business taxonomy.
"""

from __future__ import annotations

from typing import Any


class ParcelTrackError(Exception):
    """Base class for all errors returned to callers."""

    error_code: str = "error"
    status_code: int = 500

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Serializes the error for the response body."""
        body: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(ParcelTrackError):
    """Malformed or missing input."""
    error_code = "validation_error"
    status_code = 400


class UnauthorizedError(ParcelTrackError):
    """Missing, malformed or expired bearer identity."""
    error_code = "unauthorized"
    status_code = 401


class ForbiddenError(ParcelTrackError):
    """Ownership or role violation."""
    error_code = "forbidden"
    status_code = 403


class NotFoundError(ParcelTrackError):
    """Unknown id or tracking number."""
    error_code = "not_found"
    status_code = 404


class ConflictError(ParcelTrackError):
    """Lost claim race or exhausted tracking number retries."""
    error_code = "conflict"
    status_code = 409


class InvalidTransitionError(ParcelTrackError):
    """Illegal shipment status change."""
    error_code = "invalid_transition"
    status_code = 409

    def __init__(self, current: str, requested: str) -> None:
        super().__init__(
            f"Invalid transition from {current} to {requested}",
            details={"current_status": current, "requested_status": requested},
        )
        self.current = current
        self.requested = requested


class RateLimitedError(ParcelTrackError):
    """Location ingest exceeded the configured per-driver budget."""
    error_code = "rate_limited"
    status_code = 429


class StorageUnavailableError(ParcelTrackError):
    """Storage backend cannot be reached."""
    error_code = "storage_unavailable"
    status_code = 503

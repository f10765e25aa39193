# tests/common/test_exceptions.py
"""
Tests for the error taxonomy.
"""

from __future__ import annotations

import pytest

from parceltrack.common.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ParcelTrackError,
    RateLimitedError,
    StorageUnavailableError,
    UnauthorizedError,
    ValidationError,
)


@pytest.mark.parametrize(
    ("error_cls", "status_code", "error_code"),
    [
        (ValidationError, 400, "validation_error"),
        (UnauthorizedError, 401, "unauthorized"),
        (ForbiddenError, 403, "forbidden"),
        (NotFoundError, 404, "not_found"),
        (ConflictError, 409, "conflict"),
        (RateLimitedError, 429, "rate_limited"),
        (StorageUnavailableError, 503, "storage_unavailable"),
    ],
)
def test_codes(error_cls: type[ParcelTrackError], status_code: int, error_code: str) -> None:
    error = error_cls("message")

    assert isinstance(error, ParcelTrackError)
    assert error.status_code == status_code
    assert error.to_dict() == {"error": "message", "error_code": error_code}


def test_details_are_included() -> None:
    error = ValidationError("name is required", details={"field": "name"})
    assert error.to_dict()["details"] == {"field": "name"}


def test_invalid_transition() -> None:
    error = InvalidTransitionError("delivered", "pending")

    assert error.status_code == 409
    assert error.message == "Invalid transition from delivered to pending"
    assert error.to_dict()["details"] == {"current_status": "delivered", "requested_status": "pending"}

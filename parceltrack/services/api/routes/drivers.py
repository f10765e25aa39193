# parceltrack/services/api/routes/drivers.py
"""
Driver registry and location ingest endpoints.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends

from parceltrack.common.exceptions import ForbiddenError
from parceltrack.core.drivers import DriverService
from parceltrack.core.identity import CallerIdentity
from parceltrack.core.location import LocationTracker, TokenBucketLimiter
from parceltrack.services.api.dependencies import (
    get_caller,
    get_driver_service,
    get_location_limiter,
    get_location_tracker,
)
from parceltrack.services.api.errors import ERROR_RESPONSES
from parceltrack.shared.models import Driver, ErrorResponse, LocationReport, UpdateDriverStatusRequest

router = APIRouter(
    tags=["Drivers"],
    responses={**ERROR_RESPONSES, 429: {"model": ErrorResponse, "description": "Location rate limit"}},
)


@router.get("/drivers", response_model=list[Driver])
async def list_drivers(
    caller: CallerIdentity = Depends(get_caller),
    drivers: DriverService = Depends(get_driver_service),
) -> list[Driver]:
    return await drivers.list_drivers()


@router.get("/drivers/{driver_id}", response_model=Driver)
async def get_driver(
    driver_id: int,
    caller: CallerIdentity = Depends(get_caller),
    drivers: DriverService = Depends(get_driver_service),
) -> Driver:
    return await drivers.get_driver(driver_id)


@router.patch("/drivers/{driver_id}/status", response_model=Driver)
async def update_driver_status(
    driver_id: int,
    request: UpdateDriverStatusRequest,
    caller: CallerIdentity = Depends(get_caller),
    drivers: DriverService = Depends(get_driver_service),
) -> Driver:
    return await drivers.set_status(driver_id, request.status, caller)


# =============================================================================
# LOCATION INGEST
# =============================================================================

async def _report_location(
    driver_id: int,
    report: LocationReport,
    caller: CallerIdentity,
    tracker: LocationTracker,
    limiter: Optional[TokenBucketLimiter],
) -> dict[str, Any]:
    if not caller.is_admin and caller.driver_id != driver_id:
        raise ForbiddenError("Drivers can only report their own location")
    if limiter is not None:
        limiter.check(driver_id)

    sample = await tracker.report_location(
        driver_id,
        report.latitude,
        report.longitude,
        report.accuracy,
    )
    return {"success": True, "location": sample}


@router.post("/location/{driver_id}")
async def report_location(
    driver_id: int,
    report: LocationReport,
    caller: CallerIdentity = Depends(get_caller),
    tracker: LocationTracker = Depends(get_location_tracker),
    limiter: Optional[TokenBucketLimiter] = Depends(get_location_limiter),
) -> dict[str, Any]:
    """Overwrites the driver's current position."""
    return await _report_location(driver_id, report, caller, tracker, limiter)


@router.post("/drivers/{driver_id}/location")
async def add_driver_location(
    driver_id: int,
    report: LocationReport,
    caller: CallerIdentity = Depends(get_caller),
    tracker: LocationTracker = Depends(get_location_tracker),
    limiter: Optional[TokenBucketLimiter] = Depends(get_location_limiter),
) -> dict[str, Any]:
    """Same as POST /location/{driver_id}."""
    return await _report_location(driver_id, report, caller, tracker, limiter)

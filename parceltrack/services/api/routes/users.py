# parceltrack/services/api/routes/users.py
"""
/users/me endpoints: profile, stats and the driver workspace.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, status

from parceltrack.common.exceptions import ValidationError
from parceltrack.core.claims import ClaimCoordinator
from parceltrack.core.drivers import DriverService
from parceltrack.core.identity import CallerIdentity
from parceltrack.core.shipments import ShipmentService
from parceltrack.core.status import StatusService
from parceltrack.services.api.dependencies import (
    get_caller,
    get_claim_coordinator,
    get_driver_caller,
    get_driver_service,
    get_shipment_service,
    get_status_service,
)
from parceltrack.services.api.errors import ERROR_RESPONSES
from parceltrack.shared.models import (
    Driver,
    RegisterDriverRequest,
    ShipmentDTO,
    UpdateDriverProfileRequest,
    UpdateProfileRequest,
    UpdateStatusRequest,
)

router = APIRouter(prefix="/users/me", tags=["Users"], responses=ERROR_RESPONSES)


# =============================================================================
# PROFILE
# =============================================================================

def _profile(caller: CallerIdentity, driver: Optional[Driver]) -> dict[str, Any]:
    return {
        "id": caller.user_id,
        "role": caller.role.value,
        "customer_id": caller.user_id,
        "driver_id": driver.id if driver else None,
        "driverId": driver.id if driver else None,
        "driver_name": driver.name if driver else None,
        "driver_status": driver.status.value if driver else None,
    }


@router.get("")
async def get_profile(
    caller: CallerIdentity = Depends(get_caller),
    drivers: DriverService = Depends(get_driver_service),
) -> dict[str, Any]:
    """Role and driver linkage of the caller."""
    return _profile(caller, await drivers.get_by_user(caller.user_id))


@router.patch("")
async def update_profile(
    request: UpdateProfileRequest,
    caller: CallerIdentity = Depends(get_caller),
    drivers: DriverService = Depends(get_driver_service),
) -> dict[str, Any]:
    """
    Edits the profile of the caller. Only a linked driver record has
    editable fields; an empty body returns the profile unchanged.
    """
    driver = await drivers.get_by_user(caller.user_id)
    if request.is_empty:
        return _profile(caller, driver)
    if driver is None:
        raise ValidationError(
            "Profile has no editable fields until registered as a driver",
            details={"fields": sorted(request.model_dump(exclude_none=True))},
        )

    driver = await drivers.update_profile(
        driver.id,
        name=request.name,
        vehicle_type=request.vehicle_type,
        license_number=request.license_number,
    )
    return _profile(caller, driver)


@router.get("/stats")
async def get_stats(
    caller: CallerIdentity = Depends(get_caller),
    service: ShipmentService = Depends(get_shipment_service),
) -> dict[str, int]:
    return await service.customer_stats(caller.user_id)


@router.get("/orders")
async def list_my_orders(
    caller: CallerIdentity = Depends(get_caller),
    service: ShipmentService = Depends(get_shipment_service),
) -> dict[str, Any]:
    """Shipments of the caller, newest first."""
    shipments = await service.list_for_customer(caller.user_id)
    return {"orders": [ShipmentDTO.from_shipment(s) for s in shipments]}


# =============================================================================
# DRIVER PROFILE
# =============================================================================

@router.post("/register-driver", status_code=status.HTTP_201_CREATED)
async def register_driver(
    request: RegisterDriverRequest,
    caller: CallerIdentity = Depends(get_caller),
    drivers: DriverService = Depends(get_driver_service),
) -> dict[str, Any]:
    driver = await drivers.register(
        caller.user_id,
        request.name,
        request.vehicle_type,
        request.license_number,
    )
    return {"success": True, "driver": driver}


@router.patch("/driver-profile", response_model=Driver)
async def update_driver_profile(
    request: UpdateDriverProfileRequest,
    caller: CallerIdentity = Depends(get_driver_caller),
    drivers: DriverService = Depends(get_driver_service),
) -> Driver:
    return await drivers.update_profile(
        caller.driver_id,
        name=request.name,
        vehicle_type=request.vehicle_type,
        license_number=request.license_number,
        status=request.status,
    )


# =============================================================================
# DRIVER WORKSPACE
# =============================================================================

@router.get("/available-packages")
async def list_available_packages(
    limit: Optional[int] = Query(default=None),
    caller: CallerIdentity = Depends(get_driver_caller),
    claims: ClaimCoordinator = Depends(get_claim_coordinator),
) -> dict[str, Any]:
    shipments = await claims.list_available(limit)
    return {"packages": [ShipmentDTO.from_shipment(s) for s in shipments]}


@router.post("/packages/{shipment_id}/claim")
async def claim_package(
    shipment_id: int,
    caller: CallerIdentity = Depends(get_driver_caller),
    claims: ClaimCoordinator = Depends(get_claim_coordinator),
) -> dict[str, Any]:
    shipment = await claims.claim(shipment_id, caller.driver_id)
    return {"success": True, "shipment": ShipmentDTO.from_shipment(shipment)}


@router.get("/deliveries")
async def list_deliveries(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    caller: CallerIdentity = Depends(get_driver_caller),
    service: StatusService = Depends(get_status_service),
) -> dict[str, Any]:
    shipments = await service.list_deliveries(caller.driver_id, status_filter)
    return {"deliveries": [ShipmentDTO.from_shipment(s) for s in shipments]}


@router.patch("/deliveries/{shipment_id}/status", response_model=ShipmentDTO)
async def update_delivery_status(
    shipment_id: int,
    request: UpdateStatusRequest,
    caller: CallerIdentity = Depends(get_driver_caller),
    service: StatusService = Depends(get_status_service),
) -> ShipmentDTO:
    shipment = await service.update_delivery_status(shipment_id, request.status, caller)
    return ShipmentDTO.from_shipment(shipment)


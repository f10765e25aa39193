# parceltrack/services/api/routes/shipments.py
"""
Shipment endpoints: customer CRUD, public tracking, status changes.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, status

from parceltrack.core.claims import ClaimCoordinator
from parceltrack.core.events import EventLog
from parceltrack.core.identity import CallerIdentity
from parceltrack.core.location import LocationTracker
from parceltrack.core.shipments import ShipmentService
from parceltrack.core.status import StatusService
from parceltrack.services.api.dependencies import (
    get_caller,
    get_claim_coordinator,
    get_event_log,
    get_location_tracker,
    get_public_reads,
    get_reader,
    get_shipment_service,
    get_status_service,
)
from parceltrack.services.api.errors import ERROR_RESPONSES
from parceltrack.shared.models import (
    AssignDriverRequest,
    CreateShipmentRequest,
    ShipmentDTO,
    ShipmentEvent,
    ShipmentLocation,
    UpdatePackageStatusRequest,
    UpdateStatusRequest,
)

router = APIRouter(tags=["Shipments"], responses=ERROR_RESPONSES)


# =============================================================================
# CUSTOMER SHIPMENTS
# =============================================================================

@router.post("/users/me/shipments", status_code=status.HTTP_201_CREATED)
async def create_shipment(
    request: CreateShipmentRequest,
    caller: CallerIdentity = Depends(get_caller),
    service: ShipmentService = Depends(get_shipment_service),
) -> dict[str, Any]:
    shipment = await service.create_from_request(caller.user_id, request)
    return {"shipment": ShipmentDTO.from_shipment(shipment)}


@router.get("/users/me/shipments", response_model=list[ShipmentDTO])
async def list_my_shipments(
    caller: CallerIdentity = Depends(get_caller),
    service: ShipmentService = Depends(get_shipment_service),
) -> list[ShipmentDTO]:
    shipments = await service.list_for_customer(caller.user_id)
    return [ShipmentDTO.from_shipment(s) for s in shipments]


@router.get("/orders", response_model=list[ShipmentDTO])
async def list_orders(
    caller: CallerIdentity = Depends(get_caller),
    service: ShipmentService = Depends(get_shipment_service),
) -> list[ShipmentDTO]:
    """Every shipment for admins, the caller's own otherwise."""
    shipments = await service.list_orders(caller)
    return [ShipmentDTO.from_shipment(s) for s in shipments]


@router.get("/users/me/shipments/{shipment_id}", response_model=ShipmentDTO)
async def get_my_shipment(
    shipment_id: int,
    caller: CallerIdentity = Depends(get_caller),
    service: ShipmentService = Depends(get_shipment_service),
) -> ShipmentDTO:
    shipment = await service.get_shipment(shipment_id, caller)
    return ShipmentDTO.from_shipment(shipment)


@router.delete("/users/me/shipments/{shipment_id}")
async def delete_my_shipment(
    shipment_id: int,
    caller: CallerIdentity = Depends(get_caller),
    service: ShipmentService = Depends(get_shipment_service),
) -> dict[str, Any]:
    await service.delete_shipment(shipment_id, caller)
    return {"success": True, "id": shipment_id}


# =============================================================================
# PUBLIC READS
# =============================================================================

@router.get("/shipments/track/{tracking_number}", response_model=ShipmentDTO)
async def track_shipment(
    tracking_number: str,
    service: ShipmentService = Depends(get_shipment_service),
) -> ShipmentDTO:
    shipment = await service.track(tracking_number)
    return ShipmentDTO.from_shipment(shipment)


@router.get("/shipments/{shipment_id}/location", response_model=Optional[ShipmentLocation])
async def get_shipment_location(
    shipment_id: int,
    caller: Optional[CallerIdentity] = Depends(get_reader),
    public_reads: bool = Depends(get_public_reads),
    shipments: ShipmentService = Depends(get_shipment_service),
    tracker: LocationTracker = Depends(get_location_tracker),
) -> Optional[ShipmentLocation]:
    """Live driver position, null until a driver reports one."""
    if not public_reads:
        await shipments.get_shipment(shipment_id, caller)
    return await tracker.get_location(shipment_id)


@router.get("/shipments/{shipment_id}/events", response_model=list[ShipmentEvent])
async def get_shipment_events(
    shipment_id: int,
    caller: Optional[CallerIdentity] = Depends(get_reader),
    public_reads: bool = Depends(get_public_reads),
    shipments: ShipmentService = Depends(get_shipment_service),
    events: EventLog = Depends(get_event_log),
) -> list[ShipmentEvent]:
    """History, oldest first. Kept after the shipment is deleted."""
    if not public_reads:
        await shipments.get_shipment(shipment_id, caller)
    return await events.list_for_shipment(shipment_id)


# =============================================================================
# STATUS AND ASSIGNMENT
# =============================================================================

@router.patch("/shipments/{shipment_id}/status", response_model=ShipmentDTO)
async def update_shipment_status(
    shipment_id: int,
    request: UpdateStatusRequest,
    caller: CallerIdentity = Depends(get_caller),
    service: StatusService = Depends(get_status_service),
) -> ShipmentDTO:
    shipment = await service.transition(shipment_id, request.status, caller)
    return ShipmentDTO.from_shipment(shipment)


@router.patch("/shipments/{shipment_id}/package-status", response_model=ShipmentDTO)
async def update_package_status(
    shipment_id: int,
    request: UpdatePackageStatusRequest,
    caller: CallerIdentity = Depends(get_caller),
    service: StatusService = Depends(get_status_service),
) -> ShipmentDTO:
    shipment = await service.set_package_status(shipment_id, request.package_status, caller)
    return ShipmentDTO.from_shipment(shipment)


@router.post("/shipments/{shipment_id}/assign-driver")
async def assign_driver(
    shipment_id: int,
    request: AssignDriverRequest,
    caller: CallerIdentity = Depends(get_caller),
    claims: ClaimCoordinator = Depends(get_claim_coordinator),
) -> dict[str, Any]:
    shipment = await claims.assign(shipment_id, request.driver_id, caller)
    return {"success": True, "shipment": ShipmentDTO.from_shipment(shipment)}

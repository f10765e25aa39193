# parceltrack/core/shipments/service.py
"""
Shipment store: creation, lookup, listing and deletion.
"""

from __future__ import annotations

import math
from typing import Optional

from parceltrack.common.constants import EventType, ShipmentStatus, TypeMsg, UserRole
from parceltrack.common.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from parceltrack.common.logger import log_info, log_warning
from parceltrack.core.events import EventLog
from parceltrack.core.identity import CallerIdentity
from parceltrack.core.shipments.repository import (
    DuplicateTrackingNumberError,
    MemoryShipmentRepository,
    ShipmentRepository,
)
from parceltrack.core.shipments.tracking import TrackingNumberGenerator, normalize_tracking_number
from parceltrack.shared.models import (
    Address,
    Contact,
    CreateShipmentRequest,
    PackageInfo,
    Shipment,
    ShipmentDraft,
)
from parceltrack.shared.models.shipment import PackageInput, PartyInput


def can_view(shipment: Shipment, caller: CallerIdentity) -> bool:
    """Owner, assigned driver or admin."""
    if caller.role == UserRole.ADMIN:
        return True
    if shipment.customer_id == caller.user_id:
        return True
    return shipment.driver_id is not None and shipment.driver_id == caller.driver_id


def _blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def _address(party: PartyInput) -> Address:
    address = party.address
    return Address(text=address.text.strip(), lat=address.lat, lng=address.lng)


class ShipmentService:
    """Shipment store operations."""

    def __init__(
        self,
        repository: ShipmentRepository | MemoryShipmentRepository,
        events: EventLog,
        tracking: TrackingNumberGenerator,
        max_attempts: int = 5,
    ) -> None:
        """
        Args:
            repository: Shipment storage
            events: Event log
            tracking: Tracking number candidate generator
            max_attempts: Collision retries before giving up
        """
        self._repo = repository
        self._events = events
        self._tracking = tracking
        self._max_attempts = max_attempts

    # =========================================================================
    # CREATE
    # =========================================================================

    async def create_from_request(self, customer_id: str, request: CreateShipmentRequest) -> Shipment:
        """Accepts both the nested and the deprecated flat payload."""
        if request.is_flat:
            await log_warning(
                "Deprecated flat shipment payload received, normalising to nested shape",
                extra={"customer_id": customer_id},
            )
        sender, receiver = request.parties()
        return await self.create_shipment(
            customer_id,
            sender,
            receiver,
            request.package or PackageInput(),
            request.total_amount,
            notes=request.notes,
        )

    async def create_shipment(
        self,
        customer_id: str,
        sender: PartyInput,
        receiver: PartyInput,
        package: PackageInput,
        total_amount: Optional[float],
        notes: Optional[str] = None,
    ) -> Shipment:
        """
        Creates a pending shipment with a fresh tracking number.

        Raises:
            ValidationError: missing or out-of-range input
            ConflictError: no free tracking number after max_attempts
        """
        self._validate(sender, receiver, package, total_amount)

        fields = {
            "customer_id": customer_id,
            "sender": Contact(name=sender.name.strip(), phone=sender.phone.strip()),
            "receiver": Contact(name=receiver.name.strip(), phone=receiver.phone.strip()),
            "pickup_address": _address(sender),
            "delivery_address": _address(receiver),
            "package": PackageInfo(
                weight=package.weight,
                description=package.description.strip(),
                dimensions=package.dimensions,
                fragile=package.fragile,
            ),
            "total_amount": total_amount or 0.0,
            "notes": notes,
        }

        shipment: Optional[Shipment] = None
        for attempt in range(1, self._max_attempts + 1):
            tracking_number = self._tracking.generate()
            if await self._repo.tracking_number_exists(tracking_number):
                await log_warning(f"Tracking number collision on attempt {attempt}: {tracking_number}")
                continue
            try:
                shipment = await self._repo.create(
                    ShipmentDraft(tracking_number=tracking_number, **fields),
                    self._events.draft(
                        EventType.CREATED,
                        "Shipment created",
                        new_status=ShipmentStatus.PENDING,
                    ),
                )
                break
            except DuplicateTrackingNumberError:
                await log_warning(f"Tracking number taken concurrently on attempt {attempt}: {tracking_number}")

        if shipment is None:
            raise ConflictError(
                "Could not allocate a unique tracking number",
                details={"attempts": self._max_attempts},
            )

        await log_info(
            f"Shipment {shipment.id} created ({shipment.tracking_number})",
            type_msg=TypeMsg.INFO,
            extra={"shipment_id": shipment.id, "customer_id": customer_id},
        )
        return shipment

    @staticmethod
    def _validate(
        sender: PartyInput,
        receiver: PartyInput,
        package: PackageInput,
        total_amount: Optional[float],
    ) -> None:
        missing: list[str] = []
        for label, party in (("sender", sender), ("receiver", receiver)):
            if _blank(party.name):
                missing.append(f"{label}.name")
            if _blank(party.phone):
                missing.append(f"{label}.phone")
            if party.address is None or _blank(party.address.text):
                missing.append(f"{label}.address")
        if package.weight is None:
            missing.append("package.weight")
        if _blank(package.description):
            missing.append("package.description")

        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}",
                details={"fields": missing},
            )
        if not math.isfinite(package.weight) or package.weight <= 0:
            raise ValidationError("Package weight must be positive", details={"field": "package.weight"})
        if total_amount is not None and (not math.isfinite(total_amount) or total_amount < 0):
            raise ValidationError("Total amount must be a non-negative number", details={"field": "totalAmount"})

    # =========================================================================
    # READ
    # =========================================================================

    async def require(self, shipment_id: int) -> Shipment:
        """Shipment or NotFoundError."""
        shipment = await self._repo.get_by_id(shipment_id)
        if shipment is None:
            raise NotFoundError(f"Shipment {shipment_id} not found")
        return shipment

    async def get_shipment(self, shipment_id: int, caller: CallerIdentity) -> Shipment:
        shipment = await self.require(shipment_id)
        if not can_view(shipment, caller):
            raise ForbiddenError("You do not have access to this shipment")
        return shipment

    async def track(self, tracking_number: str) -> Shipment:
        """Public lookup, case-insensitive."""
        shipment = await self._repo.get_by_tracking_number(normalize_tracking_number(tracking_number))
        if shipment is None:
            raise NotFoundError(f"No shipment with tracking number {tracking_number}")
        return shipment

    async def list_for_customer(self, customer_id: str) -> list[Shipment]:
        """Newest first."""
        return await self._repo.list_by_customer(customer_id)

    async def list_all(self) -> list[Shipment]:
        """Every shipment, newest first."""
        return await self._repo.list_all()

    async def list_orders(self, caller: CallerIdentity) -> list[Shipment]:
        """Admins see every shipment, everyone else their own."""
        if caller.is_admin:
            return await self.list_all()
        return await self.list_for_customer(caller.user_id)

    async def customer_stats(self, customer_id: str) -> dict[str, int]:
        """Shipment counts per status plus total."""
        counts = await self._repo.count_by_status(customer_id)
        stats = {status.value: counts.get(status.value, 0) for status in ShipmentStatus}
        stats["total"] = sum(stats.values())
        return stats

    # =========================================================================
    # DELETE
    # =========================================================================

    async def delete_shipment(self, shipment_id: int, caller: CallerIdentity) -> None:
        """
        Deletes a pending shipment of its owner. History is kept.

        Raises:
            NotFoundError: unknown id
            ForbiddenError: not the owner, or no longer pending
        """
        if await self._repo.delete_pending(shipment_id, caller.user_id):
            await log_info(
                f"Shipment {shipment_id} deleted by {caller.user_id}",
                type_msg=TypeMsg.INFO,
                extra={"shipment_id": shipment_id},
            )
            return

        shipment = await self.require(shipment_id)
        if shipment.customer_id != caller.user_id:
            raise ForbiddenError("Only the owner can delete this shipment")
        raise ForbiddenError(
            f"Shipment cannot be deleted in status {shipment.status}",
            details={"status": shipment.status.value},
        )

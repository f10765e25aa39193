# parceltrack/core/status/service.py
"""
Status changes of claimed shipments and the free-form package tag.

The status row, its event and the driver release are one repository write.
Subscribers are notified after the per-shipment lock is released.
"""

from __future__ import annotations

from typing import NoReturn, Optional

from parceltrack.common.constants import EventType, PackageStatus, ShipmentStatus, TypeMsg
from parceltrack.common.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from parceltrack.common.logger import log_info
from parceltrack.core.events import EventLog
from parceltrack.core.identity import CallerIdentity
from parceltrack.core.locks import KeyedLock
from parceltrack.core.realtime import RealtimeNotifier
from parceltrack.core.shipments.repository import MemoryShipmentRepository, ShipmentRepository
from parceltrack.core.status.state_machine import ShipmentStateMachine
from parceltrack.shared.models import Shipment


class StatusService:
    """Drives shipments through the state machine."""

    def __init__(
        self,
        shipments: ShipmentRepository | MemoryShipmentRepository,
        events: EventLog,
        notifier: RealtimeNotifier,
        locks: KeyedLock,
    ) -> None:
        self._shipments = shipments
        self._events = events
        self._notifier = notifier
        self._locks = locks

    async def transition(
        self,
        shipment_id: int,
        new_status: str,
        caller: CallerIdentity,
    ) -> Shipment:
        """
        Applies a caller-requested status change.

        Raises:
            ValidationError: unknown status value
            NotFoundError: unknown shipment
            InvalidTransitionError: edge not allowed from the current status
            ForbiddenError: caller is not the actor of the edge
            ConflictError: the row changed under us and the edge is still legal
        """
        target = ShipmentStateMachine.parse_status(new_status)

        async with self._locks.hold(shipment_id):
            shipment = await self._shipments.get_by_id(shipment_id)
            if shipment is None:
                raise NotFoundError(f"Shipment {shipment_id} not found")

            ShipmentStateMachine.authorize(shipment, target, caller)

            event = self._events.draft(
                EventType.STATUS_CHANGED,
                f"Status changed from {shipment.status} to {target}",
                old_status=shipment.status,
                new_status=target,
            )
            updated = await self._shipments.update_status(shipment_id, shipment.status, target, event)
            if updated is None:
                await self._raise_lost_update(shipment_id, target, caller)

        await self._notifier.shipment_updated(shipment_id, target)

        await log_info(
            f"Shipment {shipment_id}: {shipment.status} -> {target}",
            type_msg=TypeMsg.INFO,
            extra={"shipment_id": shipment_id, "driver_id": updated.driver_id},
        )

        return updated

    async def _raise_lost_update(
        self,
        shipment_id: int,
        target: ShipmentStatus,
        caller: CallerIdentity,
    ) -> NoReturn:
        """Re-evaluates a failed conditional update against the fresh row."""
        fresh = await self._shipments.get_by_id(shipment_id)
        if fresh is None:
            raise NotFoundError(f"Shipment {shipment_id} not found")
        ShipmentStateMachine.authorize(fresh, target, caller)
        raise ConflictError("Shipment was modified concurrently, retry the request")

    async def set_package_status(
        self,
        shipment_id: int,
        package_status: str,
        caller: CallerIdentity,
    ) -> Shipment:
        """
        Sets the free-form package tag. Admin only; not governed by the state machine.
        Setting the current value again writes nothing.
        """
        if not caller.is_admin:
            raise ForbiddenError("Only admins can set the package status")

        try:
            value = PackageStatus(str(package_status).strip().lower())
        except ValueError:
            allowed = ", ".join(s.value for s in PackageStatus)
            raise ValidationError(
                f"Unknown package status '{package_status}'. Allowed: {allowed}",
                details={"field": "packageStatus"},
            )

        async with self._locks.hold(shipment_id):
            before = await self._shipments.get_by_id(shipment_id)
            if before is None:
                raise NotFoundError(f"Shipment {shipment_id} not found")

            if before.package.status == value:
                return before

            event = self._events.draft(
                EventType.PACKAGE_STATUS_CHANGED,
                f"Package status set to {value}",
                old_status=before.package.status,
                new_status=value,
            )
            updated = await self._shipments.update_package_status(shipment_id, value, event)
            if updated is None:
                raise NotFoundError(f"Shipment {shipment_id} not found")

        return updated

    async def list_deliveries(
        self,
        driver_id: int,
        status: Optional[str] = None,
    ) -> list[Shipment]:
        """Shipments held by a driver, optionally filtered by status."""
        status_filter = ShipmentStateMachine.parse_status(status) if status else None
        return await self._shipments.list_by_driver(driver_id, status_filter)

    async def update_delivery_status(
        self,
        shipment_id: int,
        new_status: str,
        caller: CallerIdentity,
    ) -> Shipment:
        """Driver-scoped alias of transition()."""
        if not caller.is_driver:
            raise ForbiddenError("Driver profile required")
        return await self.transition(shipment_id, new_status, caller)

# parceltrack/core/claims/service.py
"""
Driver claim coordinator.

At most one driver ever holds a shipment. The claim is a single conditional
update on (status = pending, driver_id IS NULL); concurrent claimers race on
it and every loser gets a ConflictError. There are no internal retries.
"""

from __future__ import annotations

from typing import Optional

from parceltrack.common.constants import EventType, ShipmentStatus, TypeMsg
from parceltrack.common.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    StorageUnavailableError,
)
from parceltrack.common.logger import log_info
from parceltrack.core.drivers.repository import DriverRepository, MemoryDriverRepository
from parceltrack.core.events import EventLog
from parceltrack.core.identity import CallerIdentity
from parceltrack.core.locks import KeyedLock
from parceltrack.core.realtime import RealtimeNotifier
from parceltrack.core.shipments.repository import MemoryShipmentRepository, ShipmentRepository
from parceltrack.shared.models import EventDraft, Shipment


class ClaimCoordinator:
    """Lists claimable shipments and hands them to drivers."""

    def __init__(
        self,
        shipments: ShipmentRepository | MemoryShipmentRepository,
        drivers: DriverRepository | MemoryDriverRepository,
        events: EventLog,
        notifier: RealtimeNotifier,
        locks: KeyedLock,
        default_limit: int = 50,
        max_limit: int = 200,
    ) -> None:
        self._shipments = shipments
        self._drivers = drivers
        self._events = events
        self._notifier = notifier
        self._locks = locks
        self._default_limit = default_limit
        self._max_limit = max_limit

    async def list_available(self, limit: Optional[int] = None) -> list[Shipment]:
        """Pending, unclaimed shipments, oldest first. Limit is clamped to [1, max]."""
        if limit is None:
            limit = self._default_limit
        limit = max(1, min(limit, self._max_limit))
        return await self._shipments.list_available(limit)

    async def claim(self, shipment_id: int, driver_id: int) -> Shipment:
        """
        Claims a shipment for a driver.

        Raises:
            NotFoundError: unknown driver or shipment
            ConflictError: another driver got there first
        """
        driver = await self._drivers.get_by_id(driver_id)
        if driver is None:
            raise NotFoundError(f"Driver {driver_id} not found")

        event = self._events.draft(
            EventType.ASSIGNED,
            f"Assigned to driver {driver.name}",
            old_status=ShipmentStatus.PENDING,
            new_status=ShipmentStatus.ASSIGNED,
        )

        async with self._locks.hold(shipment_id):
            claimed = await self._claim_once(shipment_id, driver_id, event)
            if claimed is None:
                existing = await self._shipments.get_by_id(shipment_id)
                if existing is None:
                    raise NotFoundError(f"Shipment {shipment_id} not found")
                raise ConflictError(
                    "Shipment already claimed",
                    details={"status": existing.status.value},
                )

        await self._notifier.shipment_assigned(shipment_id, driver_id)
        await self._notifier.shipment_updated(shipment_id, ShipmentStatus.ASSIGNED)

        await log_info(
            f"Shipment {shipment_id} claimed by driver {driver_id}",
            type_msg=TypeMsg.INFO,
            extra={"shipment_id": shipment_id, "driver_id": driver_id},
        )
        return claimed

    async def _claim_once(
        self,
        shipment_id: int,
        driver_id: int,
        event: EventDraft,
    ) -> Optional[Shipment]:
        """
        One conditional claim. When the connection drops around COMMIT the
        row is read back: a claim that did land for this driver is a success.
        """
        try:
            return await self._shipments.claim(shipment_id, driver_id, event)
        except StorageUnavailableError:
            current = await self._shipments.get_by_id(shipment_id)
            if (
                current is not None
                and current.status == ShipmentStatus.ASSIGNED
                and current.driver_id == driver_id
            ):
                return current
            raise

    async def assign(self, shipment_id: int, driver_id: int, caller: CallerIdentity) -> Shipment:
        """Admin assignment, or a driver assigning themselves. Same race rules as claim()."""
        if not caller.is_admin and caller.driver_id != driver_id:
            raise ForbiddenError("Only admins can assign shipments to other drivers")
        return await self.claim(shipment_id, driver_id)

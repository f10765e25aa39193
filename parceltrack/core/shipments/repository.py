# parceltrack/core/shipments/repository.py
"""
Shipment storage.

Ownership-changing writes (claim, status change, delete) are conditional:
the row is only touched when it is still in the expected state, and the
caller learns whether it won from the returned row. Every write that
changes a shipment also records its event (and the driver status it
implies) in the same transaction, or under one hold of the memory lock.
"""

from __future__ import annotations

from typing import Any, Optional

import asyncpg

from parceltrack.common.constants import (
    ACTIVE_DELIVERY_STATUSES,
    TERMINAL_STATUSES,
    DriverStatus,
    PackageStatus,
    ShipmentStatus,
)
from parceltrack.core.drivers.repository import DriverRepository
from parceltrack.core.events.repository import EventRepository, MemoryEventRepository
from parceltrack.infra.database import DatabaseManager
from parceltrack.infra.memory_store import MemoryStore, utc_now
from parceltrack.shared.models import (
    Address,
    Contact,
    EventDraft,
    PackageInfo,
    Shipment,
    ShipmentDraft,
)


class DuplicateTrackingNumberError(Exception):
    """The tracking number is already taken."""


_SHIPMENT_COLUMNS = """
    id, tracking_number, status, customer_id, driver_id,
    sender_name, sender_phone, receiver_name, receiver_phone,
    pickup_address, pickup_latitude, pickup_longitude,
    delivery_address, delivery_latitude, delivery_longitude,
    package_weight, package_description, package_dimensions, package_fragile, package_status,
    total_amount, notes, created_at, updated_at
"""


# =============================================================================
# POSTGRESQL
# =============================================================================

class ShipmentRepository:
    """Shipments in PostgreSQL."""

    def __init__(self, db: DatabaseManager) -> None:
        """
        Args:
            db: Database manager (Dependency Injection)
        """
        self._db = db

    async def tracking_number_exists(self, tracking_number: str) -> bool:
        return bool(
            await self._db.fetchval(
                "SELECT EXISTS (SELECT 1 FROM shipments WHERE tracking_number = $1)",
                tracking_number,
            )
        )

    async def create(self, draft: ShipmentDraft, event: EventDraft) -> Shipment:
        """
        Inserts a pending shipment and its creation event.

        Raises:
            DuplicateTrackingNumberError: tracking number taken by a concurrent insert
        """
        try:
            async with self._db.transaction() as conn:
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO shipments (
                        tracking_number, customer_id,
                        sender_name, sender_phone, receiver_name, receiver_phone,
                        pickup_address, pickup_latitude, pickup_longitude,
                        delivery_address, delivery_latitude, delivery_longitude,
                        package_weight, package_description, package_dimensions, package_fragile,
                        total_amount, notes
                    )
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15, $16, $17, $18)
                    RETURNING {_SHIPMENT_COLUMNS}
                    """,
                    draft.tracking_number,
                    draft.customer_id,
                    draft.sender.name,
                    draft.sender.phone,
                    draft.receiver.name,
                    draft.receiver.phone,
                    draft.pickup_address.text,
                    draft.pickup_address.lat,
                    draft.pickup_address.lng,
                    draft.delivery_address.text,
                    draft.delivery_address.lat,
                    draft.delivery_address.lng,
                    draft.package.weight,
                    draft.package.description,
                    draft.package.dimensions,
                    draft.package.fragile,
                    draft.total_amount,
                    draft.notes,
                )
                await EventRepository.insert(conn, row["id"], event)
        except asyncpg.UniqueViolationError as e:
            raise DuplicateTrackingNumberError(draft.tracking_number) from e
        return self._row_to_shipment(row)

    async def get_by_id(self, shipment_id: int) -> Optional[Shipment]:
        row = await self._db.fetchrow(
            f"SELECT {_SHIPMENT_COLUMNS} FROM shipments WHERE id = $1",
            shipment_id,
        )
        return self._row_to_shipment(row) if row else None

    async def get_by_tracking_number(self, tracking_number: str) -> Optional[Shipment]:
        row = await self._db.fetchrow(
            f"SELECT {_SHIPMENT_COLUMNS} FROM shipments WHERE tracking_number = $1",
            tracking_number,
        )
        return self._row_to_shipment(row) if row else None

    async def list_by_customer(self, customer_id: str) -> list[Shipment]:
        """Newest first."""
        rows = await self._db.fetch(
            f"""
            SELECT {_SHIPMENT_COLUMNS}
            FROM shipments
            WHERE customer_id = $1
            ORDER BY created_at DESC, id DESC
            """,
            customer_id,
        )
        return [self._row_to_shipment(row) for row in rows]

    async def list_all(self) -> list[Shipment]:
        """Every shipment, newest first."""
        rows = await self._db.fetch(
            f"""
            SELECT {_SHIPMENT_COLUMNS}
            FROM shipments
            ORDER BY created_at DESC, id DESC
            """
        )
        return [self._row_to_shipment(row) for row in rows]

    async def list_available(self, limit: int) -> list[Shipment]:
        """Unclaimed pending shipments, oldest first."""
        rows = await self._db.fetch(
            f"""
            SELECT {_SHIPMENT_COLUMNS}
            FROM shipments
            WHERE status = $1 AND driver_id IS NULL
            ORDER BY created_at ASC, id ASC
            LIMIT $2
            """,
            ShipmentStatus.PENDING.value,
            limit,
        )
        return [self._row_to_shipment(row) for row in rows]

    async def list_by_driver(
        self,
        driver_id: int,
        status: Optional[ShipmentStatus] = None,
    ) -> list[Shipment]:
        """Deliveries of a driver, newest first."""
        if status is None:
            rows = await self._db.fetch(
                f"""
                SELECT {_SHIPMENT_COLUMNS}
                FROM shipments
                WHERE driver_id = $1
                ORDER BY created_at DESC, id DESC
                """,
                driver_id,
            )
        else:
            rows = await self._db.fetch(
                f"""
                SELECT {_SHIPMENT_COLUMNS}
                FROM shipments
                WHERE driver_id = $1 AND status = $2
                ORDER BY created_at DESC, id DESC
                """,
                driver_id,
                status.value,
            )
        return [self._row_to_shipment(row) for row in rows]

    async def count_by_status(self, customer_id: str) -> dict[str, int]:
        rows = await self._db.fetch(
            """
            SELECT status, COUNT(*) AS total
            FROM shipments
            WHERE customer_id = $1
            GROUP BY status
            """,
            customer_id,
        )
        return {row["status"]: row["total"] for row in rows}

    async def delete_pending(self, shipment_id: int, customer_id: str) -> bool:
        """Deletes the shipment only while it is pending, unclaimed and owned by customer_id."""
        deleted = await self._db.fetchval(
            """
            DELETE FROM shipments
            WHERE id = $1 AND customer_id = $2 AND status = $3 AND driver_id IS NULL
            RETURNING id
            """,
            shipment_id,
            customer_id,
            ShipmentStatus.PENDING.value,
        )
        return deleted is not None

    async def claim(self, shipment_id: int, driver_id: int, event: EventDraft) -> Optional[Shipment]:
        """
        Assigns the driver if nobody did before, records the event and marks
        the driver busy in one transaction.

        Returns:
            Updated shipment, or None when the row was not claimable
        """
        async with self._db.transaction() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE shipments
                SET driver_id = $2, status = $3, updated_at = NOW()
                WHERE id = $1 AND status = $4 AND driver_id IS NULL
                RETURNING {_SHIPMENT_COLUMNS}
                """,
                shipment_id,
                driver_id,
                ShipmentStatus.ASSIGNED.value,
                ShipmentStatus.PENDING.value,
            )
            if row is None:
                return None
            await EventRepository.insert(conn, shipment_id, event)
            await DriverRepository.set_status_on(conn, driver_id, DriverStatus.BUSY)
        return self._row_to_shipment(row)

    async def update_status(
        self,
        shipment_id: int,
        expected: ShipmentStatus,
        new_status: ShipmentStatus,
        event: EventDraft,
    ) -> Optional[Shipment]:
        """
        Moves the shipment from `expected` to `new_status` and records the
        event. A terminal status frees the driver once nothing else is active.

        Returns:
            Updated shipment, or None when the current status is no longer `expected`
        """
        async with self._db.transaction() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE shipments
                SET status = $3, updated_at = NOW()
                WHERE id = $1 AND status = $2
                RETURNING {_SHIPMENT_COLUMNS}
                """,
                shipment_id,
                expected.value,
                new_status.value,
            )
            if row is None:
                return None
            await EventRepository.insert(conn, shipment_id, event)
            if new_status in TERMINAL_STATUSES and row["driver_id"] is not None:
                await DriverRepository.release_on(conn, row["driver_id"])
        return self._row_to_shipment(row)

    async def update_package_status(
        self,
        shipment_id: int,
        package_status: PackageStatus,
        event: EventDraft,
    ) -> Optional[Shipment]:
        async with self._db.transaction() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE shipments
                SET package_status = $2, updated_at = NOW()
                WHERE id = $1
                RETURNING {_SHIPMENT_COLUMNS}
                """,
                shipment_id,
                package_status.value,
            )
            if row is None:
                return None
            await EventRepository.insert(conn, shipment_id, event)
        return self._row_to_shipment(row)

    @staticmethod
    def _row_to_shipment(row: Any) -> Shipment:
        """Maps a flat row onto the nested model."""
        return Shipment(
            id=row["id"],
            tracking_number=row["tracking_number"],
            status=ShipmentStatus(row["status"]),
            customer_id=row["customer_id"],
            driver_id=row["driver_id"],
            sender=Contact(name=row["sender_name"], phone=row["sender_phone"]),
            receiver=Contact(name=row["receiver_name"], phone=row["receiver_phone"]),
            pickup_address=Address(
                text=row["pickup_address"],
                lat=row["pickup_latitude"],
                lng=row["pickup_longitude"],
            ),
            delivery_address=Address(
                text=row["delivery_address"],
                lat=row["delivery_latitude"],
                lng=row["delivery_longitude"],
            ),
            package=PackageInfo(
                weight=row["package_weight"],
                description=row["package_description"],
                dimensions=row["package_dimensions"],
                fragile=row["package_fragile"],
                status=PackageStatus(row["package_status"]) if row["package_status"] else None,
            ),
            total_amount=float(row["total_amount"]),
            notes=row["notes"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


# =============================================================================
# IN-MEMORY
# =============================================================================

class MemoryShipmentRepository:
    """
    Shipments in the in-memory store. Same contract as ShipmentRepository.

    Multi-row writes stage every new row first and commit them only after
    the event is recorded, so a failure leaves the store untouched.
    """

    def __init__(self, store: MemoryStore) -> None:
        self._store = store

    async def tracking_number_exists(self, tracking_number: str) -> bool:
        with self._store.lock:
            return tracking_number in self._store.tracking_numbers

    async def create(self, draft: ShipmentDraft, event: EventDraft) -> Shipment:
        with self._store.lock:
            if draft.tracking_number in self._store.tracking_numbers:
                raise DuplicateTrackingNumberError(draft.tracking_number)
            now = utc_now()
            shipment = Shipment(
                id=self._store.next_id("shipments"),
                created_at=now,
                updated_at=now,
                **draft.model_dump(),
            )
            MemoryEventRepository.add(self._store, shipment.id, event)
            self._store.shipments[shipment.id] = shipment
            self._store.tracking_numbers[shipment.tracking_number] = shipment.id
        return shipment

    async def get_by_id(self, shipment_id: int) -> Optional[Shipment]:
        with self._store.lock:
            return self._store.shipments.get(shipment_id)

    async def get_by_tracking_number(self, tracking_number: str) -> Optional[Shipment]:
        with self._store.lock:
            shipment_id = self._store.tracking_numbers.get(tracking_number)
            return self._store.shipments.get(shipment_id) if shipment_id is not None else None

    async def list_by_customer(self, customer_id: str) -> list[Shipment]:
        with self._store.lock:
            rows = [s for s in self._store.shipments.values() if s.customer_id == customer_id]
        return sorted(rows, key=lambda s: (s.created_at, s.id), reverse=True)

    async def list_all(self) -> list[Shipment]:
        with self._store.lock:
            rows = list(self._store.shipments.values())
        return sorted(rows, key=lambda s: (s.created_at, s.id), reverse=True)

    async def list_available(self, limit: int) -> list[Shipment]:
        with self._store.lock:
            rows = [s for s in self._store.shipments.values() if s.is_claimable]
        return sorted(rows, key=lambda s: (s.created_at, s.id))[:limit]

    async def list_by_driver(
        self,
        driver_id: int,
        status: Optional[ShipmentStatus] = None,
    ) -> list[Shipment]:
        with self._store.lock:
            rows = [
                s for s in self._store.shipments.values()
                if s.driver_id == driver_id and (status is None or s.status == status)
            ]
        return sorted(rows, key=lambda s: (s.created_at, s.id), reverse=True)

    def _count_active(self, driver_id: int, skip: Optional[int] = None) -> int:
        return sum(
            1 for s in self._store.shipments.values()
            if s.id != skip and s.driver_id == driver_id and s.status in ACTIVE_DELIVERY_STATUSES
        )

    async def count_by_status(self, customer_id: str) -> dict[str, int]:
        counts: dict[str, int] = {}
        with self._store.lock:
            for s in self._store.shipments.values():
                if s.customer_id == customer_id:
                    counts[s.status.value] = counts.get(s.status.value, 0) + 1
        return counts

    async def delete_pending(self, shipment_id: int, customer_id: str) -> bool:
        with self._store.lock:
            shipment = self._store.shipments.get(shipment_id)
            if shipment is None or shipment.customer_id != customer_id or not shipment.is_claimable:
                return False
            del self._store.shipments[shipment_id]
            del self._store.tracking_numbers[shipment.tracking_number]
        return True

    async def claim(self, shipment_id: int, driver_id: int, event: EventDraft) -> Optional[Shipment]:
        with self._store.lock:
            shipment = self._store.shipments.get(shipment_id)
            if shipment is None or not shipment.is_claimable:
                return None
            now = utc_now()
            updated = shipment.model_copy(
                update={
                    "driver_id": driver_id,
                    "status": ShipmentStatus.ASSIGNED,
                    "updated_at": now,
                }
            )
            driver = self._store.drivers.get(driver_id)

            MemoryEventRepository.add(self._store, shipment_id, event)
            self._store.shipments[shipment_id] = updated
            if driver is not None:
                self._store.drivers[driver_id] = driver.model_copy(
                    update={"status": DriverStatus.BUSY, "updated_at": now}
                )
        return updated

    async def update_status(
        self,
        shipment_id: int,
        expected: ShipmentStatus,
        new_status: ShipmentStatus,
        event: EventDraft,
    ) -> Optional[Shipment]:
        with self._store.lock:
            shipment = self._store.shipments.get(shipment_id)
            if shipment is None or shipment.status != expected:
                return None
            now = utc_now()
            updated = shipment.model_copy(update={"status": new_status, "updated_at": now})

            released = None
            if new_status in TERMINAL_STATUSES and shipment.driver_id is not None:
                driver = self._store.drivers.get(shipment.driver_id)
                if (
                    driver is not None
                    and driver.status == DriverStatus.BUSY
                    and self._count_active(driver.id, skip=shipment_id) == 0
                ):
                    released = driver.model_copy(
                        update={"status": DriverStatus.AVAILABLE, "updated_at": now}
                    )

            MemoryEventRepository.add(self._store, shipment_id, event)
            self._store.shipments[shipment_id] = updated
            if released is not None:
                self._store.drivers[released.id] = released
        return updated

    async def update_package_status(
        self,
        shipment_id: int,
        package_status: PackageStatus,
        event: EventDraft,
    ) -> Optional[Shipment]:
        with self._store.lock:
            shipment = self._store.shipments.get(shipment_id)
            if shipment is None:
                return None
            package = shipment.package.model_copy(update={"status": package_status})
            updated = shipment.model_copy(update={"package": package, "updated_at": utc_now()})

            MemoryEventRepository.add(self._store, shipment_id, event)
            self._store.shipments[shipment_id] = updated
        return updated

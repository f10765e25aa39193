# parceltrack/core/drivers/repository.py
"""
Driver storage.
"""

from __future__ import annotations

from typing import Any, Optional

import asyncpg
from asyncpg import Connection

from parceltrack.common.constants import ACTIVE_DELIVERY_STATUSES, DriverStatus
from parceltrack.infra.database import DatabaseManager
from parceltrack.infra.memory_store import MemoryStore, utc_now
from parceltrack.shared.models import Driver


class DuplicateDriverError(Exception):
    """The user already has a driver profile."""


_DRIVER_COLUMNS = "id, user_id, name, vehicle_type, license_number, status, created_at, updated_at"

# Columns a driver may change on their own profile
PROFILE_FIELDS = ("name", "vehicle_type", "license_number", "status")


class DriverRepository:
    """Drivers in PostgreSQL."""

    def __init__(self, db: DatabaseManager) -> None:
        """
        Args:
            db: Database manager (Dependency Injection)
        """
        self._db = db

    async def create(
        self,
        user_id: str,
        name: str,
        vehicle_type: str,
        license_number: str,
    ) -> Driver:
        """
        Registers a driver.

        Raises:
            DuplicateDriverError: user_id already registered
        """
        try:
            row = await self._db.fetchrow(
                f"""
                INSERT INTO drivers (user_id, name, vehicle_type, license_number, status)
                VALUES ($1, $2, $3, $4, $5)
                RETURNING {_DRIVER_COLUMNS}
                """,
                user_id,
                name,
                vehicle_type,
                license_number,
                DriverStatus.AVAILABLE.value,
            )
        except asyncpg.UniqueViolationError as e:
            raise DuplicateDriverError(user_id) from e
        return self._row_to_driver(row)

    async def get_by_id(self, driver_id: int) -> Optional[Driver]:
        row = await self._db.fetchrow(
            f"SELECT {_DRIVER_COLUMNS} FROM drivers WHERE id = $1",
            driver_id,
        )
        return self._row_to_driver(row) if row else None

    async def get_by_user_id(self, user_id: str) -> Optional[Driver]:
        row = await self._db.fetchrow(
            f"SELECT {_DRIVER_COLUMNS} FROM drivers WHERE user_id = $1",
            user_id,
        )
        return self._row_to_driver(row) if row else None

    async def list_all(self) -> list[Driver]:
        rows = await self._db.fetch(f"SELECT {_DRIVER_COLUMNS} FROM drivers ORDER BY id")
        return [self._row_to_driver(row) for row in rows]

    async def update_status(self, driver_id: int, status: DriverStatus) -> Optional[Driver]:
        row = await self._db.fetchrow(
            f"""
            UPDATE drivers
            SET status = $2, updated_at = NOW()
            WHERE id = $1
            RETURNING {_DRIVER_COLUMNS}
            """,
            driver_id,
            status.value,
        )
        return self._row_to_driver(row) if row else None

    @staticmethod
    async def set_status_on(conn: Connection, driver_id: int, status: DriverStatus) -> None:
        """Status update on the caller's transaction connection."""
        await conn.execute(
            "UPDATE drivers SET status = $2, updated_at = NOW() WHERE id = $1",
            driver_id,
            status.value,
        )

    @staticmethod
    async def release_on(conn: Connection, driver_id: int) -> None:
        """Busy driver back to available once no delivery of theirs is active."""
        await conn.execute(
            """
            UPDATE drivers
            SET status = $2, updated_at = NOW()
            WHERE id = $1 AND status = $3
              AND NOT EXISTS (
                  SELECT 1 FROM shipments
                  WHERE driver_id = $1 AND status = ANY($4::text[])
              )
            """,
            driver_id,
            DriverStatus.AVAILABLE.value,
            DriverStatus.BUSY.value,
            [s.value for s in ACTIVE_DELIVERY_STATUSES],
        )

    async def update_profile(self, driver_id: int, changes: dict[str, Any]) -> Optional[Driver]:
        """
        Updates the given profile columns.

        Args:
            driver_id: Driver id
            changes: Column -> value, keys limited to PROFILE_FIELDS
        """
        fields = {k: v for k, v in changes.items() if k in PROFILE_FIELDS}
        if not fields:
            return await self.get_by_id(driver_id)

        assignments = ", ".join(f"{col} = ${i + 2}" for i, col in enumerate(fields))
        values = [v.value if isinstance(v, DriverStatus) else v for v in fields.values()]
        row = await self._db.fetchrow(
            f"""
            UPDATE drivers
            SET {assignments}, updated_at = NOW()
            WHERE id = $1
            RETURNING {_DRIVER_COLUMNS}
            """,
            driver_id,
            *values,
        )
        return self._row_to_driver(row) if row else None

    @staticmethod
    def _row_to_driver(row: Any) -> Driver:
        return Driver(
            id=row["id"],
            user_id=row["user_id"],
            name=row["name"],
            vehicle_type=row["vehicle_type"],
            license_number=row["license_number"],
            status=DriverStatus(row["status"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


class MemoryDriverRepository:
    """Drivers in the in-memory store."""

    def __init__(self, store: MemoryStore) -> None:
        self._store = store

    async def create(
        self,
        user_id: str,
        name: str,
        vehicle_type: str,
        license_number: str,
    ) -> Driver:
        with self._store.lock:
            if user_id in self._store.drivers_by_user:
                raise DuplicateDriverError(user_id)
            now = utc_now()
            driver = Driver(
                id=self._store.next_id("drivers"),
                user_id=user_id,
                name=name,
                vehicle_type=vehicle_type,
                license_number=license_number,
                status=DriverStatus.AVAILABLE,
                created_at=now,
                updated_at=now,
            )
            self._store.drivers[driver.id] = driver
            self._store.drivers_by_user[user_id] = driver.id
        return driver

    async def get_by_id(self, driver_id: int) -> Optional[Driver]:
        with self._store.lock:
            return self._store.drivers.get(driver_id)

    async def get_by_user_id(self, user_id: str) -> Optional[Driver]:
        with self._store.lock:
            driver_id = self._store.drivers_by_user.get(user_id)
            return self._store.drivers.get(driver_id) if driver_id is not None else None

    async def list_all(self) -> list[Driver]:
        with self._store.lock:
            return sorted(self._store.drivers.values(), key=lambda d: d.id)

    async def update_status(self, driver_id: int, status: DriverStatus) -> Optional[Driver]:
        return await self.update_profile(driver_id, {"status": status})

    async def update_profile(self, driver_id: int, changes: dict[str, Any]) -> Optional[Driver]:
        fields = {k: v for k, v in changes.items() if k in PROFILE_FIELDS}
        with self._store.lock:
            driver = self._store.drivers.get(driver_id)
            if driver is None:
                return None
            if not fields:
                return driver
            updated = driver.model_copy(update={**fields, "updated_at": utc_now()})
            self._store.drivers[driver_id] = updated
        return updated

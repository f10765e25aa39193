# parceltrack/core/location/repository.py
"""
Current driver positions. One row per driver, overwritten on every report.
"""

from __future__ import annotations

from typing import Any, Optional

from parceltrack.infra.database import DatabaseManager
from parceltrack.infra.memory_store import MemoryStore
from parceltrack.shared.models import LocationSample


class LocationRepository:
    """Driver positions in PostgreSQL."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def upsert(self, sample: LocationSample) -> LocationSample:
        row = await self._db.fetchrow(
            """
            INSERT INTO driver_locations (driver_id, latitude, longitude, accuracy, recorded_at)
            VALUES ($1, $2, $3, $4, $5)
            ON CONFLICT (driver_id) DO UPDATE
            SET latitude = EXCLUDED.latitude,
                longitude = EXCLUDED.longitude,
                accuracy = EXCLUDED.accuracy,
                recorded_at = EXCLUDED.recorded_at
            RETURNING driver_id, latitude, longitude, accuracy, recorded_at
            """,
            sample.driver_id,
            sample.latitude,
            sample.longitude,
            sample.accuracy,
            sample.timestamp,
        )
        return self._row_to_sample(row)

    async def get(self, driver_id: int) -> Optional[LocationSample]:
        row = await self._db.fetchrow(
            """
            SELECT driver_id, latitude, longitude, accuracy, recorded_at
            FROM driver_locations
            WHERE driver_id = $1
            """,
            driver_id,
        )
        return self._row_to_sample(row) if row else None

    @staticmethod
    def _row_to_sample(row: Any) -> LocationSample:
        return LocationSample(
            driver_id=row["driver_id"],
            latitude=row["latitude"],
            longitude=row["longitude"],
            accuracy=row["accuracy"],
            timestamp=row["recorded_at"],
        )


class MemoryLocationRepository:
    """Driver positions in the in-memory store."""

    def __init__(self, store: MemoryStore) -> None:
        self._store = store

    async def upsert(self, sample: LocationSample) -> LocationSample:
        with self._store.lock:
            self._store.locations[sample.driver_id] = sample
        return sample

    async def get(self, driver_id: int) -> Optional[LocationSample]:
        with self._store.lock:
            return self._store.locations.get(driver_id)

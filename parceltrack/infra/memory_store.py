# parceltrack/infra/memory_store.py
"""
In-memory storage backend.
Holds the same tables as migrations/init.sql for development and tests.
"""

from __future__ import annotations

import itertools
import threading
from datetime import datetime, timezone
from typing import Any

from parceltrack.shared.models import Driver, LocationSample, Shipment, ShipmentEvent


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MemoryStore:
    """
    Process-local tables.

    Every read-modify-write runs under `lock`, so conditional updates are
    linearizable the same way a conditional UPDATE is in PostgreSQL.
    Critical sections never await.
    """

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.shipments: dict[int, Shipment] = {}
        self.tracking_numbers: dict[str, int] = {}
        self.events: list[ShipmentEvent] = []
        self.drivers: dict[int, Driver] = {}
        self.drivers_by_user: dict[str, int] = {}
        self.locations: dict[int, LocationSample] = {}
        self._sequences: dict[str, Any] = {}

    def next_id(self, table: str) -> int:
        """BIGSERIAL equivalent."""
        with self.lock:
            if table not in self._sequences:
                self._sequences[table] = itertools.count(1)
            return next(self._sequences[table])

    def clear(self) -> None:
        with self.lock:
            self.shipments.clear()
            self.tracking_numbers.clear()
            self.events.clear()
            self.drivers.clear()
            self.drivers_by_user.clear()
            self.locations.clear()
            self._sequences.clear()

# parceltrack/core/events/repository.py
"""
Shipment event storage.

Events are written only as part of the state change they describe: the
shipment repositories call insert()/add() inside their own transaction or
critical section.
"""

from __future__ import annotations

from typing import Any

from asyncpg import Connection

from parceltrack.common.constants import EventType
from parceltrack.infra.database import DatabaseManager
from parceltrack.infra.memory_store import MemoryStore, utc_now
from parceltrack.shared.models import EventDraft, ShipmentEvent

_EVENT_COLUMNS = "id, shipment_id, event_type, description, old_status, new_status, occurred_at"


class EventRepository:
    """Event log in PostgreSQL."""

    def __init__(self, db: DatabaseManager) -> None:
        """
        Args:
            db: Database manager (Dependency Injection)
        """
        self._db = db

    @staticmethod
    async def insert(conn: Connection, shipment_id: int, draft: EventDraft) -> ShipmentEvent:
        """Inserts one event row on the caller's transaction connection."""
        row = await conn.fetchrow(
            f"""
            INSERT INTO shipment_events (shipment_id, event_type, description, old_status, new_status)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING {_EVENT_COLUMNS}
            """,
            shipment_id,
            draft.event_type.value,
            draft.description,
            draft.old_status,
            draft.new_status,
        )
        return EventRepository._row_to_event(row)

    async def list_for_shipment(self, shipment_id: int) -> list[ShipmentEvent]:
        """Events of a shipment, oldest first."""
        rows = await self._db.fetch(
            f"""
            SELECT {_EVENT_COLUMNS}
            FROM shipment_events
            WHERE shipment_id = $1
            ORDER BY occurred_at ASC, id ASC
            """,
            shipment_id,
        )
        return [self._row_to_event(row) for row in rows]

    @staticmethod
    def _row_to_event(row: Any) -> ShipmentEvent:
        return ShipmentEvent(
            id=row["id"],
            shipment_id=row["shipment_id"],
            event_type=EventType(row["event_type"]),
            description=row["description"],
            old_status=row["old_status"],
            new_status=row["new_status"],
            occurred_at=row["occurred_at"],
        )


class MemoryEventRepository:
    """Event log in the in-memory store."""

    def __init__(self, store: MemoryStore) -> None:
        self._store = store

    @staticmethod
    def add(store: MemoryStore, shipment_id: int, draft: EventDraft) -> ShipmentEvent:
        """Appends one event. The caller holds store.lock."""
        event = ShipmentEvent(
            id=store.next_id("shipment_events"),
            shipment_id=shipment_id,
            occurred_at=utc_now(),
            **draft.model_dump(),
        )
        store.events.append(event)
        return event

    async def list_for_shipment(self, shipment_id: int) -> list[ShipmentEvent]:
        with self._store.lock:
            events = [e for e in self._store.events if e.shipment_id == shipment_id]
        return sorted(events, key=lambda e: (e.occurred_at, e.id))

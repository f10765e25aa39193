# parceltrack/core/events/service.py
"""
Event log: read side of shipment history and the builder of new entries.
"""

from __future__ import annotations

from typing import Optional

from parceltrack.common.constants import EventType
from parceltrack.core.events.repository import EventRepository, MemoryEventRepository
from parceltrack.shared.models import EventDraft, ShipmentEvent


class EventLog:
    """Append-only shipment history."""

    def __init__(self, repository: EventRepository | MemoryEventRepository) -> None:
        self._repo = repository

    @staticmethod
    def draft(
        event_type: EventType,
        description: Optional[str] = None,
        *,
        old_status: Optional[str] = None,
        new_status: Optional[str] = None,
    ) -> EventDraft:
        """
        Builds an event for a repository write. Every write adds a new row.

        Args:
            event_type: Kind of event
            description: Human readable text
            old_status: Status before a change
            new_status: Status after a change
        """
        return EventDraft(
            event_type=event_type,
            description=description,
            old_status=str(old_status) if old_status is not None else None,
            new_status=str(new_status) if new_status is not None else None,
        )

    async def list_for_shipment(self, shipment_id: int) -> list[ShipmentEvent]:
        """Ordered by (occurred_at, id)."""
        return await self._repo.list_for_shipment(shipment_id)

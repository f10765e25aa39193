# parceltrack/shared/models/event.py
"""
Shipment event log entry.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from parceltrack.common.constants import EventType


class ShipmentEvent(BaseModel):
    """Immutable lifecycle record of a shipment."""

    id: int
    shipment_id: int
    event_type: EventType
    description: Optional[str] = None
    old_status: Optional[str] = None
    new_status: Optional[str] = None
    occurred_at: datetime

    class Config:
        from_attributes = True
        frozen = True


class EventDraft(BaseModel):
    """Event to be written together with the state change it describes."""

    event_type: EventType
    description: Optional[str] = None
    old_status: Optional[str] = None
    new_status: Optional[str] = None

    class Config:
        frozen = True

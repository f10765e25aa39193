# parceltrack/core/events/__init__.py
"""
Shipment event log.
"""

from parceltrack.core.events.repository import EventRepository, MemoryEventRepository
from parceltrack.core.events.service import EventLog

__all__ = ["EventLog", "EventRepository", "MemoryEventRepository"]

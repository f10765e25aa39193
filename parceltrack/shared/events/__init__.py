# parceltrack/shared/events/__init__.py
"""
Realtime event payloads.
"""

from parceltrack.shared.events.realtime import RealtimeEvent, ShipmentAssigned, ShipmentUpdated

__all__ = ["RealtimeEvent", "ShipmentAssigned", "ShipmentUpdated"]

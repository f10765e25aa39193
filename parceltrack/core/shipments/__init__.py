# parceltrack/core/shipments/__init__.py
"""
Shipment store.
"""

from parceltrack.core.shipments.repository import (
    DuplicateTrackingNumberError,
    MemoryShipmentRepository,
    ShipmentRepository,
)
from parceltrack.core.shipments.service import ShipmentService, can_view
from parceltrack.core.shipments.tracking import (
    TRACKING_NUMBER_PATTERN,
    TrackingNumberGenerator,
    normalize_tracking_number,
)

__all__ = [
    "DuplicateTrackingNumberError",
    "MemoryShipmentRepository",
    "ShipmentRepository",
    "ShipmentService",
    "TRACKING_NUMBER_PATTERN",
    "TrackingNumberGenerator",
    "can_view",
    "normalize_tracking_number",
]

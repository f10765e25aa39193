# parceltrack/shared/models/__init__.py
"""
Pydantic models shared between the engine and the HTTP surface.
"""

from parceltrack.shared.models.common import ErrorResponse, HealthStatus
from parceltrack.shared.models.driver import (
    Driver,
    RegisterDriverRequest,
    UpdateDriverProfileRequest,
    UpdateDriverStatusRequest,
    UpdateProfileRequest,
)
from parceltrack.shared.models.event import EventDraft, ShipmentEvent
from parceltrack.shared.models.location import LocationReport, LocationSample, ShipmentLocation
from parceltrack.shared.models.shipment import (
    Address,
    AssignDriverRequest,
    Contact,
    CreateShipmentRequest,
    PackageInfo,
    Shipment,
    ShipmentDraft,
    ShipmentDTO,
    UpdatePackageStatusRequest,
    UpdateStatusRequest,
)

__all__ = [
    # Common
    "ErrorResponse",
    "HealthStatus",
    # Drivers
    "Driver",
    "RegisterDriverRequest",
    "UpdateDriverProfileRequest",
    "UpdateDriverStatusRequest",
    "UpdateProfileRequest",
    # Events
    "EventDraft",
    "ShipmentEvent",
    # Location
    "LocationReport",
    "LocationSample",
    "ShipmentLocation",
    # Shipments
    "Address",
    "AssignDriverRequest",
    "Contact",
    "CreateShipmentRequest",
    "PackageInfo",
    "Shipment",
    "ShipmentDraft",
    "ShipmentDTO",
    "UpdatePackageStatusRequest",
    "UpdateStatusRequest",
]

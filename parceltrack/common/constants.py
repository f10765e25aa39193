# parceltrack/common/constants.py
"""
Shared constants and enumerations.
"""

from enum import Enum


class TypeMsg(str, Enum):
    """Log message types."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class UserRole(str, Enum):
    """Caller roles resolved by the identity gate."""
    CUSTOMER = "customer"
    DRIVER = "driver"
    ADMIN = "admin"

    def __str__(self) -> str:
        return self.value


class ShipmentStatus(str, Enum):
    """Governed shipment statuses."""
    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    EXCEPTIONS = "exceptions"

    def __str__(self) -> str:
        return self.value


# Statuses in which a driver still holds the shipment
ACTIVE_DELIVERY_STATUSES = (ShipmentStatus.ASSIGNED, ShipmentStatus.IN_TRANSIT)
TERMINAL_STATUSES = (ShipmentStatus.DELIVERED, ShipmentStatus.EXCEPTIONS)


class PackageStatus(str, Enum):
    """Free-form package tag, outside the shipment state machine."""
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    EXCEPTIONS = "exceptions"

    def __str__(self) -> str:
        return self.value


class EventType(str, Enum):
    """Shipment event log entry types."""
    CREATED = "created"
    ASSIGNED = "assigned"
    STATUS_CHANGED = "status_changed"
    PACKAGE_STATUS_CHANGED = "package_status_changed"
    # Written by older producers, still readable
    CLAIMED = "claimed"
    DELIVERED = "delivered"

    def __str__(self) -> str:
        return self.value


class DriverStatus(str, Enum):
    """Driver availability."""
    AVAILABLE = "available"
    BUSY = "busy"
    OFFLINE = "offline"

    def __str__(self) -> str:
        return self.value


class RealtimeTopic(str, Enum):
    """Realtime fan-out topics."""
    SHIPMENT_UPDATED = "shipment_updated"
    SHIPMENT_ASSIGNED = "shipment_assigned"

    def __str__(self) -> str:
        return self.value

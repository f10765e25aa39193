# parceltrack/shared/models/shipment.py
"""
Shipment models: stored entity, creation input and client-facing DTO.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from parceltrack.common.constants import PackageStatus, ShipmentStatus


# =============================================================================
# ENTITY
# =============================================================================

class Address(BaseModel):
    """Postal address with optional coordinates."""
    text: str
    lat: Optional[float] = None
    lng: Optional[float] = None


class Contact(BaseModel):
    """Sender or receiver contact."""
    name: str
    phone: str


class PackageInfo(BaseModel):
    """Physical package description and its free-form status tag."""
    weight: float
    description: str
    dimensions: Optional[str] = None
    fragile: bool = False
    status: Optional[PackageStatus] = None


class Shipment(BaseModel):
    """Shipment row owned by the shipment store."""

    id: int
    tracking_number: str
    status: ShipmentStatus = ShipmentStatus.PENDING
    customer_id: str
    driver_id: Optional[int] = None

    sender: Contact
    receiver: Contact
    pickup_address: Address
    delivery_address: Address
    package: PackageInfo

    total_amount: float = 0.0
    notes: Optional[str] = None

    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    @property
    def is_claimable(self) -> bool:
        """Pending and not yet taken by any driver."""
        return self.status == ShipmentStatus.PENDING and self.driver_id is None

    @property
    def package_status(self) -> Optional[PackageStatus]:
        return self.package.status


class ShipmentDraft(BaseModel):
    """Validated creation input handed to the repository."""

    tracking_number: str
    customer_id: str
    sender: Contact
    receiver: Contact
    pickup_address: Address
    delivery_address: Address
    package: PackageInfo
    total_amount: float = 0.0
    notes: Optional[str] = None


# =============================================================================
# CREATION REQUEST
# =============================================================================

class AddressInput(BaseModel):
    """Address as sent by the client: a string or {text, lat, lng}."""
    text: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None

    @classmethod
    def coerce(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"text": value}
        return value


class PartyInput(BaseModel):
    """Sender or receiver block of the nested payload."""
    name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[AddressInput] = None

    @field_validator("address", mode="before")
    @classmethod
    def parse_address(cls, v: Any) -> Any:
        return AddressInput.coerce(v)


class PackageInput(BaseModel):
    """Package block of the creation payload."""
    weight: Optional[float] = None
    description: Optional[str] = None
    dimensions: Optional[str] = None
    fragile: bool = False


class CreateShipmentRequest(BaseModel):
    """
    Shipment creation payload.

    Canonical shape: {sender, receiver, package, totalAmount}.
    Deprecated flat shape: {pickupAddress, deliveryAddress, senderName,
    senderPhone, receiverName, receiverPhone, package, totalAmount}.
    """

    sender: Optional[PartyInput] = None
    receiver: Optional[PartyInput] = None
    package: Optional[PackageInput] = None
    total_amount: Optional[float] = Field(default=None, alias="totalAmount")
    notes: Optional[str] = None

    # Deprecated flat fields
    pickup_address: Optional[AddressInput] = Field(default=None, alias="pickupAddress")
    delivery_address: Optional[AddressInput] = Field(default=None, alias="deliveryAddress")
    sender_name: Optional[str] = Field(default=None, alias="senderName")
    sender_phone: Optional[str] = Field(default=None, alias="senderPhone")
    receiver_name: Optional[str] = Field(default=None, alias="receiverName")
    receiver_phone: Optional[str] = Field(default=None, alias="receiverPhone")

    class Config:
        populate_by_name = True

    @field_validator("pickup_address", "delivery_address", mode="before")
    @classmethod
    def parse_flat_address(cls, v: Any) -> Any:
        return AddressInput.coerce(v)

    @property
    def is_flat(self) -> bool:
        """True when the deprecated flat shape was used."""
        return self.sender is None and self.receiver is None and (
            self.pickup_address is not None or self.delivery_address is not None
        )

    def parties(self) -> tuple[PartyInput, PartyInput]:
        """Returns (sender, receiver) in the canonical nested shape."""
        if self.is_flat:
            sender = PartyInput(name=self.sender_name, phone=self.sender_phone, address=self.pickup_address)
            receiver = PartyInput(name=self.receiver_name, phone=self.receiver_phone, address=self.delivery_address)
            return sender, receiver
        return self.sender or PartyInput(), self.receiver or PartyInput()


# =============================================================================
# RESPONSE DTO
# =============================================================================

class ShipmentDTO(BaseModel):
    """Shipment as the client reads it (snake_case, flat address columns)."""

    id: int
    tracking_number: str
    status: ShipmentStatus
    customer_id: str
    customer_name: str
    driver_id: Optional[int] = None

    sender: Contact
    receiver: Contact

    pickup_address: str
    pickup_latitude: Optional[float] = None
    pickup_longitude: Optional[float] = None
    delivery_address: str
    delivery_latitude: Optional[float] = None
    delivery_longitude: Optional[float] = None

    package: PackageInfo
    package_status: Optional[PackageStatus] = None
    total_amount: float
    notes: Optional[str] = None

    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_shipment(cls, shipment: Shipment) -> "ShipmentDTO":
        return cls(
            id=shipment.id,
            tracking_number=shipment.tracking_number,
            status=shipment.status,
            customer_id=shipment.customer_id,
            customer_name=shipment.sender.name,
            driver_id=shipment.driver_id,
            sender=shipment.sender,
            receiver=shipment.receiver,
            pickup_address=shipment.pickup_address.text,
            pickup_latitude=shipment.pickup_address.lat,
            pickup_longitude=shipment.pickup_address.lng,
            delivery_address=shipment.delivery_address.text,
            delivery_latitude=shipment.delivery_address.lat,
            delivery_longitude=shipment.delivery_address.lng,
            package=shipment.package,
            package_status=shipment.package.status,
            total_amount=shipment.total_amount,
            notes=shipment.notes,
            created_at=shipment.created_at,
            updated_at=shipment.updated_at,
        )


class UpdateStatusRequest(BaseModel):
    """PATCH …/status body."""
    status: str


class UpdatePackageStatusRequest(BaseModel):
    """PATCH /shipments/{id}/package-status body."""
    package_status: str = Field(alias="packageStatus")

    class Config:
        populate_by_name = True


class AssignDriverRequest(BaseModel):
    """POST /shipments/{id}/assign-driver body."""
    driver_id: int = Field(alias="driverId")

    class Config:
        populate_by_name = True

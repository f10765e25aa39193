# parceltrack/shared/models/driver.py
"""
Driver models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from parceltrack.common.constants import DriverStatus


class Driver(BaseModel):
    """Registered driver."""

    id: int
    user_id: str
    name: str
    vehicle_type: str
    license_number: str
    status: DriverStatus = DriverStatus.AVAILABLE
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class RegisterDriverRequest(BaseModel):
    """POST /users/me/register-driver body."""
    name: Optional[str] = None
    vehicle_type: Optional[str] = Field(default=None, alias="vehicleType")
    license_number: Optional[str] = Field(default=None, alias="licenseNumber")

    class Config:
        populate_by_name = True


class UpdateDriverProfileRequest(BaseModel):
    """PATCH /users/me/driver-profile body."""
    name: Optional[str] = None
    vehicle_type: Optional[str] = Field(default=None, alias="vehicleType")
    license_number: Optional[str] = Field(default=None, alias="licenseNumber")
    status: Optional[DriverStatus] = None

    class Config:
        populate_by_name = True


class UpdateProfileRequest(BaseModel):
    """PATCH /users/me body. Fields belong to the linked driver record."""
    name: Optional[str] = None
    vehicle_type: Optional[str] = Field(default=None, alias="vehicleType")
    license_number: Optional[str] = Field(default=None, alias="licenseNumber")

    class Config:
        populate_by_name = True

    @property
    def is_empty(self) -> bool:
        return self.name is None and self.vehicle_type is None and self.license_number is None


class UpdateDriverStatusRequest(BaseModel):
    """PATCH /drivers/{id}/status body."""
    status: DriverStatus

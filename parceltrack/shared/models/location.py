# parceltrack/shared/models/location.py
"""
Driver location models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class LocationSample(BaseModel):
    """Current position of a driver."""

    driver_id: int
    latitude: float
    longitude: float
    accuracy: Optional[float] = None
    timestamp: datetime


class LocationReport(BaseModel):
    """POST /location/{driver_id} body."""
    latitude: float
    longitude: float
    accuracy: Optional[float] = None


class ShipmentLocation(BaseModel):
    """Live position of the driver carrying a shipment."""

    latitude: float
    longitude: float
    accuracy: Optional[float] = None
    timestamp: datetime
    driver_name: str = Field(serialization_alias="driverName")

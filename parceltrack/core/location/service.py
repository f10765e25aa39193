# parceltrack/core/location/service.py
"""
Location tracker: ingest of driver positions and live position per shipment.
"""

from __future__ import annotations

import math
from typing import Optional

from parceltrack.common.exceptions import NotFoundError, ValidationError
from parceltrack.common.logger import log_debug
from parceltrack.core.drivers.repository import DriverRepository, MemoryDriverRepository
from parceltrack.core.location.repository import LocationRepository, MemoryLocationRepository
from parceltrack.core.shipments.repository import MemoryShipmentRepository, ShipmentRepository
from parceltrack.infra.memory_store import utc_now
from parceltrack.shared.models import LocationSample, ShipmentLocation


def validate_coordinates(latitude: float, longitude: float, accuracy: Optional[float] = None) -> None:
    """
    Raises:
        ValidationError: non-finite or out-of-range values
    """
    if not math.isfinite(latitude) or not -90.0 <= latitude <= 90.0:
        raise ValidationError("Latitude must be between -90 and 90", details={"field": "latitude"})
    if not math.isfinite(longitude) or not -180.0 <= longitude <= 180.0:
        raise ValidationError("Longitude must be between -180 and 180", details={"field": "longitude"})
    if accuracy is not None and (not math.isfinite(accuracy) or accuracy < 0):
        raise ValidationError("Accuracy cannot be negative", details={"field": "accuracy"})


class LocationTracker:
    """Keeps the latest position of every driver."""

    def __init__(
        self,
        locations: LocationRepository | MemoryLocationRepository,
        drivers: DriverRepository | MemoryDriverRepository,
        shipments: ShipmentRepository | MemoryShipmentRepository,
    ) -> None:
        self._locations = locations
        self._drivers = drivers
        self._shipments = shipments

    async def report_location(
        self,
        driver_id: int,
        latitude: float,
        longitude: float,
        accuracy: Optional[float] = None,
    ) -> LocationSample:
        """
        Replaces the driver's current sample. The timestamp is server time.

        Raises:
            ValidationError: bad coordinates
            NotFoundError: unknown driver
        """
        validate_coordinates(latitude, longitude, accuracy)

        if await self._drivers.get_by_id(driver_id) is None:
            raise NotFoundError(f"Driver {driver_id} not found")

        sample = await self._locations.upsert(
            LocationSample(
                driver_id=driver_id,
                latitude=latitude,
                longitude=longitude,
                accuracy=accuracy,
                timestamp=utc_now(),
            )
        )
        await log_debug(
            f"Location of driver {driver_id} updated",
            extra={"driver_id": driver_id, "lat": latitude, "lng": longitude},
        )
        return sample

    async def get_location(self, shipment_id: int) -> Optional[ShipmentLocation]:
        """
        Live position of the driver carrying the shipment.

        Returns:
            None when no driver is assigned or the driver never reported

        Raises:
            NotFoundError: unknown shipment
        """
        shipment = await self._shipments.get_by_id(shipment_id)
        if shipment is None:
            raise NotFoundError(f"Shipment {shipment_id} not found")
        if shipment.driver_id is None:
            return None

        sample = await self._locations.get(shipment.driver_id)
        if sample is None:
            return None

        driver = await self._drivers.get_by_id(shipment.driver_id)
        return ShipmentLocation(
            latitude=sample.latitude,
            longitude=sample.longitude,
            accuracy=sample.accuracy,
            timestamp=sample.timestamp,
            driver_name=driver.name if driver else "",
        )

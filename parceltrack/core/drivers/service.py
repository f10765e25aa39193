# parceltrack/core/drivers/service.py
"""
Driver registry: registration, profile and availability.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from parceltrack.common.constants import DriverStatus, TypeMsg
from parceltrack.common.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from parceltrack.common.logger import log_info
from parceltrack.core.drivers.repository import (
    DriverRepository,
    DuplicateDriverError,
    MemoryDriverRepository,
)
from parceltrack.shared.models import Driver

if TYPE_CHECKING:
    from parceltrack.core.identity import CallerIdentity


def _required(value: Optional[str], field: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{field} is required", details={"field": field})
    return value.strip()


class DriverService:
    """Driver registry operations."""

    def __init__(self, repository: DriverRepository | MemoryDriverRepository) -> None:
        self._repo = repository

    async def register(
        self,
        user_id: str,
        name: Optional[str],
        vehicle_type: Optional[str],
        license_number: Optional[str],
    ) -> Driver:
        """
        Creates the driver profile of a user.

        Raises:
            ValidationError: missing name, vehicle type or license number
            ConflictError: the user is already a driver
        """
        name = _required(name, "name")
        vehicle_type = _required(vehicle_type, "vehicleType")
        license_number = _required(license_number, "licenseNumber")

        try:
            driver = await self._repo.create(user_id, name, vehicle_type, license_number)
        except DuplicateDriverError:
            raise ConflictError("User is already registered as a driver")

        await log_info(
            f"Driver {driver.id} registered for user {user_id}",
            type_msg=TypeMsg.INFO,
            extra={"driver_id": driver.id, "user_id": user_id},
        )
        return driver

    async def get_driver(self, driver_id: int) -> Driver:
        driver = await self._repo.get_by_id(driver_id)
        if driver is None:
            raise NotFoundError(f"Driver {driver_id} not found")
        return driver

    async def get_by_user(self, user_id: str) -> Optional[Driver]:
        return await self._repo.get_by_user_id(user_id)

    async def list_drivers(self) -> list[Driver]:
        return await self._repo.list_all()

    async def update_profile(
        self,
        driver_id: int,
        *,
        name: Optional[str] = None,
        vehicle_type: Optional[str] = None,
        license_number: Optional[str] = None,
        status: Optional[DriverStatus] = None,
    ) -> Driver:
        """Changes only the fields that were given. Blank strings are rejected."""
        changes: dict[str, object] = {}
        if name is not None:
            changes["name"] = _required(name, "name")
        if vehicle_type is not None:
            changes["vehicle_type"] = _required(vehicle_type, "vehicleType")
        if license_number is not None:
            changes["license_number"] = _required(license_number, "licenseNumber")
        if status is not None:
            changes["status"] = status

        driver = await self._repo.update_profile(driver_id, changes)
        if driver is None:
            raise NotFoundError(f"Driver {driver_id} not found")
        return driver

    async def set_status(
        self,
        driver_id: int,
        status: DriverStatus,
        caller: "CallerIdentity",
    ) -> Driver:
        """Availability change requested by the driver or an admin."""
        if not caller.is_admin and caller.driver_id != driver_id:
            raise ForbiddenError("Only the driver or an admin can change driver status")
        return await self.mark(driver_id, status)

    async def mark(self, driver_id: int, status: DriverStatus) -> Driver:
        """Sets availability without an ownership check (engine side effects)."""
        driver = await self._repo.update_status(driver_id, status)
        if driver is None:
            raise NotFoundError(f"Driver {driver_id} not found")
        return driver

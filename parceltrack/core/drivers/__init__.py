# parceltrack/core/drivers/__init__.py
"""
Driver registry.
"""

from parceltrack.core.drivers.repository import (
    DriverRepository,
    DuplicateDriverError,
    MemoryDriverRepository,
)
from parceltrack.core.drivers.service import DriverService

__all__ = [
    "DriverRepository",
    "DriverService",
    "DuplicateDriverError",
    "MemoryDriverRepository",
]

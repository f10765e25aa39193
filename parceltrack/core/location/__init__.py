# parceltrack/core/location/__init__.py
"""
Driver location tracking.
"""

from parceltrack.core.location.rate_limit import TokenBucketLimiter
from parceltrack.core.location.repository import LocationRepository, MemoryLocationRepository
from parceltrack.core.location.service import LocationTracker, validate_coordinates

__all__ = [
    "LocationRepository",
    "LocationTracker",
    "MemoryLocationRepository",
    "TokenBucketLimiter",
    "validate_coordinates",
]

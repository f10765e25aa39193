# parceltrack/services/api/dependencies.py
"""
Dependency Injection for the HTTP surface.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header

from parceltrack.common.exceptions import ForbiddenError, UnauthorizedError
from parceltrack.core.claims import ClaimCoordinator
from parceltrack.core.drivers import DriverService
from parceltrack.core.events import EventLog
from parceltrack.core.identity import CallerIdentity, IdentityGate
from parceltrack.core.location import LocationTracker, TokenBucketLimiter
from parceltrack.core.realtime import RealtimeNotifier
from parceltrack.core.registry import ServiceRegistry
from parceltrack.core.shipments import ShipmentService
from parceltrack.core.status import StatusService


# Singletons
_registry: Optional[ServiceRegistry] = None
_location_limiter: Optional[TokenBucketLimiter] = None
_public_reads: bool = True


def init_dependencies(
    registry: ServiceRegistry,
    *,
    public_reads: bool = True,
    location_limiter: Optional[TokenBucketLimiter] = None,
) -> None:
    """Initializes dependencies on application startup."""
    global _registry, _location_limiter, _public_reads
    _registry = registry
    _location_limiter = location_limiter
    _public_reads = public_reads


def cleanup_dependencies() -> None:
    """Releases dependencies on shutdown."""
    global _registry, _location_limiter
    _registry = None
    _location_limiter = None


def get_registry() -> ServiceRegistry:
    if _registry is None:
        raise RuntimeError("Services are not initialized. Call init_dependencies()")
    return _registry


def get_identity_gate() -> IdentityGate:
    return get_registry().identity


def get_shipment_service() -> ShipmentService:
    return get_registry().shipments


def get_driver_service() -> DriverService:
    return get_registry().drivers


def get_claim_coordinator() -> ClaimCoordinator:
    return get_registry().claims


def get_status_service() -> StatusService:
    return get_registry().status


def get_location_tracker() -> LocationTracker:
    return get_registry().locations


def get_event_log() -> EventLog:
    return get_registry().events


def get_notifier() -> RealtimeNotifier:
    return get_registry().notifier


def get_location_limiter() -> Optional[TokenBucketLimiter]:
    """None when location rate limiting is off."""
    return _location_limiter


# =============================================================================
# CALLER IDENTITY
# =============================================================================

async def get_caller(
    authorization: Optional[str] = Header(default=None),
    gate: IdentityGate = Depends(get_identity_gate),
) -> CallerIdentity:
    """Authenticated caller; 401 without a valid bearer token."""
    return await gate.authenticate(authorization)


async def get_optional_caller(
    authorization: Optional[str] = Header(default=None),
    gate: IdentityGate = Depends(get_identity_gate),
) -> Optional[CallerIdentity]:
    """Caller when a token was sent, None for anonymous requests."""
    if not authorization:
        return None
    return await gate.authenticate(authorization)


async def get_driver_caller(caller: CallerIdentity = Depends(get_caller)) -> CallerIdentity:
    """Authenticated caller with a driver profile."""
    if not caller.is_driver:
        raise ForbiddenError("Driver profile required")
    return caller


async def get_reader(caller: Optional[CallerIdentity] = Depends(get_optional_caller)) -> Optional[CallerIdentity]:
    """
    Caller of shipment location/event reads.
    Anonymous access is allowed only while public reads are enabled.
    """
    if caller is None and not _public_reads:
        raise UnauthorizedError("Missing bearer token")
    return caller


def get_public_reads() -> bool:
    """Whether shipment location/event reads are open to anonymous callers."""
    return _public_reads

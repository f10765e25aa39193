# parceltrack/core/registry.py
"""
Wires repositories and services for the selected storage backend.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from parceltrack.config.loader import Settings
from parceltrack.core.claims import ClaimCoordinator
from parceltrack.core.drivers import DriverRepository, DriverService, MemoryDriverRepository
from parceltrack.core.events import EventLog, EventRepository, MemoryEventRepository
from parceltrack.core.identity import IdentityGate
from parceltrack.core.location import LocationRepository, LocationTracker, MemoryLocationRepository
from parceltrack.core.locks import KeyedLock
from parceltrack.core.realtime import ConnectionManager, RealtimeNotifier
from parceltrack.core.shipments import (
    MemoryShipmentRepository,
    ShipmentRepository,
    ShipmentService,
    TrackingNumberGenerator,
)
from parceltrack.core.status import StatusService
from parceltrack.infra.database import DatabaseManager
from parceltrack.infra.memory_store import MemoryStore


@dataclass
class ServiceRegistry:
    """Every engine component of one process."""
    identity: IdentityGate
    shipments: ShipmentService
    drivers: DriverService
    claims: ClaimCoordinator
    status: StatusService
    locations: LocationTracker
    events: EventLog
    notifier: RealtimeNotifier
    store: Optional[MemoryStore] = None


def build_registry(
    settings: Settings,
    *,
    db: Optional[DatabaseManager] = None,
    store: Optional[MemoryStore] = None,
    notifier: Optional[RealtimeNotifier] = None,
    tracking: Optional[TrackingNumberGenerator] = None,
) -> ServiceRegistry:
    """
    Builds the services.

    Args:
        settings: Application settings
        db: Connected database manager (postgres backend)
        store: In-memory tables (memory backend, a fresh store when None)
        notifier: Realtime notifier (local-only when None)
        tracking: Tracking number generator (from settings when None)
    """
    if settings.storage.STORAGE_BACKEND == "postgres":
        if db is None:
            raise ValueError("The postgres backend needs a connected DatabaseManager")
        shipment_repo = ShipmentRepository(db)
        driver_repo = DriverRepository(db)
        event_repo = EventRepository(db)
        location_repo = LocationRepository(db)
        store = None
    else:
        store = store or MemoryStore()
        shipment_repo = MemoryShipmentRepository(store)
        driver_repo = MemoryDriverRepository(store)
        event_repo = MemoryEventRepository(store)
        location_repo = MemoryLocationRepository(store)

    notifier = notifier or RealtimeNotifier(ConnectionManager())
    tracking = tracking or TrackingNumberGenerator(
        prefix=settings.shipments.TRACKING_PREFIX,
        suffix_length=settings.shipments.TRACKING_SUFFIX_LENGTH,
    )
    events = EventLog(event_repo)
    shipment_locks = KeyedLock()

    return ServiceRegistry(
        identity=IdentityGate(
            secret=settings.auth.AUTH_TOKEN_SECRET,
            drivers=driver_repo,
            admin_user_ids=settings.auth.ADMIN_USER_IDS,
            token_ttl=settings.auth.AUTH_TOKEN_TTL,
        ),
        shipments=ShipmentService(
            shipment_repo,
            events,
            tracking,
            max_attempts=settings.shipments.TRACKING_MAX_ATTEMPTS,
        ),
        drivers=DriverService(driver_repo),
        claims=ClaimCoordinator(
            shipment_repo,
            driver_repo,
            events,
            notifier,
            shipment_locks,
            default_limit=settings.shipments.AVAILABLE_PACKAGES_DEFAULT_LIMIT,
            max_limit=settings.shipments.AVAILABLE_PACKAGES_MAX_LIMIT,
        ),
        status=StatusService(shipment_repo, events, notifier, shipment_locks),
        locations=LocationTracker(location_repo, driver_repo, shipment_repo),
        events=events,
        notifier=notifier,
        store=store,
    )

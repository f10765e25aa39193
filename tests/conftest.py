# tests/conftest.py
"""
Shared fixtures and settings for the test suite.
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Awaitable, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

# Environment must be set before parceltrack.config is imported
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["LOG_TO_FILE"] = "false"
os.environ["AUTH_TOKEN_SECRET"] = "test-secret-with-enough-bytes-for-hs256"
os.environ["ADMIN_USER_IDS"] = "admin-1"
os.environ["PUBLIC_SHIPMENT_READS"] = "true"
os.environ["REALTIME_REDIS_BRIDGE"] = "false"
os.environ["LOCATION_RATE_LIMIT_ENABLED"] = "false"
os.environ.setdefault("DB_PASSWORD", "test_password")

from parceltrack.common.constants import UserRole
from parceltrack.config.loader import Settings
from parceltrack.core.identity import CallerIdentity
from parceltrack.core.registry import ServiceRegistry, build_registry
from parceltrack.infra.memory_store import MemoryStore
from parceltrack.shared.models import CreateShipmentRequest, Shipment


# =============================================================================
# CONFIGURATION FIXTURES
# =============================================================================

@pytest.fixture(scope="session")
def project_root() -> Path:
    """Project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def config_path(project_root: Path) -> Path:
    """Path to the configuration file."""
    return project_root / "config" / "config.json"


@pytest.fixture
def app_settings() -> Settings:
    """Settings for the in-memory backend."""
    return Settings.from_dict(
        {
            "PROJECT_NAME": "parceltrack_test",
            "STORAGE_BACKEND": "memory",
            "AUTH_TOKEN_SECRET": "test-secret-with-enough-bytes-for-hs256",
            "ADMIN_USER_IDS": ["admin-1"],
            "TRACKING_PREFIX": "PKG",
            "TRACKING_SUFFIX_LENGTH": 6,
            "TRACKING_MAX_ATTEMPTS": 5,
            "AVAILABLE_PACKAGES_DEFAULT_LIMIT": 50,
            "AVAILABLE_PACKAGES_MAX_LIMIT": 200,
        }
    )


def with_section(settings: Settings, section: str, **changes: Any) -> Settings:
    """Copy of settings with some values of one section replaced."""
    current = getattr(settings, section)
    return settings.model_copy(update={section: current.model_copy(update=changes)})


@pytest.fixture
def settings_factory(app_settings: Settings) -> Callable[..., Settings]:
    """settings_factory("auth", PUBLIC_SHIPMENT_READS=False)"""
    def _make(section: str, **changes: Any) -> Settings:
        return with_section(app_settings, section, **changes)
    return _make


# =============================================================================
# ENGINE FIXTURES
# =============================================================================

@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def registry(app_settings: Settings, store: MemoryStore) -> ServiceRegistry:
    """All services over a fresh in-memory store."""
    return build_registry(app_settings, store=store)


@pytest.fixture
def customer() -> CallerIdentity:
    return CallerIdentity(user_id="customer-1", role=UserRole.CUSTOMER)


@pytest.fixture
def other_customer() -> CallerIdentity:
    return CallerIdentity(user_id="customer-2", role=UserRole.CUSTOMER)


@pytest.fixture
def admin() -> CallerIdentity:
    return CallerIdentity(user_id="admin-1", role=UserRole.ADMIN)


@pytest.fixture
def make_driver(registry: ServiceRegistry) -> Callable[..., Awaitable[CallerIdentity]]:
    """Registers a driver and returns its resolved identity."""
    async def _make(user_id: str = "driver-1", name: str = "Dana Driver") -> CallerIdentity:
        await registry.drivers.register(user_id, name, "van", f"LIC-{user_id}")
        return await registry.identity.resolve(user_id)
    return _make


def nested_payload(**overrides: Any) -> dict[str, Any]:
    """Canonical creation payload as the client sends it."""
    payload: dict[str, Any] = {
        "sender": {
            "name": "Alice Sender",
            "phone": "+15550001",
            "address": {"text": "1 Main St", "lat": 40.71, "lng": -74.0},
        },
        "receiver": {
            "name": "Bob Receiver",
            "phone": "+15550002",
            "address": "9 Elm St",
        },
        "package": {"weight": 2.5, "description": "Books", "fragile": False},
        "totalAmount": 25.0,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def shipment_payload() -> dict[str, Any]:
    return nested_payload()


@pytest.fixture
def create_shipment(
    registry: ServiceRegistry,
    customer: CallerIdentity,
) -> Callable[..., Awaitable[Shipment]]:
    """Creates a shipment through the service."""
    async def _create(owner: CallerIdentity | None = None, **overrides: Any) -> Shipment:
        request = CreateShipmentRequest.model_validate(nested_payload(**overrides))
        return await registry.shipments.create_from_request((owner or customer).user_id, request)
    return _create


# =============================================================================
# INFRASTRUCTURE FIXTURES (MOCKS)
# =============================================================================

@pytest.fixture
def mock_db() -> AsyncMock:
    """Database manager mock."""
    db = AsyncMock()
    db.fetchrow = AsyncMock(return_value=None)
    db.fetch = AsyncMock(return_value=[])
    db.execute = AsyncMock(return_value="INSERT 0 1")
    db.fetchval = AsyncMock(return_value=None)

    # Connection handed out by db.transaction(), exposed as db.conn
    conn = AsyncMock()
    conn.fetchrow = AsyncMock(return_value=None)
    conn.execute = AsyncMock(return_value="UPDATE 1")

    @asynccontextmanager
    async def transaction():
        yield conn

    db.transaction = transaction
    db.conn = conn
    return db


@pytest.fixture
def mock_redis() -> AsyncMock:
    """RedisClient mock."""
    redis = AsyncMock()
    redis.publish = AsyncMock(return_value=1)
    redis.health_check = AsyncMock(return_value=True)
    redis.make_key = MagicMock(side_effect=lambda key: f"parceltrack:{key}")
    return redis


@pytest.fixture
def fake_websocket() -> Callable[[], AsyncMock]:
    """Factory of WebSocket doubles recording sent frames in .sent."""
    def _make() -> AsyncMock:
        ws = AsyncMock()
        ws.sent = []

        async def send_json(message: dict[str, Any]) -> None:
            ws.sent.append(message)

        ws.send_json = AsyncMock(side_effect=send_json)
        return ws
    return _make

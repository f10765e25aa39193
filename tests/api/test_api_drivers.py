# tests/api/test_api_drivers.py
"""
End-to-end tests of driver registration, profile and location ingest.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from parceltrack.config.loader import Settings
from parceltrack.core.registry import ServiceRegistry, build_registry
from parceltrack.infra.memory_store import MemoryStore
from parceltrack.services.api.app import create_app


def auth(registry: ServiceRegistry, user_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {registry.identity.issue(user_id)}"}


@pytest.fixture
def client(app_settings: Settings, registry: ServiceRegistry):
    with TestClient(create_app(app_settings, registry=registry)) as test_client:
        yield test_client


def register(client: TestClient, registry: ServiceRegistry, user_id: str = "driver-1"):
    return client.post(
        "/api/users/me/register-driver",
        json={"name": "Dana Driver", "vehicleType": "van", "licenseNumber": f"LIC-{user_id}"},
        headers=auth(registry, user_id),
    )


class TestRegistration:
    def test_register_and_profile(self, client: TestClient, registry: ServiceRegistry) -> None:
        headers = auth(registry, "driver-1")
        before = client.get("/api/users/me", headers=headers).json()
        assert before["role"] == "customer"
        assert before["driver_id"] is None

        response = register(client, registry)
        assert response.status_code == 201
        driver = response.json()["driver"]
        assert driver["status"] == "available"

        after = client.get("/api/users/me", headers=headers).json()
        assert after["role"] == "driver"
        assert after["driver_id"] == driver["id"]
        assert after["driverId"] == driver["id"]
        assert after["driver_name"] == "Dana Driver"

    def test_duplicate_registration(self, client: TestClient, registry: ServiceRegistry) -> None:
        register(client, registry)
        response = register(client, registry)

        assert response.status_code == 409
        assert response.json()["error_code"] == "conflict"

    def test_missing_field(self, client: TestClient, registry: ServiceRegistry) -> None:
        response = client.post(
            "/api/users/me/register-driver",
            json={"name": "Dana Driver", "vehicleType": "van"},
            headers=auth(registry, "driver-1"),
        )

        assert response.status_code == 400
        assert response.json()["details"] == {"field": "licenseNumber"}

    def test_admin_profile(self, client: TestClient, registry: ServiceRegistry) -> None:
        profile = client.get("/api/users/me", headers=auth(registry, "admin-1")).json()
        assert profile["role"] == "admin"


class TestProfileAndStatus:
    def test_update_profile(self, client: TestClient, registry: ServiceRegistry) -> None:
        register(client, registry)

        response = client.patch(
            "/api/users/me/driver-profile",
            json={"vehicleType": "bike", "status": "offline"},
            headers=auth(registry, "driver-1"),
        )

        assert response.status_code == 200
        assert response.json()["vehicle_type"] == "bike"
        assert response.json()["status"] == "offline"
        assert response.json()["name"] == "Dana Driver"

    def test_profile_requires_driver(self, client: TestClient, registry: ServiceRegistry) -> None:
        response = client.patch(
            "/api/users/me/driver-profile",
            json={"name": "X"},
            headers=auth(registry, "customer-1"),
        )
        assert response.status_code == 403

    def test_patch_me_updates_driver_record(self, client: TestClient, registry: ServiceRegistry) -> None:
        driver = register(client, registry).json()["driver"]
        headers = auth(registry, "driver-1")

        response = client.patch("/api/users/me", json={"name": "Dana D."}, headers=headers)

        assert response.status_code == 200
        assert response.json()["driver_id"] == driver["id"]
        assert response.json()["driver_name"] == "Dana D."
        assert client.get(f"/api/drivers/{driver['id']}", headers=headers).json()["name"] == "Dana D."

    def test_patch_me_rejects_blank_fields(self, client: TestClient, registry: ServiceRegistry) -> None:
        register(client, registry)

        response = client.patch("/api/users/me", json={"vehicleType": "  "}, headers=auth(registry, "driver-1"))

        assert response.status_code == 400
        assert response.json()["details"] == {"field": "vehicleType"}

    def test_patch_me_without_driver_record(self, client: TestClient, registry: ServiceRegistry) -> None:
        headers = auth(registry, "customer-1")

        empty = client.patch("/api/users/me", json={}, headers=headers)
        assert empty.status_code == 200
        assert empty.json()["role"] == "customer"

        named = client.patch("/api/users/me", json={"name": "Alice"}, headers=headers)
        assert named.status_code == 400
        assert named.json()["details"] == {"fields": ["name"]}

    def test_list_and_get_drivers(self, client: TestClient, registry: ServiceRegistry) -> None:
        driver = register(client, registry).json()["driver"]
        headers = auth(registry, "customer-1")

        listed = client.get("/api/drivers", headers=headers).json()
        assert [d["id"] for d in listed] == [driver["id"]]
        assert client.get(f"/api/drivers/{driver['id']}", headers=headers).json()["name"] == "Dana Driver"
        assert client.get("/api/drivers/999", headers=headers).status_code == 404

    def test_status_change_rules(self, client: TestClient, registry: ServiceRegistry) -> None:
        driver = register(client, registry).json()["driver"]
        path = f"/api/drivers/{driver['id']}/status"

        own = client.patch(path, json={"status": "busy"}, headers=auth(registry, "driver-1"))
        assert own.status_code == 200
        assert own.json()["status"] == "busy"

        other = client.patch(path, json={"status": "offline"}, headers=auth(registry, "customer-1"))
        assert other.status_code == 403

        by_admin = client.patch(path, json={"status": "available"}, headers=auth(registry, "admin-1"))
        assert by_admin.json()["status"] == "available"

    def test_unknown_driver_status(self, client: TestClient, registry: ServiceRegistry) -> None:
        driver = register(client, registry).json()["driver"]

        response = client.patch(
            f"/api/drivers/{driver['id']}/status",
            json={"status": "sleeping"},
            headers=auth(registry, "driver-1"),
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "validation_error"


class TestLocationIngest:
    def test_both_paths_store_location(self, client: TestClient, registry: ServiceRegistry) -> None:
        driver = register(client, registry).json()["driver"]
        headers = auth(registry, "driver-1")

        first = client.post(
            f"/api/location/{driver['id']}",
            json={"latitude": 10.0, "longitude": 20.0},
            headers=headers,
        )
        second = client.post(
            f"/api/drivers/{driver['id']}/location",
            json={"latitude": 11.0, "longitude": 21.0, "accuracy": 3.0},
            headers=headers,
        )

        assert first.status_code == 200
        assert first.json()["success"] is True
        assert second.json()["location"]["latitude"] == 11.0
        assert second.json()["location"]["accuracy"] == 3.0

    def test_out_of_range_coordinates(self, client: TestClient, registry: ServiceRegistry) -> None:
        driver = register(client, registry).json()["driver"]

        response = client.post(
            f"/api/location/{driver['id']}",
            json={"latitude": 91.0, "longitude": 0.0},
            headers=auth(registry, "driver-1"),
        )

        assert response.status_code == 400
        assert response.json()["details"] == {"field": "latitude"}

    def test_cannot_report_for_another_driver(self, client: TestClient, registry: ServiceRegistry) -> None:
        driver = register(client, registry, "driver-1").json()["driver"]
        register(client, registry, "driver-2")

        response = client.post(
            f"/api/location/{driver['id']}",
            json={"latitude": 1.0, "longitude": 1.0},
            headers=auth(registry, "driver-2"),
        )

        assert response.status_code == 403

    def test_rate_limited(self, settings_factory, store: MemoryStore) -> None:
        app_settings = settings_factory(
            "location",
            LOCATION_RATE_LIMIT_ENABLED=True,
            LOCATION_RATE_LIMIT_CAPACITY=1,
        )
        registry = build_registry(app_settings, store=store)

        with TestClient(create_app(app_settings, registry=registry)) as client:
            driver = register(client, registry).json()["driver"]
            headers = auth(registry, "driver-1")
            body = {"latitude": 1.0, "longitude": 1.0}

            assert client.post(f"/api/location/{driver['id']}", json=body, headers=headers).status_code == 200
            limited = client.post(f"/api/location/{driver['id']}", json=body, headers=headers)

        assert limited.status_code == 429
        assert limited.json()["error_code"] == "rate_limited"

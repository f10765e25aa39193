# tests/core/test_status_service.py
"""
Tests for StatusService: transitions, history, driver release, package tag.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from parceltrack.common.constants import DriverStatus, EventType, PackageStatus, ShipmentStatus
from parceltrack.common.exceptions import (
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    StorageUnavailableError,
    ValidationError,
)
from parceltrack.core.events import MemoryEventRepository


class TestTransition:
    """Driver-driven status changes."""

    @pytest.mark.asyncio
    async def test_full_lifecycle_history(self, registry, create_shipment, make_driver) -> None:
        driver = await make_driver()
        shipment = await create_shipment()

        await registry.claims.claim(shipment.id, driver.driver_id)
        await registry.status.transition(shipment.id, "in_transit", driver)
        delivered = await registry.status.transition(shipment.id, "delivered", driver)

        assert delivered.status == ShipmentStatus.DELIVERED
        events = await registry.events.list_for_shipment(shipment.id)
        assert [e.event_type for e in events] == [
            EventType.CREATED,
            EventType.ASSIGNED,
            EventType.STATUS_CHANGED,
            EventType.STATUS_CHANGED,
        ]
        assert [(e.old_status, e.new_status) for e in events[1:]] == [
            ("pending", "assigned"),
            ("assigned", "in_transit"),
            ("in_transit", "delivered"),
        ]

    @pytest.mark.asyncio
    async def test_pending_to_delivered_is_invalid(self, registry, create_shipment, make_driver) -> None:
        driver = await make_driver()
        shipment = await create_shipment()

        with pytest.raises(InvalidTransitionError):
            await registry.status.transition(shipment.id, "delivered", driver)

        assert (await registry.shipments.require(shipment.id)).status == ShipmentStatus.PENDING
        assert len(await registry.events.list_for_shipment(shipment.id)) == 1

    @pytest.mark.asyncio
    async def test_other_driver_is_forbidden(self, registry, create_shipment, make_driver) -> None:
        owner = await make_driver("driver-1")
        stranger = await make_driver("driver-2", "Sam Stranger")
        shipment = await create_shipment()
        await registry.claims.claim(shipment.id, owner.driver_id)

        with pytest.raises(ForbiddenError):
            await registry.status.transition(shipment.id, "in_transit", stranger)

    @pytest.mark.asyncio
    async def test_unknown_status_value(self, registry, create_shipment, make_driver) -> None:
        driver = await make_driver()
        shipment = await create_shipment()

        with pytest.raises(ValidationError):
            await registry.status.transition(shipment.id, "teleported", driver)

    @pytest.mark.asyncio
    async def test_unknown_shipment(self, registry, make_driver) -> None:
        driver = await make_driver()
        with pytest.raises(NotFoundError):
            await registry.status.transition(404, "in_transit", driver)

    @pytest.mark.asyncio
    async def test_transition_publishes_update(self, registry, create_shipment, make_driver) -> None:
        driver = await make_driver()
        shipment = await create_shipment()
        await registry.claims.claim(shipment.id, driver.driver_id)
        registry.notifier.publish = AsyncMock()

        await registry.status.transition(shipment.id, "exceptions", driver)

        registry.notifier.publish.assert_awaited_once()
        topic, payload = registry.notifier.publish.await_args.args
        assert str(topic) == "shipment_updated"
        assert payload == {"id": shipment.id, "status": "exceptions"}

    @pytest.mark.asyncio
    async def test_customer_cannot_use_delivery_alias(self, registry, customer, create_shipment) -> None:
        shipment = await create_shipment()
        with pytest.raises(ForbiddenError):
            await registry.status.update_delivery_status(shipment.id, "in_transit", customer)


class TestDriverRelease:
    """Busy drivers become available after their last delivery ends."""

    @pytest.mark.asyncio
    async def test_claim_marks_busy_and_delivery_releases(self, registry, create_shipment, make_driver) -> None:
        driver = await make_driver()
        shipment = await create_shipment()

        await registry.claims.claim(shipment.id, driver.driver_id)
        assert (await registry.drivers.get_driver(driver.driver_id)).status == DriverStatus.BUSY

        await registry.status.transition(shipment.id, "in_transit", driver)
        await registry.status.transition(shipment.id, "delivered", driver)

        assert (await registry.drivers.get_driver(driver.driver_id)).status == DriverStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_driver_with_other_active_delivery_stays_busy(self, registry, create_shipment, make_driver) -> None:
        driver = await make_driver()
        first = await create_shipment()
        second = await create_shipment()
        await registry.claims.claim(first.id, driver.driver_id)
        await registry.claims.claim(second.id, driver.driver_id)

        await registry.status.transition(first.id, "exceptions", driver)

        assert (await registry.drivers.get_driver(driver.driver_id)).status == DriverStatus.BUSY

    @pytest.mark.asyncio
    async def test_offline_driver_stays_offline(self, registry, create_shipment, make_driver) -> None:
        driver = await make_driver()
        shipment = await create_shipment()
        await registry.claims.claim(shipment.id, driver.driver_id)
        await registry.drivers.mark(driver.driver_id, DriverStatus.OFFLINE)

        await registry.status.transition(shipment.id, "exceptions", driver)

        assert (await registry.drivers.get_driver(driver.driver_id)).status == DriverStatus.OFFLINE

    @pytest.mark.asyncio
    async def test_failed_event_write_keeps_delivery_and_driver(
        self,
        registry,
        create_shipment,
        make_driver,
    ) -> None:
        driver = await make_driver()
        shipment = await create_shipment()
        await registry.claims.claim(shipment.id, driver.driver_id)
        await registry.status.transition(shipment.id, "in_transit", driver)

        with patch.object(
            MemoryEventRepository,
            "add",
            side_effect=StorageUnavailableError("Storage is unavailable"),
        ):
            with pytest.raises(StorageUnavailableError):
                await registry.status.transition(shipment.id, "delivered", driver)

        assert (await registry.shipments.require(shipment.id)).status == ShipmentStatus.IN_TRANSIT
        assert (await registry.drivers.get_driver(driver.driver_id)).status == DriverStatus.BUSY

        delivered = await registry.status.transition(shipment.id, "delivered", driver)
        assert delivered.status == ShipmentStatus.DELIVERED
        assert (await registry.drivers.get_driver(driver.driver_id)).status == DriverStatus.AVAILABLE


class TestDeliveries:
    @pytest.mark.asyncio
    async def test_list_with_filter(self, registry, create_shipment, make_driver) -> None:
        driver = await make_driver()
        first = await create_shipment()
        second = await create_shipment()
        await registry.claims.claim(first.id, driver.driver_id)
        await registry.claims.claim(second.id, driver.driver_id)
        await registry.status.transition(second.id, "in_transit", driver)

        all_deliveries = await registry.status.list_deliveries(driver.driver_id)
        in_transit = await registry.status.list_deliveries(driver.driver_id, "in_transit")

        assert {s.id for s in all_deliveries} == {first.id, second.id}
        assert [s.id for s in in_transit] == [second.id]

    @pytest.mark.asyncio
    async def test_bad_filter(self, registry, make_driver) -> None:
        driver = await make_driver()
        with pytest.raises(ValidationError):
            await registry.status.list_deliveries(driver.driver_id, "flying")


class TestPackageStatus:
    """Admin-only free-form tag."""

    @pytest.mark.asyncio
    async def test_admin_sets_tag(self, registry, admin, create_shipment) -> None:
        shipment = await create_shipment()

        updated = await registry.status.set_package_status(shipment.id, "out_for_delivery", admin)

        assert updated.package.status == PackageStatus.OUT_FOR_DELIVERY
        assert updated.status == ShipmentStatus.PENDING
        events = await registry.events.list_for_shipment(shipment.id)
        assert events[-1].event_type == EventType.PACKAGE_STATUS_CHANGED
        assert events[-1].new_status == "out_for_delivery"

    @pytest.mark.asyncio
    async def test_non_admin_forbidden(self, registry, customer, create_shipment) -> None:
        shipment = await create_shipment()
        with pytest.raises(ForbiddenError):
            await registry.status.set_package_status(shipment.id, "delivered", customer)

    @pytest.mark.asyncio
    async def test_unknown_value(self, registry, admin, create_shipment) -> None:
        shipment = await create_shipment()
        with pytest.raises(ValidationError):
            await registry.status.set_package_status(shipment.id, "misplaced", admin)

    @pytest.mark.asyncio
    async def test_unknown_shipment(self, registry, admin) -> None:
        with pytest.raises(NotFoundError):
            await registry.status.set_package_status(5, "delivered", admin)

    @pytest.mark.asyncio
    async def test_repeated_value_is_logged_once(self, registry, admin, create_shipment) -> None:
        shipment = await create_shipment()

        first = await registry.status.set_package_status(shipment.id, "in_transit", admin)
        second = await registry.status.set_package_status(shipment.id, "IN_TRANSIT", admin)

        assert second.updated_at == first.updated_at
        package_events = [
            (e.old_status, e.new_status)
            for e in await registry.events.list_for_shipment(shipment.id)
            if e.event_type == EventType.PACKAGE_STATUS_CHANGED
        ]
        assert package_events == [(None, "in_transit")]

    @pytest.mark.asyncio
    async def test_change_records_previous_value(self, registry, admin, create_shipment) -> None:
        shipment = await create_shipment()

        await registry.status.set_package_status(shipment.id, "in_transit", admin)
        await registry.status.set_package_status(shipment.id, "out_for_delivery", admin)

        events = await registry.events.list_for_shipment(shipment.id)
        assert (events[-1].old_status, events[-1].new_status) == ("in_transit", "out_for_delivery")

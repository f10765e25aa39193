# tests/core/test_claim_coordinator.py
"""
Tests for the driver claim coordinator.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from parceltrack.common.constants import DriverStatus, EventType, ShipmentStatus
from parceltrack.common.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    StorageUnavailableError,
)
from parceltrack.core.events import MemoryEventRepository


class TestClaim:
    """claim()"""

    @pytest.mark.asyncio
    async def test_claim_assigns_driver(self, registry, create_shipment, make_driver) -> None:
        driver = await make_driver()
        shipment = await create_shipment()

        claimed = await registry.claims.claim(shipment.id, driver.driver_id)

        assert claimed.status == ShipmentStatus.ASSIGNED
        assert claimed.driver_id == driver.driver_id
        events = await registry.events.list_for_shipment(shipment.id)
        assert events[-1].event_type == EventType.ASSIGNED

    @pytest.mark.asyncio
    async def test_concurrent_claims_have_one_winner(self, registry, create_shipment, make_driver) -> None:
        drivers = [await make_driver(f"driver-{i}", f"Driver {i}") for i in range(25)]
        shipment = await create_shipment()

        results = await asyncio.gather(
            *(registry.claims.claim(shipment.id, d.driver_id) for d in drivers),
            return_exceptions=True,
        )

        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, Exception)]
        assert len(winners) == 1
        assert winners[0].status == ShipmentStatus.ASSIGNED
        assert len(losers) == 24
        assert all(isinstance(e, ConflictError) for e in losers)

        stored = await registry.shipments.require(shipment.id)
        assert stored.driver_id == winners[0].driver_id
        assigned_events = [
            e for e in await registry.events.list_for_shipment(shipment.id)
            if e.event_type == EventType.ASSIGNED
        ]
        assert len(assigned_events) == 1

    @pytest.mark.asyncio
    async def test_second_claim_conflicts(self, registry, create_shipment, make_driver) -> None:
        first = await make_driver("driver-1")
        second = await make_driver("driver-2")
        shipment = await create_shipment()
        await registry.claims.claim(shipment.id, first.driver_id)

        with pytest.raises(ConflictError) as exc_info:
            await registry.claims.claim(shipment.id, second.driver_id)

        assert exc_info.value.message == "Shipment already claimed"

    @pytest.mark.asyncio
    async def test_unknown_shipment(self, registry, make_driver) -> None:
        driver = await make_driver()
        with pytest.raises(NotFoundError):
            await registry.claims.claim(12345, driver.driver_id)

    @pytest.mark.asyncio
    async def test_unknown_driver(self, registry, create_shipment) -> None:
        shipment = await create_shipment()
        with pytest.raises(NotFoundError):
            await registry.claims.claim(shipment.id, 999)

    @pytest.mark.asyncio
    async def test_publishes_assigned_then_updated(self, registry, create_shipment, make_driver) -> None:
        driver = await make_driver()
        shipment = await create_shipment()
        registry.notifier.publish = AsyncMock()

        await registry.claims.claim(shipment.id, driver.driver_id)

        calls = [(str(c.args[0]), c.args[1]) for c in registry.notifier.publish.await_args_list]
        assert calls == [
            ("shipment_assigned", {"shipmentId": shipment.id, "driverId": driver.driver_id}),
            ("shipment_updated", {"id": shipment.id, "status": "assigned"}),
        ]



class TestClaimSideEffects:
    """What a claim does around the conditional update."""

    @pytest.mark.asyncio
    async def test_claim_marks_driver_busy(self, registry, create_shipment, make_driver) -> None:
        driver = await make_driver()
        shipment = await create_shipment()

        await registry.claims.claim(shipment.id, driver.driver_id)

        assert (await registry.drivers.get_driver(driver.driver_id)).status == DriverStatus.BUSY

    @pytest.mark.asyncio
    async def test_failed_event_write_leaves_shipment_claimable(
        self,
        registry,
        create_shipment,
        make_driver,
    ) -> None:
        driver = await make_driver()
        shipment = await create_shipment()

        with patch.object(
            MemoryEventRepository,
            "add",
            side_effect=StorageUnavailableError("Storage is unavailable"),
        ):
            with pytest.raises(StorageUnavailableError):
                await registry.claims.claim(shipment.id, driver.driver_id)

        stored = await registry.shipments.require(shipment.id)
        assert stored.status == ShipmentStatus.PENDING
        assert stored.driver_id is None
        assert (await registry.drivers.get_driver(driver.driver_id)).status == DriverStatus.AVAILABLE
        assert [e.event_type for e in await registry.events.list_for_shipment(shipment.id)] == [EventType.CREATED]

        retried = await registry.claims.claim(shipment.id, driver.driver_id)
        assert retried.status == ShipmentStatus.ASSIGNED

    @pytest.mark.asyncio
    async def test_lost_connection_after_commit_counts_as_claimed(
        self,
        registry,
        create_shipment,
        make_driver,
    ) -> None:
        driver = await make_driver()
        shipment = await create_shipment()
        repo = registry.claims._shipments
        real_claim = repo.claim

        async def commit_then_drop(*args, **kwargs):
            await real_claim(*args, **kwargs)
            raise StorageUnavailableError("Storage is unavailable")

        with patch.object(repo, "claim", side_effect=commit_then_drop):
            claimed = await registry.claims.claim(shipment.id, driver.driver_id)

        assert claimed.driver_id == driver.driver_id
        assert claimed.status == ShipmentStatus.ASSIGNED

    @pytest.mark.asyncio
    async def test_stalled_subscriber_does_not_block_claim(
        self,
        registry,
        create_shipment,
        make_driver,
        fake_websocket,
    ) -> None:
        never = asyncio.Event()
        stalled = fake_websocket()

        async def hang(message) -> None:
            await never.wait()

        stalled.send_json.side_effect = hang
        await registry.notifier.manager.connect(stalled)
        driver = await make_driver()
        shipment = await create_shipment()

        claimed = await asyncio.wait_for(registry.claims.claim(shipment.id, driver.driver_id), 2.0)
        moved = await asyncio.wait_for(registry.status.transition(shipment.id, "in_transit", driver), 2.0)

        assert claimed.status == ShipmentStatus.ASSIGNED
        assert moved.status == ShipmentStatus.IN_TRANSIT
        await registry.notifier.manager.close()

    @pytest.mark.asyncio
    async def test_notifies_after_releasing_shipment_lock(
        self,
        registry,
        admin,
        create_shipment,
        make_driver,
    ) -> None:
        driver = await make_driver()
        shipment = await create_shipment()

        async def touch_same_shipment(topic, payload) -> None:
            # Takes the same per-shipment lock; would time out if it were still held
            await asyncio.wait_for(
                registry.status.set_package_status(shipment.id, "in_transit", admin),
                1.0,
            )

        registry.notifier.publish = AsyncMock(side_effect=touch_same_shipment)

        await registry.claims.claim(shipment.id, driver.driver_id)

        assert registry.notifier.publish.await_count == 2


class TestAvailable:
    """list_available()"""

    @pytest.mark.asyncio
    async def test_only_unclaimed_oldest_first(self, registry, create_shipment, make_driver) -> None:
        driver = await make_driver()
        first = await create_shipment()
        second = await create_shipment()
        third = await create_shipment()
        await registry.claims.claim(second.id, driver.driver_id)

        available = await registry.claims.list_available()

        assert [s.id for s in available] == [first.id, third.id]

    @pytest.mark.asyncio
    async def test_limit_is_clamped(self, registry, create_shipment) -> None:
        for _ in range(3):
            await create_shipment()

        assert len(await registry.claims.list_available(2)) == 2
        assert len(await registry.claims.list_available(0)) == 1
        assert len(await registry.claims.list_available(10_000)) == 3


class TestAssign:
    """assign()"""

    @pytest.mark.asyncio
    async def test_admin_assigns_any_driver(self, registry, admin, create_shipment, make_driver) -> None:
        driver = await make_driver()
        shipment = await create_shipment()

        assigned = await registry.claims.assign(shipment.id, driver.driver_id, admin)

        assert assigned.driver_id == driver.driver_id

    @pytest.mark.asyncio
    async def test_driver_assigns_self(self, registry, create_shipment, make_driver) -> None:
        driver = await make_driver()
        shipment = await create_shipment()

        assigned = await registry.claims.assign(shipment.id, driver.driver_id, driver)

        assert assigned.status == ShipmentStatus.ASSIGNED

    @pytest.mark.asyncio
    async def test_driver_cannot_assign_others(self, registry, create_shipment, make_driver) -> None:
        first = await make_driver("driver-1")
        second = await make_driver("driver-2")
        shipment = await create_shipment()

        with pytest.raises(ForbiddenError):
            await registry.claims.assign(shipment.id, second.driver_id, first)

    @pytest.mark.asyncio
    async def test_customer_cannot_assign(self, registry, customer, create_shipment, make_driver) -> None:
        driver = await make_driver()
        shipment = await create_shipment()

        with pytest.raises(ForbiddenError):
            await registry.claims.assign(shipment.id, driver.driver_id, customer)

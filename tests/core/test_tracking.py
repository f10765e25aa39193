# tests/core/test_tracking.py
"""
Tests for tracking number generation and uniqueness.
"""

from __future__ import annotations

import asyncio
import random
from datetime import datetime, timezone

import pytest

from parceltrack.common.exceptions import ConflictError
from parceltrack.core.events import EventLog, MemoryEventRepository
from parceltrack.core.shipments import MemoryShipmentRepository, ShipmentService, TrackingNumberGenerator
from parceltrack.core.shipments.tracking import (
    TRACKING_NUMBER_PATTERN,
    is_valid_tracking_number,
    normalize_tracking_number,
)
from parceltrack.infra.memory_store import MemoryStore
from parceltrack.shared.models import CreateShipmentRequest


def _fixed_clock() -> datetime:
    return datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


class FixedSequenceGenerator(TrackingNumberGenerator):
    """Hands out a scripted sequence of candidates."""

    def __init__(self, candidates: list[str]) -> None:
        super().__init__()
        self._candidates = list(candidates)
        self.calls = 0

    def generate(self) -> str:
        self.calls += 1
        return self._candidates.pop(0)


def _service(store: MemoryStore, tracking: TrackingNumberGenerator, max_attempts: int = 5) -> ShipmentService:
    return ShipmentService(
        MemoryShipmentRepository(store),
        EventLog(MemoryEventRepository(store)),
        tracking,
        max_attempts=max_attempts,
    )


def _request() -> CreateShipmentRequest:
    return CreateShipmentRequest.model_validate(
        {
            "sender": {"name": "A", "phone": "1", "address": "From"},
            "receiver": {"name": "B", "phone": "2", "address": "To"},
            "package": {"weight": 1.0, "description": "Box"},
        }
    )


class TestTrackingNumberGenerator:
    """Format of generated candidates."""

    def test_format(self) -> None:
        generator = TrackingNumberGenerator(prefix="PKG", suffix_length=6, clock=_fixed_clock)

        value = generator.generate()

        prefix, date_part, suffix = value.split("-")
        assert prefix == "PKG"
        assert date_part == "20240315"
        assert len(suffix) == 6
        assert TRACKING_NUMBER_PATTERN.match(value)

    def test_prefix_is_upper_cased(self) -> None:
        generator = TrackingNumberGenerator(prefix="pt", clock=_fixed_clock)
        assert generator.generate().startswith("PT-20240315-")

    def test_seeded_rng_is_reproducible(self) -> None:
        first = TrackingNumberGenerator(rng=random.Random(7), clock=_fixed_clock)
        second = TrackingNumberGenerator(rng=random.Random(7), clock=_fixed_clock)
        assert [first.generate() for _ in range(5)] == [second.generate() for _ in range(5)]

    def test_normalize_and_validate(self) -> None:
        assert normalize_tracking_number("  pkg-20240315-ab12cd ") == "PKG-20240315-AB12CD"
        assert is_valid_tracking_number("PKG-20240315-AB12CD")
        assert not is_valid_tracking_number("pkg-20240315-ab12cd")
        assert not is_valid_tracking_number("PKG 20240315")


class TestTrackingNumberUniqueness:
    """Collision handling in ShipmentService.create_shipment."""

    @pytest.mark.asyncio
    async def test_concurrent_creation_yields_unique_numbers(self) -> None:
        store = MemoryStore()
        service = _service(store, TrackingNumberGenerator(suffix_length=6))

        shipments = await asyncio.gather(
            *(service.create_from_request(f"customer-{i % 50}", _request()) for i in range(10_000))
        )

        numbers = [s.tracking_number for s in shipments]
        assert len(set(numbers)) == len(numbers) == 10_000
        assert all(TRACKING_NUMBER_PATTERN.match(n) for n in numbers)

    @pytest.mark.asyncio
    async def test_collision_is_retried(self) -> None:
        store = MemoryStore()
        service = _service(store, FixedSequenceGenerator(["PKG-1-AAAA", "PKG-1-AAAA", "PKG-1-BBBB"]))

        first = await service.create_from_request("customer-1", _request())
        second = await service.create_from_request("customer-1", _request())

        assert first.tracking_number == "PKG-1-AAAA"
        assert second.tracking_number == "PKG-1-BBBB"

    @pytest.mark.asyncio
    async def test_exhausted_attempts_raise_conflict(self) -> None:
        store = MemoryStore()
        generator = FixedSequenceGenerator(["PKG-1-AAAA"] * 4)
        service = _service(store, generator, max_attempts=3)

        await service.create_from_request("customer-1", _request())
        with pytest.raises(ConflictError):
            await service.create_from_request("customer-1", _request())

        assert generator.calls == 4
        assert len(store.shipments) == 1

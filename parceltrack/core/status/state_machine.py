# parceltrack/core/status/state_machine.py
"""
Shipment status state machine.

    pending -> assigned -> in_transit -> delivered
                  |            |
                  +------------+--> exceptions

Every edge names the only actor allowed to take it.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from parceltrack.common.constants import ShipmentStatus
from parceltrack.common.exceptions import ForbiddenError, InvalidTransitionError, ValidationError
from parceltrack.core.identity import CallerIdentity
from parceltrack.shared.models import Shipment


class Actor(str, Enum):
    """Who may take an edge."""
    CLAIM_COORDINATOR = "claim_coordinator"
    ASSIGNED_DRIVER = "assigned_driver"


class ShipmentStateMachine:
    ALLOWED_TRANSITIONS: dict[ShipmentStatus, dict[ShipmentStatus, Actor]] = {
        ShipmentStatus.PENDING: {
            ShipmentStatus.ASSIGNED: Actor.CLAIM_COORDINATOR,
        },
        ShipmentStatus.ASSIGNED: {
            ShipmentStatus.IN_TRANSIT: Actor.ASSIGNED_DRIVER,
            ShipmentStatus.EXCEPTIONS: Actor.ASSIGNED_DRIVER,
        },
        ShipmentStatus.IN_TRANSIT: {
            ShipmentStatus.DELIVERED: Actor.ASSIGNED_DRIVER,
            ShipmentStatus.EXCEPTIONS: Actor.ASSIGNED_DRIVER,
        },
        ShipmentStatus.DELIVERED: {},
        ShipmentStatus.EXCEPTIONS: {},
    }

    @staticmethod
    def parse_status(value: str) -> ShipmentStatus:
        """Raises ValidationError for values outside the status set."""
        try:
            return ShipmentStatus(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(s.value for s in ShipmentStatus)
            raise ValidationError(
                f"Unknown status '{value}'. Allowed: {allowed}",
                details={"field": "status"},
            )

    @staticmethod
    def can_transition(current: ShipmentStatus, new: ShipmentStatus) -> bool:
        return new in ShipmentStateMachine.ALLOWED_TRANSITIONS.get(current, {})

    @staticmethod
    def required_actor(current: ShipmentStatus, new: ShipmentStatus) -> Optional[Actor]:
        return ShipmentStateMachine.ALLOWED_TRANSITIONS.get(current, {}).get(new)

    @staticmethod
    def authorize(shipment: Shipment, new: ShipmentStatus, caller: CallerIdentity) -> None:
        """
        Checks a caller-requested transition.
        Edge legality comes first, then the actor.

        Raises:
            InvalidTransitionError: edge not in the table
            ForbiddenError: legal edge, wrong actor
        """
        actor = ShipmentStateMachine.required_actor(shipment.status, new)
        if actor is None:
            raise InvalidTransitionError(shipment.status.value, new.value)

        if actor == Actor.CLAIM_COORDINATOR:
            raise ForbiddenError("Shipments are assigned by claiming them, not by a status update")

        if shipment.driver_id is None or shipment.driver_id != caller.driver_id:
            raise ForbiddenError("Only the assigned driver can update this shipment")

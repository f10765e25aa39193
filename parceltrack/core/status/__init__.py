# parceltrack/core/status/__init__.py
"""
Shipment status state machine.
"""

from parceltrack.core.status.service import StatusService
from parceltrack.core.status.state_machine import Actor, ShipmentStateMachine

__all__ = ["Actor", "ShipmentStateMachine", "StatusService"]

# parceltrack/shared/events/realtime.py
"""
Payloads of the realtime topics.
"""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic import BaseModel, Field

from parceltrack.common.constants import RealtimeTopic


class RealtimeEvent(BaseModel):
    """Base class for realtime payloads."""

    topic: ClassVar[RealtimeTopic]

    class Config:
        populate_by_name = True
        frozen = True

    def payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ShipmentUpdated(RealtimeEvent):
    """shipment_updated {id, status}"""

    topic: ClassVar[RealtimeTopic] = RealtimeTopic.SHIPMENT_UPDATED

    id: int
    status: str


class ShipmentAssigned(RealtimeEvent):
    """shipment_assigned {shipmentId, driverId}"""

    topic: ClassVar[RealtimeTopic] = RealtimeTopic.SHIPMENT_ASSIGNED

    shipment_id: int = Field(alias="shipmentId")
    driver_id: int = Field(alias="driverId")

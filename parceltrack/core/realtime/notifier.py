# parceltrack/core/realtime/notifier.py
"""
Realtime notifier.

Publishes committed state changes to subscribers. Frames have the shape
{"event": topic, "data": payload}. With the Redis bridge enabled every
instance publishes to Redis and relays what it receives to its local
sockets; otherwise frames go straight to the local ConnectionManager.

publish() never waits on the network. Locally it only queues frames on
the sockets' outboxes; with Redis it queues them on one ordered outbox
that a dispatcher task publishes, each publish bounded by a timeout.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Optional

from parceltrack.common.constants import RealtimeTopic
from parceltrack.common.logger import log_debug, log_error, log_warning
from parceltrack.core.realtime.connection_manager import ConnectionManager
from parceltrack.shared.events import RealtimeEvent, ShipmentAssigned, ShipmentUpdated

if TYPE_CHECKING:
    from parceltrack.infra.redis_client import RedisClient

CHANNEL_PREFIX = "realtime"

PUBLISH_TIMEOUT = 2.0
OUTBOX_SIZE = 1024


def build_frame(topic: RealtimeTopic | str, payload: dict[str, Any]) -> dict[str, Any]:
    return {"event": str(topic), "data": payload}


class RealtimeNotifier:
    """Fan-out of shipment_updated / shipment_assigned."""

    def __init__(
        self,
        manager: ConnectionManager,
        redis: Optional["RedisClient"] = None,
        publish_timeout: float = PUBLISH_TIMEOUT,
        outbox_size: int = OUTBOX_SIZE,
    ) -> None:
        """
        Args:
            manager: Local subscriber set
            redis: Redis client when the multi-instance bridge is on
            publish_timeout: Seconds one Redis publish may take
            outbox_size: Frames waiting for Redis before new ones go local
        """
        self._manager = manager
        self._redis = redis
        self._publish_timeout = publish_timeout
        self._outbox_size = outbox_size
        self._outbox: Optional[asyncio.Queue] = None
        self._dispatcher: Optional[asyncio.Task] = None

    @property
    def manager(self) -> ConnectionManager:
        return self._manager

    @staticmethod
    def channel_for(topic: RealtimeTopic | str) -> str:
        """Channel name without the Redis namespace."""
        return f"{CHANNEL_PREFIX}:{topic}"

    async def publish(self, topic: RealtimeTopic | str, payload: dict[str, Any]) -> None:
        """
        Publishes after the state change is committed.
        Delivery failures are logged and never reach the caller.
        """
        frame = build_frame(topic, payload)

        if self._redis is None:
            await self._deliver_locally(str(topic), frame)
            return

        outbox = self._ensure_dispatcher()
        try:
            outbox.put_nowait((str(topic), frame))
        except asyncio.QueueFull:
            await log_error(f"Realtime outbox full, delivering {topic} locally")
            await self._deliver_locally(str(topic), frame)

    def _ensure_dispatcher(self) -> asyncio.Queue:
        if self._outbox is None:
            self._outbox = asyncio.Queue(maxsize=self._outbox_size)
        if self._dispatcher is None or self._dispatcher.done():
            self._dispatcher = asyncio.create_task(self._dispatch())
        return self._outbox

    async def _dispatch(self) -> None:
        """Publishes queued frames to Redis one at a time, in queue order."""
        while True:
            topic, frame = await self._outbox.get()
            try:
                await asyncio.wait_for(
                    self._redis.publish(self.channel_for(topic), frame),
                    self._publish_timeout,
                )
            except asyncio.CancelledError:
                raise
            except Exception as e:
                await log_error(f"Redis publish failed for {topic}, delivering locally: {e!r}")
                await self._deliver_locally(topic, frame)
            finally:
                self._outbox.task_done()

    async def _deliver_locally(self, topic: str, frame: dict[str, Any]) -> None:
        queued = await self._manager.broadcast_to_topic(topic, frame)
        await log_debug(f"Published {topic} to {queued} subscribers", extra={"payload": frame["data"]})

    async def flush(self, timeout: float = PUBLISH_TIMEOUT * 2) -> None:
        """Waits until queued frames have left for Redis and the local sockets."""
        if self._outbox is not None and self._dispatcher is not None:
            try:
                await asyncio.wait_for(self._outbox.join(), timeout)
            except asyncio.TimeoutError:
                await log_warning(f"Realtime outbox not flushed within {timeout}s")
        await self._manager.drain(timeout)

    async def close(self) -> None:
        """Flushes, then stops the dispatcher and every socket writer."""
        await self.flush()
        if self._dispatcher:
            self._dispatcher.cancel()
            try:
                await self._dispatcher
            except asyncio.CancelledError:
                pass
            self._dispatcher = None
        await self._manager.close()

    async def emit(self, event: RealtimeEvent) -> None:
        await self.publish(event.topic, event.payload())

    async def shipment_updated(self, shipment_id: int, status: str) -> None:
        await self.emit(ShipmentUpdated(id=shipment_id, status=str(status)))

    async def shipment_assigned(self, shipment_id: int, driver_id: int) -> None:
        await self.emit(ShipmentAssigned(shipment_id=shipment_id, driver_id=driver_id))

    async def relay(self, channel: str, frame: dict[str, Any]) -> None:
        """RedisSubscriber handler: forwards a bridged frame to local sockets."""
        topic = channel.rsplit(":", 1)[-1]
        if topic not in {t.value for t in RealtimeTopic}:
            return
        await self._manager.broadcast_to_topic(topic, frame)

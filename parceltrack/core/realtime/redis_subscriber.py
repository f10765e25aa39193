# parceltrack/core/realtime/redis_subscriber.py
"""
Redis Pub/Sub subscriber for the multi-instance realtime bridge.

Listens on {namespace}:realtime:* and hands every frame to a handler.
"""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any, Callable, Coroutine

from parceltrack.common.logger import log_error, log_info

if TYPE_CHECKING:
    from redis.asyncio import Redis


class RedisSubscriber:
    """
    Redis Pub/Sub subscriber.

    Receives bridged frames and forwards them to the local WebSocket manager.
    """

    def __init__(
        self,
        redis: "Redis",
        message_handler: Callable[[str, dict[str, Any]], Coroutine[Any, Any, None]],
        pattern: str,
    ) -> None:
        """
        Args:
            redis: Redis client
            message_handler: Callback (channel, data)
            pattern: Channel pattern to subscribe to
        """
        self._redis = redis
        self._handler = message_handler
        self._pattern = pattern
        self._pubsub = None
        self._task: asyncio.Task | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return

        self._pubsub = self._redis.pubsub()
        await self._pubsub.psubscribe(self._pattern)
        self._running = True
        self._task = asyncio.create_task(self._listen())
        await log_info(f"Realtime bridge subscribed to {self._pattern}")

    async def stop(self) -> None:
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if self._pubsub:
            await self._pubsub.punsubscribe()
            await self._pubsub.aclose()
            self._pubsub = None

    async def _listen(self) -> None:
        while self._running:
            try:
                message = await self._pubsub.get_message(
                    ignore_subscribe_messages=True,
                    timeout=1.0,
                )
                if message is None:
                    continue
                await self._process_message(message)
            except asyncio.CancelledError:
                break
            except Exception as e:
                # Keep listening after transient Redis errors
                await log_error(f"Redis subscriber error: {e}")
                await asyncio.sleep(1)

    async def _process_message(self, message: dict[str, Any]) -> None:
        if message.get("type") not in ("message", "pmessage"):
            return

        channel = message.get("channel", "")
        if isinstance(channel, bytes):
            channel = channel.decode("utf-8")

        data = message.get("data", "")
        if isinstance(data, bytes):
            data = data.decode("utf-8")

        try:
            parsed = json.loads(data)
        except json.JSONDecodeError:
            await log_error(f"Dropping non-JSON realtime frame on {channel}")
            return

        await self._handler(channel, parsed)

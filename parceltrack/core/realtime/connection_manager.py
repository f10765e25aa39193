# parceltrack/core/realtime/connection_manager.py
"""
WebSocket connection manager.
Tracks subscribers per topic and fans messages out to them.

Every connection owns an outbox queue drained by its own writer task, so
broadcasting never waits on a socket. Frames reach a socket in the order
they were queued. A socket that times out, errors or lets its outbox fill
up is dropped.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from fastapi import WebSocket

from parceltrack.common.constants import RealtimeTopic
from parceltrack.common.logger import log_debug, log_warning

DEFAULT_TOPICS: tuple[str, ...] = tuple(t.value for t in RealtimeTopic)

SEND_TIMEOUT = 5.0
OUTBOX_SIZE = 256


@dataclass
class ConnectionInfo:
    """One open socket."""
    websocket: WebSocket
    connection_id: str
    outbox: asyncio.Queue
    user_id: Optional[str] = None
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    subscriptions: set[str] = field(default_factory=set)
    writer: Optional[asyncio.Task] = None


class ConnectionManager:
    """
    Process-scoped subscriber set.

    Supports:
    - connect/disconnect
    - subscribe/unsubscribe per topic
    - broadcast to a topic, personal messages
    """

    def __init__(self, send_timeout: float = SEND_TIMEOUT, outbox_size: int = OUTBOX_SIZE) -> None:
        """
        Args:
            send_timeout: Seconds one send may take before the socket is dropped
            outbox_size: Frames queued per socket before it counts as stalled
        """
        self._send_timeout = send_timeout
        self._outbox_size = outbox_size

        # connection_id -> ConnectionInfo
        self._connections: dict[str, ConnectionInfo] = {}

        # topic -> set of connection_ids
        self._subscriptions: dict[str, set[str]] = {}

    @property
    def active_connections(self) -> int:
        return len(self._connections)

    async def connect(
        self,
        websocket: WebSocket,
        user_id: Optional[str] = None,
        topics: Iterable[str] = DEFAULT_TOPICS,
    ) -> str:
        """
        Accepts the socket, starts its writer and subscribes it to `topics`.

        Returns:
            Connection id
        """
        await websocket.accept()

        connection_id = uuid.uuid4().hex
        conn = ConnectionInfo(
            websocket=websocket,
            connection_id=connection_id,
            outbox=asyncio.Queue(maxsize=self._outbox_size),
            user_id=user_id,
        )
        self._connections[connection_id] = conn
        conn.writer = asyncio.create_task(self._write_loop(conn))

        for topic in topics:
            await self.subscribe(connection_id, topic)

        await log_debug(f"WebSocket {connection_id} connected", extra={"user_id": user_id})
        return connection_id

    async def disconnect(self, connection_id: str) -> None:
        """Removes the connection, its subscriptions and its writer."""
        if self._remove(connection_id) is not None:
            await log_debug(f"WebSocket {connection_id} disconnected")

    def _remove(self, connection_id: str) -> Optional[ConnectionInfo]:
        conn = self._connections.pop(connection_id, None)
        if conn is None:
            return None

        for topic in list(conn.subscriptions):
            self._unsubscribe_from_topic(connection_id, topic)

        if conn.writer is not None and conn.writer is not asyncio.current_task():
            conn.writer.cancel()

        # Frames never sent still count as done for drain()
        while not conn.outbox.empty():
            conn.outbox.get_nowait()
            conn.outbox.task_done()
        return conn

    async def subscribe(self, connection_id: str, topic: str) -> bool:
        """
        Subscribes a connection to a topic.

        Returns:
            False for unknown connections or topics
        """
        if connection_id not in self._connections or topic not in DEFAULT_TOPICS:
            return False

        self._connections[connection_id].subscriptions.add(topic)
        self._subscriptions.setdefault(topic, set()).add(connection_id)
        return True

    async def unsubscribe(self, connection_id: str, topic: str) -> None:
        self._unsubscribe_from_topic(connection_id, topic)

    def _unsubscribe_from_topic(self, connection_id: str, topic: str) -> None:
        if connection_id in self._connections:
            self._connections[connection_id].subscriptions.discard(topic)

        if topic in self._subscriptions:
            self._subscriptions[topic].discard(connection_id)
            if not self._subscriptions[topic]:
                del self._subscriptions[topic]

    async def send_personal(self, connection_id: str, message: dict[str, Any]) -> bool:
        """
        Queues a message for one connection.

        Returns:
            True when queued, False when the connection is gone or stalled
        """
        conn = self._connections.get(connection_id)
        if conn is None:
            return False
        return await self._enqueue(conn, message)

    async def broadcast_to_topic(self, topic: str, message: dict[str, Any]) -> int:
        """
        Queues a message for every subscriber of a topic. Never waits on a socket.

        Returns:
            Number of connections the message was queued for
        """
        queued = 0
        for connection_id in list(self._subscriptions.get(topic, ())):
            conn = self._connections.get(connection_id)
            if conn is not None and await self._enqueue(conn, message):
                queued += 1
        return queued

    async def _enqueue(self, conn: ConnectionInfo, message: dict[str, Any]) -> bool:
        try:
            conn.outbox.put_nowait(message)
            return True
        except asyncio.QueueFull:
            self._remove(conn.connection_id)
            await log_warning(
                f"WebSocket {conn.connection_id} dropped: {self._outbox_size} frames pending"
            )
            return False

    async def _write_loop(self, conn: ConnectionInfo) -> None:
        """Sends queued frames in order until the socket fails or is removed."""
        while True:
            message = await conn.outbox.get()
            try:
                await asyncio.wait_for(conn.websocket.send_json(message), self._send_timeout)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._remove(conn.connection_id)
                await log_debug(f"WebSocket {conn.connection_id} dropped on send: {e!r}")
                return
            finally:
                conn.outbox.task_done()

    async def drain(self, timeout: float = SEND_TIMEOUT) -> None:
        """Waits until every live connection has sent what is queued for it."""
        pending = [conn.outbox.join() for conn in self._connections.values()]
        if not pending:
            return
        try:
            await asyncio.wait_for(asyncio.gather(*pending), timeout)
        except asyncio.TimeoutError:
            await log_warning(f"Realtime outboxes not drained within {timeout}s")

    async def close(self) -> None:
        """Flushes pending frames, then stops every writer."""
        await self.drain()
        for connection_id in list(self._connections):
            self._remove(connection_id)

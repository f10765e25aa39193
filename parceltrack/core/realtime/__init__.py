# parceltrack/core/realtime/__init__.py
"""
Realtime fan-out over WebSocket, optionally bridged through Redis.
"""

from parceltrack.core.realtime.connection_manager import DEFAULT_TOPICS, ConnectionInfo, ConnectionManager
from parceltrack.core.realtime.notifier import RealtimeNotifier, build_frame
from parceltrack.core.realtime.redis_subscriber import RedisSubscriber

__all__ = [
    "DEFAULT_TOPICS",
    "ConnectionInfo",
    "ConnectionManager",
    "RealtimeNotifier",
    "RedisSubscriber",
    "build_frame",
]

# parceltrack/infra/__init__.py
"""
Infrastructure: PostgreSQL pool, in-memory backend, Redis client.
"""

from parceltrack.infra.database import DatabaseManager, close_db, get_db, init_db
from parceltrack.infra.memory_store import MemoryStore
from parceltrack.infra.redis_client import RedisClient, close_redis, get_redis, init_redis

__all__ = [
    "DatabaseManager",
    "MemoryStore",
    "RedisClient",
    "close_db",
    "close_redis",
    "get_db",
    "get_redis",
    "init_db",
    "init_redis",
]

# parceltrack/infra/redis_client.py
"""
Redis client for the realtime bridge.
Publishes notifier frames and hands out pub/sub connections.
"""

from __future__ import annotations

import json
from typing import Any

import redis.asyncio as redis

from parceltrack.common.constants import TypeMsg
from parceltrack.common.logger import get_logger, log_error, log_info

logger = get_logger("redis")


class RedisClient:
    """
    Async Redis client.
    Singleton around one connection pool per process.
    """

    _instance: RedisClient | None = None
    _client: redis.Redis | None = None

    def __new__(cls) -> RedisClient:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self._client = None
        self._namespace = "parceltrack"

    @property
    def client(self) -> redis.Redis:
        """Returns the underlying client."""
        if self._client is None:
            raise RuntimeError("Redis client is not initialized. Call connect() first.")
        return self._client

    @property
    def namespace(self) -> str:
        return self._namespace

    def make_key(self, key: str) -> str:
        """Prefixes a key or channel with the namespace."""
        return f"{self._namespace}:{key}"

    async def connect(
        self,
        url: str | None = None,
        namespace: str | None = None,
    ) -> None:
        """
        Connects to Redis.

        Args:
            url: Redis URL (taken from config when None)
            namespace: Key prefix (taken from config when None)
        """
        if self._client is not None:
            return

        if url is None:
            from parceltrack.config import settings
            url = settings.redis.url
            namespace = namespace or settings.redis.REDIS_NAMESPACE

        if namespace:
            self._namespace = namespace

        await log_info("Connecting to Redis...", type_msg=TypeMsg.INFO)

        self._client = redis.from_url(url, decode_responses=True)
        await self._client.ping()

        await log_info("Redis connection established", type_msg=TypeMsg.INFO)

    async def disconnect(self) -> None:
        """Closes the connection."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            await log_info("Redis connection closed", type_msg=TypeMsg.INFO)

    async def publish(self, channel: str, message: dict[str, Any]) -> int:
        """
        Publishes a JSON message.

        Args:
            channel: Channel name without namespace
            message: Payload

        Returns:
            Number of receivers
        """
        return await self.client.publish(
            self.make_key(channel),
            json.dumps(message, ensure_ascii=False, default=str),
        )

    async def health_check(self) -> bool:
        """Checks the Redis connection."""
        try:
            return bool(await self.client.ping())
        except Exception as e:
            await log_error(f"Redis health check failed: {e}")
            return False


_redis_client: RedisClient | None = None


def get_redis() -> RedisClient:
    """Returns the process-wide RedisClient."""
    global _redis_client
    if _redis_client is None:
        _redis_client = RedisClient()
    return _redis_client


async def init_redis() -> RedisClient:
    """Connects using the configured settings."""
    client = get_redis()
    await client.connect()
    return client


async def close_redis() -> None:
    """Closes the Redis connection."""
    await get_redis().disconnect()

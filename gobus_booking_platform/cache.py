"""
Redis store for expiring authentication state.

Only refresh tokens live here. Seat state never touches Redis, the database
is the single source of truth for who holds which seat.
"""

import json
import logging
from typing import Any, Optional

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError

from .config import get_settings

logger = logging.getLogger(__name__)

REFRESH_TOKEN_PREFIX = "auth:refresh"


def refresh_token_key(token_hash: str) -> str:
    """Key under which a refresh token digest is tracked."""
    return f"{REFRESH_TOKEN_PREFIX}:{token_hash}"


class RedisStore:
    """JSON values with expiry on top of a pooled Redis client."""

    def __init__(self, url: Optional[str] = None):
        self.url = url
        self.pool: Optional[redis.ConnectionPool] = None
        self.client: Optional[redis.Redis] = None

    @property
    def connected(self) -> bool:
        return self.client is not None

    async def connect(self) -> None:
        """
        Open the connection pool and check the server answers.

        Raises:
            redis.exceptions.ConnectionError: If Redis is unreachable
        """
        settings = get_settings()
        self.pool = redis.ConnectionPool.from_url(
            self.url or settings.redis_url,
            max_connections=settings.redis_max_connections,
            retry_on_timeout=True,
            health_check_interval=30,
        )
        self.client = redis.Redis(connection_pool=self.pool)

        try:
            await self.client.ping()
        except RedisConnectionError as e:
            logger.error(f"Redis unreachable at startup: {e}")
            raise
        logger.info("Token store connected")

    async def disconnect(self) -> None:
        if self.client is not None:
            await self.client.aclose()
            self.client = None
        if self.pool is not None:
            await self.pool.disconnect()
            self.pool = None
        logger.info("Token store disconnected")

    async def ping(self) -> bool:
        """True when Redis answers, for health reporting."""
        if not self.connected:
            return False
        try:
            return bool(await self.client.ping())
        except RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    async def get(self, key: str) -> Optional[Any]:
        """
        Read a stored value.

        A read failure is reported as a missing key, so callers treat
        anything they cannot verify as absent.
        """
        if not self.connected:
            logger.warning(f"Token store not connected, treating {key} as absent")
            return None
        try:
            raw = await self.client.get(key)
        except RedisError as e:
            logger.warning(f"Token store read failed for {key}: {e}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Discarding unreadable value at {key}")
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """
        Store a JSON value, expiring after ``ttl`` seconds when given.

        Returns:
            False if the write could not be made
        """
        if not self.connected:
            logger.warning(f"Token store not connected, cannot write {key}")
            return False
        payload = json.dumps(value, default=str)
        try:
            if ttl:
                await self.client.setex(key, ttl, payload)
            else:
                await self.client.set(key, payload)
        except RedisError as e:
            logger.warning(f"Token store write failed for {key}: {e}")
            return False
        return True

    async def delete(self, key: str) -> bool:
        if not self.connected:
            return False
        try:
            await self.client.delete(key)
        except RedisError as e:
            logger.warning(f"Token store delete failed for {key}: {e}")
            return False
        return True


store = RedisStore()


async def init_cache() -> None:
    await store.connect()


async def close_cache() -> None:
    await store.disconnect()


def get_cache() -> RedisStore:
    """Process-wide token store."""
    return store

"""
Redis connection management and distributed locking.

Redis is used to coordinate showtime scheduling across processes; seat
exclusivity itself is enforced by the database.
"""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Optional

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.exceptions import RedisError
from redis.exceptions import ConnectionError as RedisConnectionError

from .config import get_settings
from .utils.exceptions import ConcurrencyError

logger = logging.getLogger(__name__)


class LockKeyBuilder:
    """Helper class for building consistent lock keys."""

    @staticmethod
    def screen_schedule(screen_id: str) -> str:
        """Build lock key serializing showtime writes on one screen."""
        return f"lock:schedule:screen:{screen_id}"


class RedisConnection:
    """Redis connection manager."""

    def __init__(self):
        self.client: Optional[Redis] = None
        self.pool: Optional[redis.ConnectionPool] = None

    @property
    def is_connected(self) -> bool:
        return self.client is not None

    async def initialize(self) -> None:
        """Initialize Redis connection pool and client."""
        settings = get_settings()

        try:
            self.pool = redis.ConnectionPool.from_url(
                settings.redis_url,
                max_connections=settings.redis_max_connections,
                retry_on_timeout=True,
                socket_keepalive=True,
                health_check_interval=30
            )
            client = Redis(connection_pool=self.pool)

            # Test connection
            await client.ping()
            self.client = client
            logger.info("Redis connection initialized successfully")

        except RedisConnectionError as e:
            logger.error("Failed to connect to Redis: %s", e)
            raise
        except Exception as e:
            logger.error("Failed to initialize Redis connection: %s", e)
            raise

    async def close(self) -> None:
        """Close Redis connections."""
        if self.client:
            await self.client.aclose()
            self.client = None
        if self.pool:
            await self.pool.disconnect()
            self.pool = None
        logger.info("Redis connections closed")

    async def ping(self) -> bool:
        if not self.client:
            return False
        try:
            return bool(await self.client.ping())
        except RedisError as e:
            logger.warning("Redis ping failed: %s", e)
            return False


class DistributedLock:
    """Distributed lock implementation using Redis SET NX EX."""

    RELEASE_SCRIPT = """
    if redis.call("GET", KEYS[1]) == ARGV[1] then
        return redis.call("DEL", KEYS[1])
    else
        return 0
    end
    """

    def __init__(self, connection: RedisConnection, key: str, timeout: int = 30):
        """
        Initialize distributed lock.

        Args:
            connection: Redis connection
            key: Lock key
            timeout: Lock expiry in seconds, also the maximum wait to acquire
        """
        self.connection = connection
        self.key = key
        self.timeout = timeout
        self.identifier = uuid.uuid4().hex

    async def acquire(self, blocking: bool = True, wait_timeout: Optional[float] = None) -> bool:
        """
        Acquire the distributed lock.

        Args:
            blocking: Whether to block until lock is acquired
            wait_timeout: Maximum time to wait for lock (seconds)

        Returns:
            True if lock acquired, False otherwise
        """
        if not self.connection.client:
            return False

        loop = asyncio.get_running_loop()
        deadline = loop.time() + wait_timeout if wait_timeout else None

        while True:
            acquired = await self.connection.client.set(
                self.key,
                self.identifier,
                nx=True,
                ex=self.timeout
            )

            if acquired:
                return True

            if not blocking:
                return False

            if deadline is not None and loop.time() >= deadline:
                return False

            await asyncio.sleep(0.05)

    async def release(self) -> bool:
        """
        Release the distributed lock if we still own it.

        Returns:
            True if lock released, False otherwise
        """
        if not self.connection.client:
            return False

        try:
            result = await self.connection.client.eval(
                self.RELEASE_SCRIPT, 1, self.key, self.identifier
            )
            return bool(result)

        except RedisError as e:
            logger.warning(f"Failed to release lock {self.key}: {e}")
            return False

    async def __aenter__(self):
        acquired = await self.acquire(wait_timeout=self.timeout)
        if not acquired:
            raise ConcurrencyError(f"Timed out waiting for lock {self.key}")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.release()


# Global connection instance
redis_connection = RedisConnection()


async def init_redis() -> None:
    """Initialize the global Redis connection."""
    await redis_connection.initialize()


async def close_redis() -> None:
    """Close the global Redis connection."""
    await redis_connection.close()


def get_redis() -> RedisConnection:
    """Get the global Redis connection."""
    return redis_connection


@asynccontextmanager
async def distributed_lock(key: str, timeout: int = 30):
    """
    Context manager for distributed locks.

    Usage:
        async with distributed_lock("my_lock_key"):
            # Critical section
            pass
    """
    lock = DistributedLock(redis_connection, key, timeout)
    async with lock:
        yield lock

"""
Redis connection used to relay bookmark changes between API processes.

Every operation degrades to a "not available" result instead of raising, so a
missing or failing Redis only narrows realtime delivery to the local process.
"""
import logging

from redis.asyncio import ConnectionPool, Redis
from redis.asyncio.client import PubSub
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class RedisClient:
    """Async Redis client with connection pooling and graceful fallback."""

    def __init__(self, url: str, enabled: bool = True, pool_size: int = 20) -> None:
        self._url = url
        self._enabled = enabled
        self._pool_size = pool_size
        self._pool: ConnectionPool | None = None
        self._client: Redis | None = None

    async def connect(self) -> None:
        """Create the pool and check the server answers; stay disconnected otherwise."""
        if not self._enabled:
            logger.info("Redis disabled, realtime changes stay in-process")
            return
        try:
            self._pool = ConnectionPool.from_url(self._url, max_connections=self._pool_size)
            self._client = Redis(connection_pool=self._pool)
            await self._client.ping()
            logger.info("Redis connected at %s", self._url)
        except RedisError as e:
            logger.warning("Redis unavailable, realtime changes stay in-process: %s", e)
            self._client = None
            self._pool = None

    async def close(self) -> None:
        """Close connection pool."""
        if self._client:
            await self._client.aclose()
            self._client = None
            self._pool = None
            logger.info("Redis connection closed")

    @property
    def is_connected(self) -> bool:
        """True once connect() reached the server."""
        return self._client is not None

    async def ping(self) -> bool:
        """Check Redis connectivity."""
        if not self._client:
            return False
        try:
            return await self._client.ping()
        except RedisError:
            return False

    async def publish(self, channel: str, message: str) -> bool:
        """Publish a message. Returns False if it could not be handed to Redis."""
        if not self._client:
            return False
        try:
            await self._client.publish(channel, message)
        except RedisError as e:
            logger.warning("Redis PUBLISH to %s failed: %s", channel, e)
            return False
        return True

    async def psubscribe(self, pattern: str) -> PubSub | None:
        """
        Open a pattern subscription.

        Subscribe confirmations are filtered out, so the handle's listen() only
        yields messages. Returns None if Redis is unavailable or refuses the
        subscription.
        """
        if not self._client:
            return None
        pubsub = self._client.pubsub(ignore_subscribe_messages=True)
        try:
            await pubsub.psubscribe(pattern)
        except RedisError as e:
            logger.warning("Redis PSUBSCRIBE %s failed: %s", pattern, e)
            await pubsub.aclose()
            return None
        return pubsub


# Global Redis client state using a container to avoid global statement
class _RedisState:
    """Container for global Redis client state."""

    client: RedisClient | None = None


_state = _RedisState()


def get_redis_client() -> RedisClient | None:
    """Get the global Redis client instance."""
    return _state.client


def set_redis_client(client: RedisClient | None) -> None:
    """Set the global Redis client instance."""
    _state.client = client

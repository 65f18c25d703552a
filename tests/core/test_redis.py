"""
Tests for the Redis client module.

Note: Basic Redis operations are not tested against a live server here as they
just wrap the redis.asyncio library. We test the fallback behavior, which is
what keeps the change feed running when Redis is unavailable.
"""
from unittest.mock import AsyncMock, MagicMock, patch

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError

from core.redis import RedisClient, get_redis_client, set_redis_client


class TestRedisFallback:
    """Tests for graceful fallback when Redis is unavailable."""

    async def test__disabled__never_connects(self) -> None:
        """A disabled client stays disconnected and reports it."""
        client = RedisClient("redis://localhost:6379", enabled=False)
        await client.connect()

        assert not client.is_connected
        assert await client.ping() is False
        assert await client.publish("channel", "message") is False
        assert await client.psubscribe("bookmarks:changes:*") is None

    async def test__connect__failure_leaves_client_disconnected(self) -> None:
        """A failed ping on connect falls back to disconnected mode."""
        client = RedisClient("redis://localhost:1")
        with patch("core.redis.Redis") as redis_cls:
            redis_cls.return_value.ping = AsyncMock(
                side_effect=RedisConnectionError("connection refused"),
            )
            await client.connect()

        assert not client.is_connected

    async def test__publish__error_returns_false(self) -> None:
        """Publish errors are reported as False rather than raised."""
        client = RedisClient("redis://localhost:6379")
        client._client = MagicMock()
        client._client.publish = AsyncMock(side_effect=RedisError("boom"))

        assert await client.publish("channel", "message") is False

    async def test__publish__success_returns_true(self) -> None:
        client = RedisClient("redis://localhost:6379")
        client._client = MagicMock()
        client._client.publish = AsyncMock(return_value=1)

        assert await client.publish("channel", "message") is True
        client._client.publish.assert_awaited_once_with("channel", "message")

    async def test__psubscribe__returns_subscribed_handle(self) -> None:
        client = RedisClient("redis://localhost:6379")
        client._client = MagicMock()
        pubsub = client._client.pubsub.return_value
        pubsub.psubscribe = AsyncMock()

        assert await client.psubscribe("bookmarks:changes:*") is pubsub

        client._client.pubsub.assert_called_once_with(ignore_subscribe_messages=True)
        pubsub.psubscribe.assert_awaited_once_with("bookmarks:changes:*")

    async def test__psubscribe__failure_closes_handle(self) -> None:
        client = RedisClient("redis://localhost:6379")
        client._client = MagicMock()
        pubsub = client._client.pubsub.return_value
        pubsub.psubscribe = AsyncMock(side_effect=RedisConnectionError("connection reset"))
        pubsub.aclose = AsyncMock()

        assert await client.psubscribe("bookmarks:changes:*") is None
        pubsub.aclose.assert_awaited_once()

    async def test__close__resets_connection(self) -> None:
        client = RedisClient("redis://localhost:6379")
        redis = MagicMock()
        redis.aclose = AsyncMock()
        client._client = redis

        await client.close()

        redis.aclose.assert_awaited_once()
        assert not client.is_connected


def test__global_client__set_and_get() -> None:
    client = RedisClient("redis://localhost:6379", enabled=False)
    set_redis_client(client)
    try:
        assert get_redis_client() is client
    finally:
        set_redis_client(None)
    assert get_redis_client() is None

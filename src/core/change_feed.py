"""
Realtime change feed for bookmarks.

Changes are staged on the request's database session by the service layer and
published only after the session commits (see db.session). Published changes
fan out to per-user subscriber queues. When Redis is connected, changes go
through a Redis channel per user and a pattern-subscribed relay fans them out,
so every API process delivers every change to its own subscribers.
"""
import asyncio
import contextlib
import logging
from collections import defaultdict
from uuid import UUID

from pydantic import ValidationError
from redis.asyncio.client import PubSub
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from core.redis import RedisClient
from schemas.bookmark import BookmarkChange

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "bookmarks:changes:"
STAGED_CHANGES_KEY = "bookmark_changes"

_CLOSED = object()


def channel_for(user_id: UUID) -> str:
    """Redis channel carrying one user's changes."""
    return f"{CHANNEL_PREFIX}{user_id}"


def to_sse(change: BookmarkChange) -> str:
    """Encode a change as a Server-Sent Events message."""
    return f"event: {change.event}\ndata: {change.model_dump_json()}\n\n"


class Subscription:
    """
    One consumer's view of a user's changes.

    Backed by a bounded queue. A subscriber that falls behind by more than the
    queue size is closed rather than silently skipping changes; the consumer is
    expected to resync and subscribe again.
    """

    def __init__(self, feed: "ChangeFeed", user_id: UUID, queue_size: int) -> None:
        self.user_id = user_id
        self.overflowed = False
        self._feed = feed
        self._closed = False
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=queue_size)

    @property
    def closed(self) -> bool:
        """True once the subscription no longer receives changes."""
        return self._closed

    def offer(self, change: BookmarkChange) -> None:
        """Enqueue a change without blocking the publisher."""
        if self._closed:
            return
        try:
            self._queue.put_nowait(change)
        except asyncio.QueueFull:
            logger.warning(
                "Change feed subscriber for user %s overflowed, closing subscription",
                self.user_id,
            )
            self.overflowed = True
            self.close()

    async def get(self) -> BookmarkChange | None:
        """Wait for the next change. Returns None once the subscription is closed."""
        if self._closed and self._queue.empty():
            return None
        item = await self._queue.get()
        if item is _CLOSED:
            return None
        return item  # type: ignore[return-value]

    def close(self) -> None:
        """Stop receiving changes and wake any waiting consumer."""
        if self._closed:
            return
        self._closed = True
        self._feed._remove(self)
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> BookmarkChange:
        change = await self.get()
        if change is None:
            raise StopAsyncIteration
        return change


class ChangeFeed:
    """Per-user publish/subscribe hub for bookmark changes."""

    def __init__(self, redis_client: RedisClient | None = None, queue_size: int = 100) -> None:
        self._redis = redis_client
        self._queue_size = queue_size
        self._subscribers: dict[UUID, set[Subscription]] = defaultdict(set)
        self._pubsub: PubSub | None = None
        self._relay_task: asyncio.Task | None = None

    @property
    def relay_active(self) -> bool:
        """True while changes are routed through Redis."""
        return self._relay_task is not None and not self._relay_task.done()

    @property
    def mode(self) -> str:
        """Transport in use: 'redis' or 'local'."""
        return "redis" if self.relay_active else "local"

    async def start(self) -> None:
        """Start the Redis relay if Redis is connected; otherwise stay in-process."""
        if self._redis is None or not self._redis.is_connected:
            logger.info("Change feed using in-process fan-out")
            return
        pubsub = await self._redis.psubscribe(f"{CHANNEL_PREFIX}*")
        if pubsub is None:
            logger.info("Change feed using in-process fan-out")
            return
        self._pubsub = pubsub
        self._relay_task = asyncio.create_task(self._relay(pubsub))
        logger.info("Change feed relaying through Redis")

    async def stop(self) -> None:
        """Stop the relay and close every open subscription."""
        if self._relay_task is not None:
            self._relay_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._relay_task
            self._relay_task = None
        if self._pubsub is not None:
            await self._pubsub.aclose()
            self._pubsub = None
        for subscriptions in list(self._subscribers.values()):
            for subscription in list(subscriptions):
                subscription.close()

    def subscribe(self, user_id: UUID) -> Subscription:
        """Open a subscription to one user's changes."""
        subscription = Subscription(self, user_id, self._queue_size)
        self._subscribers[user_id].add(subscription)
        return subscription

    def subscriber_count(self, user_id: UUID | None = None) -> int:
        """Number of open subscriptions, optionally for a single user."""
        if user_id is not None:
            return len(self._subscribers.get(user_id, ()))
        return sum(len(subs) for subs in self._subscribers.values())

    def _remove(self, subscription: Subscription) -> None:
        subscriptions = self._subscribers.get(subscription.user_id)
        if subscriptions is None:
            return
        subscriptions.discard(subscription)
        if not subscriptions:
            del self._subscribers[subscription.user_id]

    async def publish(self, change: BookmarkChange) -> None:
        """Publish a change to every subscriber of its owning user."""
        if self.relay_active and self._redis is not None:
            if await self._redis.publish(channel_for(change.user_id), change.model_dump_json()):
                return
            logger.warning(
                "Redis publish failed, delivering %s change in-process only",
                change.event,
            )
        self.fan_out(change)

    def fan_out(self, change: BookmarkChange) -> None:
        """Deliver a change to this process's subscribers."""
        for subscription in list(self._subscribers.get(change.user_id, ())):
            subscription.offer(change)

    async def _relay(self, pubsub: PubSub) -> None:
        try:
            async for message in pubsub.listen():
                if message.get("type") != "pmessage":
                    continue
                try:
                    change = BookmarkChange.model_validate_json(message["data"])
                except ValidationError as e:
                    logger.warning("Dropping malformed change message: %s", e)
                    continue
                self.fan_out(change)
        except RedisError as e:
            logger.warning(
                "Change feed relay stopped, falling back to in-process fan-out: %s", e,
            )


def stage_change(db: AsyncSession, change: BookmarkChange) -> None:
    """Record a change to publish once the session commits."""
    db.info.setdefault(STAGED_CHANGES_KEY, []).append(change)


def discard_staged_changes(db: AsyncSession) -> list[BookmarkChange]:
    """Remove and return the session's staged changes."""
    return db.info.pop(STAGED_CHANGES_KEY, [])


async def publish_staged_changes(db: AsyncSession, feed: "ChangeFeed | None" = None) -> int:
    """Publish the session's staged changes. Call only after a successful commit."""
    feed = feed or get_change_feed()
    changes = discard_staged_changes(db)
    for change in changes:
        await feed.publish(change)
    return len(changes)


# Global change feed state using a container to avoid global statement
class _ChangeFeedState:
    """Container for global change feed state."""

    feed: ChangeFeed = ChangeFeed()


_state = _ChangeFeedState()


def get_change_feed() -> ChangeFeed:
    """Get the global change feed (in-process until replaced at startup)."""
    return _state.feed


def set_change_feed(feed: ChangeFeed) -> None:
    """Replace the global change feed."""
    _state.feed = feed

"""
Forum event publishing.

The notification dispatcher announces what it persisted through an
injected EventPublisher. RedisEventPublisher broadcasts over Redis pub/sub
so delivery workers (email, push, UI badges) can subscribe.
"""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Protocol

import redis.asyncio as redis
from loguru import logger

from app.core.config import settings
from app.models.forum import utcnow


@dataclass
class ForumEvent:
    """Event envelope published to subscribers."""

    type: str
    payload: dict[str, Any]
    occurred_at: datetime = field(default_factory=utcnow)

    def to_json(self) -> str:
        data = asdict(self)
        data["occurred_at"] = self.occurred_at.isoformat()
        return json.dumps(data, default=str)


class EventPublisher(Protocol):
    """Anything that can broadcast a ForumEvent."""

    async def publish(self, event: ForumEvent) -> None: ...


class RedisEventPublisher:
    """
    Publish forum events on a Redis channel.

    Usage:
        publisher = RedisEventPublisher()
        await publisher.connect()
        await publisher.publish(ForumEvent("notification.created", {...}))
    """

    def __init__(self, channel: str | None = None) -> None:
        """Initialize publisher for the configured channel."""
        self.channel = channel or settings.forum_event_channel
        self._redis: redis.Redis | None = None

    async def connect(self) -> None:
        """Connect to Redis."""
        self._redis = redis.from_url(
            str(settings.redis_url),
            encoding="utf-8",
            decode_responses=True,
        )
        logger.info(f"Forum events publishing on '{self.channel}'")

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def publish(self, event: ForumEvent) -> None:
        """Publish event; returns once Redis accepted it."""
        if not self._redis:
            await self.connect()

        receivers = await self._redis.publish(self.channel, event.to_json())
        logger.debug(f"Published {event.type} to {receivers} subscriber(s)")


# Singleton instance
_publisher: RedisEventPublisher | None = None


async def get_event_publisher() -> RedisEventPublisher | None:
    """Get the shared publisher, or None when forum events are disabled."""
    global _publisher
    if not settings.forum_events_enabled:
        return None
    if _publisher is None:
        _publisher = RedisEventPublisher()
        await _publisher.connect()
    return _publisher


async def close_event_publisher() -> None:
    """Disconnect the shared publisher if it was created."""
    global _publisher
    if _publisher is not None:
        await _publisher.disconnect()
        _publisher = None

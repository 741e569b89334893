"""Redis message bus for coaching update notifications."""
import json
import logging
from typing import Optional

import redis.asyncio as redis

from fieldops.settings import settings

logger = logging.getLogger(__name__)


class RedisBus:
    """Redis pub/sub for best-effort cross-instance notifications."""

    def __init__(self):
        self._redis: Optional[redis.Redis] = None

    @property
    def connected(self) -> bool:
        return self._redis is not None

    async def connect(self):
        """Connect to Redis."""
        self._redis = redis.from_url(settings.redis_url, decode_responses=True)
        await self._redis.ping()

    async def disconnect(self):
        """Disconnect from Redis."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def publish(self, channel: str, message: dict):
        """Publish a message to a channel."""
        if not self._redis:
            await self.connect()
        await self._redis.publish(channel, json.dumps(message))

    async def publish_call_update(self, message: dict) -> None:
        """Publish a coaching update on the configured channel, if enabled and connected."""
        if not settings.coach_publish_updates or not self.connected:
            return
        await self.publish(settings.coach_updates_channel, message)


# Global instance
redis_bus = RedisBus()

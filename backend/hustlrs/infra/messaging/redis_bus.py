"""Redis pub/sub bus used to fan realtime events out to every API instance."""
import asyncio
import json
import logging
from typing import Awaitable, Callable, Optional

import redis.asyncio as redis

from hustlrs.settings import settings

logger = logging.getLogger(__name__)


class RedisBus:
    """Thin wrapper over one redis.asyncio client."""

    def __init__(self):
        self._redis: Optional[redis.Redis] = None

    @property
    def connected(self) -> bool:
        return self._redis is not None

    async def connect(self):
        self._redis = redis.from_url(settings.redis_url, decode_responses=True)
        await self._redis.ping()

    async def disconnect(self):
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def publish(self, channel: str, message: dict):
        if not self._redis:
            await self.connect()
        await self._redis.publish(channel, json.dumps(message, default=str))

    async def subscribe_forever(
        self, channel: str, handler: Callable[[dict], Awaitable[None]]
    ) -> None:
        """Call handler for every message on channel. Runs until cancelled."""
        if not self._redis:
            await self.connect()
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(channel)
        try:
            while True:
                msg = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                if msg and msg.get("type") == "message" and msg.get("data"):
                    try:
                        await handler(json.loads(msg["data"]))
                    except Exception:
                        logger.exception("Redis handler failed for channel %s", channel)
        except asyncio.CancelledError:
            pass
        finally:
            await pubsub.unsubscribe(channel)
            await pubsub.aclose()


# Global instance
redis_bus = RedisBus()

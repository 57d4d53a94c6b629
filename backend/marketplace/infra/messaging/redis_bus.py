"""Redis message bus."""
import asyncio
import json
import logging
from typing import Awaitable, Callable, Optional

import redis.asyncio as redis

from marketplace.settings import settings

logger = logging.getLogger(__name__)


class RedisBus:
    """Redis pub/sub used to fan realtime events out to every API instance."""

    def __init__(self):
        self._redis: Optional[redis.Redis] = None

    @property
    def is_connected(self) -> bool:
        return self._redis is not None

    async def connect(self):
        """Connect to Redis. A blank redis_url leaves the bus disconnected (single-instance mode)."""
        if not settings.redis_url:
            logger.info("Redis URL not configured; realtime events stay in-process")
            return
        client = redis.from_url(settings.redis_url, decode_responses=True)
        await client.ping()
        self._redis = client

    async def disconnect(self):
        """Disconnect from Redis."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def ping(self) -> bool:
        """Round-trip to the server."""
        if not self._redis:
            raise RuntimeError("Redis bus is not connected")
        return await self._redis.ping()

    async def publish(self, channel: str, message: dict):
        """Publish a message to a channel."""
        if not self._redis:
            raise RuntimeError("Redis bus is not connected")
        await self._redis.publish(channel, json.dumps(message, default=str))

    async def subscribe_forever(
        self, channel: str, handler: Callable[[dict], Awaitable[None]]
    ) -> None:
        """Subscribe to a channel and call handler for each message. Runs until cancelled."""
        if not self._redis:
            raise RuntimeError("Redis bus is not connected")
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(channel)
        try:
            while True:
                msg = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                if msg and msg.get("type") == "message" and msg.get("data"):
                    try:
                        await handler(json.loads(msg["data"]))
                    except Exception:
                        logger.exception("Redis handler failed on channel %s", channel)
        except asyncio.CancelledError:
            pass
        finally:
            await pubsub.unsubscribe(channel)
            await pubsub.aclose()


# Global instance
redis_bus = RedisBus()

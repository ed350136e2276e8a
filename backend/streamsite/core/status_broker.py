# backend/streamsite/core/status_broker.py

import asyncio
import logging
from typing import AsyncIterator, Optional

import redis.asyncio as redis
from pydantic import ValidationError

from .config import settings
from ..schemas.stream import StreamStatusResponse

logger = logging.getLogger(__name__)


class StatusBroker:
    """
    Redis-backed helpers around the effective status.

    Holds the short-lived status cache, claims webhook delivery ids for
    deduplication and fans status changes out to WebSocket viewers over
    Pub/Sub. Every operation degrades to a no-op when Redis is unavailable.
    """

    CACHE_KEY = "stream:status:current"
    CHANNEL = "stream:status:updates"
    DELIVERY_KEY_PREFIX = "webhook:delivery:"

    def __init__(self, redis_client: Optional[redis.Redis] = None):
        self.redis_client: Optional[redis.Redis] = redis_client

    @property
    def available(self) -> bool:
        return self.redis_client is not None

    async def connect_redis(self):
        """Establishes connection to Redis."""
        try:
            self.redis_client = redis.Redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True
            )
            await self.redis_client.ping()
            logger.info("Successfully connected to Redis.")
        except Exception as e:
            logger.exception(f"Failed to connect to Redis: {e}")
            self.redis_client = None

    async def disconnect_redis(self):
        """Closes the Redis connection."""
        if self.redis_client:
            await self.redis_client.aclose()
            self.redis_client = None
            logger.info("Redis connection closed.")

    # --- Effective status cache ---

    async def get_cached_status(self) -> Optional[StreamStatusResponse]:
        if not self.redis_client:
            return None
        try:
            raw = await self.redis_client.get(self.CACHE_KEY)
        except redis.RedisError as e:
            logger.warning(f"Status cache read failed: {e}")
            return None
        if raw is None:
            return None
        try:
            return StreamStatusResponse.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding unreadable cached status")
            return None

    async def cache_status(self, status: StreamStatusResponse, ttl: Optional[int] = None) -> None:
        if not self.redis_client:
            return
        ttl = settings.STATUS_CACHE_TTL_SECONDS if ttl is None else ttl
        if ttl <= 0:
            return
        try:
            await self.redis_client.set(self.CACHE_KEY, status.model_dump_json(), ex=ttl)
        except redis.RedisError as e:
            logger.warning(f"Status cache write failed: {e}")

    async def invalidate_status(self) -> None:
        if not self.redis_client:
            return
        try:
            await self.redis_client.delete(self.CACHE_KEY)
        except redis.RedisError as e:
            logger.warning(f"Status cache invalidation failed: {e}")

    # --- Webhook delivery deduplication ---

    async def claim_delivery(self, delivery_id: Optional[str]) -> bool:
        """
        Returns False only when this delivery id was already claimed.

        Events without an id, or claims attempted while Redis is down, are
        treated as first deliveries.
        """
        if not delivery_id or not self.redis_client:
            return True
        try:
            claimed = await self.redis_client.set(
                f"{self.DELIVERY_KEY_PREFIX}{delivery_id}",
                "1",
                nx=True,
                ex=settings.WEBHOOK_DEDUP_TTL_SECONDS,
            )
        except redis.RedisError as e:
            logger.warning(f"Delivery dedup unavailable for {delivery_id}: {e}")
            return True
        return bool(claimed)

    # --- Status change fan-out ---

    async def publish_status(self, status: StreamStatusResponse) -> bool:
        if not self.redis_client:
            return False
        try:
            await self.redis_client.publish(self.CHANNEL, status.model_dump_json())
            return True
        except redis.RedisError as e:
            logger.warning(f"Failed to publish status change: {e}")
            return False

    async def listen(self) -> AsyncIterator[StreamStatusResponse]:
        """Yields status changes until the consumer stops iterating."""
        if not self.redis_client:
            return

        pubsub = self.redis_client.pubsub(ignore_subscribe_messages=True)
        try:
            await pubsub.subscribe(self.CHANNEL)
            logger.debug(f"Subscribed to Redis channel: {self.CHANNEL}")
            while True:
                message = await pubsub.get_message(timeout=1.0)
                if message is None:
                    await asyncio.sleep(0.01)
                    continue
                try:
                    yield StreamStatusResponse.model_validate_json(message["data"])
                except ValidationError:
                    logger.error(f"Ignoring malformed status message: {message['data']!r}")
        finally:
            try:
                await pubsub.unsubscribe(self.CHANNEL)
                await pubsub.aclose()
            except Exception as e:
                logger.exception(f"Error during pubsub cleanup: {e}")


status_broker = StatusBroker()

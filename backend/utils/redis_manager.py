"""
Redis pub/sub for status events.

Every worker publishes its status events to one channel and relays the
channel back into its own event broker, so an SSE client connected to any
worker sees events from all of them. When Redis is down, callers fall back
to local delivery.
"""

import time
from typing import AsyncIterator, Optional

import redis.asyncio as redis
from pydantic import ValidationError
from redis.asyncio import Redis

from config import settings
from models.events import StatusEvent
from utils.logging import get_logger

logger = get_logger("redis_manager")

# Seconds to wait before trying to reconnect after a failed ping
RECONNECT_COOLDOWN = 30.0

_redis_client: Optional[Redis] = None
_retry_after: float = 0.0


async def get_redis() -> Optional[Redis]:
    """Shared client for this process, or None when Redis is disabled or unreachable."""
    global _redis_client, _retry_after

    if not settings.REDIS_URL:
        return None
    if _redis_client is not None:
        return _redis_client
    if time.monotonic() < _retry_after:
        return None

    client = redis.Redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        health_check_interval=30,
        socket_keepalive=True,
        retry_on_timeout=True,
    )
    try:
        await client.ping()
    except (redis.ConnectionError, redis.TimeoutError) as e:
        _retry_after = time.monotonic() + RECONNECT_COOLDOWN
        logger.warning(
            "Redis unreachable, status events stay on this worker",
            extra={"data": {"error": str(e), "retry_in_seconds": RECONNECT_COOLDOWN}}
        )
        await client.aclose()
        return None

    _redis_client = client
    logger.info("Connected to Redis", extra={"data": {"channel": settings.REDIS_CHANNEL}})
    return _redis_client


async def publish(event: StatusEvent, channel: Optional[str] = None) -> bool:
    """Publish ``event`` to every worker. False means the caller must deliver it locally."""
    channel = channel or settings.REDIS_CHANNEL
    redis_client = await get_redis()
    if redis_client is None:
        return False

    try:
        receivers = await redis_client.publish(channel, event.model_dump_json())
    except redis.RedisError as e:
        logger.warning(
            "Failed to publish status event",
            extra={"data": {"event_id": event.id, "event_type": event.type, "error": str(e)}}
        )
        await close_redis()
        return False

    logger.debug(
        "Published status event",
        extra={"data": {"event_id": event.id, "event_type": event.type, "receivers": receivers}}
    )
    return True


async def subscribe(channel: Optional[str] = None) -> AsyncIterator[StatusEvent]:
    """Yield status events from the channel until the connection drops."""
    channel = channel or settings.REDIS_CHANNEL
    redis_client = await get_redis()
    if redis_client is None:
        return

    pubsub = redis_client.pubsub()
    try:
        await pubsub.subscribe(channel)
        logger.info(f"Subscribed to Redis channel: {channel}")

        async for message in pubsub.listen():
            if message["type"] != "message":
                continue
            try:
                yield StatusEvent.model_validate_json(message["data"])
            except ValidationError as e:
                # Malformed payloads are skipped
                logger.error(
                    "Discarding malformed status event",
                    extra={"data": {"payload": str(message["data"])[:100], "error": str(e)}}
                )
    except redis.ConnectionError:
        logger.warning(f"Redis connection lost on channel {channel}")
        await close_redis()
    finally:
        try:
            await pubsub.aclose()
        except redis.RedisError as e:
            logger.debug(f"Error closing Redis subscription: {e}")


async def close_redis():
    global _redis_client

    client, _redis_client = _redis_client, None
    if client is None:
        return
    try:
        await client.aclose()
    except redis.RedisError as e:
        logger.error(f"Error closing Redis connection: {e}")

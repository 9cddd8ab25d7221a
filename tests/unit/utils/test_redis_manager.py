"""
Tests for the Redis status event channel.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import redis.asyncio as redis

import utils.redis_manager as redis_manager
from config import settings
from models.events import create_health_check_event


@pytest.fixture(autouse=True)
def reset_client():
    redis_manager._redis_client = None
    redis_manager._retry_after = 0.0
    yield
    redis_manager._redis_client = None
    redis_manager._retry_after = 0.0


@pytest.mark.asyncio
async def test_disabled_without_url():
    assert settings.REDIS_URL == ""
    assert await redis_manager.get_redis() is None
    assert await redis_manager.publish(create_health_check_event("api", True, 12)) is False


@pytest.mark.asyncio
async def test_failed_ping_waits_for_cooldown():
    client = MagicMock()
    client.ping = AsyncMock(side_effect=redis.ConnectionError("refused"))
    client.aclose = AsyncMock()

    with patch.object(settings, "REDIS_URL", "redis://localhost:6399"), \
            patch.object(redis_manager.redis.Redis, "from_url", return_value=client) as from_url:
        assert await redis_manager.get_redis() is None
        assert await redis_manager.get_redis() is None

    from_url.assert_called_once()
    client.aclose.assert_awaited_once()


@pytest.mark.asyncio
async def test_publish_error_drops_client():
    client = MagicMock()
    client.publish = AsyncMock(side_effect=redis.ConnectionError("reset"))
    client.aclose = AsyncMock()
    redis_manager._redis_client = client

    with patch.object(settings, "REDIS_URL", "redis://localhost:6399"):
        published = await redis_manager.publish(create_health_check_event("api", True, 12))

    assert published is False
    assert redis_manager._redis_client is None


@pytest.mark.asyncio
async def test_publish_sends_event_json():
    client = MagicMock()
    client.publish = AsyncMock(return_value=3)
    redis_manager._redis_client = client
    event = create_health_check_event("database", True, 4)

    with patch.object(settings, "REDIS_URL", "redis://localhost:6399"):
        assert await redis_manager.publish(event) is True

    channel, payload = client.publish.await_args.args
    assert channel == settings.REDIS_CHANNEL
    assert event.id in payload

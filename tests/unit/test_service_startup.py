"""
Service Startup & Configuration Tests

Settings overrides, owner bootstrap, the Redis bridge wiring and the
daily uptime task entry point.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy import func, select

from config import settings
from models.events import create_health_check_event, create_status_change_event
from models.models import Admin
from models.system_health import ServiceStatus
from services.status_monitor import StatusMonitorService
from utils.event_broker import EventBroker
from utils.service_manager import ServiceManager, create_status_event_handler


class TestSettings:
    """Environment variable configuration tests."""

    def test_environment_variable_override(self, monkeypatch):
        monkeypatch.setenv("HEALTH_CHECK_INTERVAL", "60")
        monkeypatch.setenv("CORS_ORIGINS", "https://admin.example.com, https://status.example.com")

        from config import Settings

        new_settings = Settings()
        assert new_settings.HEALTH_CHECK_INTERVAL == 60
        assert new_settings.cors_origins == ["https://admin.example.com", "https://status.example.com"]

    def test_database_url_is_built_from_parts(self, monkeypatch):
        monkeypatch.delenv("SQLALCHEMY_DATABASE_URL", raising=False)
        monkeypatch.setenv("POSTGRES_HOST", "db.internal")
        monkeypatch.setenv("POSTGRES_DB", "backoffice")

        from config import Settings

        new_settings = Settings()
        assert new_settings.SQLALCHEMY_DATABASE_URL.startswith("postgresql+asyncpg://")
        assert new_settings.SQLALCHEMY_DATABASE_URL.endswith("@db.internal:5432/backoffice")

    def test_celery_falls_back_to_memory_without_redis(self):
        from config import Settings

        new_settings = Settings(REDIS_URL="")
        assert new_settings.CELERY_BROKER_URL == "memory://"

    def test_celery_uses_redis_databases(self):
        from config import Settings

        new_settings = Settings(REDIS_URL="redis://cache:6379")
        assert new_settings.CELERY_BROKER_URL == "redis://cache:6379/0"
        assert new_settings.CELERY_RESULT_BACKEND == "redis://cache:6379/1"


class TestOwnerBootstrap:
    """Test the owner account bootstrap."""

    def test_bootstrap_is_idempotent(self, clean_db):
        from init_db import bootstrap_owner

        first = asyncio.run(bootstrap_owner())
        second = asyncio.run(bootstrap_owner())

        assert first.is_owner is True
        assert first.api_token_hash != "owner-test-token"
        assert second is None

        async def count_admins():
            async with clean_db.get_session() as session:
                return await session.scalar(select(func.count(Admin.id)))

        assert asyncio.run(count_admins()) == 1


class TestRedisBridge:
    """Test the event bridge between workers."""

    @pytest.mark.asyncio
    async def test_bridge_not_started_when_redis_disabled(self):
        app = MagicMock()
        manager = ServiceManager("test-service")

        await manager.start_redis_bridge(app, AsyncMock())

        assert app.state.redis_bridge_task is None
        await manager.stop_redis_bridge(app)

    @pytest.mark.asyncio
    async def test_bridge_connects_once_redis_comes_up(self):
        event = create_status_change_event("auth", "operational", "degraded", "degraded")
        received = asyncio.Event()

        async def listen():
            yield {"type": "subscribe", "data": 1}
            yield {"type": "message", "data": event.model_dump_json()}
            await asyncio.Event().wait()

        pubsub = MagicMock()
        pubsub.subscribe = AsyncMock()
        pubsub.aclose = AsyncMock()
        pubsub.listen = listen
        late_client = MagicMock()
        late_client.pubsub.return_value = pubsub
        # Down at startup, reachable on the next attempt
        get_redis = AsyncMock(side_effect=[None, late_client, late_client])

        async def handler(forwarded):
            assert forwarded.id == event.id
            received.set()

        app = MagicMock()
        manager = ServiceManager("test-service")
        with patch.object(settings, "REDIS_URL", "redis://localhost:6399"), \
                patch("utils.redis_manager.get_redis", get_redis):
            await manager.start_redis_bridge(app, handler, retry_delay=0)
            assert app.state.redis_bridge_task is not None
            await asyncio.wait_for(received.wait(), timeout=2)
            await manager.stop_redis_bridge(app)

        assert get_redis.await_count >= 2
        pubsub.subscribe.assert_awaited_once_with(settings.REDIS_CHANNEL)

    @pytest.mark.asyncio
    async def test_bridge_resubscribes_after_error(self):
        event = create_status_change_event("auth", "operational", "degraded", "degraded")
        calls = []
        received = asyncio.Event()

        async def flaky_subscribe():
            calls.append(1)
            if len(calls) == 1:
                raise ConnectionError("connection reset")
            yield event

        async def handler(forwarded):
            assert forwarded is event
            received.set()

        app = MagicMock()
        manager = ServiceManager("test-service")
        with patch.object(settings, "REDIS_URL", "redis://localhost:6399"), \
                patch("utils.redis_manager.subscribe", flaky_subscribe):
            await manager.start_redis_bridge(app, handler, retry_delay=0)
            await asyncio.wait_for(received.wait(), timeout=2)
            await manager.stop_redis_bridge(app)

        assert len(calls) >= 2
        assert app.state.redis_bridge_task is None

    @pytest.mark.asyncio
    async def test_remote_status_change_is_mirrored_and_forwarded(self):
        broker = EventBroker()
        monitor = StatusMonitorService()
        client_id = await broker.subscribe()
        handler = create_status_event_handler(broker, monitor)

        await handler(create_status_change_event("payment", "operational", "degraded", "degraded"))
        await handler(create_health_check_event("payment", False, 5000, "timeout"))

        assert monitor.services["payment"]["status"] == ServiceStatus.DEGRADED
        assert broker.subscribers[client_id].qsize() == 2

    @pytest.mark.asyncio
    async def test_database_failure_stops_startup(self):
        manager = ServiceManager("test-service")

        with patch("init_db.init_database", AsyncMock(side_effect=OSError("connection refused"))):
            with pytest.raises(RuntimeError, match="Database initialization failed"):
                await manager.ensure_database_initialized()


class TestUptimeTask:
    """Test the Celery task wrapper."""

    def test_task_rolls_up_requested_day(self):
        from tasks.status_tasks import calculate_daily_uptime

        rollup = AsyncMock(return_value={"api": 99.9})
        with patch("tasks.status_tasks.run_uptime_rollup", rollup):
            result = calculate_daily_uptime("2024-03-10")

        assert result == {"day": "2024-03-10", "uptime": {"api": 99.9}}
        assert rollup.await_args.args[0].isoformat() == "2024-03-10"

    def test_task_defaults_to_yesterday(self):
        from tasks.status_tasks import calculate_daily_uptime
        from utils.datetime_utils import yesterday

        with patch("tasks.status_tasks.run_uptime_rollup", AsyncMock(return_value={})):
            result = calculate_daily_uptime()

        assert result["day"] == yesterday().isoformat()

    def test_beat_schedule_runs_at_midnight(self):
        from celery_app import celery_app

        entry = celery_app.conf.beat_schedule["calculate-daily-uptime"]
        assert entry["task"] == "tasks.status_tasks.calculate_daily_uptime"
        assert entry["schedule"].hour == {0}
        assert entry["schedule"].minute == {0}

"""
Service Manager Utilities

Startup and shutdown helpers for the back-office web service: schema
initialization, owner bootstrap, the Redis event bridge and resource
cleanup. Every uvicorn worker runs its own ServiceManager.
"""

import asyncio
from typing import Any, Callable

from utils.logging import get_logger


class ServiceManager:
    """Manages common service lifecycle operations."""

    def __init__(self, service_name: str):
        self.service_name = service_name
        self.logger = get_logger(f"{service_name}-startup")

    async def start_redis_bridge(self, app, event_handler: Callable[[Any], Any], retry_delay: float = 5.0):
        """Forward events published by any worker on the Redis channel to ``event_handler``.

        The task is kept on ``app.state.redis_bridge_task``. A dropped subscription
        is re-opened after ``retry_delay`` seconds until the task is cancelled, which
        also covers a Redis server that is down when the worker starts.
        """
        from config import settings
        from utils.redis_manager import subscribe

        if not settings.REDIS_URL:
            self.logger.info("Redis disabled, events stay local to this worker")
            app.state.redis_bridge_task = None
            return

        async def redis_bridge():
            while True:
                try:
                    async for event in subscribe():
                        await event_handler(event)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    self.logger.error("Redis bridge error", extra={"data": {"error": str(e)}})
                await asyncio.sleep(retry_delay)

        app.state.redis_bridge_task = asyncio.create_task(redis_bridge())
        self.logger.info("Started Redis event bridge")

    async def stop_redis_bridge(self, app):
        """Stop Redis event bridge."""
        task = getattr(app.state, "redis_bridge_task", None)
        if not task:
            return
        task.cancel()
        try:
            await asyncio.wait_for(task, timeout=5.0)
        except asyncio.CancelledError:
            self.logger.info("Redis bridge task cancelled successfully")
        except asyncio.TimeoutError:
            self.logger.warning("Redis bridge task shutdown timed out")
        app.state.redis_bridge_task = None

    async def cleanup_database(self):
        """Clean up database connections."""
        from database.database import db_manager

        try:
            await asyncio.wait_for(db_manager.close(), timeout=5.0)
        except asyncio.TimeoutError:
            self.logger.warning("Database shutdown timed out")

    async def cleanup_redis(self):
        """Close Redis connections."""
        from utils.redis_manager import close_redis

        await close_redis()
        self.logger.info("Closed Redis connection")

    async def ensure_database_initialized(self):
        """Create missing tables and bootstrap the owner account.

        Raises:
            RuntimeError: If the database cannot be initialized
        """
        from init_db import init_database

        self.logger.info("Checking database initialization status...")
        try:
            await init_database()
        except Exception as e:
            self.logger.error("Database initialization failed", extra={"data": {"error": str(e)}})
            raise RuntimeError(f"Database initialization failed: {e}") from e
        self.logger.info("Database ready")


def create_status_event_handler(broker, monitor) -> Callable[[Any], Any]:
    """Redis event handler: mirror status changes and fan events out to local SSE clients."""
    logger = get_logger("redis-events")

    async def handle_event(event):
        monitor.apply_remote_event(event)
        delivered = await broker.broadcast_event(event)
        logger.debug(
            "Forwarded status event",
            extra={"data": {"event_id": event.id, "event_type": event.type, "delivered": delivered}}
        )

    return handle_event

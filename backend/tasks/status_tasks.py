"""
Celery tasks for the status page.
"""
import asyncio
from datetime import date
from typing import Any, Dict, Optional

from celery import current_task

from celery_app import celery_app
from services.uptime_calculator import calculate_daily_uptime as run_uptime_rollup
from utils.datetime_utils import yesterday
from utils.logging import get_logger
from utils.redis_manager import close_redis

logger = get_logger(__name__)


async def _calculate_async(day: date) -> Dict[str, float]:
    try:
        return await run_uptime_rollup(day)
    finally:
        # The Redis client is bound to this task's event loop
        await close_redis()


@celery_app.task(
    bind=True,
    name="tasks.status_tasks.calculate_daily_uptime",
    autoretry_for=(Exception,),
    retry_kwargs={'max_retries': 3, 'countdown': 60},
    retry_backoff=True,
    retry_backoff_max=300,  # Max 5 minutes between retries
    retry_jitter=True
)
def calculate_daily_uptime(self, day: Optional[str] = None) -> Dict[str, Any]:
    """
    Roll up daily uptime for every monitored service.

    Args:
        day: ISO date to calculate; defaults to yesterday (UTC)

    Returns:
        Dict with the day and the uptime percentage per service
    """
    task_id = current_task.request.id if current_task else "unknown"
    target = date.fromisoformat(day) if day else yesterday()

    logger.info(
        "Starting daily uptime calculation",
        extra={"data": {"task_id": task_id, "day": target.isoformat(), "retry_count": self.request.retries}}
    )

    results = asyncio.run(_calculate_async(target))

    logger.info(
        "Daily uptime calculation completed",
        extra={"data": {"task_id": task_id, "results": results}}
    )
    return {"day": target.isoformat(), "uptime": results}

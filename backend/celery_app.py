"""
Celery application configuration for the back-office.

Celery beat runs the daily uptime rollup at 00:00 UTC. The rollup upserts
on (service, date), so a duplicate beat or a manual re-run is harmless.
"""
from celery import Celery
from celery.schedules import crontab
from celery.signals import worker_ready, worker_shutdown

from config import settings
from utils.logging import configure_logging, get_logger

logger = get_logger("celery")

celery_app = Celery(
    "odin",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["tasks.status_tasks"]
)

celery_app.conf.update(
    task_routes={
        "tasks.status_tasks.calculate_daily_uptime": {"queue": "status"},
    },
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # One rollup at a time per worker process; a lost worker re-queues the day
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=15 * 60,
    task_soft_time_limit=10 * 60,
    result_expires=24 * 3600,

    beat_schedule={
        "calculate-daily-uptime": {
            "task": "tasks.status_tasks.calculate_daily_uptime",
            "schedule": crontab(hour=0, minute=0),
        },
    },
    beat_schedule_filename="celerybeat-schedule",

    # Logs go through structlog, see worker_ready_handler
    worker_hijack_root_logger=False,
)


@worker_ready.connect
def worker_ready_handler(sender=None, **_kwargs):
    """Route worker logs through structlog."""
    configure_logging(
        service_name="celery-worker",
        log_level=settings.LOG_LEVEL,
        enable_json=settings.LOG_JSON,
        enable_file_logging=settings.LOG_FILE_ENABLED,
        log_file_path=settings.LOG_FILE_PATH,
        max_file_size=settings.LOG_FILE_MAX_SIZE_MB * 1024 * 1024,
        backup_count=settings.LOG_FILE_BACKUP_COUNT,
    )
    logger.info("Celery worker ready", extra={"data": {"broker": settings.CELERY_BROKER_URL}})


@worker_shutdown.connect
def worker_shutdown_handler(sender=None, **_kwargs):
    logger.info("Celery worker shutting down")

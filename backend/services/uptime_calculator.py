"""
Uptime Calculator

Daily uptime rollup per monitored service:

    uptime = 100 - (overlapping incident minutes / 1440 * 100)

Incident intervals are clipped to the UTC day; an unresolved incident counts
until now (or the end of the day). Maintenance windows are recorded on the
rollup but are not counted as downtime. Records are upserted on
(service, date), so re-running a day replaces its figures.
"""

from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from database.database import db_manager
from models.system_health import (
    MINUTES_PER_DAY, MONITORED_SERVICES, Incident, Maintenance, UptimeRecord
)
from utils.datetime_utils import as_utc, day_bounds, utcnow, yesterday
from utils.logging import get_logger

logger = get_logger("uptime-calculator")


def overlap_minutes(
    start: datetime,
    end: Optional[datetime],
    window_start: datetime,
    window_end: datetime,
    now: datetime,
) -> int:
    """Whole minutes of ``[start, end)`` inside the window, rounded half up.

    An open interval (``end`` is None) runs until ``min(now, window_end)``.
    """
    start = as_utc(start)
    end = as_utc(end) if end is not None else min(now, window_end)
    clipped_start = max(start, window_start)
    clipped_end = min(end, window_end)
    if clipped_end <= clipped_start:
        return 0
    seconds = (clipped_end - clipped_start).total_seconds()
    return int(seconds / 60 + 0.5)


def uptime_percentage(downtime_minutes: int) -> float:
    downtime = min(max(downtime_minutes, 0), MINUTES_PER_DAY)
    return round(min(100.0, max(0.0, 100 - (downtime / MINUTES_PER_DAY * 100))), 3)


def compute_downtime(
    incidents: Iterable[Incident],
    window: Tuple[datetime, datetime],
    now: datetime,
) -> Tuple[int, List[str]]:
    """Sum the clipped downtime minutes of ``incidents``; return (minutes, contributing ids)."""
    window_start, window_end = window
    total = 0
    contributing = []
    for incident in incidents:
        minutes = overlap_minutes(incident.start_time, incident.end_time, window_start, window_end, now)
        if minutes > 0:
            total += minutes
            contributing.append(str(incident.id))
    return min(total, MINUTES_PER_DAY), contributing


async def _overlapping_incidents(session: AsyncSession, window_start: datetime, window_end: datetime) -> List[Incident]:
    result = await session.execute(
        select(Incident).where(
            Incident.start_time < window_end,
            or_(Incident.end_time.is_(None), Incident.end_time > window_start),
        )
    )
    return list(result.scalars().all())


async def _overlapping_maintenance(session: AsyncSession, window_start: datetime, window_end: datetime) -> List[Maintenance]:
    result = await session.execute(
        select(Maintenance).where(
            Maintenance.start_time < window_end,
            Maintenance.end_time > window_start,
        )
    )
    return list(result.scalars().all())


async def calculate_for_service(
    session: AsyncSession,
    service: str,
    day: date,
    now: Optional[datetime] = None,
) -> UptimeRecord:
    """Compute and upsert the uptime record of ``service`` for ``day``."""
    now = now or utcnow()
    window = day_bounds(day)

    incidents = [
        i for i in await _overlapping_incidents(session, *window)
        if service in (i.components or [])
    ]
    maintenance = [
        m for m in await _overlapping_maintenance(session, *window)
        if service in (m.components or [])
    ]

    downtime, incident_ids = compute_downtime(incidents, window, now)
    percentage = uptime_percentage(downtime)

    result = await session.execute(
        select(UptimeRecord).where(UptimeRecord.service == service, UptimeRecord.day == day)
    )
    record = result.scalar_one_or_none()
    if record is None:
        record = UptimeRecord(service=service, day=day)
        session.add(record)

    record.uptime_percentage = percentage
    record.downtime_minutes = downtime
    record.incident_ids = incident_ids
    record.maintenance_ids = [str(m.id) for m in maintenance]
    record.calculated_at = now
    await session.flush()

    logger.info(
        f"Uptime calculated for {service}",
        extra={
            "data": {
                "service": service,
                "date": day.isoformat(),
                "uptime_percentage": percentage,
                "downtime_minutes": downtime,
                "incidents": len(incident_ids),
            }
        }
    )
    return record


async def calculate_daily_uptime(day: Optional[date] = None, publish_event: bool = True) -> Dict[str, float]:
    """Roll up ``day`` (default: yesterday, UTC) for every monitored service."""
    day = day or yesterday()
    now = utcnow()

    async with db_manager.get_session() as session:
        results = {}
        for service in MONITORED_SERVICES:
            record = await calculate_for_service(session, service, day, now)
            results[service] = record.uptime_percentage

    if publish_event:
        from models.events import create_uptime_calculated_event
        from utils.event_broker import publish_status_event

        await publish_status_event(create_uptime_calculated_event(day.isoformat(), results))

    return results

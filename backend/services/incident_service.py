"""
Incident and maintenance persistence helpers shared by the status monitor
and the status/maintenance API.
"""

from datetime import datetime
from typing import List, Optional, Sequence, Set
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from models.system_health import (
    Impact, Incident, IncidentStatus, IncidentUpdate, Maintenance, MaintenanceStatus, Severity
)
from utils.datetime_utils import utcnow
from utils.logging import get_logger

logger = get_logger("incident-service")

SEVERITY_IMPACT = {
    Severity.CRITICAL: Impact.CRITICAL,
    Severity.HIGH: Impact.MAJOR,
    Severity.MEDIUM: Impact.MINOR,
    Severity.LOW: Impact.NONE,
}


async def get_incident(session: AsyncSession, incident_id: UUID) -> Optional[Incident]:
    result = await session.execute(
        select(Incident).options(selectinload(Incident.updates)).where(Incident.id == incident_id)
    )
    return result.scalar_one_or_none()


async def list_incidents(session: AsyncSession, limit: int = 10, unresolved_only: bool = False) -> List[Incident]:
    """Newest incidents first."""
    query = select(Incident).options(selectinload(Incident.updates))
    if unresolved_only:
        query = query.where(Incident.status != IncidentStatus.RESOLVED)
    result = await session.execute(query.order_by(Incident.start_time.desc()).limit(limit))
    return list(result.scalars().all())


async def find_open_incident(session: AsyncSession, code: str) -> Optional[Incident]:
    """Latest unresolved incident carrying ``code``."""
    result = await session.execute(
        select(Incident)
        .options(selectinload(Incident.updates))
        .where(Incident.code == code, Incident.status != IncidentStatus.RESOLVED)
        .order_by(Incident.start_time.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def create_incident(
    session: AsyncSession,
    code: str,
    title: str,
    components: Sequence[str],
    severity: Severity = Severity.MEDIUM,
    impact: Optional[Impact] = None,
    status: IncidentStatus = IncidentStatus.INVESTIGATING,
    message: Optional[str] = None,
    start_time: Optional[datetime] = None,
) -> Incident:
    """Insert an incident with its first timeline entry."""
    now = start_time or utcnow()
    incident = Incident(
        code=code,
        title=title,
        status=status,
        severity=severity,
        impact=impact or SEVERITY_IMPACT[severity],
        components=list(components),
        start_time=now,
        end_time=now if status == IncidentStatus.RESOLVED else None,
        updates=[IncidentUpdate(status=status, message=message or title, created_at=now)],
    )
    session.add(incident)
    await session.flush()

    logger.info(
        f"Incident created: {code}",
        extra={
            "data": {
                "incident_id": str(incident.id),
                "code": code,
                "severity": severity.value,
                "components": list(components),
            }
        }
    )
    return incident


async def add_incident_update(
    session: AsyncSession,
    incident: Incident,
    status: IncidentStatus,
    message: str,
) -> Incident:
    """Append a timeline entry and move the incident to ``status``.

    Entering ``resolved`` stamps ``end_time``; leaving it clears ``end_time``.
    ``incident.updates`` must already be loaded.
    """
    now = utcnow()
    previous = incident.status
    incident.updates.append(IncidentUpdate(status=status, message=message, created_at=now))
    incident.status = status

    if status == IncidentStatus.RESOLVED and previous != IncidentStatus.RESOLVED:
        incident.end_time = now
    elif status != IncidentStatus.RESOLVED:
        incident.end_time = None

    await session.flush()

    logger.info(
        f"Incident updated: {incident.code}",
        extra={
            "data": {
                "incident_id": str(incident.id),
                "previous_status": previous.value,
                "status": status.value,
            }
        }
    )
    return incident


async def count_open_incidents(session: AsyncSession) -> int:
    result = await session.execute(
        select(func.count()).select_from(Incident).where(Incident.status != IncidentStatus.RESOLVED)
    )
    return result.scalar_one()


async def get_maintenance(session: AsyncSession, maintenance_id: UUID) -> Optional[Maintenance]:
    return await session.get(Maintenance, maintenance_id)


async def list_upcoming_maintenance(session: AsyncSession, now: Optional[datetime] = None) -> List[Maintenance]:
    """Windows that have not ended yet, soonest first."""
    now = now or utcnow()
    result = await session.execute(
        select(Maintenance)
        .where(Maintenance.end_time > now, Maintenance.status != MaintenanceStatus.COMPLETED)
        .order_by(Maintenance.start_time)
    )
    return list(result.scalars().all())


async def count_active_maintenance(session: AsyncSession) -> int:
    result = await session.execute(
        select(func.count()).select_from(Maintenance).where(Maintenance.status == MaintenanceStatus.IN_PROGRESS)
    )
    return result.scalar_one()


async def components_in_maintenance(session: AsyncSession, exclude_id: Optional[UUID] = None) -> Set[str]:
    """Services covered by an in-progress window other than ``exclude_id``."""
    query = select(Maintenance.components).where(Maintenance.status == MaintenanceStatus.IN_PROGRESS)
    if exclude_id is not None:
        query = query.where(Maintenance.id != exclude_id)
    components: Set[str] = set()
    for window_components in (await session.execute(query)).scalars():
        components.update(window_components or [])
    return components

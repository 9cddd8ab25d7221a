"""
Status API Endpoints

Public status page reads (service overview, incidents, uptime, health-check
history and the SSE update stream) plus the operator actions that write
incidents and trigger rollups or checks.
"""

from datetime import date, timedelta
from typing import Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database.database import get_db_session
from models.events import create_incident_event
from models.models import Admin
from models.status import (
    HealthCheckResponse, IncidentCreate, IncidentResponse, IncidentUpdateCreate, StatusOverview,
    UptimeRecordResponse
)
from models.system_health import MONITORED_SERVICES, IncidentStatus, ServiceHealthCheck, UptimeRecord
from services.incident_service import (
    add_incident_update, count_active_maintenance, count_open_incidents, create_incident, get_incident,
    list_incidents
)
from services.notification_service import notify_players
from services.status_monitor import incident_payload, status_monitor
from services.uptime_calculator import calculate_daily_uptime
from utils.auth import require_permission
from utils.datetime_utils import utcnow
from utils.event_broker import event_broker
from utils.logging import get_logger

logger = get_logger("status-api")
router = APIRouter(prefix="/api/status", tags=["Status"])


def ensure_known_service(service: str):
    if service not in MONITORED_SERVICES:
        raise HTTPException(status_code=404, detail=f"Unknown service: {service}")


@router.get("/status", response_model=StatusOverview)
async def get_status(session: AsyncSession = Depends(get_db_session)):
    """Current status of every monitored service."""
    return StatusOverview(
        overall_status=status_monitor.overall_status(),
        services=status_monitor.snapshot(),
        active_incidents=await count_open_incidents(session),
        active_maintenance=await count_active_maintenance(session),
        last_updated=utcnow(),
    )


@router.get("/incidents", response_model=List[IncidentResponse])
async def get_incidents(
    limit: int = Query(10, ge=1, le=100),
    unresolved_only: bool = Query(False),
    session: AsyncSession = Depends(get_db_session),
):
    """Latest incidents, newest first."""
    return await list_incidents(session, limit=limit, unresolved_only=unresolved_only)


@router.get("/incidents/{incident_id}", response_model=IncidentResponse)
async def get_incident_detail(incident_id: UUID, session: AsyncSession = Depends(get_db_session)):
    incident = await get_incident(session, incident_id)
    if incident is None:
        raise HTTPException(status_code=404, detail="Incident not found")
    return incident


@router.post("/incidents", response_model=IncidentResponse, status_code=status.HTTP_201_CREATED)
async def report_incident(
    body: IncidentCreate,
    admin: Admin = Depends(require_permission("system_settings")),
    session: AsyncSession = Depends(get_db_session),
):
    """Open an incident by hand and notify subscribed players."""
    incident = await create_incident(
        session,
        code=body.code,
        title=body.title,
        components=body.components,
        severity=body.severity,
        impact=body.impact,
        status=body.status,
        message=body.message,
    )
    await session.commit()

    await notify_players(session, "incident", incident_payload(incident, body.message))
    await status_monitor.emit_update(create_incident_event(incident, "incident_created", body.message))

    logger.info(
        "Incident reported by operator",
        extra={"data": {"incident_id": str(incident.id), "admin_id": str(admin.id)}}
    )
    return incident


@router.post("/incidents/{incident_id}/updates", response_model=IncidentResponse)
async def post_incident_update(
    incident_id: UUID,
    body: IncidentUpdateCreate,
    admin: Admin = Depends(require_permission("system_settings")),
    session: AsyncSession = Depends(get_db_session),
):
    """Append to the incident timeline; resolving it notifies players."""
    incident = await get_incident(session, incident_id)
    if incident is None:
        raise HTTPException(status_code=404, detail="Incident not found")

    was_resolved = incident.status == IncidentStatus.RESOLVED
    await add_incident_update(session, incident, body.status, body.message)
    await session.commit()

    if body.status == IncidentStatus.RESOLVED and not was_resolved:
        await notify_players(session, "resolution", incident_payload(incident, body.message))

    await status_monitor.emit_update(create_incident_event(incident, "incident_update", body.message))
    return incident


@router.get("/updates")
async def stream_updates():
    """Server-Sent Events stream of status events for this worker (all workers when Redis is up)."""
    return StreamingResponse(
        event_broker.stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.get("/uptime", response_model=List[UptimeRecordResponse])
async def get_uptime(
    service: Optional[str] = Query(None, description="Service key; all services when omitted"),
    days: int = Query(30, ge=1, le=365),
    session: AsyncSession = Depends(get_db_session),
):
    """Daily uptime records of the last ``days`` days, oldest first."""
    query = select(UptimeRecord).where(UptimeRecord.day >= utcnow().date() - timedelta(days=days))
    if service:
        ensure_known_service(service)
        query = query.where(UptimeRecord.service == service)
    result = await session.execute(query.order_by(UptimeRecord.day, UptimeRecord.service))
    return result.scalars().all()


@router.post("/uptime/calculate")
async def trigger_uptime_calculation(
    day: Optional[date] = Query(None, description="UTC day; defaults to yesterday"),
    admin: Admin = Depends(require_permission("system_settings")),
) -> Dict[str, Dict[str, float]]:
    """Recalculate the uptime rollup for one day."""
    results = await calculate_daily_uptime(day)
    return {"uptime": results}


@router.get("/health-checks/{service}", response_model=List[HealthCheckResponse])
async def get_health_checks(
    service: str,
    limit: int = Query(50, ge=1, le=500),
    session: AsyncSession = Depends(get_db_session),
):
    """Latest recorded health checks of one service."""
    ensure_known_service(service)
    result = await session.execute(
        select(ServiceHealthCheck)
        .where(ServiceHealthCheck.service_name == service)
        .order_by(ServiceHealthCheck.checked_at.desc())
        .limit(limit)
    )
    return result.scalars().all()


@router.post("/health-checks/refresh")
async def refresh_health_checks(
    admin: Admin = Depends(require_permission("system_settings")),
) -> Dict[str, Dict[str, bool]]:
    """Run every health check now instead of waiting for the next tick."""
    return {"results": await status_monitor.check_all_services()}

"""
Maintenance API Endpoints

Scheduling and manual status changes of maintenance windows. The status
monitor's maintenance loop moves windows along on its own; these routes let
operators schedule windows and override their status.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from database.database import get_db_session
from models.events import create_maintenance_event
from models.models import Admin
from models.status import MaintenanceCreate, MaintenanceResponse, MaintenanceStatusUpdate
from models.system_health import Maintenance, MaintenanceStatus
from services.balance_service import write_admin_log
from services.incident_service import components_in_maintenance, get_maintenance, list_upcoming_maintenance
from services.status_monitor import status_monitor
from utils.auth import require_permission
from utils.logging import get_logger

logger = get_logger("maintenance-api")
router = APIRouter(prefix="/api/maintenance", tags=["Maintenance"])


async def get_maintenance_or_404(session: AsyncSession, maintenance_id: UUID) -> Maintenance:
    maintenance = await get_maintenance(session, maintenance_id)
    if maintenance is None:
        raise HTTPException(status_code=404, detail="Maintenance window not found")
    return maintenance


@router.post("", response_model=MaintenanceResponse, status_code=status.HTTP_201_CREATED)
async def schedule_maintenance(
    body: MaintenanceCreate,
    admin: Admin = Depends(require_permission("system_settings")),
    session: AsyncSession = Depends(get_db_session),
):
    maintenance = Maintenance(
        title=body.title,
        description=body.description,
        components=body.components,
        start_time=body.start_time,
        end_time=body.end_time,
        impact=body.impact,
        status=MaintenanceStatus.SCHEDULED,
        created_by=admin.id,
    )
    session.add(maintenance)
    await session.flush()
    await write_admin_log(
        session, admin.id, "MAINTENANCE_SCHEDULED",
        {"maintenance_id": str(maintenance.id), "components": maintenance.components}
    )
    await session.commit()

    await status_monitor.emit_update(create_maintenance_event(maintenance, "maintenance_scheduled"))
    logger.info(
        "Maintenance scheduled",
        extra={
            "data": {
                "maintenance_id": str(maintenance.id),
                "start_time": maintenance.start_time.isoformat(),
                "end_time": maintenance.end_time.isoformat(),
            }
        }
    )
    return maintenance


@router.put("/{maintenance_id}/status", response_model=MaintenanceResponse)
async def update_maintenance_status(
    maintenance_id: UUID,
    body: MaintenanceStatusUpdate,
    admin: Admin = Depends(require_permission("system_settings")),
    session: AsyncSession = Depends(get_db_session),
):
    """Force a window's status and align the affected services with it."""
    maintenance = await get_maintenance_or_404(session, maintenance_id)
    previous = maintenance.status
    maintenance.status = body.status
    await session.flush()

    events = [create_maintenance_event(maintenance, "maintenance_update")]
    still_covered = await components_in_maintenance(session, exclude_id=maintenance.id)
    events.extend(status_monitor.apply_maintenance_status(maintenance, keep=still_covered))
    await write_admin_log(
        session, admin.id, "MAINTENANCE_STATUS_CHANGED",
        {"maintenance_id": str(maintenance.id), "previous_status": previous.value, "status": body.status.value}
    )
    await session.commit()
    await status_monitor.emit_all(events)
    return maintenance


@router.get("", response_model=List[MaintenanceResponse])
async def list_maintenance(session: AsyncSession = Depends(get_db_session)):
    """Windows that have not ended yet, soonest first."""
    return await list_upcoming_maintenance(session)


@router.get("/{maintenance_id}", response_model=MaintenanceResponse)
async def get_maintenance_detail(maintenance_id: UUID, session: AsyncSession = Depends(get_db_session)):
    return await get_maintenance_or_404(session, maintenance_id)

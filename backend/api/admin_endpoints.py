"""
Admin API Endpoints

Operator accounts, the audit log and the back-office dashboard.
"""

from typing import Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from database.database import flush_or_conflict, get_db_session
from models.admin import (
    AdminLogResponse, DashboardResponse, OperatorCreate, OperatorCreatedResponse,
    OperatorResponse, OperatorUpdate
)
from models.models import BALANCE_TYPES, Admin, AdminLog, AdminRole, Player
from services.balance_service import write_admin_log
from services.incident_service import count_active_maintenance, count_open_incidents
from services.status_monitor import status_monitor
from utils.auth import generate_token, get_current_admin, hash_token, require_permission, resolve_permissions
from utils.logging import get_logger
from utils.roles import BUILTIN_ROLES, can_manage_role, parse_role

logger = get_logger("admin-api")
router = APIRouter(prefix="/api/admin", tags=["Administration"])


async def resolve_role(session: AsyncSession, role: str) -> Optional[str]:
    """Department of ``role``; raises 400 when the role does not exist."""
    if role in BUILTIN_ROLES:
        return parse_role(role)[0]
    custom = await session.scalar(select(AdminRole).where(AdminRole.name == role))
    if custom is None:
        raise HTTPException(status_code=400, detail=f"Unknown role: {role}")
    return custom.department


async def ensure_can_manage(session: AsyncSession, admin: Admin, role: str) -> Optional[str]:
    """Resolve ``role`` and require the caller to be the owner or a superadmin over its department."""
    department = await resolve_role(session, role)
    if not admin.is_owner and not can_manage_role(admin.role, role, department):
        logger.warning(
            "Role assignment denied",
            extra={"data": {"admin_id": str(admin.id), "role": admin.role, "target_role": role}}
        )
        raise HTTPException(status_code=403, detail=f"Cannot manage role {role}")
    return department


async def ensure_can_grant(session: AsyncSession, admin: Admin, permissions: Dict[str, bool]):
    """Only the owner may grant a permission the caller does not hold."""
    if admin.is_owner or not permissions:
        return
    held = await resolve_permissions(session, admin)
    widened = sorted(name for name, granted in permissions.items() if granted and not held.get(name))
    if widened:
        logger.warning(
            "Permission grant denied",
            extra={"data": {"admin_id": str(admin.id), "permissions": widened}}
        )
        raise HTTPException(status_code=403, detail=f"Cannot grant permissions you do not hold: {', '.join(widened)}")


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    admin: Admin = Depends(get_current_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Player counts by status, summed balances, open incidents and active maintenance."""
    result = await session.execute(select(Player.status, func.count(Player.id)).group_by(Player.status))
    players_by_status = {player_status.value: count for player_status, count in result.all()}

    balance_totals = {name: 0.0 for name in BALANCE_TYPES}
    for balances in (await session.execute(select(Player.balances))).scalars():
        for name in BALANCE_TYPES:
            balance_totals[name] += float((balances or {}).get(name, 0) or 0)
    balance_totals = {name: round(total, 2) for name, total in balance_totals.items()}

    admin_count = await session.scalar(select(func.count(Admin.id)).where(Admin.is_active.is_(True)))
    recent = (await session.execute(
        select(AdminLog).order_by(AdminLog.created_at.desc()).limit(10)
    )).scalars().all()

    await write_admin_log(session, admin.id, "DASHBOARD_ACCESS")

    return DashboardResponse(
        players_by_status=players_by_status,
        total_players=sum(players_by_status.values()),
        balance_totals=balance_totals,
        open_incidents=await count_open_incidents(session),
        active_maintenance=await count_active_maintenance(session),
        admin_count=admin_count or 0,
        overall_status=status_monitor.overall_status(),
        recent_activity=[AdminLogResponse.model_validate(entry) for entry in recent],
    )


@router.get("/operators", response_model=List[OperatorResponse])
async def list_operators(
    role: Optional[str] = Query(None, description="Only operators with this role"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    admin: Admin = Depends(get_current_admin),
    session: AsyncSession = Depends(get_db_session),
):
    query = select(Admin)
    if role:
        query = query.where(Admin.role == role)
    query = query.order_by(Admin.created_at).offset((page - 1) * page_size).limit(page_size)
    return (await session.execute(query)).scalars().all()


@router.post("/operators", response_model=OperatorCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_operator(
    body: OperatorCreate,
    admin: Admin = Depends(require_permission("create_admins")),
    session: AsyncSession = Depends(get_db_session),
):
    """Create an operator. The bearer token is returned once and only its hash is kept."""
    department = await ensure_can_manage(session, admin, body.role)
    await ensure_can_grant(session, admin, body.permissions)

    duplicate = await session.scalar(
        select(Admin).where(or_(Admin.admin_name == body.admin_name, Admin.email == body.email))
    )
    if duplicate:
        field = "admin_name" if duplicate.admin_name == body.admin_name else "email"
        raise HTTPException(status_code=409, detail=f"Operator with this {field} already exists")

    token = generate_token()
    operator = Admin(
        admin_name=body.admin_name,
        email=body.email,
        first_name=body.first_name,
        last_name=body.last_name,
        phone=body.phone,
        role=body.role,
        department=department,
        permissions=body.permissions,
        api_token_hash=hash_token(token),
        created_by=admin.id,
    )
    session.add(operator)
    await flush_or_conflict(session, "Operator with this admin_name or email already exists")
    await write_admin_log(
        session, admin.id, "ADMIN_CREATED",
        {"operator_id": str(operator.id), "admin_name": operator.admin_name, "role": operator.role}
    )

    logger.info(
        "Operator created",
        extra={"data": {"operator_id": str(operator.id), "role": operator.role, "created_by": str(admin.id)}}
    )
    return OperatorCreatedResponse(operator=OperatorResponse.model_validate(operator), api_token=token)


@router.patch("/operators/{operator_id}", response_model=OperatorResponse)
async def update_operator(
    operator_id: UUID,
    body: OperatorUpdate,
    admin: Admin = Depends(require_permission("create_admins")),
    session: AsyncSession = Depends(get_db_session),
):
    operator = await session.get(Admin, operator_id)
    if operator is None:
        raise HTTPException(status_code=404, detail="Operator not found")
    if operator.is_owner and not admin.is_owner:
        raise HTTPException(status_code=403, detail="The owner account can only be changed by the owner")

    changes = body.model_dump(exclude_unset=True)
    for field in ("role", "permissions", "is_active"):
        if field in changes and changes[field] is None:
            del changes[field]

    if not admin.is_owner:
        if operator.id == admin.id and changes.keys() & {"role", "permissions", "is_active"}:
            raise HTTPException(status_code=403, detail="Operators cannot change their own access")
        await ensure_can_manage(session, admin, operator.role)
    if "permissions" in changes:
        await ensure_can_grant(session, admin, changes["permissions"])
    if "role" in changes:
        operator.department = await ensure_can_manage(session, admin, changes["role"])
    for field, value in changes.items():
        setattr(operator, field, value)
    await session.flush()

    await write_admin_log(
        session, admin.id, "ADMIN_UPDATED",
        {"operator_id": str(operator.id), "fields": sorted(changes)}
    )
    return operator


@router.get("/logs", response_model=List[AdminLogResponse])
async def list_admin_logs(
    admin_id: Optional[UUID] = Query(None, description="Only entries by this operator"),
    action: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    admin: Admin = Depends(require_permission("report_access")),
    session: AsyncSession = Depends(get_db_session),
):
    query = select(AdminLog)
    if admin_id:
        query = query.where(AdminLog.admin_id == admin_id)
    if action:
        query = query.where(AdminLog.action == action)
    return (await session.execute(query.order_by(AdminLog.created_at.desc()).limit(limit))).scalars().all()

"""
Role API Endpoints

Built-in roles come from ``utils.roles``; custom roles are stored in
``admin_roles`` on top of one of the base role types.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database.database import flush_or_conflict, get_db_session
from models.admin import OperatorResponse, RoleCreate, RoleResponse
from models.models import Admin, AdminRole
from services.balance_service import write_admin_log
from utils.auth import get_current_admin, require_permission
from utils.logging import get_logger, log_role_change
from utils.roles import BUILTIN_ROLES, SUPERADMIN, parse_role, permissions_for_role, role_type_for

logger = get_logger("role-api")
router = APIRouter(prefix="/api/roles", tags=["Roles"])


def builtin_role_response(role: str) -> RoleResponse:
    return RoleResponse(
        name=role,
        base_type=role_type_for(role),
        department=parse_role(role)[0],
        builtin=True,
        permissions=permissions_for_role(role),
    )


def custom_role_response(role: AdminRole) -> RoleResponse:
    permissions = permissions_for_role(role.name, role.base_type)
    permissions.update(role.permissions or {})
    return RoleResponse(
        name=role.name,
        base_type=role.base_type,
        department=role.department,
        builtin=False,
        permissions=permissions,
    )


@router.get("", response_model=List[RoleResponse])
async def list_roles(
    admin: Admin = Depends(get_current_admin),
    session: AsyncSession = Depends(get_db_session),
):
    custom = (await session.execute(select(AdminRole).order_by(AdminRole.name))).scalars().all()
    return [builtin_role_response(role) for role in BUILTIN_ROLES] + [custom_role_response(r) for r in custom]


@router.post("", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    body: RoleCreate,
    admin: Admin = Depends(require_permission("manage_roles")),
    session: AsyncSession = Depends(get_db_session),
):
    """Create a custom role. Department superadmins may only create roles in their own department."""
    if body.name in BUILTIN_ROLES or await session.scalar(select(AdminRole).where(AdminRole.name == body.name)):
        raise HTTPException(status_code=400, detail=f"Role {body.name} already exists")

    if not admin.is_owner and admin.role != SUPERADMIN:
        if body.base_type == "SUPERADMIN" or body.department != admin.department:
            raise HTTPException(status_code=403, detail="Roles can only be created in your own department")

    role = AdminRole(
        name=body.name,
        base_type=body.base_type,
        department=body.department,
        permissions=body.permissions,
        created_by=admin.id,
    )
    session.add(role)
    await flush_or_conflict(session, f"Role {body.name} already exists", status_code=400)
    await write_admin_log(session, admin.id, "ROLE_CREATED", {"role": role.name, "base_type": role.base_type})

    log_role_change("created", role.name, {"base_type": role.base_type, "department": role.department}, logger=logger)
    return custom_role_response(role)


@router.get("/{role}/admins", response_model=List[OperatorResponse])
async def list_role_admins(
    role: str,
    admin: Admin = Depends(get_current_admin),
    session: AsyncSession = Depends(get_db_session),
):
    if role not in BUILTIN_ROLES and not await session.scalar(select(AdminRole).where(AdminRole.name == role)):
        raise HTTPException(status_code=404, detail=f"Role {role} not found")
    result = await session.execute(select(Admin).where(Admin.role == role).order_by(Admin.admin_name))
    return result.scalars().all()

"""
Operator bearer-token authentication.

Operators authenticate with ``Authorization: Bearer <token>``. Only the
sha256 digest of a token is stored, so lookups hash the presented token and
match on ``admins.api_token_hash``.
"""

import hashlib
import secrets
from typing import Callable, Dict, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database.database import get_db_session
from models.models import Admin, AdminRole
from utils.datetime_utils import utcnow
from utils.logging import get_logger
from utils.roles import effective_permissions

logger = get_logger("auth")

bearer_scheme = HTTPBearer(auto_error=False)


def generate_token() -> str:
    return secrets.token_urlsafe(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


async def resolve_permissions(session: AsyncSession, admin: Admin) -> Dict[str, bool]:
    """Effective permissions of ``admin``, resolving custom roles through their base type."""
    role_type = None
    custom = await session.scalar(select(AdminRole).where(AdminRole.name == admin.role))
    if custom is not None:
        role_type = custom.base_type
        bag = dict(custom.permissions or {})
        bag.update(admin.permissions or {})
    else:
        bag = admin.permissions or {}
    return effective_permissions(admin.role, bag, admin.is_owner, role_type)


async def get_current_admin(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_db_session),
) -> Admin:
    """Resolve the bearer token to an active operator or fail with 401."""
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    admin = await session.scalar(
        select(Admin).where(Admin.api_token_hash == hash_token(credentials.credentials))
    )
    if admin is None or not admin.is_active:
        logger.warning("Rejected operator token", extra={"data": {"known": admin is not None}})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or inactive operator token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    admin.last_activity = utcnow()
    request.state.admin_id = str(admin.id)
    return admin


def require_permission(name: str) -> Callable:
    """Dependency factory: the current operator must hold ``name``."""

    async def checker(
        admin: Admin = Depends(get_current_admin),
        session: AsyncSession = Depends(get_db_session),
    ) -> Admin:
        permissions = await resolve_permissions(session, admin)
        if not permissions.get(name, False):
            logger.warning(
                "Permission denied",
                extra={"data": {"admin_id": str(admin.id), "permission": name, "role": admin.role}}
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission: {name}",
            )
        return admin

    return checker

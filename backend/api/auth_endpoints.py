"""
Operator identity endpoint.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from database.database import get_db_session
from models.admin import CurrentOperatorResponse, OperatorResponse
from models.models import Admin
from utils.auth import get_current_admin, resolve_permissions

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.get("/me", response_model=CurrentOperatorResponse)
async def get_me(
    admin: Admin = Depends(get_current_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """The operator behind the bearer token and what they may do."""
    return CurrentOperatorResponse(
        operator=OperatorResponse.model_validate(admin),
        effective_permissions=await resolve_permissions(session, admin),
    )

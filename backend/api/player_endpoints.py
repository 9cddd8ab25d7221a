"""
Player API Endpoints

Player administration for operators: profiles, account status, manual
balance adjustments with their history, and internal notes.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from database.database import flush_or_conflict, get_db_session
from models.models import Admin, BalanceHistory, Player, PlayerStatus, default_balances
from models.players import (
    BalanceAdjustment, BalanceHistoryResponse, NoteCreate, PlayerCreate, PlayerListResponse,
    PlayerResponse, PlayerUpdate
)
from services.balance_service import adjust_balance, write_admin_log
from utils.auth import get_current_admin, require_permission
from utils.datetime_utils import utcnow
from utils.logging import get_logger

logger = get_logger("player-api")
router = APIRouter(prefix="/api/users", tags=["Players"])


async def get_player_or_404(session: AsyncSession, player_id: UUID) -> Player:
    player = await session.get(Player, player_id)
    if player is None:
        raise HTTPException(status_code=404, detail="Player not found")
    return player


async def find_duplicate_player(session: AsyncSession, username: str, email: str) -> Optional[Player]:
    return await session.scalar(select(Player).where(or_(Player.username == username, Player.email == email)))


@router.get("", response_model=PlayerListResponse)
async def list_players(
    player_status: Optional[PlayerStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, description="Substring of username or email"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    admin: Admin = Depends(get_current_admin),
    session: AsyncSession = Depends(get_db_session),
):
    filters = []
    if player_status:
        filters.append(Player.status == player_status)
    if search:
        pattern = f"%{search.lower()}%"
        filters.append(or_(func.lower(Player.username).like(pattern), Player.email.like(pattern)))

    total = await session.scalar(select(func.count(Player.id)).where(*filters))
    result = await session.execute(
        select(Player)
        .where(*filters)
        .order_by(Player.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return PlayerListResponse(
        items=[PlayerResponse.model_validate(p) for p in result.scalars().all()],
        total=total or 0,
        page=page,
        page_size=page_size,
    )


@router.post("", response_model=PlayerResponse, status_code=status.HTTP_201_CREATED)
async def create_player(
    body: PlayerCreate,
    admin: Admin = Depends(require_permission("user_management")),
    session: AsyncSession = Depends(get_db_session),
):
    """Register a player. Username and email must both be unused."""
    duplicate = await find_duplicate_player(session, body.username, body.email)
    if duplicate:
        field = "username" if duplicate.username == body.username else "email"
        raise HTTPException(status_code=409, detail=f"Player with this {field} already exists")

    player = Player(
        username=body.username,
        email=body.email,
        first_name=body.first_name,
        last_name=body.last_name,
        phone=body.phone,
        country=body.country,
        currency=body.currency,
        subscribed_services=body.subscribed_services,
        balances=default_balances(),
    )
    session.add(player)
    await flush_or_conflict(session, "Player with this username or email already exists")
    await write_admin_log(session, admin.id, "USER_CREATED", {"player_id": str(player.id), "username": player.username})

    logger.info("Player created", extra={"data": {"player_id": str(player.id), "created_by": str(admin.id)}})
    return player


@router.get("/{player_id}", response_model=PlayerResponse)
async def get_player(
    player_id: UUID,
    admin: Admin = Depends(get_current_admin),
    session: AsyncSession = Depends(get_db_session),
):
    return await get_player_or_404(session, player_id)


@router.patch("/{player_id}", response_model=PlayerResponse)
async def update_player(
    player_id: UUID,
    body: PlayerUpdate,
    admin: Admin = Depends(require_permission("user_management")),
    session: AsyncSession = Depends(get_db_session),
):
    player = await get_player_or_404(session, player_id)
    changes = body.model_dump(exclude_unset=True)

    if changes.get("email") and changes["email"] != player.email:
        taken = await session.scalar(select(Player.id).where(Player.email == changes["email"]))
        if taken:
            raise HTTPException(status_code=409, detail="Player with this email already exists")

    previous_status = player.status
    for field, value in changes.items():
        setattr(player, field, value)
    await flush_or_conflict(session, "Player with this email already exists")

    details = {"player_id": str(player.id), "fields": sorted(changes)}
    if "status" in changes and changes["status"] != previous_status:
        details.update(previous_status=previous_status.value, status=player.status.value)
    await write_admin_log(session, admin.id, "USER_UPDATED", details)
    return player


@router.put("/{player_id}/balances", response_model=PlayerResponse)
async def update_balance(
    player_id: UUID,
    body: BalanceAdjustment,
    admin: Admin = Depends(require_permission("balance_adjustments")),
    session: AsyncSession = Depends(get_db_session),
):
    """Add to, subtract from or set one named balance. Subtracting past zero is rejected (GAME_402)."""
    player = await get_player_or_404(session, player_id)
    await adjust_balance(
        session,
        player,
        balance_type=body.balance_type,
        operation=body.operation,
        amount=body.amount,
        admin_id=admin.id,
        note=body.note,
    )
    return player


@router.get("/{player_id}/balance-history", response_model=List[BalanceHistoryResponse])
async def get_balance_history(
    player_id: UUID,
    limit: int = Query(50, ge=1, le=500),
    admin: Admin = Depends(get_current_admin),
    session: AsyncSession = Depends(get_db_session),
):
    await get_player_or_404(session, player_id)
    result = await session.execute(
        select(BalanceHistory)
        .where(BalanceHistory.player_id == player_id)
        .order_by(BalanceHistory.created_at.desc())
        .limit(limit)
    )
    return result.scalars().all()


@router.post("/{player_id}/notes", response_model=PlayerResponse, status_code=status.HTTP_201_CREATED)
async def add_note(
    player_id: UUID,
    body: NoteCreate,
    admin: Admin = Depends(get_current_admin),
    session: AsyncSession = Depends(get_db_session),
):
    player = await get_player_or_404(session, player_id)
    # Reassign so the JSON column is marked dirty
    player.notes = [
        *(player.notes or []),
        {"text": body.text, "admin_id": str(admin.id), "created_at": utcnow().isoformat()},
    ]
    await session.flush()
    await write_admin_log(session, admin.id, "USER_NOTE_ADDED", {"player_id": str(player.id)})
    return player

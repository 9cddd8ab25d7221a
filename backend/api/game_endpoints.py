"""
Game Catalog API Endpoints

Public catalog reads; catalog changes need the game_management permission.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database.database import flush_or_conflict, get_db_session
from models.games import GameCreate, GameResponse, GameUpdate
from models.models import Admin, Game, GameCategory
from services.balance_service import write_admin_log
from utils.auth import require_permission
from utils.logging import get_logger

logger = get_logger("game-api")
router = APIRouter(prefix="/api/games", tags=["Games"])


async def get_game_or_404(session: AsyncSession, game_id: UUID) -> Game:
    game = await session.get(Game, game_id)
    if game is None:
        raise HTTPException(status_code=404, detail="Game not found")
    return game


async def ensure_name_free(session: AsyncSession, name: str):
    if await session.scalar(select(Game.id).where(Game.name == name)):
        raise HTTPException(status_code=409, detail=f"Game {name} already exists")


@router.get("", response_model=List[GameResponse])
async def list_games(session: AsyncSession = Depends(get_db_session)):
    """Active games sorted by name."""
    result = await session.execute(select(Game).where(Game.is_active.is_(True)).order_by(Game.name))
    return result.scalars().all()


@router.get("/category/{category}", response_model=List[GameResponse])
async def list_games_by_category(category: GameCategory, session: AsyncSession = Depends(get_db_session)):
    result = await session.execute(
        select(Game).where(Game.category == category, Game.is_active.is_(True)).order_by(Game.name)
    )
    return result.scalars().all()


@router.get("/{game_id}", response_model=GameResponse)
async def get_game(game_id: UUID, session: AsyncSession = Depends(get_db_session)):
    return await get_game_or_404(session, game_id)


@router.post("", response_model=GameResponse, status_code=status.HTTP_201_CREATED)
async def create_game(
    body: GameCreate,
    admin: Admin = Depends(require_permission("game_management")),
    session: AsyncSession = Depends(get_db_session),
):
    await ensure_name_free(session, body.name)
    game = Game(**body.model_dump())
    session.add(game)
    await flush_or_conflict(session, f"Game {body.name} already exists")
    await write_admin_log(session, admin.id, "GAME_CREATED", {"game_id": str(game.id), "name": game.name})

    logger.info("Game created", extra={"data": {"game_id": str(game.id), "name": game.name}})
    return game


@router.put("/{game_id}", response_model=GameResponse)
async def update_game(
    game_id: UUID,
    body: GameUpdate,
    admin: Admin = Depends(require_permission("game_management")),
    session: AsyncSession = Depends(get_db_session),
):
    game = await get_game_or_404(session, game_id)
    changes = body.model_dump(exclude_unset=True)
    if changes.get("name") and changes["name"] != game.name:
        await ensure_name_free(session, changes["name"])

    for field, value in changes.items():
        setattr(game, field, value)
    if game.max_bet < game.min_bet:
        raise HTTPException(status_code=422, detail="max_bet must not be lower than min_bet")
    await flush_or_conflict(session, f"Game {game.name} already exists")

    await write_admin_log(session, admin.id, "GAME_UPDATED", {"game_id": str(game.id), "fields": sorted(changes)})
    return game


@router.delete("/{game_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_game(
    game_id: UUID,
    admin: Admin = Depends(require_permission("game_management")),
    session: AsyncSession = Depends(get_db_session),
):
    game = await get_game_or_404(session, game_id)
    await session.delete(game)
    await write_admin_log(session, admin.id, "GAME_DELETED", {"game_id": str(game_id), "name": game.name})
    return Response(status_code=status.HTTP_204_NO_CONTENT)

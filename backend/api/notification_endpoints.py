"""
Notification API Endpoints

Player notification inbox, notification preferences and operator
announcements.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database.database import get_db_session
from models.models import Admin, Notification, Player
from models.notifications import (
    AnnouncementCreate, AnnouncementResponse, NotificationPreferences, NotificationResponse,
    PreferencesResponse
)
from services.balance_service import write_admin_log
from services.notification_service import notify_players
from utils.auth import get_current_admin, require_permission
from utils.logging import get_logger

logger = get_logger("notification-api")
router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.get("", response_model=List[NotificationResponse])
async def list_notifications(
    player_id: Optional[UUID] = Query(None),
    unread_only: bool = Query(False),
    admin: Admin = Depends(get_current_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Latest 50 notifications, optionally for one player."""
    query = select(Notification)
    if player_id:
        query = query.where(Notification.player_id == player_id)
    if unread_only:
        query = query.where(Notification.read.is_(False))
    result = await session.execute(query.order_by(Notification.created_at.desc()).limit(50))
    return result.scalars().all()


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: UUID,
    admin: Admin = Depends(get_current_admin),
    session: AsyncSession = Depends(get_db_session),
):
    notification = await session.get(Notification, notification_id)
    if notification is None:
        raise HTTPException(status_code=404, detail="Notification not found")
    notification.read = True
    await session.flush()
    return notification


@router.put("/preferences/{player_id}", response_model=PreferencesResponse)
async def update_preferences(
    player_id: UUID,
    body: NotificationPreferences,
    admin: Admin = Depends(get_current_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Replace a player's notification preferences (and optionally their service subscriptions)."""
    player = await session.get(Player, player_id)
    if player is None:
        raise HTTPException(status_code=404, detail="Player not found")

    player.notification_preferences = body.model_dump(include={"email", "push"})
    if body.subscribed_services is not None:
        player.subscribed_services = body.subscribed_services
    await session.flush()

    await write_admin_log(session, admin.id, "NOTIFICATION_PREFERENCES_UPDATED", {"player_id": str(player.id)})
    return PreferencesResponse(
        player_id=player.id,
        notification_preferences=player.notification_preferences,
        subscribed_services=player.subscribed_services,
    )


@router.post("/announcements", response_model=AnnouncementResponse)
async def send_announcement(
    body: AnnouncementCreate,
    admin: Admin = Depends(require_permission("system_settings")),
    session: AsyncSession = Depends(get_db_session),
):
    """Send an announcement to every player who opted in."""
    recipients = await notify_players(
        session,
        "announcement",
        {"title": body.title, "message": body.message, "components": body.components},
    )
    await write_admin_log(
        session, admin.id, "ANNOUNCEMENT_SENT", {"title": body.title, "recipients": recipients}
    )
    return AnnouncementResponse(recipients=recipients)

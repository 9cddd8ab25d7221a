"""
Player Notification Service

Turns status events (incidents, maintenance, resolutions, announcements)
into in-app notifications and emails for the players who opted in.
"""

import asyncio
from html import escape
from typing import Any, Dict, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from models.models import Notification, NotificationType, Player
from services.email_service import send_email
from utils.logging import get_logger

logger = get_logger("notification-service")

# Players loaded per round trip while filtering recipients
PLAYER_BATCH_SIZE = 500

# "resolution" notifications are stored as incident notifications
STORED_TYPE = {
    "incident": NotificationType.INCIDENT,
    "resolution": NotificationType.INCIDENT,
    "maintenance": NotificationType.MAINTENANCE,
    "status_change": NotificationType.STATUS_CHANGE,
    "announcement": NotificationType.ANNOUNCEMENT,
}

# Preference key checked for each notification type
PREFERENCE_KEY = {
    "incident": "incident",
    "resolution": "incident",
    "maintenance": "maintenance",
    "status_change": "status_change",
    "announcement": "announcement",
}


def get_title(notification_type: str, payload: Dict[str, Any]) -> str:
    title = payload.get("title", "")
    titles = {
        "incident": f"Incident: {title}",
        "maintenance": f"Scheduled Maintenance: {title}",
        "resolution": f"Resolved: {title}",
        "status_change": "Service Status Changed",
        "announcement": title or "Announcement",
    }
    return titles[notification_type]


def get_message(notification_type: str, payload: Dict[str, Any]) -> str:
    components = ", ".join(payload.get("components") or []) or "all services"
    if notification_type == "incident":
        return f"We are investigating an issue affecting {components}. {payload.get('message', '')}".strip()
    if notification_type == "maintenance":
        return (
            f"Maintenance on {components} is scheduled from {payload.get('start_time')} "
            f"to {payload.get('end_time')}. {payload.get('description', '')}"
        ).strip()
    if notification_type == "resolution":
        return f"The issue affecting {components} has been resolved."
    if notification_type == "status_change":
        return f"{payload.get('service', 'A service')} is now {payload.get('status', 'unknown')}."
    return payload.get("message", "")


def get_email_content(notification_type: str, payload: Dict[str, Any]) -> str:
    title = escape(get_title(notification_type, payload))
    message = escape(get_message(notification_type, payload))
    status_url = f"{settings.BASE_URL.rstrip('/')}/status"
    return (
        f"<h2>{title}</h2>"
        f"<p>{message}</p>"
        f"<p><a href=\"{status_url}\">View the status page</a></p>"
    )


def wants_notification(player: Player, notification_type: str, components: List[str]) -> bool:
    """Opted in for this type by email, and subscribed to an affected component if any are named."""
    preferences = (player.notification_preferences or {}).get("email", {})
    if not preferences.get(PREFERENCE_KEY[notification_type], False):
        return False
    if components:
        return bool(set(components) & set(player.subscribed_services or []))
    return True


async def notify_players(session: AsyncSession, notification_type: str, payload: Dict[str, Any]) -> int:
    """
    Create notifications and send emails to every opted-in player.

    Args:
        session: Database session; notifications are added to it and flushed
        notification_type: incident, maintenance, resolution, status_change or announcement
        payload: Entity data (title, id, components, ...)

    Returns:
        Number of players notified
    """
    if notification_type not in STORED_TYPE:
        raise ValueError(f"Unknown notification type: {notification_type}")

    components = list(payload.get("components") or [])
    recipients = []
    players = await session.stream_scalars(select(Player).execution_options(yield_per=PLAYER_BATCH_SIZE))
    async for player in players:
        if wants_notification(player, notification_type, components):
            recipients.append(player)

    if not recipients:
        logger.debug("No players opted in for notification", extra={"data": {"type": notification_type}})
        return 0

    title = get_title(notification_type, payload)
    message = get_message(notification_type, payload)
    for player in recipients:
        session.add(Notification(
            player_id=player.id,
            type=STORED_TYPE[notification_type],
            title=title,
            message=message,
            related_entity=str(payload["id"]) if payload.get("id") else None,
            extra={k: v for k, v in payload.items() if isinstance(v, (str, int, float, bool, list, type(None)))},
        ))
    await session.flush()

    html = get_email_content(notification_type, payload)
    results = await asyncio.gather(
        *(send_email(player.email, title, html, message) for player in recipients)
    )

    logger.info(
        "Players notified",
        extra={
            "data": {
                "type": notification_type,
                "recipients": len(recipients),
                "emails_sent": sum(1 for sent in results if sent),
            }
        }
    )
    return len(recipients)

"""
Notification Models

Pydantic V2 models for player notifications, notification preferences and
operator announcements.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.models import NotificationType
from models.system_health import MONITORED_SERVICES


class NotificationResponse(BaseModel):
    id: UUID
    player_id: UUID
    type: NotificationType
    title: str
    message: str
    related_entity: Optional[str] = None
    read: bool
    extra: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class EmailPreferences(BaseModel):
    incident: bool = True
    maintenance: bool = True
    status_change: bool = False
    announcement: bool = True


class PushPreferences(BaseModel):
    enabled: bool = False
    critical_only: bool = True


class NotificationPreferences(BaseModel):
    """Full preference document stored on the player."""
    email: EmailPreferences = Field(default_factory=EmailPreferences)
    push: PushPreferences = Field(default_factory=PushPreferences)
    subscribed_services: Optional[List[str]] = Field(None, description="Replaces the subscription list when given")

    @field_validator("subscribed_services")
    @classmethod
    def services_must_be_known(cls, v):
        if v is None:
            return v
        unknown = sorted(set(v) - set(MONITORED_SERVICES))
        if unknown:
            raise ValueError(f"Unknown services: {', '.join(unknown)}")
        return list(dict.fromkeys(v))


class PreferencesResponse(BaseModel):
    player_id: UUID
    notification_preferences: Dict[str, Any]
    subscribed_services: List[str]


class AnnouncementCreate(BaseModel):
    """Operator announcement sent to every opted-in player."""
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)
    components: List[str] = Field(default_factory=list, description="Limit to subscribers of these services")

    @field_validator("components")
    @classmethod
    def components_must_be_known(cls, v):
        unknown = sorted(set(v) - set(MONITORED_SERVICES))
        if unknown:
            raise ValueError(f"Unknown components: {', '.join(unknown)}")
        return v


class AnnouncementResponse(BaseModel):
    recipients: int

"""
Event schema definitions for the status update stream.
Defines consistent event types and the SSE wire format.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional
from uuid import uuid4

import orjson
from pydantic import BaseModel, Field

from utils.datetime_utils import as_utc

StatusEventType = Literal[
    "status_change",
    "health_check",
    "incident_created",
    "incident_update",
    "maintenance",
    "maintenance_scheduled",
    "maintenance_update",
    "uptime_calculated",
]


class StatusEvent(BaseModel):
    """
    Standard event format for status updates.
    All events published through Redis or the local broker use this format.
    """
    id: str = Field(default_factory=lambda: str(uuid4()))
    type: StatusEventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    data: Dict[str, Any]
    source: str  # component that generated the event


class StreamMessage(BaseModel):
    """
    Message sent to SSE clients.
    Converts a StatusEvent to wire format with ISO timestamp.
    """
    id: str
    type: str
    timestamp: str  # ISO format string
    data: Dict[str, Any]
    source: str

    @classmethod
    def from_status_event(cls, event: StatusEvent) -> "StreamMessage":
        return cls(
            id=event.id,
            type=event.type,
            timestamp=event.timestamp.isoformat(),
            data=event.data,
            source=event.source
        )

    def to_sse(self) -> str:
        """Render as one SSE frame: ``data: <json>`` followed by a blank line."""
        payload = orjson.dumps(self.model_dump(), default=str).decode("utf-8")
        return f"data: {payload}\n\n"


# Specific event data models for type safety
class StatusChangeEventData(BaseModel):
    """Data structure for service status transitions."""
    service: str
    previous_status: str
    status: str
    overall_status: str


class IncidentEventData(BaseModel):
    """Data structure for incident created/updated events."""
    incident_id: str
    code: str
    title: str
    status: str
    severity: str
    components: List[str]
    message: Optional[str] = None


class MaintenanceEventData(BaseModel):
    """Data structure for maintenance window events."""
    maintenance_id: str
    title: str
    status: str
    components: List[str]
    start_time: str
    end_time: str


class HealthCheckEventData(BaseModel):
    """Data structure for health-check results."""
    service: str
    healthy: bool
    response_time_ms: Optional[int] = None
    error_message: Optional[str] = None


class UptimeCalculatedEventData(BaseModel):
    """Data structure for the daily uptime rollup."""
    date: str
    services: Dict[str, float]


def create_status_change_event(
    service: str,
    previous_status: str,
    status: str,
    overall_status: str,
    source: str = "status-monitor"
) -> StatusEvent:
    """Create a typed status change event."""
    return StatusEvent(
        type="status_change",
        data=StatusChangeEventData(
            service=service,
            previous_status=previous_status,
            status=status,
            overall_status=overall_status
        ).model_dump(),
        source=source
    )


def create_incident_event(
    incident,
    event_type: Literal["incident_created", "incident_update"] = "incident_created",
    message: Optional[str] = None,
    source: str = "status-monitor"
) -> StatusEvent:
    """Create an incident event from an Incident row."""
    return StatusEvent(
        type=event_type,
        data=IncidentEventData(
            incident_id=str(incident.id),
            code=incident.code,
            title=incident.title,
            status=incident.status.value,
            severity=incident.severity.value,
            components=list(incident.components or []),
            message=message
        ).model_dump(),
        source=source
    )


def create_maintenance_event(
    maintenance,
    event_type: Literal["maintenance", "maintenance_scheduled", "maintenance_update"] = "maintenance",
    source: str = "status-monitor"
) -> StatusEvent:
    """Create a maintenance event from a Maintenance row."""
    return StatusEvent(
        type=event_type,
        data=MaintenanceEventData(
            maintenance_id=str(maintenance.id),
            title=maintenance.title,
            status=maintenance.status.value,
            components=list(maintenance.components or []),
            start_time=as_utc(maintenance.start_time).isoformat(),
            end_time=as_utc(maintenance.end_time).isoformat()
        ).model_dump(),
        source=source
    )


def create_health_check_event(
    service: str,
    healthy: bool,
    response_time_ms: Optional[int] = None,
    error_message: Optional[str] = None,
    source: str = "status-monitor"
) -> StatusEvent:
    """Create a typed health-check event."""
    return StatusEvent(
        type="health_check",
        data=HealthCheckEventData(
            service=service,
            healthy=healthy,
            response_time_ms=response_time_ms,
            error_message=error_message
        ).model_dump(),
        source=source
    )


def create_uptime_calculated_event(
    day: str,
    services: Dict[str, float],
    source: str = "uptime-calculator"
) -> StatusEvent:
    """Create a typed uptime rollup event."""
    return StatusEvent(
        type="uptime_calculated",
        data=UptimeCalculatedEventData(date=day, services=services).model_dump(),
        source=source
    )

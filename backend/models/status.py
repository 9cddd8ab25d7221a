"""
Status Domain Models

Pydantic V2 request/response models for the status page: services,
incidents, maintenance windows, uptime and health-check history.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from models.system_health import (
    MONITORED_SERVICES, Impact, IncidentStatus, MaintenanceStatus, ServiceStatus, Severity
)
from utils.datetime_utils import as_utc


def _validate_components(components: List[str]) -> List[str]:
    unknown = sorted(set(components) - set(MONITORED_SERVICES))
    if unknown:
        raise ValueError(f"Unknown components: {', '.join(unknown)}")
    # Preserve order, drop duplicates
    return list(dict.fromkeys(components))


class ServiceState(BaseModel):
    """Current in-memory state of one monitored service."""
    key: str = Field(..., description="Service key (api, database, payment, auth)")
    name: str = Field(..., description="Display name")
    status: ServiceStatus = Field(..., description="Current service status")
    uptime: float = Field(..., description="Latest daily uptime percentage")
    last_checked: Optional[datetime] = Field(None, description="Last health check time")


class StatusOverview(BaseModel):
    """Status page summary."""
    overall_status: str = Field(..., description="operational, maintenance, degraded or major_outage")
    services: List[ServiceState] = Field(..., description="Per-service state")
    active_incidents: int = Field(..., description="Number of unresolved incidents")
    active_maintenance: int = Field(..., description="Number of maintenance windows in progress")
    last_updated: datetime = Field(..., description="Time of this snapshot")


class IncidentCreate(BaseModel):
    """Request model for reporting an incident manually."""
    code: str = Field(..., min_length=1, max_length=64, description="Error or incident code")
    title: str = Field(..., min_length=1, max_length=255, description="Incident title")
    severity: Severity = Field(Severity.MEDIUM, description="Incident severity")
    impact: Impact = Field(Impact.MINOR, description="Customer impact")
    status: IncidentStatus = Field(IncidentStatus.INVESTIGATING, description="Initial status")
    components: List[str] = Field(..., min_length=1, description="Affected service keys")
    message: Optional[str] = Field(None, description="First timeline entry")

    @field_validator("components")
    @classmethod
    def components_must_be_known(cls, v):
        return _validate_components(v)


class IncidentUpdateCreate(BaseModel):
    """Request model for appending to an incident timeline."""
    status: IncidentStatus = Field(..., description="New incident status")
    message: str = Field(..., min_length=1, description="Timeline message")


class IncidentUpdateResponse(BaseModel):
    id: UUID
    status: IncidentStatus
    message: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class IncidentResponse(BaseModel):
    """Response model for incident data."""
    id: UUID = Field(..., description="Incident ID")
    code: str = Field(..., description="Incident code")
    title: str = Field(..., description="Incident title")
    status: IncidentStatus = Field(..., description="Current status")
    severity: Severity = Field(..., description="Severity")
    impact: Impact = Field(..., description="Customer impact")
    components: List[str] = Field(default_factory=list, description="Affected service keys")
    start_time: datetime = Field(..., description="Detection time")
    end_time: Optional[datetime] = Field(None, description="Resolution time")
    updates: List[IncidentUpdateResponse] = Field(default_factory=list, description="Timeline, oldest first")

    model_config = ConfigDict(from_attributes=True)


class MaintenanceCreate(BaseModel):
    """Request model for scheduling a maintenance window."""
    title: str = Field(..., min_length=1, max_length=255, description="Window title")
    description: str = Field("", description="Details shown to players")
    components: List[str] = Field(..., min_length=1, description="Affected service keys")
    start_time: datetime = Field(..., description="Scheduled start (timezone aware)")
    end_time: datetime = Field(..., description="Scheduled end (timezone aware)")
    impact: Impact = Field(Impact.MINOR, description="Expected impact")

    @field_validator("components")
    @classmethod
    def components_must_be_known(cls, v):
        return _validate_components(v)

    @field_validator("start_time", "end_time")
    @classmethod
    def assume_utc(cls, v):
        """Naive timestamps are taken as UTC."""
        return as_utc(v)

    @model_validator(mode="after")
    def end_after_start(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class MaintenanceStatusUpdate(BaseModel):
    """Request model for a manual maintenance status change."""
    status: MaintenanceStatus = Field(..., description="New maintenance status")


class MaintenanceResponse(BaseModel):
    """Response model for maintenance windows."""
    id: UUID
    title: str
    description: str
    components: List[str]
    start_time: datetime
    end_time: datetime
    status: MaintenanceStatus
    impact: Impact
    created_by: Optional[UUID] = None
    notified_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class UptimeRecordResponse(BaseModel):
    """Daily uptime for one service."""
    service: str
    day: date = Field(..., serialization_alias="date", description="UTC day")
    uptime_percentage: float
    downtime_minutes: int
    incident_ids: List[str] = Field(default_factory=list)
    maintenance_ids: List[str] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class HealthCheckResponse(BaseModel):
    """One recorded health check."""
    service_name: str
    status: str
    response_time_ms: Optional[int] = None
    error_message: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    checked_at: datetime

    model_config = ConfigDict(from_attributes=True)

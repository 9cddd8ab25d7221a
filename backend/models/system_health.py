"""
Status Monitoring Database Models

Health-check history, incidents with their update timeline, scheduled
maintenance windows and the daily uptime rollup.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    Date, DateTime, Enum as SQLEnum, Float, ForeignKey, Index, Integer, String, Text,
    UniqueConstraint, Uuid
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.models import Base, JSONType
from utils.datetime_utils import utcnow


# Monitored service keys and their display names
MONITORED_SERVICES = {
    "api": "API Gateway",
    "database": "Database",
    "payment": "Payment Gateway",
    "auth": "Authentication",
}

MINUTES_PER_DAY = 24 * 60


class ServiceStatus(str, Enum):
    OPERATIONAL = "operational"
    DEGRADED = "degraded"
    PARTIAL_OUTAGE = "partial_outage"
    MAJOR_OUTAGE = "major_outage"
    MAINTENANCE = "maintenance"


class IncidentStatus(str, Enum):
    INVESTIGATING = "investigating"
    IDENTIFIED = "identified"
    MONITORING = "monitoring"
    RESOLVED = "resolved"
    SCHEDULED = "scheduled"


class Severity(str, Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class Impact(str, Enum):
    NONE = "none"
    MINOR = "minor"
    MAJOR = "major"
    CRITICAL = "critical"


class MaintenanceStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ServiceHealthCheck(Base):
    """One health-check run for a monitored service."""
    __tablename__ = 'service_health_checks'

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    service_name: Mapped[str] = mapped_column(String(50), nullable=False)  # "api", "database", ...
    status: Mapped[str] = mapped_column(String(20), nullable=False)  # "healthy" / "unhealthy"
    response_time_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    details: Mapped[Dict[str, Any]] = mapped_column(JSONType, default=dict, nullable=False)
    checked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index('idx_health_service_checked_at', 'service_name', 'checked_at'),
    )

    def __repr__(self):
        return f"<ServiceHealthCheck(service={self.service_name}, status={self.status}, checked_at={self.checked_at})>"


class Incident(Base):
    """A logged service disruption. Incidents are resolved, never deleted."""
    __tablename__ = 'incidents'

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    code: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[IncidentStatus] = mapped_column(
        SQLEnum(IncidentStatus), nullable=False, default=IncidentStatus.INVESTIGATING
    )
    severity: Mapped[Severity] = mapped_column(SQLEnum(Severity), nullable=False, default=Severity.MEDIUM)
    impact: Mapped[Impact] = mapped_column(SQLEnum(Impact), nullable=False, default=Impact.MINOR)
    components: Mapped[List[str]] = mapped_column(JSONType, default=list, nullable=False)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    updates: Mapped[List["IncidentUpdate"]] = relationship(
        "IncidentUpdate",
        back_populates="incident",
        cascade="all, delete-orphan",
        order_by="IncidentUpdate.created_at",
    )

    __table_args__ = (
        Index('idx_incidents_status_start', 'status', 'start_time'),
        Index('idx_incidents_code_status', 'code', 'status'),
    )


class IncidentUpdate(Base):
    """Append-only timeline entry of an incident."""
    __tablename__ = 'incident_updates'

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    incident_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey('incidents.id'), nullable=False)
    status: Mapped[IncidentStatus] = mapped_column(SQLEnum(IncidentStatus), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    incident: Mapped["Incident"] = relationship("Incident", back_populates="updates")


class Maintenance(Base):
    """Scheduled maintenance window."""
    __tablename__ = 'maintenance_windows'

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    components: Mapped[List[str]] = mapped_column(JSONType, default=list, nullable=False)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[MaintenanceStatus] = mapped_column(
        SQLEnum(MaintenanceStatus), nullable=False, default=MaintenanceStatus.SCHEDULED
    )
    impact: Mapped[Impact] = mapped_column(SQLEnum(Impact), nullable=False, default=Impact.MINOR)
    created_by: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey('admins.id'))
    notified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index('idx_maintenance_window', 'start_time', 'end_time'),
    )


class UptimeRecord(Base):
    """Daily uptime aggregate for one service."""
    __tablename__ = 'uptime_records'

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    service: Mapped[str] = mapped_column(String(50), nullable=False)
    day: Mapped[date] = mapped_column("date", Date, nullable=False)
    uptime_percentage: Mapped[float] = mapped_column(Float, nullable=False)
    downtime_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    incident_ids: Mapped[List[str]] = mapped_column(JSONType, default=list, nullable=False)
    maintenance_ids: Mapped[List[str]] = mapped_column(JSONType, default=list, nullable=False)
    calculated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint('service', 'date', name='uq_uptime_service_date'),
    )

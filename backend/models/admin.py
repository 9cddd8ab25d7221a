"""
Operator Domain Models

Pydantic V2 request/response models for operator accounts, roles, the
audit log and the back-office dashboard.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from utils.roles import OPERATOR_PERMISSIONS, ROLE_TYPES


def _normalize_permissions(permissions: Dict[str, bool]) -> Dict[str, bool]:
    unknown = sorted(set(permissions) - set(OPERATOR_PERMISSIONS))
    if unknown:
        raise ValueError(f"Unknown permissions: {', '.join(unknown)}")
    return {name: bool(value) for name, value in permissions.items()}


class OperatorCreate(BaseModel):
    """Request model for creating an operator account."""
    admin_name: str = Field(..., min_length=4, max_length=20, pattern=r"^[A-Za-z0-9_]+$")
    email: EmailStr = Field(..., description="Unique operator email")
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=32)
    role: str = Field(..., min_length=1, max_length=64, description="Built-in or custom role name")
    permissions: Dict[str, bool] = Field(default_factory=dict, description="Operational permission bag")

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v):
        return v.lower()

    @field_validator("permissions")
    @classmethod
    def permissions_must_be_known(cls, v):
        return _normalize_permissions(v)


class OperatorUpdate(BaseModel):
    """Request model for updating an operator; omitted fields are left unchanged."""
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=32)
    role: Optional[str] = Field(None, min_length=1, max_length=64)
    permissions: Optional[Dict[str, bool]] = None
    is_active: Optional[bool] = None

    @field_validator("permissions")
    @classmethod
    def permissions_must_be_known(cls, v):
        if v is None:
            return v
        return _normalize_permissions(v)


class OperatorResponse(BaseModel):
    """Operator account as returned by the API. Never carries the token."""
    id: UUID
    admin_name: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    role: str
    department: Optional[str] = None
    permissions: Dict[str, bool] = Field(default_factory=dict)
    is_owner: bool = False
    is_active: bool = True
    last_login: Optional[datetime] = None
    last_activity: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OperatorCreatedResponse(BaseModel):
    """Creation response; ``api_token`` is shown exactly once."""
    operator: OperatorResponse
    api_token: str = Field(..., description="Bearer token for the new operator")


class CurrentOperatorResponse(BaseModel):
    """The authenticated operator with resolved permissions."""
    operator: OperatorResponse
    effective_permissions: Dict[str, bool]


class RoleCreate(BaseModel):
    """Request model for a custom role."""
    name: str = Field(..., min_length=3, max_length=64, pattern=r"^[A-Z][A-Z0-9_]*$")
    base_type: str = Field(..., description="One of the role types")
    department: Optional[str] = Field(None, max_length=32)
    permissions: Dict[str, bool] = Field(default_factory=dict)

    @field_validator("base_type")
    @classmethod
    def base_type_must_be_known(cls, v):
        if v not in ROLE_TYPES:
            raise ValueError(f"base_type must be one of: {', '.join(ROLE_TYPES)}")
        return v

    @field_validator("permissions")
    @classmethod
    def permissions_must_be_known(cls, v):
        return _normalize_permissions(v)


class RoleResponse(BaseModel):
    name: str
    base_type: str
    department: Optional[str] = None
    builtin: bool = False
    permissions: Dict[str, bool] = Field(default_factory=dict)


class AdminLogResponse(BaseModel):
    id: UUID
    admin_id: Optional[UUID] = None
    action: str
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DashboardResponse(BaseModel):
    """Back-office landing page counters."""
    players_by_status: Dict[str, int] = Field(..., description="Player count per account status")
    total_players: int = Field(..., description="Registered players")
    balance_totals: Dict[str, float] = Field(..., description="Sum of each named balance over all players")
    open_incidents: int = Field(..., description="Unresolved incidents")
    active_maintenance: int = Field(..., description="Maintenance windows in progress")
    admin_count: int = Field(..., description="Active operator accounts")
    overall_status: str = Field(..., description="Current platform status")
    recent_activity: List[AdminLogResponse] = Field(default_factory=list, description="Latest audit entries")

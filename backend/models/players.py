"""
Player Domain Models

Pydantic V2 request/response models for player administration and
manual balance adjustments.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from models.models import BALANCE_TYPES, BalanceOperation, Currency, KYCStatus, PlayerStatus
from models.system_health import MONITORED_SERVICES


class PlayerCreate(BaseModel):
    """Request model for registering a player from the back-office."""
    username: str = Field(..., min_length=4, max_length=25, pattern=r"^[A-Za-z0-9_]+$")
    email: EmailStr = Field(..., description="Unique player email")
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=32)
    country: Optional[str] = Field(None, max_length=64)
    currency: Currency = Field(Currency.USD, description="Account currency")
    subscribed_services: List[str] = Field(default_factory=list, description="Service keys for status emails")

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v):
        return v.lower()

    @field_validator("subscribed_services")
    @classmethod
    def services_must_be_known(cls, v):
        unknown = sorted(set(v) - set(MONITORED_SERVICES))
        if unknown:
            raise ValueError(f"Unknown services: {', '.join(unknown)}")
        return list(dict.fromkeys(v))


class PlayerUpdate(BaseModel):
    """Request model for updating a player; omitted fields are left unchanged."""
    email: Optional[EmailStr] = None
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=32)
    country: Optional[str] = Field(None, max_length=64)
    status: Optional[PlayerStatus] = None
    kyc_status: Optional[KYCStatus] = None
    vip_level: Optional[int] = Field(None, ge=0)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v):
        return v.lower() if v else v


class PlayerResponse(BaseModel):
    id: UUID
    username: str
    email: str
    status: PlayerStatus
    kyc_status: KYCStatus
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    country: Optional[str] = None
    balances: Dict[str, float]
    currency: Currency
    total_deposits: float
    total_withdrawals: float
    vip_level: int
    vip_points: int
    subscribed_services: List[str] = Field(default_factory=list)
    notes: List[Dict[str, Any]] = Field(default_factory=list)
    last_login: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PlayerListResponse(BaseModel):
    items: List[PlayerResponse]
    total: int
    page: int
    page_size: int


class BalanceAdjustment(BaseModel):
    """Manual adjustment of one named balance."""
    balance_type: str = Field("normal", description="Balance to adjust")
    operation: BalanceOperation = Field(..., description="add, subtract or set")
    amount: float = Field(..., ge=0, allow_inf_nan=False, description="Non-negative finite amount")
    note: Optional[str] = Field(None, max_length=500, description="Reason recorded in the history")

    @field_validator("balance_type")
    @classmethod
    def balance_type_must_be_known(cls, v):
        if v not in BALANCE_TYPES:
            raise ValueError(f"balance_type must be one of: {', '.join(BALANCE_TYPES)}")
        return v

    @model_validator(mode="after")
    def amount_is_positive_for_deltas(self):
        if self.operation != BalanceOperation.SET and self.amount <= 0:
            raise ValueError("amount must be greater than 0 for add and subtract")
        return self


class BalanceHistoryResponse(BaseModel):
    id: UUID
    player_id: UUID
    balance_type: str
    old_amount: float
    new_amount: float
    operation: BalanceOperation
    admin_id: Optional[UUID] = None
    admin_note: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NoteCreate(BaseModel):
    text: str = Field(..., min_length=1, max_length=2000)

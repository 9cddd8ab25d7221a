"""
Back-office Database Models

Operators, players and their balances, the game catalog and player
notifications. Status monitoring tables live in ``models.system_health``.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON, Boolean, DateTime, Enum as SQLEnum, Float, ForeignKey, Index, Integer,
    Numeric, String, Text, Uuid
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from utils.datetime_utils import utcnow


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    pass


BALANCE_TYPES = ("normal", "bonus", "affiliate", "wheel", "lossBonus", "box", "lottery", "link")


def default_balances() -> Dict[str, float]:
    return {name: 0.0 for name in BALANCE_TYPES}


def default_notification_preferences() -> Dict[str, Any]:
    return {
        "email": {
            "incident": True,
            "maintenance": True,
            "status_change": False,
            "announcement": True,
        },
        "push": {"enabled": False, "critical_only": True},
    }


class PlayerStatus(str, Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    BANNED = "BANNED"
    SELF_EXCLUDED = "SELF_EXCLUDED"


class KYCStatus(str, Enum):
    NOT_VERIFIED = "NOT_VERIFIED"
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class Currency(str, Enum):
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    BTC = "BTC"
    ETH = "ETH"


class BalanceOperation(str, Enum):
    ADD = "add"
    SUBTRACT = "subtract"
    SET = "set"


class GameCategory(str, Enum):
    SLOT = "slot"
    TABLE = "table"
    LIVE = "live"
    VIRTUAL = "virtual"
    OTHER = "other"


class Volatility(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class NotificationType(str, Enum):
    INCIDENT = "incident"
    MAINTENANCE = "maintenance"
    STATUS_CHANGE = "status_change"
    ANNOUNCEMENT = "announcement"


class Admin(Base):
    """Back-office operator account."""
    __tablename__ = 'admins'

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    admin_name: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(100))
    last_name: Mapped[Optional[str]] = mapped_column(String(100))
    phone: Mapped[Optional[str]] = mapped_column(String(32))

    role: Mapped[str] = mapped_column(String(64), nullable=False)
    department: Mapped[Optional[str]] = mapped_column(String(32))
    permissions: Mapped[Dict[str, bool]] = mapped_column(JSONType, default=dict, nullable=False)
    is_owner: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # sha256 hex digest of the bearer token; the token itself is never stored
    api_token_hash: Mapped[Optional[str]] = mapped_column(String(64), unique=True)
    created_by: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey('admins.id'))

    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    last_activity: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class AdminRole(Base):
    """Custom role created at runtime on top of the built-in role set."""
    __tablename__ = 'admin_roles'

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    base_type: Mapped[str] = mapped_column(String(32), nullable=False)  # SUPERADMIN / ADMIN / WORKER
    department: Mapped[Optional[str]] = mapped_column(String(32))
    permissions: Mapped[Dict[str, bool]] = mapped_column(JSONType, default=dict, nullable=False)
    created_by: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey('admins.id'))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class AdminLog(Base):
    """Append-only audit trail of operator actions."""
    __tablename__ = 'admin_logs'

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    admin_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey('admins.id'))
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    details: Mapped[Dict[str, Any]] = mapped_column(JSONType, default=dict, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index('idx_admin_logs_admin_created', 'admin_id', 'created_at'),
    )


class Player(Base):
    """Player account administered from the back-office."""
    __tablename__ = 'players'

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    username: Mapped[str] = mapped_column(String(25), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    status: Mapped[PlayerStatus] = mapped_column(SQLEnum(PlayerStatus), nullable=False, default=PlayerStatus.ACTIVE)
    kyc_status: Mapped[KYCStatus] = mapped_column(SQLEnum(KYCStatus), nullable=False, default=KYCStatus.NOT_VERIFIED)

    first_name: Mapped[Optional[str]] = mapped_column(String(100))
    last_name: Mapped[Optional[str]] = mapped_column(String(100))
    phone: Mapped[Optional[str]] = mapped_column(String(32))
    country: Mapped[Optional[str]] = mapped_column(String(64))
    date_of_birth: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Named sub-balances, see BALANCE_TYPES
    balances: Mapped[Dict[str, float]] = mapped_column(JSONType, default=default_balances, nullable=False)
    currency: Mapped[Currency] = mapped_column(SQLEnum(Currency), nullable=False, default=Currency.USD)
    total_deposits: Mapped[float] = mapped_column(Numeric(18, 2, asdecimal=False), default=0, nullable=False)
    total_withdrawals: Mapped[float] = mapped_column(Numeric(18, 2, asdecimal=False), default=0, nullable=False)
    vip_level: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    vip_points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    notification_preferences: Mapped[Dict[str, Any]] = mapped_column(
        JSONType, default=default_notification_preferences, nullable=False
    )
    subscribed_services: Mapped[List[str]] = mapped_column(JSONType, default=list, nullable=False)
    notes: Mapped[List[Dict[str, Any]]] = mapped_column(JSONType, default=list, nullable=False)

    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    balance_history: Mapped[List["BalanceHistory"]] = relationship(
        "BalanceHistory", back_populates="player", cascade="all, delete-orphan"
    )


class BalanceHistory(Base):
    """One row per manual balance adjustment."""
    __tablename__ = 'balance_history'

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    player_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey('players.id'), nullable=False)
    balance_type: Mapped[str] = mapped_column(String(32), nullable=False)
    old_amount: Mapped[float] = mapped_column(Float, nullable=False)
    new_amount: Mapped[float] = mapped_column(Float, nullable=False)
    operation: Mapped[BalanceOperation] = mapped_column(SQLEnum(BalanceOperation), nullable=False)
    admin_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey('admins.id'))
    admin_note: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    player: Mapped["Player"] = relationship("Player", back_populates="balance_history")

    __table_args__ = (
        Index('idx_balance_history_player_created', 'player_id', 'created_at'),
    )


class Game(Base):
    """Game catalog entry."""
    __tablename__ = 'games'

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(String(500))
    category: Mapped[GameCategory] = mapped_column(SQLEnum(GameCategory), nullable=False)
    provider: Mapped[str] = mapped_column(String(100), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    thumbnail: Mapped[Optional[str]] = mapped_column(String(500))
    min_bet: Mapped[float] = mapped_column(Float, default=0.10, nullable=False)
    max_bet: Mapped[float] = mapped_column(Float, default=1000.0, nullable=False)
    rtp: Mapped[float] = mapped_column(Float, nullable=False)
    volatility: Mapped[Volatility] = mapped_column(SQLEnum(Volatility), nullable=False, default=Volatility.MEDIUM)
    features: Mapped[List[str]] = mapped_column(JSONType, default=list, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class Notification(Base):
    """In-app notification delivered to a player."""
    __tablename__ = 'notifications'

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    player_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey('players.id'), nullable=False)
    type: Mapped[NotificationType] = mapped_column(SQLEnum(NotificationType), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    related_entity: Mapped[Optional[str]] = mapped_column(String(64))
    read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    extra: Mapped[Dict[str, Any]] = mapped_column(JSONType, default=dict, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index('idx_notifications_player_created', 'player_id', 'created_at'),
    )

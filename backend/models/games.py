"""
Game Catalog Models

Pydantic V2 request/response models for the game catalog.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from models.models import GameCategory, Volatility


class GameCreate(BaseModel):
    """Request model for adding a game to the catalog."""
    name: str = Field(..., min_length=1, max_length=50, description="Unique game name")
    description: Optional[str] = Field(None, max_length=500)
    category: GameCategory = Field(..., description="Game category")
    provider: str = Field(..., min_length=1, max_length=100)
    is_active: bool = True
    thumbnail: Optional[str] = Field(None, max_length=500)
    min_bet: float = Field(0.10, gt=0, allow_inf_nan=False)
    max_bet: float = Field(1000.0, gt=0, allow_inf_nan=False)
    rtp: float = Field(..., ge=85, le=99.99, description="Return to player, percent")
    volatility: Volatility = Volatility.MEDIUM
    features: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def bet_range_is_ordered(self):
        if self.max_bet < self.min_bet:
            raise ValueError("max_bet must not be lower than min_bet")
        return self


class GameUpdate(BaseModel):
    """Request model for updating a game; omitted fields are left unchanged."""
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = Field(None, max_length=500)
    category: Optional[GameCategory] = None
    provider: Optional[str] = Field(None, min_length=1, max_length=100)
    is_active: Optional[bool] = None
    thumbnail: Optional[str] = Field(None, max_length=500)
    min_bet: Optional[float] = Field(None, gt=0, allow_inf_nan=False)
    max_bet: Optional[float] = Field(None, gt=0, allow_inf_nan=False)
    rtp: Optional[float] = Field(None, ge=85, le=99.99)
    volatility: Optional[Volatility] = None
    features: Optional[List[str]] = None


class GameResponse(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    category: GameCategory
    provider: str
    is_active: bool
    thumbnail: Optional[str] = None
    min_bet: float
    max_bet: float
    rtp: float
    volatility: Volatility
    features: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

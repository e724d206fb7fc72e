"""Pydantic models for card endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from sharkband.ledger.types import Card

DEFAULT_BACKGROUND_COLOR = "#4ECDC4"
_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"


class CreateCardRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    description: str | None = Field(None, max_length=1000)
    logo: str | None = Field(None, max_length=2048)
    background_color: str = Field(DEFAULT_BACKGROUND_COLOR, pattern=_COLOR_PATTERN)
    metadata: dict[str, Any] | None = None
    # Admins may issue a card for any business; ignored for business users.
    business_id: str | None = Field(None, max_length=64)


class UpdateCardRequest(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=128)
    description: str | None = Field(None, max_length=1000)
    logo: str | None = Field(None, max_length=2048)
    background_color: str | None = Field(None, pattern=_COLOR_PATTERN)
    is_active: bool | None = None
    metadata: dict[str, Any] | None = None


class CardResponse(BaseModel):
    id: str
    business_id: str
    name: str
    description: str | None = None
    logo: str | None = None
    background_color: str | None = None
    is_active: bool
    metadata: dict[str, Any] | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_card(cls, card: Card) -> CardResponse:
        return cls(
            id=card.id,
            business_id=card.business_id,
            name=card.name,
            description=card.description,
            logo=card.logo,
            background_color=card.background_color,
            is_active=card.is_active,
            metadata=card.metadata,
            created_at=card.created_at,
            updated_at=card.updated_at,
        )

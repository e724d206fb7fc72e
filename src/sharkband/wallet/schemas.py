"""Pydantic models for wallet endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from sharkband.cards.schemas import CardResponse


class WalletEntryResponse(BaseModel):
    user_id: str
    card_id: str
    added_at: datetime
    last_check_in: datetime | None = None
    card: CardResponse | None = None


class WalletRemovedResponse(BaseModel):
    message: str
    card_id: str

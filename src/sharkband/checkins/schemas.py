"""Pydantic models for check-in endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from sharkband.ledger.orchestrator import MAX_LOCATION_LENGTH
from sharkband.ledger.types import CheckInEvent


class CheckInRequest(BaseModel):
    card_id: str = Field(..., min_length=1, max_length=64)
    location: str | None = Field(None, max_length=MAX_LOCATION_LENGTH)
    metadata: dict[str, Any] | None = None


class CheckInEventResponse(BaseModel):
    id: str
    user_id: str
    card_id: str
    business_id: str
    points_earned: int
    timestamp: datetime
    sequence: int
    location: str | None = None
    metadata: dict[str, Any] | None = None

    @classmethod
    def fields_of(cls, event: CheckInEvent) -> dict[str, Any]:
        return {
            "id": event.id,
            "user_id": event.user_id,
            "card_id": event.card_id,
            "business_id": event.business_id,
            "points_earned": event.points_earned,
            "timestamp": event.timestamp,
            "sequence": event.sequence,
            "location": event.location,
            "metadata": event.metadata,
        }

    @classmethod
    def from_event(cls, event: CheckInEvent) -> CheckInEventResponse:
        return cls(**cls.fields_of(event))


class CheckInResponse(BaseModel):
    check_in: CheckInEventResponse
    total_points: int
    message: str


class HistoryEntry(CheckInEventResponse):
    card_name: str | None = None
    card_logo: str | None = None


class HistoryResponse(BaseModel):
    items: list[HistoryEntry]
    total: int
    limit: int
    offset: int
    has_more: bool


class CardCheckInEntry(CheckInEventResponse):
    user_name: str | None = None
    user_email: str | None = None


class CheckInStatsResponse(BaseModel):
    total_check_ins: int
    last_30_days: int
    today: int
    unique_users: int

"""Domain records for the check-in ledger.

Events are frozen; balances and wallet entries are snapshots handed out by
the store, so mutating them never touches stored state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"
    BUSINESS = "business"


@dataclass(frozen=True)
class User:
    id: str
    email: str
    name: str
    role: Role
    created_at: datetime


@dataclass(frozen=True)
class Business:
    id: str
    name: str
    email: str
    owner_id: str
    created_at: datetime
    logo: str | None = None


@dataclass(frozen=True)
class Card:
    id: str
    business_id: str
    name: str
    is_active: bool
    created_at: datetime
    updated_at: datetime
    description: str | None = None
    logo: str | None = None
    background_color: str | None = None
    metadata: dict[str, Any] | None = None


@dataclass(frozen=True)
class CheckInEvent:
    """Immutable record of a single check-in.

    ``business_id`` is copied from the card when the event is created and is
    never re-derived. ``sequence`` is 0 until the event log assigns it.
    """

    id: str
    user_id: str
    card_id: str
    business_id: str
    points_earned: int
    timestamp: datetime
    sequence: int = 0
    location: str | None = None
    metadata: dict[str, Any] | None = None

    @property
    def order_key(self) -> tuple[datetime, int]:
        return (self.timestamp, self.sequence)


@dataclass(frozen=True)
class UserBalance:
    user_id: str
    points: int = 0


@dataclass(frozen=True)
class WalletEntry:
    user_id: str
    card_id: str
    added_at: datetime
    last_check_in: datetime | None = None


@dataclass(frozen=True)
class CheckInContext:
    """Inputs available to a points policy. Everything here is fixed before append."""

    user_id: str
    card_id: str
    business_id: str
    timestamp: datetime
    location: str | None = None
    metadata: dict[str, Any] | None = None


@dataclass(frozen=True)
class CheckInResult:
    event: CheckInEvent
    total_points: int


@dataclass(frozen=True)
class HistoryItem:
    event: CheckInEvent
    card_name: str | None = None
    card_logo: str | None = None


@dataclass(frozen=True)
class HistoryPage:
    items: list[HistoryItem] = field(default_factory=list)
    total: int = 0
    limit: int = 0
    offset: int = 0

    @property
    def has_more(self) -> bool:
        return self.offset + self.limit < self.total

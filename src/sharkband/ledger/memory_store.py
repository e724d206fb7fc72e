"""In-memory ledger store.

Used by tests and by single-process demo deployments. All mutations happen
without awaiting, so on one event loop every operation is atomic with respect
to other tasks.
"""

from __future__ import annotations

import bisect
import dataclasses
import itertools
from collections import defaultdict
from collections.abc import AsyncIterator, Callable, Iterable
from datetime import datetime

from sharkband.ledger.errors import AlreadyInWallet, NotFoundError, PersistenceFailure
from sharkband.ledger.store import LedgerStore
from sharkband.ledger.stream import EventStream
from sharkband.ledger.types import (
    Business,
    Card,
    CheckInEvent,
    User,
    UserBalance,
    WalletEntry,
)


def _order_key(event: CheckInEvent) -> tuple[datetime, int]:
    return event.order_key


class MemoryLedgerStore(LedgerStore):
    """Dictionary-backed store with sorted per-user and per-card indexes."""

    def __init__(self) -> None:
        self._open = False
        self._reset()

    def _reset(self) -> None:
        self._users: dict[str, User] = {}
        self._businesses: dict[str, Business] = {}
        self._cards: dict[str, Card] = {}
        self._wallet: dict[tuple[str, str], WalletEntry] = {}

        self._sequence = itertools.count(1)
        self._events_by_id: dict[str, CheckInEvent] = {}
        self._events: list[CheckInEvent] = []
        self._events_by_user: defaultdict[str, list[CheckInEvent]] = defaultdict(list)
        self._events_by_card: defaultdict[str, list[CheckInEvent]] = defaultdict(list)

        self._balances: dict[str, int] = {}
        self._applied: set[str] = set()

    # --- Lifecycle ---

    async def open(self) -> None:
        self._open = True

    async def close(self) -> None:
        self._open = False

    async def ping(self) -> None:
        self._ensure_open()

    def _ensure_open(self) -> None:
        if not self._open:
            raise PersistenceFailure("Ledger store is not open")

    # --- Directory ---

    async def add_user(self, user: User) -> User:
        self._ensure_open()
        self._users[user.id] = user
        return user

    async def get_user(self, user_id: str) -> User | None:
        self._ensure_open()
        return self._users.get(user_id)

    async def get_user_by_email(self, email: str) -> User | None:
        self._ensure_open()
        needle = email.lower()
        return next((u for u in self._users.values() if u.email.lower() == needle), None)

    async def list_users(self) -> list[User]:
        self._ensure_open()
        return list(self._users.values())

    async def add_business(self, business: Business) -> Business:
        self._ensure_open()
        self._businesses[business.id] = business
        return business

    async def get_business(self, business_id: str) -> Business | None:
        self._ensure_open()
        return self._businesses.get(business_id)

    async def add_card(self, card: Card) -> Card:
        self._ensure_open()
        self._cards[card.id] = card
        return card

    async def update_card(self, card: Card) -> Card:
        self._ensure_open()
        if card.id not in self._cards:
            raise NotFoundError(f"Card {card.id} not found")
        self._cards[card.id] = card
        return card

    async def get_card(self, card_id: str) -> Card | None:
        self._ensure_open()
        return self._cards.get(card_id)

    async def list_cards(self, active_only: bool = False) -> list[Card]:
        self._ensure_open()
        cards = sorted(self._cards.values(), key=lambda c: (c.created_at, c.id))
        if active_only:
            return [c for c in cards if c.is_active]
        return cards

    # --- Wallet ---

    async def add_wallet_entry(self, entry: WalletEntry) -> WalletEntry:
        self._ensure_open()
        key = (entry.user_id, entry.card_id)
        if key in self._wallet:
            raise AlreadyInWallet(entry.user_id, entry.card_id)
        self._wallet[key] = entry
        return entry

    async def get_wallet_entry(self, user_id: str, card_id: str) -> WalletEntry | None:
        self._ensure_open()
        return self._wallet.get((user_id, card_id))

    async def list_wallet(self, user_id: str) -> list[WalletEntry]:
        self._ensure_open()
        entries = [e for (uid, _), e in self._wallet.items() if uid == user_id]
        return sorted(entries, key=lambda e: (e.added_at, e.card_id))

    async def remove_wallet_entry(self, user_id: str, card_id: str) -> bool:
        self._ensure_open()
        return self._wallet.pop((user_id, card_id), None) is not None

    # --- Event log ---

    async def append(self, event: CheckInEvent) -> CheckInEvent:
        self._ensure_open()
        stored = dataclasses.replace(event, sequence=next(self._sequence))
        self._events_by_id[stored.id] = stored
        bisect.insort(self._events, stored, key=_order_key)
        bisect.insort(self._events_by_user[stored.user_id], stored, key=_order_key)
        bisect.insort(self._events_by_card[stored.card_id], stored, key=_order_key)
        return stored

    async def get_event(self, event_id: str) -> CheckInEvent | None:
        self._ensure_open()
        return self._events_by_id.get(event_id)

    def _stream(self, select: Callable[[], Iterable[CheckInEvent]]) -> EventStream:
        async def produce() -> AsyncIterator[CheckInEvent]:
            self._ensure_open()
            # Snapshot at iteration start; later appends are not part of this pass.
            snapshot: Iterable[CheckInEvent] = tuple(select())
            for event in snapshot:
                yield event

        return EventStream(produce)

    def list_by_user(self, user_id: str) -> EventStream:
        return self._stream(lambda: self._events_by_user.get(user_id, ()))

    def list_by_card(self, card_id: str) -> EventStream:
        return self._stream(lambda: self._events_by_card.get(card_id, ()))

    def list_in_range(self, start: datetime, end: datetime) -> EventStream:
        def select() -> list[CheckInEvent]:
            lo = bisect.bisect_left(self._events, start, key=lambda e: e.timestamp)
            hi = bisect.bisect_right(self._events, end, key=lambda e: e.timestamp)
            return self._events[lo:hi]

        return self._stream(select)

    def list_all(self) -> EventStream:
        return self._stream(lambda: self._events)

    async def page_by_user(self, user_id: str, limit: int, offset: int) -> list[CheckInEvent]:
        self._ensure_open()
        newest_first = list(reversed(self._events_by_user.get(user_id, ())))
        return newest_first[offset : offset + limit]

    async def count_by_user(self, user_id: str) -> int:
        self._ensure_open()
        return len(self._events_by_user.get(user_id, ()))

    async def count_events(self) -> int:
        self._ensure_open()
        return len(self._events)

    async def last_event_timestamp(self, user_id: str, card_id: str) -> datetime | None:
        self._ensure_open()
        matching = [e.timestamp for e in self._events_by_user.get(user_id, ()) if e.card_id == card_id]
        return max(matching, default=None)

    # --- Balance ledger ---

    async def apply(self, event: CheckInEvent) -> UserBalance:
        self._ensure_open()
        if event.id not in self._events_by_id:
            raise NotFoundError(f"Check-in {event.id} has not been appended")

        if event.id not in self._applied:
            self._applied.add(event.id)
            self._balances[event.user_id] = self._balances.get(event.user_id, 0) + event.points_earned

            key = (event.user_id, event.card_id)
            entry = self._wallet.get(key)
            if entry is not None and (entry.last_check_in is None or entry.last_check_in < event.timestamp):
                self._wallet[key] = dataclasses.replace(entry, last_check_in=event.timestamp)

        return UserBalance(user_id=event.user_id, points=self._balances.get(event.user_id, 0))

    async def get_balance(self, user_id: str) -> UserBalance:
        self._ensure_open()
        return UserBalance(user_id=user_id, points=self._balances.get(user_id, 0))

    async def list_balances(self) -> list[UserBalance]:
        self._ensure_open()
        return [UserBalance(user_id=uid, points=pts) for uid, pts in self._balances.items()]

    async def list_unapplied(self, user_id: str | None = None) -> list[CheckInEvent]:
        self._ensure_open()
        events = self._events if user_id is None else self._events_by_user.get(user_id, ())
        return [e for e in events if e.id not in self._applied]

"""Storage contract for the ledger.

A store owns four logical collections: the directory (users, businesses,
cards), wallet memberships, the append-only check-in event log and the
derived balance ledger. Implementations must be opened before use and closed
when done.

Event log rules:
  * ``append`` assigns a strictly increasing ``sequence`` and makes the event
    visible atomically. It never rejects an event for its content.
  * listings are ordered by ``(timestamp, sequence)`` ascending.

Balance ledger rules:
  * ``apply`` is idempotent per event id. Applying an event adds its points to
    the user's balance and raises the wallet entry's ``last_check_in`` to the
    event timestamp (never lowers it).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from types import TracebackType

from sharkband.ledger.stream import EventStream
from sharkband.ledger.types import (
    Business,
    Card,
    CheckInEvent,
    User,
    UserBalance,
    WalletEntry,
)


class LedgerStore(ABC):
    """Abstract async storage backend."""

    async def __aenter__(self) -> LedgerStore:
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    # --- Lifecycle ---

    @abstractmethod
    async def open(self) -> None: ...

    @abstractmethod
    async def close(self) -> None: ...

    @abstractmethod
    async def ping(self) -> None:
        """Raise PersistenceFailure if the backend is unreachable."""

    # --- Directory ---

    @abstractmethod
    async def add_user(self, user: User) -> User: ...

    @abstractmethod
    async def get_user(self, user_id: str) -> User | None: ...

    @abstractmethod
    async def get_user_by_email(self, email: str) -> User | None: ...

    @abstractmethod
    async def list_users(self) -> list[User]: ...

    @abstractmethod
    async def add_business(self, business: Business) -> Business: ...

    @abstractmethod
    async def get_business(self, business_id: str) -> Business | None: ...

    @abstractmethod
    async def add_card(self, card: Card) -> Card: ...

    @abstractmethod
    async def update_card(self, card: Card) -> Card: ...

    @abstractmethod
    async def get_card(self, card_id: str) -> Card | None: ...

    @abstractmethod
    async def list_cards(self, active_only: bool = False) -> list[Card]: ...

    # --- Wallet ---

    @abstractmethod
    async def add_wallet_entry(self, entry: WalletEntry) -> WalletEntry:
        """Insert a membership. Raises AlreadyInWallet if the pair exists."""

    @abstractmethod
    async def get_wallet_entry(self, user_id: str, card_id: str) -> WalletEntry | None: ...

    @abstractmethod
    async def list_wallet(self, user_id: str) -> list[WalletEntry]: ...

    @abstractmethod
    async def remove_wallet_entry(self, user_id: str, card_id: str) -> bool: ...

    # --- Event log ---

    @abstractmethod
    async def append(self, event: CheckInEvent) -> CheckInEvent:
        """Persist an event and return it with its assigned sequence."""

    @abstractmethod
    async def get_event(self, event_id: str) -> CheckInEvent | None: ...

    @abstractmethod
    def list_by_user(self, user_id: str) -> EventStream: ...

    @abstractmethod
    def list_by_card(self, card_id: str) -> EventStream: ...

    @abstractmethod
    def list_in_range(self, start: datetime, end: datetime) -> EventStream:
        """Events with ``start <= timestamp <= end``."""

    @abstractmethod
    def list_all(self) -> EventStream: ...

    @abstractmethod
    async def page_by_user(self, user_id: str, limit: int, offset: int) -> list[CheckInEvent]:
        """Newest-first page of a user's events."""

    @abstractmethod
    async def count_by_user(self, user_id: str) -> int: ...

    @abstractmethod
    async def count_events(self) -> int: ...

    @abstractmethod
    async def last_event_timestamp(self, user_id: str, card_id: str) -> datetime | None: ...

    # --- Balance ledger ---

    @abstractmethod
    async def apply(self, event: CheckInEvent) -> UserBalance:
        """Apply an appended event to the balance ledger, at most once."""

    @abstractmethod
    async def get_balance(self, user_id: str) -> UserBalance: ...

    @abstractmethod
    async def list_balances(self) -> list[UserBalance]: ...

    @abstractmethod
    async def list_unapplied(self, user_id: str | None = None) -> list[CheckInEvent]:
        """Appended events whose balance effect has not been applied yet, optionally for one user."""

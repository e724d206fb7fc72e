"""PostgreSQL ledger store on async SQLAlchemy.

Append and apply are separate transactions. Apply inserts the event id into
``balance_applications`` and bumps the balance in the same transaction, so a
retried apply is a no-op and concurrent writers from several processes
cannot lose increments.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import structlog
from sqlalchemy import Select, func, or_, select, text, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from sharkband.database import build_engine, build_session_factory
from sharkband.db.base import Base
from sharkband.db.models import (
    BalanceApplication,
    BusinessAccount,
    CheckInLog,
    LoyaltyCard,
    PointBalance,
    UserAccount,
    WalletMembership,
)
from sharkband.ledger.errors import AlreadyInWallet, DuplicateEmail, NotFoundError, PersistenceFailure
from sharkband.ledger.store import LedgerStore
from sharkband.ledger.stream import EventStream
from sharkband.ledger.types import (
    Business,
    Card,
    CheckInEvent,
    Role,
    User,
    UserBalance,
    WalletEntry,
)

logger = structlog.get_logger()

STREAM_BATCH_SIZE = 500


# ---------------------------------------------------------------------------
# Row <-> record conversion
# ---------------------------------------------------------------------------


def _user(row: UserAccount) -> User:
    return User(id=row.id, email=row.email, name=row.name, role=Role(row.role), created_at=row.created_at)


def _business(row: BusinessAccount) -> Business:
    return Business(
        id=row.id,
        name=row.name,
        email=row.email,
        owner_id=row.owner_id,
        logo=row.logo,
        created_at=row.created_at,
    )


def _card(row: LoyaltyCard) -> Card:
    return Card(
        id=row.id,
        business_id=row.business_id,
        name=row.name,
        description=row.description,
        logo=row.logo,
        background_color=row.background_color,
        is_active=row.is_active,
        metadata=row.card_metadata,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _wallet_entry(row: WalletMembership) -> WalletEntry:
    return WalletEntry(
        user_id=row.user_id,
        card_id=row.card_id,
        added_at=row.added_at,
        last_check_in=row.last_check_in,
    )


def _event(row: CheckInLog) -> CheckInEvent:
    return CheckInEvent(
        id=row.id,
        user_id=row.user_id,
        card_id=row.card_id,
        business_id=row.business_id,
        points_earned=row.points_earned,
        timestamp=row.timestamp,
        sequence=row.sequence,
        location=row.location,
        metadata=row.event_metadata,
    )


def _ordered(stmt: Select) -> Select:  # type: ignore[type-arg]
    return stmt.order_by(CheckInLog.timestamp.asc(), CheckInLog.sequence.asc())


class SqlLedgerStore(LedgerStore):
    """Ledger store backed by PostgreSQL through SQLAlchemy's asyncio extension.

    ``sequence`` comes from an identity column, so it follows insert order,
    while timestamps are taken by the caller before the insert. Appends for
    different users can therefore commit out of timestamp order. Every
    listing orders by ``(timestamp, sequence)`` and never by sequence alone.
    """

    def __init__(self, url: str, create_schema: bool = False) -> None:
        self.url = url
        self.create_schema = create_schema
        self._engine: AsyncEngine | None = None
        self._sessions: async_sessionmaker[AsyncSession] | None = None

    # --- Lifecycle ---

    async def open(self) -> None:
        if self._engine is not None:
            return
        self._engine = build_engine(self.url)
        self._sessions = build_session_factory(self._engine)
        if self.create_schema:
            try:
                async with self._engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)
            except SQLAlchemyError as exc:
                raise PersistenceFailure(f"Could not create schema: {exc.__class__.__name__}") from exc
        logger.info("ledger_store_opened", backend="sql")

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._sessions = None
            logger.info("ledger_store_closed", backend="sql")

    async def ping(self) -> None:
        async with self._session() as session:
            await session.execute(text("SELECT 1"))

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        if self._sessions is None:
            raise PersistenceFailure("Ledger store is not open")
        try:
            async with self._sessions() as session:
                yield session
        except (SQLAlchemyError, OSError) as exc:
            raise PersistenceFailure(f"Database error: {exc.__class__.__name__}: {exc}") from exc

    # --- Directory ---

    async def add_user(self, user: User) -> User:
        try:
            async with self._session() as session, session.begin():
                session.add(UserAccount(
                    id=user.id,
                    email=user.email,
                    name=user.name,
                    role=user.role.value,
                    created_at=user.created_at,
                ))
        except PersistenceFailure as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise DuplicateEmail(f"Email {user.email} is already registered") from exc
            raise
        return user

    async def get_user(self, user_id: str) -> User | None:
        async with self._session() as session:
            row = await session.get(UserAccount, user_id)
            return _user(row) if row else None

    async def get_user_by_email(self, email: str) -> User | None:
        async with self._session() as session:
            result = await session.execute(
                select(UserAccount).where(func.lower(UserAccount.email) == email.lower())
            )
            row = result.scalar_one_or_none()
            return _user(row) if row else None

    async def list_users(self) -> list[User]:
        async with self._session() as session:
            result = await session.execute(select(UserAccount).order_by(UserAccount.created_at, UserAccount.id))
            return [_user(row) for row in result.scalars()]

    async def add_business(self, business: Business) -> Business:
        async with self._session() as session, session.begin():
            session.add(BusinessAccount(
                id=business.id,
                name=business.name,
                email=business.email,
                owner_id=business.owner_id,
                logo=business.logo,
                created_at=business.created_at,
            ))
        return business

    async def get_business(self, business_id: str) -> Business | None:
        async with self._session() as session:
            row = await session.get(BusinessAccount, business_id)
            return _business(row) if row else None

    async def add_card(self, card: Card) -> Card:
        async with self._session() as session, session.begin():
            session.add(LoyaltyCard(
                id=card.id,
                business_id=card.business_id,
                name=card.name,
                description=card.description,
                logo=card.logo,
                background_color=card.background_color,
                is_active=card.is_active,
                card_metadata=card.metadata,
                created_at=card.created_at,
                updated_at=card.updated_at,
            ))
        return card

    async def update_card(self, card: Card) -> Card:
        async with self._session() as session, session.begin():
            row = await session.get(LoyaltyCard, card.id)
            if row is None:
                raise NotFoundError(f"Card {card.id} not found")
            row.business_id = card.business_id
            row.name = card.name
            row.description = card.description
            row.logo = card.logo
            row.background_color = card.background_color
            row.is_active = card.is_active
            row.card_metadata = card.metadata
            row.updated_at = card.updated_at
        return card

    async def get_card(self, card_id: str) -> Card | None:
        async with self._session() as session:
            row = await session.get(LoyaltyCard, card_id)
            return _card(row) if row else None

    async def list_cards(self, active_only: bool = False) -> list[Card]:
        stmt = select(LoyaltyCard).order_by(LoyaltyCard.created_at, LoyaltyCard.id)
        if active_only:
            stmt = stmt.where(LoyaltyCard.is_active.is_(True))
        async with self._session() as session:
            result = await session.execute(stmt)
            return [_card(row) for row in result.scalars()]

    # --- Wallet ---

    async def add_wallet_entry(self, entry: WalletEntry) -> WalletEntry:
        stmt = (
            pg_insert(WalletMembership)
            .values(
                user_id=entry.user_id,
                card_id=entry.card_id,
                added_at=entry.added_at,
                last_check_in=entry.last_check_in,
            )
            .on_conflict_do_nothing(index_elements=["user_id", "card_id"])
            .returning(WalletMembership.user_id)
        )
        async with self._session() as session, session.begin():
            result = await session.execute(stmt)
            if result.scalar_one_or_none() is None:
                raise AlreadyInWallet(entry.user_id, entry.card_id)
        return entry

    async def get_wallet_entry(self, user_id: str, card_id: str) -> WalletEntry | None:
        async with self._session() as session:
            row = await session.get(WalletMembership, (user_id, card_id))
            return _wallet_entry(row) if row else None

    async def list_wallet(self, user_id: str) -> list[WalletEntry]:
        async with self._session() as session:
            result = await session.execute(
                select(WalletMembership)
                .where(WalletMembership.user_id == user_id)
                .order_by(WalletMembership.added_at, WalletMembership.card_id)
            )
            return [_wallet_entry(row) for row in result.scalars()]

    async def remove_wallet_entry(self, user_id: str, card_id: str) -> bool:
        async with self._session() as session, session.begin():
            row = await session.get(WalletMembership, (user_id, card_id))
            if row is None:
                return False
            await session.delete(row)
        return True

    # --- Event log ---

    async def append(self, event: CheckInEvent) -> CheckInEvent:
        """Insert the event. The returned sequence reflects insert order, not timestamp order."""
        stmt = (
            pg_insert(CheckInLog)
            .values(
                id=event.id,
                user_id=event.user_id,
                card_id=event.card_id,
                business_id=event.business_id,
                points_earned=event.points_earned,
                timestamp=event.timestamp,
                location=event.location,
                event_metadata=event.metadata,
            )
            .returning(CheckInLog)
        )
        async with self._session() as session, session.begin():
            result = await session.execute(stmt)
            return _event(result.scalar_one())

    async def get_event(self, event_id: str) -> CheckInEvent | None:
        async with self._session() as session:
            row = await session.get(CheckInLog, event_id)
            return _event(row) if row else None

    def _stream(self, build: Callable[[], Select]) -> EventStream:  # type: ignore[type-arg]
        async def produce() -> AsyncIterator[CheckInEvent]:
            async with self._session() as session:
                result = await session.stream_scalars(
                    _ordered(build()).execution_options(yield_per=STREAM_BATCH_SIZE)
                )
                async for row in result:
                    yield _event(row)

        return EventStream(produce)

    def list_by_user(self, user_id: str) -> EventStream:
        return self._stream(lambda: select(CheckInLog).where(CheckInLog.user_id == user_id))

    def list_by_card(self, card_id: str) -> EventStream:
        return self._stream(lambda: select(CheckInLog).where(CheckInLog.card_id == card_id))

    def list_in_range(self, start: datetime, end: datetime) -> EventStream:
        return self._stream(
            lambda: select(CheckInLog).where(CheckInLog.timestamp >= start, CheckInLog.timestamp <= end)
        )

    def list_all(self) -> EventStream:
        return self._stream(lambda: select(CheckInLog))

    async def page_by_user(self, user_id: str, limit: int, offset: int) -> list[CheckInEvent]:
        async with self._session() as session:
            result = await session.execute(
                select(CheckInLog)
                .where(CheckInLog.user_id == user_id)
                .order_by(CheckInLog.timestamp.desc(), CheckInLog.sequence.desc())
                .limit(limit)
                .offset(offset)
            )
            return [_event(row) for row in result.scalars()]

    async def count_by_user(self, user_id: str) -> int:
        async with self._session() as session:
            result = await session.execute(
                select(func.count()).select_from(CheckInLog).where(CheckInLog.user_id == user_id)
            )
            return int(result.scalar_one())

    async def count_events(self) -> int:
        async with self._session() as session:
            result = await session.execute(select(func.count()).select_from(CheckInLog))
            return int(result.scalar_one())

    async def last_event_timestamp(self, user_id: str, card_id: str) -> datetime | None:
        async with self._session() as session:
            result = await session.execute(
                select(func.max(CheckInLog.timestamp)).where(
                    CheckInLog.user_id == user_id,
                    CheckInLog.card_id == card_id,
                )
            )
            return result.scalar_one_or_none()

    # --- Balance ledger ---

    async def apply(self, event: CheckInEvent) -> UserBalance:
        now = datetime.now(timezone.utc)
        async with self._session() as session, session.begin():
            claimed = await session.execute(
                pg_insert(BalanceApplication)
                .values(event_id=event.id, applied_at=now)
                .on_conflict_do_nothing(index_elements=["event_id"])
                .returning(BalanceApplication.event_id)
            )
            if claimed.scalar_one_or_none() is not None:
                upsert = pg_insert(PointBalance).values(
                    user_id=event.user_id,
                    points=event.points_earned,
                    updated_at=now,
                )
                await session.execute(
                    upsert.on_conflict_do_update(
                        index_elements=["user_id"],
                        set_={
                            "points": PointBalance.points + upsert.excluded.points,
                            "updated_at": now,
                        },
                    )
                )
                await session.execute(
                    update(WalletMembership)
                    .where(
                        WalletMembership.user_id == event.user_id,
                        WalletMembership.card_id == event.card_id,
                        or_(
                            WalletMembership.last_check_in.is_(None),
                            WalletMembership.last_check_in < event.timestamp,
                        ),
                    )
                    .values(last_check_in=event.timestamp)
                )

            result = await session.execute(
                select(PointBalance.points).where(PointBalance.user_id == event.user_id)
            )
            points = result.scalar_one_or_none() or 0
        return UserBalance(user_id=event.user_id, points=int(points))

    async def get_balance(self, user_id: str) -> UserBalance:
        async with self._session() as session:
            result = await session.execute(
                select(PointBalance.points).where(PointBalance.user_id == user_id)
            )
            return UserBalance(user_id=user_id, points=int(result.scalar_one_or_none() or 0))

    async def list_balances(self) -> list[UserBalance]:
        async with self._session() as session:
            result = await session.execute(select(PointBalance))
            return [UserBalance(user_id=row.user_id, points=int(row.points)) for row in result.scalars()]

    async def list_unapplied(self, user_id: str | None = None) -> list[CheckInEvent]:
        stmt = (
            select(CheckInLog)
            .outerjoin(BalanceApplication, BalanceApplication.event_id == CheckInLog.id)
            .where(BalanceApplication.event_id.is_(None))
        )
        if user_id is not None:
            stmt = stmt.where(CheckInLog.user_id == user_id)
        async with self._session() as session:
            result = await session.execute(_ordered(stmt))
            return [_event(row) for row in result.scalars()]

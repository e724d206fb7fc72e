"""PostgreSQL ledger store. Needs SHARKBAND_TEST_DATABASE_URL pointing at a scratch database."""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy import text

from sharkband.database import build_engine
from sharkband.ledger.errors import AlreadyInWallet, DuplicateEmail
from sharkband.ledger.orchestrator import CheckInOrchestrator
from sharkband.ledger.sql_store import SqlLedgerStore
from sharkband.ledger.types import Business, Card, CheckInEvent, Role, User, WalletEntry

DATABASE_URL = os.environ.get("SHARKBAND_TEST_DATABASE_URL", "")

pytestmark = pytest.mark.skipif(not DATABASE_URL, reason="SHARKBAND_TEST_DATABASE_URL not set")

T0 = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)

_TABLES = (
    "balance_applications, user_balances, checkin_events, wallet_entries, cards, businesses, users"
)


@pytest_asyncio.fixture
async def sql_store() -> AsyncGenerator[SqlLedgerStore, None]:
    store = SqlLedgerStore(DATABASE_URL, create_schema=True)
    await store.open()

    engine = build_engine(DATABASE_URL, pool_size=1, max_overflow=0)
    async with engine.begin() as conn:
        await conn.execute(text(f"TRUNCATE {_TABLES} CASCADE"))
    await engine.dispose()

    await store.add_user(User(id="u1", email="u1@example.com", name="One", role=Role.USER, created_at=T0))
    await store.add_user(User(id="owner", email="owner@example.com", name="Owner", role=Role.BUSINESS, created_at=T0))
    await store.add_business(Business(id="biz-1", name="Biz", email="biz@example.com", owner_id="owner", created_at=T0))
    await store.add_card(Card(
        id="card-a", business_id="biz-1", name="A", is_active=True, created_at=T0, updated_at=T0,
    ))
    await store.add_wallet_entry(WalletEntry(user_id="u1", card_id="card-a", added_at=T0))

    yield store
    await store.close()


def _event(event_id: str, minutes: int = 0, points: int = 10) -> CheckInEvent:
    return CheckInEvent(
        id=event_id,
        user_id="u1",
        card_id="card-a",
        business_id="biz-1",
        points_earned=points,
        timestamp=T0 + timedelta(minutes=minutes),
    )


class TestSqlEventLog:
    @pytest.mark.asyncio
    async def test_append_assigns_increasing_sequence(self, sql_store: SqlLedgerStore) -> None:
        first = await sql_store.append(_event("e1"))
        second = await sql_store.append(_event("e2"))
        assert second.sequence > first.sequence

    @pytest.mark.asyncio
    async def test_streams_ordered_by_timestamp_then_sequence(self, sql_store: SqlLedgerStore) -> None:
        late = await sql_store.append(_event("late", minutes=5))
        tie = await sql_store.append(_event("tie-1"))
        await sql_store.append(_event("tie-2"))

        events = await sql_store.list_by_user("u1").to_list()
        assert [e.id for e in events] == ["tie-1", "tie-2", "late"]
        assert late.sequence < tie.sequence
        assert [e.id for e in await sql_store.list_in_range(T0, T0).to_list()] == ["tie-1", "tie-2"]

    @pytest.mark.asyncio
    async def test_metadata_round_trips(self, sql_store: SqlLedgerStore) -> None:
        event = replace(_event("e1"), location="Downtown", metadata={"k": "v"})
        await sql_store.append(event)
        stored = await sql_store.get_event("e1")
        assert stored is not None
        assert stored.location == "Downtown"
        assert stored.metadata == {"k": "v"}


class TestSqlBalances:
    @pytest.mark.asyncio
    async def test_apply_is_idempotent(self, sql_store: SqlLedgerStore) -> None:
        event = await sql_store.append(_event("e1"))
        assert (await sql_store.apply(event)).points == 10
        assert (await sql_store.apply(event)).points == 10
        assert (await sql_store.get_balance("u1")).points == 10

    @pytest.mark.asyncio
    async def test_apply_moves_last_check_in_forward_only(self, sql_store: SqlLedgerStore) -> None:
        late = await sql_store.append(_event("late", minutes=10))
        early = await sql_store.append(_event("early", minutes=1))
        await sql_store.apply(late)
        await sql_store.apply(early)

        entry = await sql_store.get_wallet_entry("u1", "card-a")
        assert entry is not None
        assert entry.last_check_in == T0 + timedelta(minutes=10)

    @pytest.mark.asyncio
    async def test_unapplied_events_reconciled(self, sql_store: SqlLedgerStore) -> None:
        await sql_store.append(_event("e1"))
        await sql_store.append(_event("e2", minutes=1))
        assert [e.id for e in await sql_store.list_unapplied()] == ["e1", "e2"]
        assert await sql_store.list_unapplied("someone-else") == []

        orchestrator = CheckInOrchestrator(sql_store, apply_backoff_seconds=0)
        assert await orchestrator.reconcile() == 2
        assert await sql_store.list_unapplied() == []
        assert (await sql_store.get_balance("u1")).points == await orchestrator.replay_balance("u1")

    @pytest.mark.asyncio
    async def test_record_check_in_end_to_end(self, sql_store: SqlLedgerStore) -> None:
        orchestrator = CheckInOrchestrator(sql_store, apply_backoff_seconds=0)
        for _ in range(3):
            result = await orchestrator.record_check_in("u1", "card-a")
        assert result.total_points == 30
        assert await orchestrator.replay_balance("u1") == 30


class TestSqlDirectory:
    @pytest.mark.asyncio
    async def test_duplicate_email(self, sql_store: SqlLedgerStore) -> None:
        with pytest.raises(DuplicateEmail):
            await sql_store.add_user(User(id="u2", email="u1@example.com", name="Two", role=Role.USER, created_at=T0))

    @pytest.mark.asyncio
    async def test_duplicate_wallet_entry(self, sql_store: SqlLedgerStore) -> None:
        with pytest.raises(AlreadyInWallet):
            await sql_store.add_wallet_entry(WalletEntry(user_id="u1", card_id="card-a", added_at=T0))

    @pytest.mark.asyncio
    async def test_remove_wallet_entry(self, sql_store: SqlLedgerStore) -> None:
        assert await sql_store.remove_wallet_entry("u1", "card-a") is True
        assert await sql_store.remove_wallet_entry("u1", "card-a") is False

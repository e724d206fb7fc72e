"""In-memory event log and balance ledger: ordering, streams, idempotent apply."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from sharkband.ledger.errors import AlreadyInWallet, NotFoundError, PersistenceFailure
from sharkband.ledger.memory_store import MemoryLedgerStore
from sharkband.ledger.types import CheckInEvent, WalletEntry

T0 = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def _event(event_id: str, user_id: str = "user-1", card_id: str = "card-1", at: datetime = T0, points: int = 10):
    return CheckInEvent(
        id=event_id,
        user_id=user_id,
        card_id=card_id,
        business_id="biz-1",
        points_earned=points,
        timestamp=at,
    )


class TestAppend:
    @pytest.mark.asyncio
    async def test_sequence_strictly_increasing(self, store):
        stored = [await store.append(_event(f"e{i}")) for i in range(5)]
        sequences = [e.sequence for e in stored]
        assert sequences == sorted(sequences)
        assert len(set(sequences)) == 5
        assert sequences[0] >= 1

    @pytest.mark.asyncio
    async def test_append_keeps_content(self, store):
        stored = await store.append(_event("e1", points=15))
        fetched = await store.get_event("e1")
        assert fetched == stored
        assert fetched.points_earned == 15
        assert fetched.business_id == "biz-1"

    @pytest.mark.asyncio
    async def test_listing_ordered_by_timestamp_then_sequence(self, store):
        await store.append(_event("late", at=T0 + timedelta(minutes=5)))
        await store.append(_event("tie-a", at=T0))
        await store.append(_event("early", at=T0 - timedelta(minutes=5)))
        await store.append(_event("tie-b", at=T0))

        ids = [e.id for e in await store.list_by_user("user-1").to_list()]
        assert ids == ["early", "tie-a", "tie-b", "late"]

    @pytest.mark.asyncio
    async def test_list_by_card_filters(self, store):
        await store.append(_event("a", card_id="card-1"))
        await store.append(_event("b", card_id="card-2"))
        await store.append(_event("c", user_id="user-2", card_id="card-1"))

        assert [e.id for e in await store.list_by_card("card-1").to_list()] == ["a", "c"]
        assert [e.id for e in await store.list_by_user("user-2").to_list()] == ["c"]
        assert await store.list_by_user("nobody").to_list() == []

    @pytest.mark.asyncio
    async def test_list_in_range_is_inclusive(self, store):
        for i in range(5):
            await store.append(_event(f"e{i}", at=T0 + timedelta(hours=i)))

        window = store.list_in_range(T0 + timedelta(hours=1), T0 + timedelta(hours=3))
        assert [e.id for e in await window.to_list()] == ["e1", "e2", "e3"]

    @pytest.mark.asyncio
    async def test_closed_store_rejects_calls(self):
        closed = MemoryLedgerStore()
        with pytest.raises(PersistenceFailure):
            await closed.append(_event("e1"))
        with pytest.raises(PersistenceFailure):
            await closed.list_all().to_list()


class TestEventStream:
    @pytest.mark.asyncio
    async def test_stream_is_restartable(self, store):
        for i in range(3):
            await store.append(_event(f"e{i}"))
        stream = store.list_all()

        first = [e.id async for e in stream]
        second = [e.id async for e in stream]
        assert first == second == ["e0", "e1", "e2"]

    @pytest.mark.asyncio
    async def test_stream_is_lazy(self, store):
        """A stream created before an append sees it when iterated afterwards."""
        stream = store.list_by_user("user-1")
        await store.append(_event("e1"))
        assert [e.id for e in await stream.to_list()] == ["e1"]

    @pytest.mark.asyncio
    async def test_total_points(self, store):
        await store.append(_event("e1", points=10))
        await store.append(_event("e2", points=15))
        assert await store.list_by_user("user-1").total_points() == 25


class TestPaging:
    @pytest.mark.asyncio
    async def test_page_newest_first(self, store):
        for i in range(5):
            await store.append(_event(f"e{i}", at=T0 + timedelta(minutes=i)))

        assert [e.id for e in await store.page_by_user("user-1", 2, 0)] == ["e4", "e3"]
        assert [e.id for e in await store.page_by_user("user-1", 2, 4)] == ["e0"]
        assert await store.page_by_user("user-1", 2, 10) == []
        assert await store.count_by_user("user-1") == 5
        assert await store.count_events() == 5

    @pytest.mark.asyncio
    async def test_last_event_timestamp_per_pair(self, store):
        await store.append(_event("a", card_id="card-1", at=T0))
        await store.append(_event("b", card_id="card-1", at=T0 + timedelta(hours=2)))
        await store.append(_event("c", card_id="card-2", at=T0 + timedelta(hours=5)))

        assert await store.last_event_timestamp("user-1", "card-1") == T0 + timedelta(hours=2)
        assert await store.last_event_timestamp("user-1", "card-3") is None


class TestApply:
    @pytest.mark.asyncio
    async def test_apply_is_idempotent(self, store):
        event = await store.append(_event("e1", points=10))
        first = await store.apply(event)
        second = await store.apply(event)

        assert first.points == 10
        assert second.points == 10
        assert (await store.get_balance("user-1")).points == 10

    @pytest.mark.asyncio
    async def test_apply_requires_appended_event(self, store):
        with pytest.raises(NotFoundError):
            await store.apply(_event("ghost"))

    @pytest.mark.asyncio
    async def test_apply_raises_last_check_in_never_lowers(self, store):
        await store.add_wallet_entry(WalletEntry(user_id="user-1", card_id="card-1", added_at=T0))
        later = await store.append(_event("later", at=T0 + timedelta(hours=1)))
        earlier = await store.append(_event("earlier", at=T0))

        await store.apply(later)
        await store.apply(earlier)

        entry = await store.get_wallet_entry("user-1", "card-1")
        assert entry.last_check_in == T0 + timedelta(hours=1)

    @pytest.mark.asyncio
    async def test_list_unapplied(self, store):
        e1 = await store.append(_event("e1"))
        await store.append(_event("e2"))
        await store.apply(e1)

        assert [e.id for e in await store.list_unapplied()] == ["e2"]

    @pytest.mark.asyncio
    async def test_list_unapplied_for_one_user(self, store):
        await store.append(_event("e1", user_id="user-1"))
        await store.append(_event("e2", user_id="user-2"))

        assert [e.id for e in await store.list_unapplied("user-1")] == ["e1"]
        assert await store.list_unapplied("nobody") == []

    @pytest.mark.asyncio
    async def test_balance_of_unknown_user_is_zero(self, store):
        assert (await store.get_balance("nobody")).points == 0


class TestWallet:
    @pytest.mark.asyncio
    async def test_duplicate_wallet_entry_rejected(self, store):
        entry = WalletEntry(user_id="user-1", card_id="card-1", added_at=T0)
        await store.add_wallet_entry(entry)
        with pytest.raises(AlreadyInWallet):
            await store.add_wallet_entry(entry)

    @pytest.mark.asyncio
    async def test_remove_wallet_entry(self, store):
        await store.add_wallet_entry(WalletEntry(user_id="user-1", card_id="card-1", added_at=T0))
        assert await store.remove_wallet_entry("user-1", "card-1") is True
        assert await store.remove_wallet_entry("user-1", "card-1") is False
        assert await store.list_wallet("user-1") == []

"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from sharkband.analytics.engine import AggregationEngine
from sharkband.config import get_settings
from sharkband.ledger.memory_store import MemoryLedgerStore
from sharkband.ledger.orchestrator import CheckInOrchestrator
from sharkband.ledger.types import Card, Role, User, WalletEntry
from sharkband.main import create_app
from sharkband.runtime import close_runtime, init_runtime
from sharkband.seed import seed_demo_data

START = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now += timedelta(**delta)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def store() -> AsyncGenerator[MemoryLedgerStore, None]:
    """Open in-memory ledger store, closed after the test."""
    memory = MemoryLedgerStore()
    await memory.open()
    yield memory
    await memory.close()


@pytest.fixture
def orchestrator(store: MemoryLedgerStore, clock: FakeClock) -> CheckInOrchestrator:
    return CheckInOrchestrator(store, clock=clock, apply_backoff_seconds=0)


@pytest.fixture
def analytics(store: MemoryLedgerStore, clock: FakeClock) -> AggregationEngine:
    return AggregationEngine(store, clock=clock)


@pytest.fixture
def make_user(store: MemoryLedgerStore, clock: FakeClock) -> Callable[..., Awaitable[User]]:
    """Factory: ``await make_user("Alice")`` creates user ``user-alice``."""

    async def _make(
        name: str = "Alice",
        role: Role = Role.USER,
        user_id: str | None = None,
        created_at: datetime | None = None,
    ) -> User:
        return await store.add_user(User(
            id=user_id or f"user-{name.lower()}",
            email=f"{name.lower()}@example.com",
            name=name,
            role=role,
            created_at=created_at or clock(),
        ))

    return _make


@pytest.fixture
def make_card(store: MemoryLedgerStore, clock: FakeClock) -> Callable[..., Awaitable[Card]]:
    """Factory: ``await make_card("card-a")`` creates an active card of ``biz-1``."""

    async def _make(
        card_id: str = "card-a",
        name: str | None = None,
        business_id: str = "biz-1",
        is_active: bool = True,
        logo: str | None = None,
    ) -> Card:
        return await store.add_card(Card(
            id=card_id,
            business_id=business_id,
            name=name or f"Card {card_id}",
            is_active=is_active,
            created_at=clock(),
            updated_at=clock(),
            logo=logo,
        ))

    return _make


@pytest.fixture
def join(store: MemoryLedgerStore, clock: FakeClock) -> Callable[[str, str], Awaitable[WalletEntry]]:
    """Factory: ``await join(user_id, card_id)`` adds the card to the wallet."""

    async def _join(user_id: str, card_id: str) -> WalletEntry:
        return await store.add_wallet_entry(WalletEntry(user_id=user_id, card_id=card_id, added_at=clock()))

    return _join


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(monkeypatch: pytest.MonkeyPatch, clock: FakeClock) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client over the full app with a fresh in-memory store and demo data."""
    monkeypatch.setenv("SHARKBAND_STORAGE_BACKEND", "memory")
    monkeypatch.setenv("SHARKBAND_REDIS_URL", "")
    monkeypatch.setenv("SHARKBAND_LOG_FORMAT", "console")
    monkeypatch.setenv("SHARKBAND_BALANCE_APPLY_BACKOFF_SECONDS", "0")
    get_settings.cache_clear()

    app = create_app()
    runtime = await init_runtime(get_settings(), store=MemoryLedgerStore(), clock=clock)
    await seed_demo_data(runtime.store, runtime.clock)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await close_runtime()
    get_settings.cache_clear()


async def _register(client: AsyncClient, name: str, role: str = "user") -> dict:
    """Register through the API and return the created user."""
    response = await client.post("/api/v1/users", json={
        "email": f"{name.lower()}@example.com",
        "name": name,
        "role": role,
    })
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def admin_headers() -> dict[str, str]:
    """Headers for the seeded demo admin."""
    return {"X-User-Id": "admin-1"}


@pytest_asyncio.fixture
async def member(client: AsyncClient) -> dict:
    """A registered member (role ``user``)."""
    return await _register(client, "Alice")


@pytest_asyncio.fixture
async def member_headers(member: dict) -> dict[str, str]:
    return {"X-User-Id": member["id"]}

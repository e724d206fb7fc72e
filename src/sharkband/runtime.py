"""Process-wide ledger services: store, orchestrator and aggregation engine."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from sharkband.analytics.engine import AggregationEngine
from sharkband.config import Settings
from sharkband.ledger.clock import Clock, MonotonicClock
from sharkband.ledger.memory_store import MemoryLedgerStore
from sharkband.ledger.orchestrator import CheckInOrchestrator
from sharkband.ledger.points_policy import FixedPointsPolicy
from sharkband.ledger.sql_store import SqlLedgerStore
from sharkband.ledger.store import LedgerStore

logger = structlog.get_logger()


@dataclass
class Runtime:
    store: LedgerStore
    orchestrator: CheckInOrchestrator
    analytics: AggregationEngine
    clock: Clock


_runtime: Runtime | None = None


def build_store(settings: Settings) -> LedgerStore:
    """Create the configured (unopened) ledger store."""
    if settings.storage_backend == "memory":
        return MemoryLedgerStore()
    if settings.storage_backend == "sql":
        return SqlLedgerStore(settings.database_url)
    msg = f"Unknown storage backend: {settings.storage_backend!r}"
    raise ValueError(msg)


async def init_runtime(
    settings: Settings,
    store: LedgerStore | None = None,
    clock: Clock | None = None,
) -> Runtime:
    """Open the store and wire the services around it.

    Events left unapplied by a previous crash are reconciled before the
    runtime is published.
    """
    global _runtime  # noqa: PLW0603
    store = store or build_store(settings)
    clock = clock or MonotonicClock()
    await store.open()

    orchestrator = CheckInOrchestrator(
        store,
        policy=FixedPointsPolicy(settings.base_points),
        clock=clock,
        max_apply_attempts=settings.balance_apply_max_attempts,
        apply_backoff_seconds=settings.balance_apply_backoff_seconds,
    )
    analytics = AggregationEngine(
        store,
        clock=clock,
        active_window_days=settings.active_window_days,
        recent_window_days=settings.recent_window_days,
        trend_days=settings.analytics_default_days,
        top_users_limit=settings.leaderboard_default_limit,
    )
    await orchestrator.reconcile()

    _runtime = Runtime(store=store, orchestrator=orchestrator, analytics=analytics, clock=clock)
    logger.info("runtime_started", backend=settings.storage_backend)
    return _runtime


async def close_runtime() -> None:
    """Close the store and drop the runtime."""
    global _runtime  # noqa: PLW0603
    if _runtime:
        await _runtime.store.close()
        _runtime = None


def get_runtime() -> Runtime:
    """Get the initialized runtime."""
    if _runtime is None:
        msg = "Runtime not initialized. Call init_runtime() first."
        raise RuntimeError(msg)
    return _runtime

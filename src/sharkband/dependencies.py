"""Shared FastAPI dependencies."""

from sharkband.analytics.engine import AggregationEngine
from sharkband.ledger.clock import Clock
from sharkband.ledger.orchestrator import CheckInOrchestrator
from sharkband.ledger.store import LedgerStore
from sharkband.runtime import get_runtime


def get_store() -> LedgerStore:
    """Ledger store (FastAPI dependency)."""
    return get_runtime().store


def get_orchestrator() -> CheckInOrchestrator:
    """Check-in orchestrator (FastAPI dependency)."""
    return get_runtime().orchestrator


def get_analytics() -> AggregationEngine:
    """Aggregation engine (FastAPI dependency)."""
    return get_runtime().analytics


def get_clock() -> Clock:
    """Clock shared by all services (FastAPI dependency)."""
    return get_runtime().clock

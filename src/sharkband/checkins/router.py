"""Check-in endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from sharkband.analytics.engine import AggregationEngine
from sharkband.auth.dependencies import get_current_user, require_staff
from sharkband.checkins.schemas import (
    CardCheckInEntry,
    CheckInEventResponse,
    CheckInRequest,
    CheckInResponse,
    CheckInStatsResponse,
    HistoryEntry,
    HistoryResponse,
)
from sharkband.checkins.service import list_card_check_ins
from sharkband.config import get_settings
from sharkband.dependencies import get_analytics, get_orchestrator, get_store
from sharkband.ledger.history import get_user_history
from sharkband.ledger.orchestrator import CheckInOrchestrator
from sharkband.ledger.store import LedgerStore
from sharkband.ledger.types import User

router = APIRouter(prefix="/api/v1/checkins", tags=["Check-ins"])


@router.post("", response_model=CheckInResponse, status_code=201)
async def record_check_in(
    body: CheckInRequest,
    user: User = Depends(get_current_user),
    orchestrator: CheckInOrchestrator = Depends(get_orchestrator),
):
    """Record a check-in on a card in the current user's wallet."""
    result = await orchestrator.record_check_in(
        user.id,
        body.card_id,
        location=body.location,
        metadata=body.metadata,
    )
    return CheckInResponse(
        check_in=CheckInEventResponse.from_event(result.event),
        total_points=result.total_points,
        message=f"Check-in successful! You earned {result.event.points_earned} points.",
    )


@router.get("/me", response_model=HistoryResponse)
async def my_history(
    limit: int | None = Query(None),
    offset: int = Query(0),
    user: User = Depends(get_current_user),
    store: LedgerStore = Depends(get_store),
):
    """Current user's check-ins, newest first."""
    settings = get_settings()
    page = await get_user_history(
        store,
        user.id,
        limit=limit if limit is not None else settings.history_default_limit,
        offset=offset,
        max_limit=settings.history_max_limit,
    )
    return HistoryResponse(
        items=[
            HistoryEntry(
                **CheckInEventResponse.fields_of(item.event),
                card_name=item.card_name,
                card_logo=item.card_logo,
            )
            for item in page.items
        ],
        total=page.total,
        limit=page.limit,
        offset=page.offset,
        has_more=page.has_more,
    )


@router.get("/card/{card_id}", response_model=list[CardCheckInEntry])
async def card_check_ins(
    card_id: str,
    user: User = Depends(require_staff),
    store: LedgerStore = Depends(get_store),
):
    """Check-ins on one card with member names (admin/owning business)."""
    return [
        CardCheckInEntry(
            **CheckInEventResponse.fields_of(event),
            user_name=member.name if member else None,
            user_email=member.email if member else None,
        )
        for event, member in await list_card_check_ins(store, user, card_id)
    ]


@router.get("/stats", response_model=CheckInStatsResponse)
async def check_in_stats(
    _user: User = Depends(require_staff),
    analytics: AggregationEngine = Depends(get_analytics),
):
    """Check-in totals (admin/business)."""
    stats = await analytics.check_in_stats()
    return CheckInStatsResponse(
        total_check_ins=stats.total_check_ins,
        last_30_days=stats.last_30_days,
        today=stats.today,
        unique_users=stats.unique_users,
    )

"""Analytics endpoints for admins and businesses."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from sharkband.analytics.engine import AggregationEngine
from sharkband.analytics.schemas import (
    CardStatsResponse,
    DailyBucketResponse,
    LeaderboardEntryResponse,
    OverviewResponse,
    UserActivityResponse,
)
from sharkband.auth.dependencies import require_staff
from sharkband.config import get_settings
from sharkband.dependencies import get_analytics
from sharkband.ledger.errors import ValidationError
from sharkband.ledger.types import User

router = APIRouter(prefix="/api/v1/analytics", tags=["Analytics"])

MAX_TREND_DAYS = 365


@router.get("/overview", response_model=OverviewResponse)
async def overview(
    _user: User = Depends(require_staff),
    analytics: AggregationEngine = Depends(get_analytics),
):
    """Totals, per-card stats, 30-day trend and top users in one snapshot."""
    result = await analytics.overview()
    return OverviewResponse(
        total_users=result.total_users,
        total_cards=result.total_cards,
        total_check_ins=result.total_check_ins,
        active_users=result.active_users,
        card_stats=[CardStatsResponse.from_stats(s) for s in result.card_stats],
        daily_check_ins=[DailyBucketResponse.from_bucket(b) for b in result.daily_check_ins],
        top_users=[LeaderboardEntryResponse.from_entry(e) for e in result.top_users],
    )


@router.get("/cards", response_model=list[CardStatsResponse])
async def card_stats(
    _user: User = Depends(require_staff),
    analytics: AggregationEngine = Depends(get_analytics),
):
    """Per-card usage statistics."""
    return [CardStatsResponse.from_stats(s) for s in await analytics.card_stats()]


@router.get("/daily", response_model=list[DailyBucketResponse])
async def daily(
    days: int | None = Query(None),
    _user: User = Depends(require_staff),
    analytics: AggregationEngine = Depends(get_analytics),
):
    """Check-ins per day for the last ``days`` days plus today."""
    if days is None:
        days = get_settings().analytics_default_days
    if days > MAX_TREND_DAYS:
        raise ValidationError(f"days must be at most {MAX_TREND_DAYS}")
    return [DailyBucketResponse.from_bucket(b) for b in await analytics.recent_daily_trend(days)]


@router.get("/leaderboard", response_model=list[LeaderboardEntryResponse])
async def leaderboard(
    limit: int | None = Query(None),
    _user: User = Depends(require_staff),
    analytics: AggregationEngine = Depends(get_analytics),
):
    """Members ranked by points."""
    settings = get_settings()
    if limit is None:
        limit = settings.leaderboard_default_limit
    if limit > settings.leaderboard_max_limit:
        raise ValidationError(f"limit must be at most {settings.leaderboard_max_limit}")
    return [LeaderboardEntryResponse.from_entry(e) for e in await analytics.leaderboard(limit)]


@router.get("/user-activity", response_model=UserActivityResponse)
async def user_activity(
    _user: User = Depends(require_staff),
    analytics: AggregationEngine = Depends(get_analytics),
):
    """How many members check in and how often."""
    result = await analytics.user_activity()
    return UserActivityResponse(
        total_users=result.total_users,
        users_with_check_ins=result.users_with_check_ins,
        active_last_week=result.active_last_week,
        active_last_month=result.active_last_month,
        avg_check_ins_per_user=result.avg_check_ins_per_user,
    )

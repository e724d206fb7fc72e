"""Pydantic response models for analytics endpoints."""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel

from sharkband.analytics.engine import CardStats, DailyBucket, LeaderboardEntry


class LeaderboardEntryResponse(BaseModel):
    rank: int
    user_id: str
    name: str
    email: str
    points: int

    @classmethod
    def from_entry(cls, entry: LeaderboardEntry) -> LeaderboardEntryResponse:
        return cls(
            rank=entry.rank,
            user_id=entry.user_id,
            name=entry.name,
            email=entry.email,
            points=entry.points,
        )


class DailyBucketResponse(BaseModel):
    date: date
    count: int
    by_card: dict[str, int] = {}
    by_card_id: dict[str, int] = {}

    @classmethod
    def from_bucket(cls, bucket: DailyBucket) -> DailyBucketResponse:
        return cls(date=bucket.date, count=bucket.count, by_card=bucket.by_card, by_card_id=bucket.by_card_id)


class CardStatsResponse(BaseModel):
    card_id: str
    card_name: str
    total_check_ins: int
    unique_users: int
    avg_check_ins_per_user: float
    last_7_days: int
    total_points_earned: int

    @classmethod
    def from_stats(cls, stats: CardStats) -> CardStatsResponse:
        return cls(
            card_id=stats.card_id,
            card_name=stats.card_name,
            total_check_ins=stats.total_check_ins,
            unique_users=stats.unique_users,
            avg_check_ins_per_user=stats.avg_check_ins_per_user,
            last_7_days=stats.last_7_days,
            total_points_earned=stats.total_points_earned,
        )


class OverviewResponse(BaseModel):
    total_users: int
    total_cards: int
    total_check_ins: int
    active_users: int
    card_stats: list[CardStatsResponse]
    daily_check_ins: list[DailyBucketResponse]
    top_users: list[LeaderboardEntryResponse]


class UserActivityResponse(BaseModel):
    total_users: int
    users_with_check_ins: int
    active_last_week: int
    active_last_month: int
    avg_check_ins_per_user: float

"""Read-side aggregation over the event log and balance ledger.

Nothing here writes. Every public call reads the clock exactly once and
measures all trailing windows from that instant, so one response never mixes
two different "nows".

Storage faults propagate as PersistenceFailure; an aggregation either returns
a complete answer or raises.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from collections.abc import AsyncIterable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal

from sharkband.ledger.clock import Clock, ensure_utc, utc_now
from sharkband.ledger.errors import ValidationError
from sharkband.ledger.store import LedgerStore
from sharkband.ledger.types import Card, CheckInEvent, Role, User, UserBalance

UNKNOWN_CARD_NAME = "Unknown"


@dataclass(frozen=True)
class LeaderboardEntry:
    rank: int
    user_id: str
    name: str
    email: str
    points: int


@dataclass(frozen=True)
class DailyBucket:
    date: date
    count: int
    by_card: dict[str, int] = field(default_factory=dict)
    by_card_id: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class CardStats:
    card_id: str
    card_name: str
    total_check_ins: int
    unique_users: int
    avg_check_ins_per_user: float
    last_7_days: int
    total_points_earned: int


@dataclass(frozen=True)
class Overview:
    total_users: int
    total_cards: int
    total_check_ins: int
    active_users: int
    card_stats: list[CardStats]
    daily_check_ins: list[DailyBucket]
    top_users: list[LeaderboardEntry]


@dataclass(frozen=True)
class UserActivity:
    total_users: int
    users_with_check_ins: int
    active_last_week: int
    active_last_month: int
    avg_check_ins_per_user: float


@dataclass(frozen=True)
class CheckInStats:
    total_check_ins: int
    last_30_days: int
    today: int
    unique_users: int


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def round_one_decimal(numerator: int, denominator: int) -> float:
    """``numerator / denominator`` rounded half-up to one decimal; 0 when denominator is 0."""
    if denominator == 0:
        return 0.0
    value = Decimal(numerator) / Decimal(denominator)
    return float(value.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def rank_users(
    users: Iterable[User],
    balances: Iterable[UserBalance],
    limit: int,
) -> list[LeaderboardEntry]:
    """Rank users by points, highest first.

    Ties are ordered by account creation (earlier first), then by id, so the
    order never depends on dict or set iteration. Ranks are dense: equal
    points share a rank and the next lower total takes the next integer.
    Users without a balance row rank with 0 points.
    """
    points = {b.user_id: b.points for b in balances}
    ordered = sorted(
        users,
        key=lambda u: (-points.get(u.id, 0), ensure_utc(u.created_at), u.id),
    )[:limit]

    entries: list[LeaderboardEntry] = []
    rank = 0
    previous: int | None = None
    for user in ordered:
        user_points = points.get(user.id, 0)
        if user_points != previous:
            rank += 1
            previous = user_points
        entries.append(LeaderboardEntry(
            rank=rank,
            user_id=user.id,
            name=user.name,
            email=user.email,
            points=user_points,
        ))
    return entries


def day_bounds(start: date, end: date) -> tuple[datetime, datetime]:
    """Inclusive UTC datetime bounds covering whole calendar days."""
    return (
        datetime.combine(start, time.min, tzinfo=timezone.utc),
        datetime.combine(end, time.max, tzinfo=timezone.utc),
    )


async def bucket_by_day(
    events: AsyncIterable[CheckInEvent],
    start: date,
    end: date,
    card_names: Mapping[str, str] | None = None,
) -> list[DailyBucket]:
    """Count events per UTC calendar day, one bucket per day from start to end.

    ``by_card`` is keyed by card name, so cards sharing a name share a count;
    ``by_card_id`` keeps the per-card split. Deleted cards count as "Unknown".
    """
    names = card_names or {}
    counts: Counter[date] = Counter()
    by_card: defaultdict[date, Counter[str]] = defaultdict(Counter)
    by_card_id: defaultdict[date, Counter[str]] = defaultdict(Counter)
    async for event in events:
        day = ensure_utc(event.timestamp).date()
        if start <= day <= end:
            counts[day] += 1
            by_card[day][names.get(event.card_id, UNKNOWN_CARD_NAME)] += 1
            by_card_id[day][event.card_id] += 1

    buckets = []
    day = start
    while day <= end:
        buckets.append(DailyBucket(
            date=day, count=counts[day], by_card=dict(by_card[day]), by_card_id=dict(by_card_id[day]),
        ))
        day += timedelta(days=1)
    return buckets


class _CardTally:
    __slots__ = ("last_7_days", "points", "total", "users")

    def __init__(self) -> None:
        self.total = 0
        self.points = 0
        self.last_7_days = 0
        self.users: set[str] = set()

    def to_stats(self, card: Card) -> CardStats:
        return CardStats(
            card_id=card.id,
            card_name=card.name,
            total_check_ins=self.total,
            unique_users=len(self.users),
            avg_check_ins_per_user=round_one_decimal(self.total, len(self.users)),
            last_7_days=self.last_7_days,
            total_points_earned=self.points,
        )


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class AggregationEngine:
    """Computes leaderboards, trends and statistics on demand."""

    def __init__(
        self,
        store: LedgerStore,
        clock: Clock = utc_now,
        active_window_days: int = 30,
        recent_window_days: int = 7,
        trend_days: int = 30,
        top_users_limit: int = 10,
    ) -> None:
        self.store = store
        self.clock = clock
        self.active_window = timedelta(days=active_window_days)
        self.recent_window = timedelta(days=recent_window_days)
        self.trend_days = trend_days
        self.top_users_limit = top_users_limit

    def _now(self) -> datetime:
        return ensure_utc(self.clock())

    async def _customers(self) -> list[User]:
        return [u for u in await self.store.list_users() if u.role == Role.USER]

    async def _card_names(self) -> dict[str, str]:
        return {card.id: card.name for card in await self.store.list_cards()}

    # --- Leaderboard ---

    async def leaderboard(self, limit: int = 10) -> list[LeaderboardEntry]:
        if limit < 1:
            raise ValidationError("limit must be at least 1")
        users = await self._customers()
        balances = await self.store.list_balances()
        return rank_users(users, balances, limit)

    # --- Daily trend ---

    async def daily_trend(self, start: date, end: date) -> list[DailyBucket]:
        """Per-day check-in counts for ``[start, end]``, zero days included."""
        if isinstance(start, datetime):
            start = ensure_utc(start).date()
        if isinstance(end, datetime):
            end = ensure_utc(end).date()
        if start > end:
            raise ValidationError("start must not be after end")
        lo, hi = day_bounds(start, end)
        names = await self._card_names()
        return await bucket_by_day(self.store.list_in_range(lo, hi), start, end, names)

    async def recent_daily_trend(self, days: int) -> list[DailyBucket]:
        """Trend for the last ``days`` days plus today."""
        if days < 0:
            raise ValidationError("days must be >= 0")
        today = self._now().date()
        return await self.daily_trend(today - timedelta(days=days), today)

    # --- Card statistics ---

    async def card_stats(self) -> list[CardStats]:
        return await self._card_stats(self._now())

    async def _card_stats(self, now: datetime) -> list[CardStats]:
        cards = await self.store.list_cards()
        tallies = {card.id: _CardTally() for card in cards}
        recent_cutoff = now - self.recent_window

        async for event in self.store.list_all():
            tally = tallies.get(event.card_id)
            if tally is None:
                continue
            tally.total += 1
            tally.points += event.points_earned
            tally.users.add(event.user_id)
            if event.timestamp >= recent_cutoff:
                tally.last_7_days += 1

        return [tallies[card.id].to_stats(card) for card in cards]

    # --- Overview ---

    async def overview(self) -> Overview:
        now = self._now()
        active_cutoff = now - self.active_window

        users = await self._customers()
        cards = await self.store.list_cards()
        total_check_ins = 0
        active: set[str] = set()
        async for event in self.store.list_all():
            total_check_ins += 1
            if event.timestamp >= active_cutoff:
                active.add(event.user_id)

        today = now.date()
        trend_start = today - timedelta(days=self.trend_days)
        lo, hi = day_bounds(trend_start, today)

        return Overview(
            total_users=len(users),
            total_cards=len(cards),
            total_check_ins=total_check_ins,
            active_users=len(active),
            card_stats=await self._card_stats(now),
            daily_check_ins=await bucket_by_day(
                self.store.list_in_range(lo, hi), trend_start, today, {card.id: card.name for card in cards},
            ),
            top_users=rank_users(users, await self.store.list_balances(), self.top_users_limit),
        )

    # --- Activity ---

    async def user_activity(self) -> UserActivity:
        now = self._now()
        week_cutoff = now - self.recent_window
        month_cutoff = now - self.active_window

        users = await self._customers()
        total = 0
        with_check_ins: set[str] = set()
        last_week: set[str] = set()
        last_month: set[str] = set()
        async for event in self.store.list_all():
            total += 1
            with_check_ins.add(event.user_id)
            if event.timestamp >= month_cutoff:
                last_month.add(event.user_id)
            if event.timestamp >= week_cutoff:
                last_week.add(event.user_id)

        return UserActivity(
            total_users=len(users),
            users_with_check_ins=len(with_check_ins),
            active_last_week=len(last_week),
            active_last_month=len(last_month),
            avg_check_ins_per_user=round_one_decimal(total, len(users)),
        )

    async def check_in_stats(self) -> CheckInStats:
        now = self._now()
        month_cutoff = now - self.active_window
        today = now.date()

        total = recent = today_count = 0
        unique: set[str] = set()
        async for event in self.store.list_all():
            total += 1
            unique.add(event.user_id)
            if event.timestamp >= month_cutoff:
                recent += 1
            if ensure_utc(event.timestamp).date() == today:
                today_count += 1

        return CheckInStats(
            total_check_ins=total,
            last_30_days=recent,
            today=today_count,
            unique_users=len(unique),
        )

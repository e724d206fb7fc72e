"""Points policies: how many points a check-in earns.

A policy is a pure function of the check-in context. It must not read the
clock, the store or any mutable state, so replaying the event log always
reproduces the same awards.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol

from sharkband.ledger.errors import PointsPolicyError
from sharkband.ledger.types import CheckInContext

DEFAULT_BASE_POINTS = 10


class PointsPolicy(Protocol):
    def compute(self, user_id: str, card_id: str, context: CheckInContext) -> int: ...


class FixedPointsPolicy:
    """Every check-in earns the same base amount."""

    def __init__(self, base_points: int = DEFAULT_BASE_POINTS) -> None:
        if base_points < 0:
            msg = f"base_points must be >= 0, got {base_points}"
            raise PointsPolicyError(msg)
        self.base_points = base_points

    def compute(self, user_id: str, card_id: str, context: CheckInContext) -> int:
        return self.base_points


class CardRatePolicy:
    """Base amount scaled by a per-card multiplier (rounded down).

    Cards without an entry in ``rates`` earn the base amount.
    """

    def __init__(self, rates: Mapping[str, float], base_points: int = DEFAULT_BASE_POINTS) -> None:
        for card_id, rate in rates.items():
            if rate < 0:
                msg = f"rate for card {card_id} must be >= 0, got {rate}"
                raise PointsPolicyError(msg)
        self.rates = dict(rates)
        self.base_points = base_points

    def compute(self, user_id: str, card_id: str, context: CheckInContext) -> int:
        return int(self.base_points * self.rates.get(card_id, 1.0))


def award_points(policy: PointsPolicy, context: CheckInContext) -> int:
    """Run a policy and check its result is a non-negative integer."""
    points = policy.compute(context.user_id, context.card_id, context)
    if isinstance(points, bool) or not isinstance(points, int) or points < 0:
        msg = f"{type(policy).__name__} returned invalid award {points!r}"
        raise PointsPolicyError(msg)
    return points

"""Points policy tests: fixed and per-card awards, award validation."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from sharkband.ledger.errors import PointsPolicyError
from sharkband.ledger.points_policy import (
    DEFAULT_BASE_POINTS,
    CardRatePolicy,
    FixedPointsPolicy,
    award_points,
)
from sharkband.ledger.types import CheckInContext


def _context(card_id: str = "card-1") -> CheckInContext:
    return CheckInContext(
        user_id="user-1",
        card_id=card_id,
        business_id="business-1",
        timestamp=datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc),
    )


class _ConstantPolicy:
    def __init__(self, value: object) -> None:
        self.value = value

    def compute(self, user_id: str, card_id: str, context: CheckInContext) -> object:
        return self.value


class TestFixedPointsPolicy:
    def test_default_awards_ten(self):
        assert DEFAULT_BASE_POINTS == 10
        assert FixedPointsPolicy().compute("user-1", "card-1", _context()) == 10

    def test_configurable_base(self):
        assert FixedPointsPolicy(25).compute("user-1", "card-1", _context()) == 25

    def test_zero_is_allowed(self):
        assert award_points(FixedPointsPolicy(0), _context()) == 0

    def test_negative_base_rejected(self):
        with pytest.raises(PointsPolicyError):
            FixedPointsPolicy(-1)

    def test_same_context_same_award(self):
        """Pure: repeated evaluation gives the same result."""
        policy = FixedPointsPolicy()
        ctx = _context()
        assert {policy.compute("user-1", "card-1", ctx) for _ in range(5)} == {10}


class TestCardRatePolicy:
    def test_rate_scales_base(self):
        policy = CardRatePolicy({"card-vip": 1.5})
        assert policy.compute("user-1", "card-vip", _context("card-vip")) == 15

    def test_fractional_award_rounds_down(self):
        policy = CardRatePolicy({"card-1": 0.55})
        assert policy.compute("user-1", "card-1", _context()) == 5

    def test_unknown_card_earns_base(self):
        policy = CardRatePolicy({"card-vip": 2.0}, base_points=20)
        assert policy.compute("user-1", "card-other", _context("card-other")) == 20

    def test_negative_rate_rejected(self):
        with pytest.raises(PointsPolicyError):
            CardRatePolicy({"card-1": -0.5})


class TestAwardPoints:
    def test_valid_award_passes_through(self):
        assert award_points(_ConstantPolicy(7), _context()) == 7

    @pytest.mark.parametrize("bad", [-1, 2.5, "10", None, True])
    def test_invalid_award_raises(self, bad):
        with pytest.raises(PointsPolicyError):
            award_points(_ConstantPolicy(bad), _context())

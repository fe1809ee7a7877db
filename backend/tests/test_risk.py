"""Tests for stop distance, position sizing and position plans."""

import math

import pytest

from core.models.config import SizingPolicy, StopType
from core.models.signal import Side
from core.risk import (
    FALLBACK_STOP_FRACTION,
    FALLBACK_TARGET_FRACTION,
    plan_from_levels,
    plan_position,
    position_size,
    stop_distance,
)


class TestStopDistance:
    def test_atr_stop(self):
        policy = SizingPolicy(stop_type=StopType.ATR, atr_multiplier=2.0)
        assert stop_distance(policy, Side.LONG, 100.0, atr_value=5.0) == 10.0

    def test_fixed_percent_stop(self):
        policy = SizingPolicy(stop_type=StopType.FIXED_PERCENT, fixed_stop_percent=3.0)
        assert stop_distance(policy, Side.SHORT, 200.0, atr_value=5.0) == pytest.approx(6.0)

    def test_support_stop_for_long(self):
        policy = SizingPolicy(stop_type=StopType.SUPPORT_RESISTANCE)
        assert stop_distance(policy, Side.LONG, 100.0, 5.0, supports=[90.0, 95.0]) == 5.0

    def test_resistance_stop_for_short(self):
        policy = SizingPolicy(stop_type=StopType.SUPPORT_RESISTANCE)
        assert stop_distance(policy, Side.SHORT, 100.0, 5.0, resistances=[110.0, 104.0]) == 4.0

    def test_level_stop_falls_back_to_two_atr(self):
        policy = SizingPolicy(stop_type=StopType.SUPPORT_RESISTANCE)
        # Only levels on the wrong side of the entry
        assert stop_distance(policy, Side.LONG, 100.0, 3.0, supports=[101.0]) == 6.0


class TestPositionSize:
    def test_risk_over_stop(self):
        assert position_size(10_000.0, 2.0, 10.0) == pytest.approx(20.0)

    @pytest.mark.parametrize("distance", [0.0, -1.0, math.nan, math.inf])
    def test_degenerate_stop_gives_zero(self, distance):
        assert position_size(10_000.0, 2.0, distance) == 0.0


class TestPlans:
    def test_plan_position_long(self):
        plan = plan_position(Side.LONG, 100.0, 5.0, 10_000.0, SizingPolicy())
        assert plan.stop == 95.0
        assert plan.target == 110.0
        assert plan.size == 40.0
        assert plan.risk_amount == 200.0
        assert plan.notional == 4000.0
        assert plan.margin == 4000.0
        assert plan.risk_reward == pytest.approx(2.0)
        assert plan.warnings == []

    def test_plan_position_short(self):
        plan = plan_position(Side.SHORT, 100.0, 5.0, 10_000.0, SizingPolicy(reward_ratio=3.0))
        assert plan.stop == 105.0
        assert plan.target == 85.0

    def test_leverage_changes_margin_not_size(self):
        plan = plan_position(Side.LONG, 100.0, 5.0, 10_000.0, SizingPolicy(leverage=10))
        assert plan.size == 40.0
        assert plan.margin == 400.0

    def test_aggressive_policy_warns(self):
        policy = SizingPolicy(risk_percent=6.0, leverage=25)
        plan = plan_position(Side.LONG, 100.0, 5.0, 10_000.0, policy)
        assert len(plan.warnings) == 2
        assert plan.recommendations

    def test_moderate_risk_only_recommends(self):
        plan = plan_position(Side.LONG, 100.0, 5.0, 10_000.0, SizingPolicy(risk_percent=3.0))
        assert plan.warnings == []
        assert len(plan.recommendations) == 1

    def test_plan_from_levels_uses_nearest_levels(self):
        plan = plan_from_levels(
            Side.LONG, 100.0, supports=[90.0, 95.0], resistances=[110.0, 120.0],
            equity=10_000.0, policy=SizingPolicy(),
        )
        assert plan.stop == 95.0
        assert plan.target == 110.0
        assert plan.size == 40.0

    def test_plan_from_levels_fallback(self):
        long_plan = plan_from_levels(Side.LONG, 100.0, [], [], 10_000.0, SizingPolicy())
        assert long_plan.stop == pytest.approx(100.0 * (1 - FALLBACK_STOP_FRACTION))
        assert long_plan.target == pytest.approx(100.0 * (1 + FALLBACK_TARGET_FRACTION))

        short_plan = plan_from_levels(Side.SHORT, 100.0, [], [], 10_000.0, SizingPolicy())
        assert short_plan.stop == pytest.approx(102.0)
        assert short_plan.target == pytest.approx(96.0)
        assert short_plan.size == pytest.approx(100.0)

"""Risk-based position sizing.

Shared by the position simulator (stop distance and size for every entry)
and by the aggregator (entry/stop/target plan for a live decision).

Sizing rule:
    risk_amount   = equity * risk_percent / 100
    stop_distance = ATR * multiplier | price * fixed% | distance to nearest level
    size          = risk_amount / stop_distance

Leverage never changes the size; it only lowers the margin required to
carry the position.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Sequence

from core.indicators.levels import nearest_above, nearest_below
from core.models.config import SizingPolicy, StopType
from core.models.signal import Side

logger = logging.getLogger(__name__)

MAX_SAFE_RISK_PERCENT = 5.0
MAX_SAFE_LEVERAGE = 20.0
RECOMMENDED_RISK_PERCENT = 2.0

# Fallback stop/target distances (fraction of price) when no level exists
FALLBACK_STOP_FRACTION = 0.02
FALLBACK_TARGET_FRACTION = 0.04


def stop_distance(
    policy: SizingPolicy,
    side: Side,
    price: float,
    atr_value: float,
    supports: Sequence[float] = (),
    resistances: Sequence[float] = (),
) -> float:
    """Distance from entry to stop under the policy's stop type.

    A support/resistance stop uses the nearest level on the losing side of
    the entry and falls back to ``2 * ATR`` when there is none.
    """
    if policy.stop_type == StopType.ATR:
        return atr_value * policy.atr_multiplier
    if policy.stop_type == StopType.FIXED_PERCENT:
        return price * policy.fixed_stop_percent / 100

    if side is Side.LONG:
        level = nearest_below(supports, price)
    else:
        level = nearest_above(resistances, price)
    if level is None:
        return atr_value * 2
    return abs(price - level)


def position_size(equity: float, risk_percent: float, distance: float) -> float:
    """Units to trade so a stop-out loses ``risk_percent`` of equity.

    Returns 0 for a non-positive or non-finite stop distance.
    """
    if not math.isfinite(distance) or distance <= 0:
        return 0.0
    return equity * risk_percent / 100 / distance


@dataclass
class PositionPlan:
    """Entry, stop and target for one prospective position."""

    side: Side
    entry: float
    stop: float
    target: float
    size: float
    risk_amount: float
    notional: float
    margin: float
    warnings: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    @property
    def risk_reward(self) -> float:
        risk = abs(self.entry - self.stop)
        return abs(self.target - self.entry) / risk if risk > 0 else 0.0


def plan_position(
    side: Side,
    entry: float,
    distance: float,
    equity: float,
    policy: SizingPolicy,
) -> PositionPlan:
    """Build a plan with the target at ``reward_ratio`` times the stop distance."""
    size = position_size(equity, policy.risk_percent, distance)
    stop = entry - distance * side.sign
    target = entry + distance * policy.reward_ratio * side.sign
    return _finish_plan(side, entry, stop, target, size, equity, policy)


def plan_from_levels(
    side: Side,
    price: float,
    supports: Sequence[float],
    resistances: Sequence[float],
    equity: float,
    policy: SizingPolicy,
) -> PositionPlan:
    """Build a plan that stops beyond the nearest level and targets the next one.

    Without a level the stop sits 2% and the target 4% away from price.
    """
    if side is Side.LONG:
        stop = nearest_below(supports, price) or price * (1 - FALLBACK_STOP_FRACTION)
        target = nearest_above(resistances, price) or price * (1 + FALLBACK_TARGET_FRACTION)
    else:
        stop = nearest_above(resistances, price) or price * (1 + FALLBACK_STOP_FRACTION)
        target = nearest_below(supports, price) or price * (1 - FALLBACK_TARGET_FRACTION)

    size = position_size(equity, policy.risk_percent, abs(price - stop))
    return _finish_plan(side, price, stop, target, size, equity, policy)


def _finish_plan(
    side: Side,
    entry: float,
    stop: float,
    target: float,
    size: float,
    equity: float,
    policy: SizingPolicy,
) -> PositionPlan:
    notional = size * entry
    plan = PositionPlan(
        side=side,
        entry=round(entry, 2),
        stop=round(stop, 2),
        target=round(target, 2),
        size=round(size, 4),
        risk_amount=round(equity * policy.risk_percent / 100, 2),
        notional=round(notional, 2),
        margin=round(notional / policy.leverage, 2),
    )

    if policy.risk_percent > MAX_SAFE_RISK_PERCENT:
        plan.warnings.append(
            f"Risk of {policy.risk_percent:g}% per trade exceeds {MAX_SAFE_RISK_PERCENT:g}%"
        )
    if policy.leverage > MAX_SAFE_LEVERAGE:
        plan.warnings.append(
            f"Leverage of {policy.leverage:g}x exceeds {MAX_SAFE_LEVERAGE:g}x"
        )
    if policy.risk_percent > RECOMMENDED_RISK_PERCENT:
        plan.recommendations.append(
            f"Consider risking at most {RECOMMENDED_RISK_PERCENT:g}% per trade"
        )
    if plan.warnings:
        logger.debug("Position plan warnings for %s: %s", side.value, plan.warnings)
    return plan

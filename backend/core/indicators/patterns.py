"""Chart pattern and RSI divergence detection over pivots."""

from __future__ import annotations

from typing import NamedTuple, Sequence

from core.indicators.levels import PIVOT_HIGH, PIVOT_LOW, Pivot

BULLISH = "BULLISH"
BEARISH = "BEARISH"

# Bars of history required before divergences are looked for
MIN_DIVERGENCE_BARS = 20


class ChartPattern(NamedTuple):
    name: str
    bias: str
    confidence: float


def head_and_shoulders(pivots: Sequence[Pivot], tolerance: float = 0.04) -> list[ChartPattern]:
    """
    Head and shoulders among the last five pivot highs.

    Any three consecutive highs whose middle one is the highest and whose
    outer two are within ``tolerance`` of each other form a match.
    """
    highs = [p.price for p in pivots if p.kind == PIVOT_HIGH][-5:]
    found = []
    for left, head, right in zip(highs, highs[1:], highs[2:]):
        if head > left and head > right and abs(left - right) / left < tolerance:
            found.append(ChartPattern("Head & Shoulders", BEARISH, 82.0))
    return found


def double_tops_bottoms(pivots: Sequence[Pivot], tolerance: float = 0.025) -> list[ChartPattern]:
    """Consecutive same-kind pivots (of the last six) at nearly equal prices."""
    recent = list(pivots[-6:])
    found = []
    for first, second in zip(recent, recent[1:]):
        if first.kind != second.kind:
            continue
        if abs(first.price - second.price) / first.price >= tolerance:
            continue
        if first.kind == PIVOT_HIGH:
            found.append(ChartPattern("Double Top", BEARISH, 78.0))
        else:
            found.append(ChartPattern("Double Bottom", BULLISH, 78.0))
    return found


def triangles(pivots: Sequence[Pivot], flat_tolerance: float = 0.015) -> list[ChartPattern]:
    """
    Ascending and descending triangles among the last eight pivots.

    Ascending: the last two highs are flat and the last two lows rise.
    Descending: the last two lows are flat and the last two highs fall.
    """
    if len(pivots) < 4:
        return []
    recent = pivots[-8:]
    highs = [p.price for p in recent if p.kind == PIVOT_HIGH]
    lows = [p.price for p in recent if p.kind == PIVOT_LOW]
    if len(highs) < 2 or len(lows) < 2:
        return []

    found = []
    if abs(highs[-1] - highs[-2]) / highs[0] < flat_tolerance and lows[-1] > lows[-2]:
        found.append(ChartPattern("Ascending Triangle", BULLISH, 72.0))
    if abs(lows[-1] - lows[-2]) / lows[0] < flat_tolerance and highs[-1] < highs[-2]:
        found.append(ChartPattern("Descending Triangle", BEARISH, 72.0))
    return found


def _swings(values: Sequence[float], rsi_values: Sequence[float], lower: bool) -> list[tuple[float, float]]:
    # Local extremes with two bars of margin at each end of the window
    swings = []
    for i in range(2, len(values) - 2):
        if lower:
            is_swing = values[i] < values[i - 1] and values[i] < values[i + 1]
        else:
            is_swing = values[i] > values[i - 1] and values[i] > values[i + 1]
        if is_swing:
            swings.append((values[i], rsi_values[i]))
    return swings


def rsi_divergences(
    highs: Sequence[float],
    lows: Sequence[float],
    rsi_values: Sequence[float],
    window: int = 15,
) -> list[ChartPattern]:
    """
    Regular and hidden RSI divergences over the last ``window`` bars.

    The last two swing lows drive the bullish cases: a lower price low
    with a higher RSI low is a regular divergence, the reverse a hidden
    one. Swing highs mirror this for the bearish cases.

    Args:
        highs: Sequence of high prices
        lows: Sequence of low prices
        rsi_values: RSI aligned with the price bars
        window: Trailing bars to search

    Returns:
        Divergences found, bullish before bearish
    """
    if len(rsi_values) < MIN_DIVERGENCE_BARS:
        return []
    recent_rsi = list(rsi_values[-window:])
    found = []

    swing_lows = _swings(list(lows[-window:]), recent_rsi, lower=True)
    if len(swing_lows) >= 2:
        (prev_price, prev_rsi), (last_price, last_rsi) = swing_lows[-2:]
        if last_price < prev_price and last_rsi > prev_rsi:
            found.append(ChartPattern("Bullish RSI Divergence", BULLISH, 80.0))
        elif last_price > prev_price and last_rsi < prev_rsi:
            found.append(ChartPattern("Hidden Bullish Divergence", BULLISH, 70.0))

    swing_highs = _swings(list(highs[-window:]), recent_rsi, lower=False)
    if len(swing_highs) >= 2:
        (prev_price, prev_rsi), (last_price, last_rsi) = swing_highs[-2:]
        if last_price > prev_price and last_rsi < prev_rsi:
            found.append(ChartPattern("Bearish RSI Divergence", BEARISH, 80.0))
        elif last_price < prev_price and last_rsi > prev_rsi:
            found.append(ChartPattern("Hidden Bearish Divergence", BEARISH, 70.0))
    return found

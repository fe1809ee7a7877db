"""Price levels: pivots, support/resistance and volume profile."""

from __future__ import annotations

from typing import NamedTuple, Sequence

import numpy as np

PIVOT_HIGH = "HIGH"
PIVOT_LOW = "LOW"


class Pivot(NamedTuple):
    index: int
    kind: str
    price: float


class SupportResistance(NamedTuple):
    supports: list[float]
    resistances: list[float]


class VolumeProfile(NamedTuple):
    poc: float
    value_area_high: float
    value_area_low: float


def find_pivots(
    highs: Sequence[float],
    lows: Sequence[float],
    period: int,
) -> list[Pivot]:
    """
    Find pivot highs and lows.

    Bar ``i`` is a pivot high iff its high is strictly greater than every
    other high among the ``2 * period + 1`` bars centered on it (pivot
    lows mirror this). A pivot is therefore only known ``period`` bars
    after it forms, and bars closer than ``period`` to either end are
    never pivots.

    Args:
        highs: Sequence of high prices
        lows: Sequence of low prices
        period: Bars required on each side

    Returns:
        Pivots in index order
    """
    pivots: list[Pivot] = []
    n = len(highs)
    for i in range(period, n - period):
        left = range(i - period, i)
        right = range(i + 1, i + period + 1)
        neighbours = [*left, *right]
        if all(highs[i] > highs[j] for j in neighbours):
            pivots.append(Pivot(i, PIVOT_HIGH, float(highs[i])))
        if all(lows[i] < lows[j] for j in neighbours):
            pivots.append(Pivot(i, PIVOT_LOW, float(lows[i])))
    return pivots


def confirmed_pivots(pivots: Sequence[Pivot], index: int, period: int) -> list[Pivot]:
    """Pivots whose right-hand window closed at or before ``index``."""
    return [p for p in pivots if p.index + period <= index]


def levels_from_pivots(pivots: Sequence[Pivot], limit: int = 3) -> SupportResistance:
    """Most recent ``limit`` pivot lows (supports) and highs (resistances)."""
    supports = [p.price for p in pivots if p.kind == PIVOT_LOW][-limit:]
    resistances = [p.price for p in pivots if p.kind == PIVOT_HIGH][-limit:]
    return SupportResistance(supports, resistances)


def support_resistance(
    highs: Sequence[float],
    lows: Sequence[float],
    period: int = 2,
    limit: int = 3,
) -> SupportResistance:
    """Support and resistance levels from the latest pivots."""
    return levels_from_pivots(find_pivots(highs, lows, period), limit)


def nearest_below(levels: Sequence[float], price: float) -> float | None:
    """Closest level strictly below ``price``."""
    below = [lvl for lvl in levels if lvl < price]
    return max(below) if below else None


def nearest_above(levels: Sequence[float], price: float) -> float | None:
    """Closest level strictly above ``price``."""
    above = [lvl for lvl in levels if lvl > price]
    return min(above) if above else None


def volume_profile(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    volumes: Sequence[float],
    bins: int = 24,
    value_area: float = 0.70,
) -> VolumeProfile | None:
    """
    Build a volume-at-price profile from typical prices.

    The point of control is the busiest bin; the value area grows from it
    towards the busier neighbour until it holds ``value_area`` of volume.

    Returns:
        VolumeProfile, or None for empty input
    """
    if len(closes) == 0:
        return None

    h = np.asarray(highs, dtype=np.float64)
    l = np.asarray(lows, dtype=np.float64)
    c = np.asarray(closes, dtype=np.float64)
    v = np.asarray(volumes, dtype=np.float64)
    typical = (h + l + c) / 3

    lo, hi = float(l.min()), float(h.max())
    if hi <= lo or v.sum() <= 0:
        mid = float(typical[-1])
        return VolumeProfile(mid, mid, mid)

    hist, edges = np.histogram(typical, bins=bins, range=(lo, hi), weights=v)
    poc_idx = int(np.argmax(hist))
    low_idx = high_idx = poc_idx
    captured = hist[poc_idx]
    target = value_area * hist.sum()

    while captured < target and (low_idx > 0 or high_idx < bins - 1):
        below = hist[low_idx - 1] if low_idx > 0 else -1.0
        above = hist[high_idx + 1] if high_idx < bins - 1 else -1.0
        if above >= below:
            high_idx += 1
            captured += hist[high_idx]
        else:
            low_idx -= 1
            captured += hist[low_idx]

    poc = float((edges[poc_idx] + edges[poc_idx + 1]) / 2)
    return VolumeProfile(poc, float(edges[high_idx + 1]), float(edges[low_idx]))

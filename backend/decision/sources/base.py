"""Analyzer source contracts."""

from __future__ import annotations

import math
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from core.errors import SourceUnavailable
from core.models.candle import Candle


def clamp(value: float, low: float = -1.0, high: float = 1.0) -> float:
    if math.isnan(value):
        raise ValueError("cannot clamp NaN")
    return max(low, min(high, value))


def finite_score(source: str, value: Any) -> float:
    """Coerce an analyzer reading to [-1, 1]; NaN and infinities raise SourceUnavailable."""
    score = float(value)
    if not math.isfinite(score):
        raise SourceUnavailable(f"{source}: non-finite score {score}")
    return clamp(score)


class AnalysisContext(BaseModel):
    """Everything an analyzer may look at for one instrument.

    ``candles`` maps timeframe -> candles (oldest first). The primary
    timeframe defaults to the first one given.
    """

    symbol: str
    candles: dict[str, list[Candle]] = Field(default_factory=dict)
    primary_timeframe: str = ""
    funding_rate: float | None = None
    open_interest: float | None = None
    previous_open_interest: float | None = None
    # (bid volume - ask volume) / (bid volume + ask volume), in [-1, 1]
    order_book_imbalance: float | None = Field(default=None, ge=-1, le=1)
    model_score: float | None = None
    equity: float = Field(default=10_000.0, gt=0)
    risk_percent: float = Field(default=2.0, gt=0, le=100)

    @property
    def primary(self) -> str:
        if self.primary_timeframe:
            return self.primary_timeframe
        return next(iter(self.candles), "")

    def primary_candles(self) -> list[Candle]:
        return self.candles.get(self.primary, [])


class SourceResult(BaseModel):
    """One analyzer's opinion. ``score`` is in [-1, 1], or None for "no opinion"."""

    model_config = ConfigDict(frozen=True)

    source: str
    score: float | None
    label: str = ""
    details: dict[str, Any] = Field(default_factory=dict)


@runtime_checkable
class AnalyzerSource(Protocol):
    """Protocol for analyzer sources consumed by the aggregator."""

    name: str

    async def analyze(self, context: AnalysisContext) -> SourceResult:
        """Score the context. Raising marks the source as failed for this call."""
        ...


@runtime_checkable
class ScoringModel(Protocol):
    """Pluggable model: a heuristic, a statistical model or a stub."""

    def score(self, context: AnalysisContext) -> float | None:
        ...

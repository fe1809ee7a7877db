"""Signal aggregator: concurrent fan-out to analyzer sources, weighted fan-in.

Every source is launched at once and awaited together, each under its own
timeout. A source that raises or times out is excluded from the weighted
sum (its weight drops to 0); it is never counted as a 0 score.

    final_score = 100 * sum(score * weight) / sum(weight)
    confidence  = 100 * max(0, 1 - pvariance(scores))
"""

from __future__ import annotations

import asyncio
import logging
import math
from datetime import datetime, timezone
from enum import Enum
from statistics import pvariance
from typing import Sequence

from pydantic import BaseModel, Field

from core.indicators import levels_from_pivots, find_pivots, volume_profile
from core.models.candle import CandleSeries
from core.models.config import DEFAULT_SOURCE_WEIGHTS, SizingPolicy
from core.models.signal import Side
from core.risk import plan_from_levels

from decision.sources.base import AnalysisContext, AnalyzerSource, SourceResult

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_TIMEOUT = 5.0
DEFAULT_PIVOT_PERIOD = 10

UNAVAILABLE_RECOMMENDATION = "ANALYSIS UNAVAILABLE - every analyzer source failed"


class Direction(str, Enum):
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"
    NEUTRAL = "NEUTRAL"


class Strength(str, Enum):
    WEAK = "WEAK"
    MODERATE = "MODERATE"
    STRONG = "STRONG"
    VERY_STRONG = "VERY_STRONG"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class SourceBreakdown(BaseModel):
    """One source's contribution. ``weight`` is 0 for failed or silent sources."""

    source: str
    score: float | None = None
    weight: float = 0.0
    label: str = ""
    error: str | None = None
    details: dict = Field(default_factory=dict)

    @property
    def contributes(self) -> bool:
        return self.score is not None and self.weight > 0


class KeyLevels(BaseModel):
    supports: list[float] = Field(default_factory=list)
    resistances: list[float] = Field(default_factory=list)
    poc: float | None = None
    value_area_high: float | None = None
    value_area_low: float | None = None


class AggregatedSignal(BaseModel):
    symbol: str
    final_score: float
    confidence: float
    direction: Direction
    strength: Strength
    risk_level: RiskLevel
    recommendation: str
    alerts: list[str] = Field(default_factory=list)
    breakdown: list[SourceBreakdown] = Field(default_factory=list)
    key_levels: KeyLevels = Field(default_factory=KeyLevels)
    entry_price: float | None = None
    stop_loss: float | None = None
    take_profit: float | None = None
    position_size: float | None = None
    risk_reward: float | None = None
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def failed_sources(self) -> list[str]:
        return [b.source for b in self.breakdown if b.error is not None]


def combine_scores(breakdown: Sequence[SourceBreakdown]) -> tuple[float, float]:
    """Return (final_score, confidence) over the contributing sources.

    Both are 0 when nothing contributes.
    """
    contributing = [b for b in breakdown if b.contributes]
    total_weight = sum(b.weight for b in contributing)
    if not contributing or total_weight <= 0:
        return 0.0, 0.0

    final_score = 100 * sum(b.score * b.weight for b in contributing) / total_weight
    scores = [b.score for b in contributing]
    variance = pvariance(scores) if len(scores) > 1 else 0.0
    confidence = 100 * max(0.0, 1 - variance)
    return final_score, confidence


def classify_direction(final_score: float) -> Direction:
    if final_score > 10:
        return Direction.BULLISH
    if final_score < -10:
        return Direction.BEARISH
    return Direction.NEUTRAL


def classify_strength(final_score: float) -> Strength:
    magnitude = abs(final_score)
    if magnitude < 20:
        return Strength.WEAK
    if magnitude < 50:
        return Strength.MODERATE
    if magnitude < 80:
        return Strength.STRONG
    return Strength.VERY_STRONG


def classify_risk(risk_score: float | None, confidence: float) -> RiskLevel:
    """CRITICAL without a risk reading or below 30 confidence."""
    if risk_score is None or confidence < 30:
        return RiskLevel.CRITICAL
    if risk_score < 0.3:
        return RiskLevel.HIGH
    if risk_score < 0.7:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def build_recommendation(final_score: float, confidence: float) -> str:
    if final_score > 50 and confidence > 60:
        return "STRONG BUY - Multiple signals align for bullish move"
    if final_score > 20 and confidence > 50:
        return "BUY - Moderate bullish signals, manage risk carefully"
    if final_score < -50 and confidence > 60:
        return "STRONG SELL - Multiple signals align for bearish move"
    if final_score < -20 and confidence > 50:
        return "SELL - Moderate bearish signals, manage risk carefully"
    if confidence < 30:
        return "WAIT - Conflicting signals, avoid trading"
    return "NEUTRAL - No clear directional bias, range trading only"


def build_alerts(
    risk_level: RiskLevel,
    strength: Strength,
    confidence: float,
    breakdown: Sequence[SourceBreakdown],
) -> list[str]:
    alerts = []
    if risk_level is RiskLevel.CRITICAL:
        alerts.append("CRITICAL RISK - Avoid trading")
    elif risk_level is RiskLevel.HIGH:
        alerts.append("HIGH RISK - Use reduced position size")
    if confidence < 30:
        alerts.append("LOW CONFIDENCE - Wait for better setup")
    if strength is Strength.VERY_STRONG and confidence > 70:
        alerts.append("HIGH PROBABILITY SETUP")
    failed = [b.source for b in breakdown if b.error is not None]
    if failed:
        alerts.append(
            f"DEGRADED - {len(failed)} of {len(breakdown)} sources unavailable ({', '.join(failed)})"
        )
    return alerts


def key_levels(series: CandleSeries, pivot_period: int = DEFAULT_PIVOT_PERIOD) -> KeyLevels:
    """Support/resistance from confirmed pivots plus the volume profile."""
    if len(series) == 0:
        return KeyLevels()
    highs, lows = series.get_highs(), series.get_lows()
    levels = levels_from_pivots(find_pivots(highs, lows, pivot_period))
    profile = volume_profile(highs, lows, series.get_closes(), series.get_volumes())
    return KeyLevels(
        supports=levels.supports,
        resistances=levels.resistances,
        poc=profile.poc if profile else None,
        value_area_high=profile.value_area_high if profile else None,
        value_area_low=profile.value_area_low if profile else None,
    )


class SignalAggregator:
    """Combine analyzer sources into one weighted consensus."""

    def __init__(
        self,
        sources: Sequence[AnalyzerSource],
        weights: dict[str, float] | None = None,
        timeout: float = DEFAULT_SOURCE_TIMEOUT,
        sizing: SizingPolicy | None = None,
        risk_source: str = "risk",
        pivot_period: int = DEFAULT_PIVOT_PERIOD,
    ):
        self.sources = list(sources)
        self.weights = dict(DEFAULT_SOURCE_WEIGHTS if weights is None else weights)
        self.timeout = timeout
        self.sizing = sizing or SizingPolicy()
        self.risk_source = risk_source
        self.pivot_period = pivot_period

        unweighted = [s.name for s in self.sources if s.name not in self.weights]
        if unweighted:
            logger.warning(f"Sources without a weight will not contribute: {unweighted}")

    async def _run_source(self, source: AnalyzerSource, context: AnalysisContext) -> SourceResult:
        return await asyncio.wait_for(source.analyze(context), timeout=self.timeout)

    async def collect(self, context: AnalysisContext) -> list[SourceBreakdown]:
        """Run every source concurrently and wait for all of them to settle."""
        outcomes = await asyncio.gather(
            *(self._run_source(source, context) for source in self.sources),
            return_exceptions=True,
        )

        breakdown = []
        for source, outcome in zip(self.sources, outcomes):
            if isinstance(outcome, Exception):
                if isinstance(outcome, asyncio.TimeoutError):
                    error = f"timed out after {self.timeout:g}s"
                else:
                    error = str(outcome) or type(outcome).__name__
                logger.warning(f"{context.symbol}: source {source.name} failed: {error}")
                breakdown.append(SourceBreakdown(source=source.name, label="ERROR", error=error))
                continue
            if isinstance(outcome, BaseException):
                raise outcome

            score = outcome.score
            if score is not None and not math.isfinite(score):
                logger.warning(f"{context.symbol}: source {source.name} returned {score}")
                breakdown.append(
                    SourceBreakdown(source=source.name, label="ERROR", error=f"non-finite score {score}")
                )
                continue
            if score is not None:
                score = max(-1.0, min(1.0, score))
            breakdown.append(
                SourceBreakdown(
                    source=source.name,
                    score=score,
                    weight=self.weights.get(source.name, 0.0) if score is not None else 0.0,
                    label=outcome.label,
                    details=outcome.details,
                )
            )
        return breakdown

    async def aggregate(self, context: AnalysisContext) -> AggregatedSignal:
        series = CandleSeries.from_candles(context.primary_candles())
        levels = key_levels(series, self.pivot_period)
        breakdown = await self.collect(context)

        if not any(b.error is None for b in breakdown):
            logger.warning(f"{context.symbol}: all {len(breakdown)} sources failed")
            return AggregatedSignal(
                symbol=context.symbol,
                final_score=0.0,
                confidence=0.0,
                direction=Direction.NEUTRAL,
                strength=Strength.WEAK,
                risk_level=RiskLevel.CRITICAL,
                recommendation=UNAVAILABLE_RECOMMENDATION,
                alerts=build_alerts(RiskLevel.CRITICAL, Strength.WEAK, 0.0, breakdown),
                breakdown=breakdown,
                key_levels=levels,
            )

        final_score, confidence = combine_scores(breakdown)
        direction = classify_direction(final_score)
        strength = classify_strength(final_score)
        risk_score = next(
            (b.score for b in breakdown if b.source == self.risk_source), None
        )
        risk_level = classify_risk(risk_score, confidence)
        alerts = build_alerts(risk_level, strength, confidence, breakdown)

        signal = AggregatedSignal(
            symbol=context.symbol,
            final_score=round(final_score, 2),
            confidence=round(confidence, 2),
            direction=direction,
            strength=strength,
            risk_level=risk_level,
            recommendation=build_recommendation(final_score, confidence),
            alerts=alerts,
            breakdown=breakdown,
            key_levels=levels,
        )
        if len(series):
            self._attach_plan(signal, context, series.get_closes()[-1])

        logger.info(
            f"{context.symbol}: {direction.value} score={signal.final_score:+.2f} "
            f"confidence={signal.confidence:.1f} risk={risk_level.value}"
        )
        return signal

    def _attach_plan(self, signal: AggregatedSignal, context: AnalysisContext, price: float) -> None:
        signal.entry_price = price
        if signal.direction is Direction.NEUTRAL:
            return
        side = Side.LONG if signal.direction is Direction.BULLISH else Side.SHORT
        policy = self.sizing.model_copy(update={"risk_percent": context.risk_percent})
        plan = plan_from_levels(
            side,
            price,
            signal.key_levels.supports,
            signal.key_levels.resistances,
            context.equity,
            policy,
        )
        signal.entry_price = plan.entry
        signal.stop_loss = plan.stop
        signal.take_profit = plan.target
        signal.position_size = plan.size
        signal.risk_reward = round(plan.risk_reward, 2)
        signal.alerts.extend(plan.warnings)

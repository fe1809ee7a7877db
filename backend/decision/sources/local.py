"""In-process analyzer sources built on the core indicator library.

Each source computes synchronously in ``_compute``; ``analyze`` runs that
in a worker thread, leaving the event loop free while it works.
"""

from __future__ import annotations

import asyncio
import logging

from core.errors import SourceUnavailable
from core.indicators import (
    BULLISH,
    IndicatorCalculator,
    PIVOT_HIGH,
    PIVOT_LOW,
    adx,
    atr,
    double_tops_bottoms,
    ema,
    find_pivots,
    head_and_shoulders,
    levels_from_pivots,
    momentum,
    rsi,
    rsi_divergences,
    sma,
    triangles,
    volume_profile,
)
from core.models.candle import CandleSeries
from core.precision_gate import PrecisionGate, open_interest_delta_pct, timeframe_state

from decision.sources.base import AnalysisContext, ScoringModel, SourceResult, clamp, finite_score

logger = logging.getLogger(__name__)

DEFAULT_TIMEFRAME_WEIGHTS = {"1h": 0.3, "4h": 0.4, "1d": 0.3}


def _primary_series(context: AnalysisContext, min_bars: int = 2) -> CandleSeries:
    series = CandleSeries.from_candles(context.primary_candles())
    if len(series) < min_bars:
        raise SourceUnavailable(
            f"{context.symbol} {context.primary or '-'}: {len(series)} closed bars, need {min_bars}"
        )
    return series


def risk_score_from_total(total_risk: float) -> float:
    """Map a 0-10 risk reading onto [-1, 1]; 5 is neutral, lower is safer."""
    return clamp((5.0 - total_risk) / 5.0)


def risk_label(total_risk: float) -> str:
    if total_risk < 3:
        return "LOW_RISK"
    if total_risk > 7:
        return "HIGH_RISK"
    return "MODERATE_RISK"


class LocalSource:
    """Base for sources that compute in-process."""

    name: str

    async def analyze(self, context: AnalysisContext) -> SourceResult:
        return await asyncio.to_thread(self._compute, context)

    def _compute(self, context: AnalysisContext) -> SourceResult:
        raise NotImplementedError


class MultiTimeframeSource(LocalSource):
    """Trend agreement across timeframes.

    A timeframe is bullish when price > EMA20 > EMA50 and bearish when
    price < EMA20 < EMA50. The score is the weighted bull/bear balance
    scaled by how many timeframes agree.
    """

    name = "multi_timeframe"

    def __init__(self, timeframe_weights: dict[str, float] | None = None):
        self.timeframe_weights = timeframe_weights or DEFAULT_TIMEFRAME_WEIGHTS

    def _compute(self, context: AnalysisContext) -> SourceResult:
        rows = []
        for tf, candles in context.candles.items():
            series = CandleSeries.from_candles(candles)
            if len(series) < 2:
                continue
            closes = series.get_closes()
            price, fast, slow = closes[-1], ema(closes, 20)[-1], ema(closes, 50)[-1]
            if price > fast > slow:
                trend = 1
            elif price < fast < slow:
                trend = -1
            else:
                trend = 0
            adx_value = adx(series.get_highs(), series.get_lows(), closes).adx[-1]
            strength = min(100.0, adx_value * 2 + abs(momentum(closes)[-1]))
            rows.append((tf, trend, strength, adx_value))

        if not rows:
            raise SourceUnavailable(f"{context.symbol}: no timeframe with enough bars")

        default_weight = 1.0 / len(rows)
        weights = {tf: self.timeframe_weights.get(tf, default_weight) for tf, *_ in rows}
        total = sum(weights.values())
        bull = sum(weights[tf] for tf, trend, *_ in rows if trend > 0) / total
        bear = sum(weights[tf] for tf, trend, *_ in rows if trend < 0) / total

        counts = [sum(1 for _, t, *_ in rows if t == v) for v in (1, -1, 0)]
        correlation = max(counts) / len(rows) * 100
        net = clamp((bull - bear) * correlation / 100)

        avg_strength = sum(r[2] for r in rows) / len(rows)
        avg_adx = sum(r[3] for r in rows) / len(rows)
        if net > 0.2:
            label = "BULLISH"
        elif net < -0.2:
            label = "BEARISH"
        else:
            label = "NEUTRAL"
        return SourceResult(
            source=self.name,
            score=net,
            label=label,
            details={
                "trends": {tf: trend for tf, trend, *_ in rows},
                "correlation": correlation,
                "confidence": (correlation + avg_strength + avg_adx) / 3,
            },
        )


class TechnicalSource(LocalSource):
    """Indicator confluence on the primary timeframe.

    Starts from a neutral 0.5 long probability and nudges it with the EMA
    trend, ADX, Donchian breakouts, MACD histogram and RSI extremes.
    """

    name = "technical"
    MAX_TILT = 0.29

    def __init__(self, calculator: IndicatorCalculator | None = None):
        self.calculator = calculator or IndicatorCalculator()

    def _compute(self, context: AnalysisContext) -> SourceResult:
        series = _primary_series(context)
        values = self.calculator.calculate_all(
            series.get_highs(), series.get_lows(), series.get_closes(), series.get_volumes()
        )
        close = series.get_closes()[-1]

        prob = 0.5
        if values["ema_fast"][-1] > values["ema_slow"][-1]:
            prob += 0.08
        elif values["ema_fast"][-1] < values["ema_slow"][-1]:
            prob -= 0.08
        if values["adx"][-1] > 22 and prob != 0.5:
            prob += 0.05 if prob > 0.5 else -0.05
        if close > values["donchian_upper"][-2]:
            prob += 0.07
        elif close < values["donchian_lower"][-2]:
            prob -= 0.07
        if values["macd_hist"][-1] > 0:
            prob += 0.05
        elif values["macd_hist"][-1] < 0:
            prob -= 0.05
        if values["rsi"][-1] < 30:
            prob += 0.04
        elif values["rsi"][-1] > 70:
            prob -= 0.04

        if prob > 0.55:
            label = "LONG"
        elif prob < 0.45:
            label = "SHORT"
        else:
            label = "NEUTRAL"
        return SourceResult(
            source=self.name,
            score=clamp((prob - 0.5) / self.MAX_TILT),
            label=label,
            details={
                "long_probability": round(prob, 4),
                "rsi": values["rsi"][-1],
                "adx": values["adx"][-1],
                "macd_hist": values["macd_hist"][-1],
            },
        )


class VolumeSource(LocalSource):
    """Relative volume behind the recent price move, plus the volume profile."""

    name = "volume"

    def __init__(self, period: int = 20, lookback: int = 5):
        self.period = period
        self.lookback = lookback

    def _compute(self, context: AnalysisContext) -> SourceResult:
        series = _primary_series(context)
        closes, volumes = series.get_closes(), series.get_volumes()
        average = sma(volumes, self.period)[-1]
        relative = volumes[-1] / average if average > 0 else 1.0

        back = min(self.lookback, len(closes) - 1)
        change = closes[-1] - closes[-1 - back]
        direction = (change > 0) - (change < 0)
        score = clamp(direction * min(1.0, relative / 2))

        if relative >= 1.5:
            label = "HIGH_VOLUME"
        elif relative < 0.7:
            label = "LOW_VOLUME"
        else:
            label = "NORMAL_VOLUME"

        details: dict = {"relative_volume": relative}
        profile = volume_profile(series.get_highs(), series.get_lows(), closes, volumes)
        if profile is not None:
            details.update(profile._asdict())
        return SourceResult(source=self.name, score=score, label=label, details=details)


class OrderFlowSource(LocalSource):
    """Order book imbalance supplied by the caller."""

    name = "order_flow"

    def _compute(self, context: AnalysisContext) -> SourceResult:
        imbalance = context.order_book_imbalance
        if imbalance is None:
            raise SourceUnavailable(f"{context.symbol}: no order book imbalance supplied")
        if imbalance > 0.2:
            label = "BUY_PRESSURE"
        elif imbalance < -0.2:
            label = "SELL_PRESSURE"
        else:
            label = "BALANCED"
        return SourceResult(
            source=self.name, score=clamp(imbalance), label=label, details={"imbalance": imbalance}
        )


class RiskSource(LocalSource):
    """Market risk on a 0-10 scale from volatility and funding pressure.

    Volatility contributes twice the ATR percent (capped at 8) and funding
    up to 2 more points at |funding| >= 0.1%.
    """

    name = "risk"

    def __init__(self, period: int = 14):
        self.period = period

    def _compute(self, context: AnalysisContext) -> SourceResult:
        series = _primary_series(context)
        closes = series.get_closes()
        atr_value = atr(series.get_highs(), series.get_lows(), closes, self.period)[-1]
        atr_pct = atr_value / closes[-1] * 100 if closes[-1] > 0 else 0.0

        volatility_risk = min(8.0, atr_pct * 2)
        funding_risk = 0.0
        if context.funding_rate is not None:
            funding_risk = min(2.0, abs(context.funding_rate) / 0.0005)
        total = min(10.0, volatility_risk + funding_risk)

        return SourceResult(
            source=self.name,
            score=risk_score_from_total(total),
            label=risk_label(total),
            details={"total_risk": total, "atr_percent": atr_pct},
        )


class PrecisionGateSource(LocalSource):
    """The precision gate as a signed opinion: gate score times side."""

    name = "precision_gate"

    def __init__(self, gate: PrecisionGate | None = None):
        self.gate = gate or PrecisionGate()

    def _compute(self, context: AnalysisContext) -> SourceResult:
        states = [timeframe_state(tf, candles) for tf, candles in context.candles.items()]
        decision = self.gate.evaluate(
            states,
            model_score=context.model_score,
            funding_rate=context.funding_rate,
            oi_delta_pct=open_interest_delta_pct(
                context.open_interest, context.previous_open_interest
            ),
        )
        score = decision.score * decision.side.sign if decision.side else 0.0
        return SourceResult(
            source=self.name,
            score=score,
            label=decision.status.value,
            details={"side": decision.side.value if decision.side else None, "reasons": decision.reasons},
        )


class MarketStructureSource(LocalSource):
    """Higher highs and higher lows (or the reverse) among recent pivots."""

    name = "market_structure"

    def __init__(self, period: int = 5):
        self.period = period

    def _compute(self, context: AnalysisContext) -> SourceResult:
        series = _primary_series(context, min_bars=2 * self.period + 1)
        pivots = find_pivots(series.get_highs(), series.get_lows(), self.period)
        highs = [p.price for p in pivots if p.kind == PIVOT_HIGH]
        lows = [p.price for p in pivots if p.kind == PIVOT_LOW]
        levels = levels_from_pivots(pivots)
        details = {"supports": levels.supports, "resistances": levels.resistances}

        if len(highs) < 2 or len(lows) < 2:
            return SourceResult(source=self.name, score=0.0, label="RANGE", details=details)

        higher_high = highs[-1] > highs[-2]
        higher_low = lows[-1] > lows[-2]
        if higher_high and higher_low:
            score, label = 1.0, "UPTREND"
        elif not higher_high and not higher_low:
            score, label = -1.0, "DOWNTREND"
        else:
            score, label = 0.0, "RANGE"
        return SourceResult(source=self.name, score=score, label=label, details=details)


class PatternSource(LocalSource):
    """Chart patterns and RSI divergences on the primary timeframe.

    Each bullish match adds its confidence and each bearish one subtracts
    it. A net reading beyond +/-20 sets the direction; the score is the
    net over 100, capped at full strength.
    """

    name = "pattern"
    MIN_NET = 20.0

    def __init__(self, period: int = 5, divergence_window: int = 15):
        self.period = period
        self.divergence_window = divergence_window

    def _compute(self, context: AnalysisContext) -> SourceResult:
        series = _primary_series(context, min_bars=2 * self.period + 1)
        highs, lows = series.get_highs(), series.get_lows()
        pivots = find_pivots(highs, lows, self.period)
        found = [
            *head_and_shoulders(pivots),
            *double_tops_bottoms(pivots),
            *triangles(pivots),
            *rsi_divergences(highs, lows, rsi(series.get_closes()), self.divergence_window),
        ]

        net = sum(p.confidence if p.bias == BULLISH else -p.confidence for p in found)
        if net > self.MIN_NET:
            label = "BULLISH"
        elif net < -self.MIN_NET:
            label = "BEARISH"
        else:
            label = "NEUTRAL"
        score = clamp(net / 100) if label != "NEUTRAL" else 0.0
        logger.debug(f"{context.symbol}: {len(found)} patterns, net {net:+.0f}")
        return SourceResult(
            source=self.name,
            score=score,
            label=label,
            details={"patterns": [p.name for p in found], "net": net},
        )


class ModelScoreSource(LocalSource):
    """Adapter from a ScoringModel to an analyzer source."""

    def __init__(self, model: ScoringModel, name: str = "model"):
        self.model = model
        self.name = name

    def _compute(self, context: AnalysisContext) -> SourceResult:
        score = self.model.score(context)
        if score is None:
            return SourceResult(source=self.name, score=None, label="UNAVAILABLE")
        return SourceResult(source=self.name, score=finite_score(self.name, score), label="MODEL")


def default_sources(gate: PrecisionGate | None = None) -> list:
    """The built-in local sources, one per default weight."""
    return [
        MultiTimeframeSource(),
        TechnicalSource(),
        VolumeSource(),
        OrderFlowSource(),
        RiskSource(),
        PrecisionGateSource(gate),
        MarketStructureSource(),
        PatternSource(),
    ]

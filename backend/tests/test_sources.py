"""Tests for the built-in analyzer sources."""

import math
from datetime import datetime, timedelta, timezone

import pytest

from core.errors import SourceUnavailable
from core.models.candle import Candle
from core.models.config import DEFAULT_SOURCE_WEIGHTS
from decision.sources import (
    AnalysisContext,
    AnalyzerSource,
    MarketStructureSource,
    ModelScoreSource,
    MultiTimeframeSource,
    OrderFlowSource,
    PatternSource,
    PrecisionGateSource,
    RiskSource,
    TechnicalSource,
    VolumeSource,
    default_sources,
    risk_label,
    risk_score_from_total,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

T0 = datetime(2025, 2, 1, tzinfo=timezone.utc)


def make_candles(closes, volumes=None, wick: float = 0.25) -> list[Candle]:
    """Candles that open at the previous close with a small wick either side."""
    volumes = volumes or [100.0] * len(closes)
    candles = []
    prev = closes[0]
    for i, (c, v) in enumerate(zip(closes, volumes)):
        candles.append(
            Candle(
                time=T0 + timedelta(hours=i),
                open=prev,
                high=max(prev, c) + wick,
                low=min(prev, c) - wick,
                close=c,
                volume=v,
            )
        )
        prev = c
    return candles


def make_hl_candles(mids, half_range: float = 1.0) -> list[Candle]:
    return [
        Candle(time=T0 + timedelta(hours=i), open=m, high=m + half_range, low=m - half_range, close=m)
        for i, m in enumerate(mids)
    ]


def rising(n: int = 250) -> list[float]:
    return [100.0 + i for i in range(n)]


def falling(n: int = 250) -> list[float]:
    return [400.0 - i for i in range(n)]


def context(candles=None, **kwargs) -> AnalysisContext:
    if candles is not None and not isinstance(candles, dict):
        candles = {"1h": candles}
    return AnalysisContext(symbol="BTCUSDT", candles=candles or {}, **kwargs)


# ---------------------------------------------------------------------------
# Multi-timeframe
# ---------------------------------------------------------------------------

class TestMultiTimeframe:
    @pytest.mark.asyncio
    async def test_all_timeframes_bullish(self):
        ctx = context({tf: make_candles(rising(80)) for tf in ("1h", "4h", "1d")})
        result = await MultiTimeframeSource().analyze(ctx)
        assert result.score == pytest.approx(1.0)
        assert result.label == "BULLISH"
        assert result.details["trends"] == {"1h": 1, "4h": 1, "1d": 1}
        assert result.details["correlation"] == pytest.approx(100.0)

    @pytest.mark.asyncio
    async def test_all_timeframes_bearish(self):
        ctx = context({tf: make_candles(falling(80)) for tf in ("1h", "4h")})
        result = await MultiTimeframeSource().analyze(ctx)
        assert result.score == pytest.approx(-1.0)
        assert result.label == "BEARISH"

    @pytest.mark.asyncio
    async def test_mixed_timeframes_scaled_by_agreement(self):
        ctx = context({
            "1h": make_candles(rising(80)),
            "4h": make_candles(falling(80)),
            "1d": make_candles(rising(80)),
        })
        result = await MultiTimeframeSource().analyze(ctx)
        # (0.6 - 0.4) * 2/3 agreement
        assert result.score == pytest.approx(0.2 * 2 / 3)
        assert result.label == "NEUTRAL"

    @pytest.mark.asyncio
    async def test_no_usable_timeframe(self):
        ctx = context({"1h": make_candles([100.0])})
        with pytest.raises(SourceUnavailable):
            await MultiTimeframeSource().analyze(ctx)


# ---------------------------------------------------------------------------
# Technical
# ---------------------------------------------------------------------------

class TestTechnical:
    @pytest.mark.asyncio
    async def test_uptrend_leans_long(self):
        result = await TechnicalSource().analyze(context(make_candles(rising())))
        assert result.label == "LONG"
        assert 0 < result.score <= 1
        assert result.details["long_probability"] > 0.55

    @pytest.mark.asyncio
    async def test_downtrend_leans_short(self):
        result = await TechnicalSource().analyze(context(make_candles(falling())))
        assert result.label == "SHORT"
        assert -1 <= result.score < 0

    @pytest.mark.asyncio
    async def test_flat_market_is_neutral(self):
        result = await TechnicalSource().analyze(context(make_candles([100.0] * 60)))
        assert result.label == "NEUTRAL"
        assert result.score == pytest.approx(0.0)

    @pytest.mark.asyncio
    async def test_needs_two_bars(self):
        with pytest.raises(SourceUnavailable):
            await TechnicalSource().analyze(context(make_candles([100.0])))


# ---------------------------------------------------------------------------
# Volume and order flow
# ---------------------------------------------------------------------------

class TestVolume:
    @pytest.mark.asyncio
    async def test_volume_spike_behind_rally(self):
        candles = make_candles(rising(30), volumes=[100.0] * 29 + [300.0])
        result = await VolumeSource().analyze(context(candles))
        # 300 against a 20-bar average of 110
        assert result.details["relative_volume"] == pytest.approx(300 / 110)
        assert result.score == pytest.approx(1.0)
        assert result.label == "HIGH_VOLUME"
        assert "poc" in result.details

    @pytest.mark.asyncio
    async def test_normal_volume_on_decline(self):
        result = await VolumeSource().analyze(context(make_candles(falling(30))))
        assert result.score == pytest.approx(-0.5)
        assert result.label == "NORMAL_VOLUME"

    @pytest.mark.asyncio
    async def test_flat_price_has_no_direction(self):
        result = await VolumeSource().analyze(context(make_candles([100.0] * 30)))
        assert result.score == 0


class TestOrderFlow:
    @pytest.mark.parametrize(
        "imbalance,label",
        [(0.5, "BUY_PRESSURE"), (-0.5, "SELL_PRESSURE"), (0.1, "BALANCED")],
    )
    @pytest.mark.asyncio
    async def test_labels(self, imbalance, label):
        result = await OrderFlowSource().analyze(context(order_book_imbalance=imbalance))
        assert result.score == pytest.approx(imbalance)
        assert result.label == label

    @pytest.mark.asyncio
    async def test_missing_imbalance(self):
        with pytest.raises(SourceUnavailable):
            await OrderFlowSource().analyze(context())


# ---------------------------------------------------------------------------
# Risk
# ---------------------------------------------------------------------------

class TestRisk:
    def test_total_to_score(self):
        assert risk_score_from_total(0) == 1.0
        assert risk_score_from_total(5) == 0.0
        assert risk_score_from_total(10) == -1.0

    def test_labels(self):
        assert risk_label(2.9) == "LOW_RISK"
        assert risk_label(3.0) == "MODERATE_RISK"
        assert risk_label(7.1) == "HIGH_RISK"

    @pytest.mark.asyncio
    async def test_volatility_and_funding(self):
        # Flat candles with a 1.0 range -> ATR 1% of price -> 2 points, funding 0.05% -> 1 point
        candles = make_hl_candles([100.0] * 30, half_range=0.5)
        result = await RiskSource().analyze(context(candles, funding_rate=0.0005))
        assert result.details["total_risk"] == pytest.approx(3.0)
        assert result.score == pytest.approx(0.4)
        assert result.label == "MODERATE_RISK"

    @pytest.mark.asyncio
    async def test_funding_capped(self):
        candles = make_hl_candles([100.0] * 30, half_range=0.5)
        result = await RiskSource().analyze(context(candles, funding_rate=-0.01))
        assert result.details["total_risk"] == pytest.approx(4.0)


# ---------------------------------------------------------------------------
# Precision gate and market structure
# ---------------------------------------------------------------------------

class TestPrecisionGateSource:
    @pytest.mark.asyncio
    async def test_aligned_uptrend_scores_positive(self):
        ctx = context({tf: make_candles(rising()) for tf in ("1h", "4h", "1d")})
        result = await PrecisionGateSource().analyze(ctx)
        assert result.score > 0
        assert result.details["side"] == "LONG"
        assert len(result.details["reasons"]) == 6

    @pytest.mark.asyncio
    async def test_aligned_downtrend_scores_negative(self):
        ctx = context({tf: make_candles(falling()) for tf in ("1h", "4h", "1d")})
        result = await PrecisionGateSource().analyze(ctx)
        assert result.score < 0
        assert result.details["side"] == "SHORT"

    @pytest.mark.asyncio
    async def test_too_few_timeframes(self):
        ctx = context({tf: make_candles(rising()) for tf in ("1h", "4h")})
        with pytest.raises(ValueError):
            await PrecisionGateSource().analyze(ctx)


def _zigzag(n: int, drift: float, base: float = 100.0) -> list[float]:
    wave = [0, 1, 2, 3, 4, 3, 2, 1]
    return [base + i * drift + wave[i % 8] for i in range(n)]


class TestMarketStructure:
    @pytest.mark.asyncio
    async def test_higher_highs_and_lows(self):
        candles = make_hl_candles(_zigzag(40, 0.5))
        result = await MarketStructureSource(period=2).analyze(context(candles))
        assert result.label == "UPTREND"
        assert result.score == 1.0

    @pytest.mark.asyncio
    async def test_lower_highs_and_lows(self):
        candles = make_hl_candles(_zigzag(40, -0.5))
        result = await MarketStructureSource(period=2).analyze(context(candles))
        assert result.label == "DOWNTREND"
        assert result.score == -1.0

    @pytest.mark.asyncio
    async def test_flat_is_range(self):
        candles = make_hl_candles([100.0] * 40)
        result = await MarketStructureSource(period=2).analyze(context(candles))
        assert result.label == "RANGE"
        assert result.score == 0.0

    @pytest.mark.asyncio
    async def test_needs_a_full_pivot_window(self):
        with pytest.raises(SourceUnavailable):
            await MarketStructureSource(period=5).analyze(context(make_hl_candles([100.0] * 10)))


# ---------------------------------------------------------------------------
# Chart patterns
# ---------------------------------------------------------------------------

DOUBLE_BOTTOM = [
    110.0, 108.0, 106.0, 104.0, 102.0, 100.0, 102.0, 104.0, 106.0, 106.0, 106.0,
    104.0, 103.0, 102.0, 101.0, 100.5, 102.0, 104.0, 106.0, 108.0, 110.0,
]


class TestPattern:
    @pytest.mark.asyncio
    async def test_double_bottom_scores_bullish(self):
        result = await PatternSource().analyze(context(make_hl_candles(DOUBLE_BOTTOM)))
        assert result.label == "BULLISH"
        assert result.score == pytest.approx(0.78)
        assert result.details["patterns"] == ["Double Bottom"]

    @pytest.mark.asyncio
    async def test_double_top_scores_bearish(self):
        mids = [210.0 - m for m in DOUBLE_BOTTOM]
        result = await PatternSource().analyze(context(make_hl_candles(mids)))
        assert result.label == "BEARISH"
        assert result.score == pytest.approx(-0.78)
        assert result.details["patterns"] == ["Double Top"]

    @pytest.mark.asyncio
    async def test_steady_trend_is_neutral(self):
        result = await PatternSource().analyze(context(make_hl_candles(rising(60))))
        assert result.label == "NEUTRAL"
        assert result.score == 0.0
        assert result.details["patterns"] == []

    @pytest.mark.asyncio
    async def test_needs_a_full_pivot_window(self):
        with pytest.raises(SourceUnavailable):
            await PatternSource(period=5).analyze(context(make_hl_candles([100.0] * 10)))


# ---------------------------------------------------------------------------
# Model adapter and defaults
# ---------------------------------------------------------------------------

class FixedModel:
    def __init__(self, value):
        self.value = value

    def score(self, context):
        return self.value


class TestModelScoreSource:
    @pytest.mark.asyncio
    async def test_score_clamped(self):
        result = await ModelScoreSource(FixedModel(2.0)).analyze(context())
        assert result.score == 1.0
        assert result.source == "model"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf])
    async def test_non_finite_score_rejected(self, value):
        with pytest.raises(SourceUnavailable, match="non-finite"):
            await ModelScoreSource(FixedModel(value)).analyze(context())

    @pytest.mark.asyncio
    async def test_no_opinion(self):
        result = await ModelScoreSource(FixedModel(None), name="kelly").analyze(context())
        assert result.score is None
        assert result.label == "UNAVAILABLE"
        assert result.source == "kelly"


class TestDefaults:
    def test_one_source_per_default_weight(self):
        sources = default_sources()
        assert sorted(s.name for s in sources) == sorted(DEFAULT_SOURCE_WEIGHTS)
        assert all(isinstance(s, AnalyzerSource) for s in sources)

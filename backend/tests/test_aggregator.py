"""Tests for the signal aggregator."""

import asyncio
import math
import time
from datetime import datetime, timedelta, timezone

import pytest

from core.models.candle import Candle
from decision.aggregator import (
    UNAVAILABLE_RECOMMENDATION,
    Direction,
    RiskLevel,
    SignalAggregator,
    Strength,
    build_recommendation,
    classify_direction,
    classify_risk,
    classify_strength,
)
from decision.sources import AnalysisContext, LocalSource, ModelScoreSource, SourceResult


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


class StubSource:
    """Analyzer source with a canned answer, failure or delay."""

    def __init__(self, name, score=None, error=None, delay=0.0, label="STUB"):
        self.name = name
        self.score = score
        self.error = error
        self.delay = delay
        self.label = label
        self.calls = 0

    async def analyze(self, context):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return SourceResult(source=self.name, score=self.score, label=self.label)


class SlowLocalSource(LocalSource):
    """In-process source whose computation blocks for ``seconds``."""

    def __init__(self, name, seconds):
        self.name = name
        self.seconds = seconds

    def _compute(self, context):
        time.sleep(self.seconds)
        return SourceResult(source=self.name, score=0.5)


class FixedModel:
    def __init__(self, value):
        self.value = value

    def score(self, context):
        return self.value


def make_context(closes=None, **kwargs) -> AnalysisContext:
    candles = {}
    if closes is not None:
        candles["1h"] = [
            Candle(time=T0 + timedelta(hours=i), open=c, high=c + 0.5, low=c - 0.5, close=c, volume=100.0)
            for i, c in enumerate(closes)
        ]
    return AnalysisContext(symbol="BTCUSDT", candles=candles, **kwargs)


WEIGHTS = {"a": 0.5, "b": 0.5, "c": 0.3, "risk": 0.1}


def aggregator(*sources, **kwargs) -> SignalAggregator:
    kwargs.setdefault("weights", WEIGHTS)
    return SignalAggregator(list(sources), **kwargs)


# ---------------------------------------------------------------------------
# Weighted combination
# ---------------------------------------------------------------------------

class TestCombination:
    @pytest.mark.asyncio
    async def test_null_source_excluded_from_normalization(self):
        agg = aggregator(StubSource("a", 0.8), StubSource("b", None), StubSource("c", -0.2))
        signal = await agg.aggregate(make_context())

        # 100 * (0.8*0.5 - 0.2*0.3) / (0.5 + 0.3)
        assert signal.final_score == pytest.approx(42.5)
        # population variance of [0.8, -0.2] is 0.25
        assert signal.confidence == pytest.approx(75.0)
        assert signal.direction is Direction.BULLISH
        assert signal.strength is Strength.MODERATE
        b = next(x for x in signal.breakdown if x.source == "b")
        assert b.weight == 0
        assert b.error is None

    @pytest.mark.asyncio
    async def test_failed_source_treated_like_null(self):
        agg = aggregator(
            StubSource("a", 0.8),
            StubSource("b", error=RuntimeError("boom")),
            StubSource("c", -0.2),
        )
        signal = await agg.aggregate(make_context())

        assert signal.final_score == pytest.approx(42.5)
        b = next(x for x in signal.breakdown if x.source == "b")
        assert b.score is None
        assert b.weight == 0
        assert b.label == "ERROR"
        assert b.error == "boom"
        assert signal.failed_sources == ["b"]
        assert any(alert.startswith("DEGRADED") for alert in signal.alerts)

    @pytest.mark.parametrize("score", [0.35, -0.9, 0.0, 1.0])
    @pytest.mark.asyncio
    async def test_single_source_score_passes_through(self, score):
        agg = aggregator(StubSource("c", score), StubSource("a", error=ValueError("x")))
        signal = await agg.aggregate(make_context())
        assert signal.final_score == pytest.approx(100 * score)
        assert signal.confidence == pytest.approx(100.0)

    @pytest.mark.asyncio
    async def test_scores_clamped_to_unit_range(self):
        signal = await aggregator(StubSource("a", 1.5)).aggregate(make_context())
        assert signal.final_score == pytest.approx(100.0)

    @pytest.mark.asyncio
    async def test_non_finite_score_is_a_failure(self):
        agg = aggregator(StubSource("a", math.nan), StubSource("c", 0.5))
        signal = await agg.aggregate(make_context())
        assert signal.final_score == pytest.approx(50.0)
        assert signal.failed_sources == ["a"]

    @pytest.mark.asyncio
    async def test_nan_model_score_is_a_failure(self):
        model = ModelScoreSource(FixedModel(math.nan), name="b")
        signal = await aggregator(StubSource("a", 0.4), model).aggregate(make_context())
        assert signal.final_score == pytest.approx(40.0)
        assert signal.failed_sources == ["b"]
        assert "non-finite" in signal.breakdown[1].error

    @pytest.mark.asyncio
    async def test_nan_model_alone_leaves_analysis_unavailable(self):
        model = ModelScoreSource(FixedModel(math.nan), name="a")
        signal = await aggregator(model).aggregate(make_context())
        assert signal.final_score == 0
        assert signal.recommendation == UNAVAILABLE_RECOMMENDATION

    @pytest.mark.asyncio
    async def test_unweighted_source_does_not_contribute(self):
        agg = aggregator(StubSource("a", 0.5), StubSource("unknown", -1.0))
        signal = await agg.aggregate(make_context())
        assert signal.final_score == pytest.approx(50.0)

    @pytest.mark.asyncio
    async def test_disagreement_lowers_confidence(self):
        agree = await aggregator(StubSource("a", 0.6), StubSource("b", 0.6)).aggregate(make_context())
        split = await aggregator(StubSource("a", 1.0), StubSource("b", -0.8)).aggregate(make_context())
        assert agree.confidence == pytest.approx(100.0)
        # variance 0.81
        assert split.confidence == pytest.approx(19.0)
        assert split.risk_level is RiskLevel.CRITICAL


# ---------------------------------------------------------------------------
# Concurrency and partial failure
# ---------------------------------------------------------------------------

class TestFanOut:
    @pytest.mark.asyncio
    async def test_timed_out_source_excluded(self):
        agg = aggregator(StubSource("a", 0.4), StubSource("b", 0.9, delay=1.0), timeout=0.05)
        signal = await agg.aggregate(make_context())
        assert signal.final_score == pytest.approx(40.0)
        b = next(x for x in signal.breakdown if x.source == "b")
        assert "timed out" in b.error

    @pytest.mark.asyncio
    async def test_sources_run_concurrently(self):
        started = asyncio.Event()

        class Waiter(StubSource):
            async def analyze(self, context):
                await started.wait()
                return await super().analyze(context)

        class Starter(StubSource):
            async def analyze(self, context):
                started.set()
                return await super().analyze(context)

        # Sequential execution would leave the waiter blocked until its timeout
        agg = aggregator(Waiter("a", 0.2), Starter("b", 0.2), timeout=1.0)
        signal = await agg.aggregate(make_context())
        assert signal.failed_sources == []

    @pytest.mark.asyncio
    async def test_slow_local_source_times_out(self):
        agg = aggregator(StubSource("a", 0.4), SlowLocalSource("b", 0.5), timeout=0.05)
        started = time.perf_counter()
        signal = await agg.aggregate(make_context())
        elapsed = time.perf_counter() - started

        assert elapsed < 0.4
        assert signal.final_score == pytest.approx(40.0)
        b = next(x for x in signal.breakdown if x.source == "b")
        assert "timed out" in b.error

    @pytest.mark.asyncio
    async def test_local_source_leaves_loop_free(self):
        ticks = 0

        async def ticker():
            nonlocal ticks
            for _ in range(5):
                await asyncio.sleep(0.01)
                ticks += 1

        source = SlowLocalSource("a", 0.2)
        result, _ = await asyncio.gather(source.analyze(make_context()), ticker())
        assert result.score == 0.5
        assert ticks == 5

    @pytest.mark.asyncio
    async def test_all_sources_fail(self):
        agg = aggregator(
            StubSource("a", error=RuntimeError("down")),
            StubSource("b", error=asyncio.TimeoutError()),
        )
        signal = await agg.aggregate(make_context())
        assert signal.final_score == 0
        assert signal.confidence == 0
        assert signal.direction is Direction.NEUTRAL
        assert signal.risk_level is RiskLevel.CRITICAL
        assert signal.recommendation == UNAVAILABLE_RECOMMENDATION
        assert len(signal.breakdown) == 2

    @pytest.mark.asyncio
    async def test_every_source_called_once(self):
        sources = [StubSource("a", 0.1), StubSource("b", error=RuntimeError()), StubSource("c", 0.3)]
        await aggregator(*sources).aggregate(make_context())
        assert [s.calls for s in sources] == [1, 1, 1]

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        agg = aggregator(StubSource("a", error=asyncio.CancelledError()))
        with pytest.raises(asyncio.CancelledError):
            await agg.aggregate(make_context())


# ---------------------------------------------------------------------------
# Risk level and trade plan
# ---------------------------------------------------------------------------

class TestRiskAndPlan:
    @pytest.mark.asyncio
    async def test_risk_level_from_risk_source(self):
        agg = aggregator(StubSource("a", 0.8), StubSource("risk", 0.8))
        signal = await agg.aggregate(make_context())
        assert signal.risk_level is RiskLevel.LOW

    @pytest.mark.asyncio
    async def test_missing_risk_source_is_critical(self):
        signal = await aggregator(StubSource("a", 0.8)).aggregate(make_context())
        assert signal.risk_level is RiskLevel.CRITICAL
        assert "CRITICAL RISK - Avoid trading" in signal.alerts

    @pytest.mark.asyncio
    async def test_bullish_plan_from_candles(self):
        closes = [100.0 + i for i in range(30)]
        agg = aggregator(StubSource("a", 0.9), StubSource("risk", 0.9))
        signal = await agg.aggregate(make_context(closes, equity=10_000.0, risk_percent=1.0))

        assert signal.direction is Direction.BULLISH
        assert signal.entry_price == 129.0
        # No pivots on a straight line: 2% stop, 4% target
        assert signal.stop_loss == pytest.approx(126.42)
        assert signal.take_profit == pytest.approx(134.16)
        assert signal.position_size == pytest.approx(100.0 / 2.58, rel=1e-3)
        assert signal.key_levels.poc is not None

    @pytest.mark.asyncio
    async def test_bearish_plan_stop_above_entry(self):
        closes = [100.0 + i for i in range(30)]
        signal = await aggregator(StubSource("a", -0.9)).aggregate(make_context(closes))
        assert signal.direction is Direction.BEARISH
        assert signal.stop_loss > signal.entry_price > signal.take_profit

    @pytest.mark.asyncio
    async def test_neutral_has_entry_but_no_plan(self):
        closes = [100.0] * 30
        signal = await aggregator(StubSource("a", 0.05)).aggregate(make_context(closes))
        assert signal.direction is Direction.NEUTRAL
        assert signal.entry_price == 100.0
        assert signal.stop_loss is None
        assert signal.position_size is None


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

class TestClassification:
    @pytest.mark.parametrize(
        "score,expected",
        [(10.0, Direction.NEUTRAL), (10.01, Direction.BULLISH), (-10.0, Direction.NEUTRAL), (-10.5, Direction.BEARISH)],
    )
    def test_direction(self, score, expected):
        assert classify_direction(score) is expected

    @pytest.mark.parametrize(
        "score,expected",
        [
            (19.9, Strength.WEAK),
            (20.0, Strength.MODERATE),
            (-49.9, Strength.MODERATE),
            (50.0, Strength.STRONG),
            (-80.0, Strength.VERY_STRONG),
        ],
    )
    def test_strength(self, score, expected):
        assert classify_strength(score) is expected

    @pytest.mark.parametrize(
        "risk,confidence,expected",
        [
            (0.8, 50.0, RiskLevel.LOW),
            (0.5, 50.0, RiskLevel.MEDIUM),
            (0.1, 50.0, RiskLevel.HIGH),
            (0.9, 29.0, RiskLevel.CRITICAL),
            (None, 90.0, RiskLevel.CRITICAL),
        ],
    )
    def test_risk(self, risk, confidence, expected):
        assert classify_risk(risk, confidence) is expected

    def test_recommendation(self):
        assert build_recommendation(60, 70).startswith("STRONG BUY")
        assert build_recommendation(30, 55).startswith("BUY")
        assert build_recommendation(-60, 70).startswith("STRONG SELL")
        assert build_recommendation(-30, 55).startswith("SELL")
        assert build_recommendation(60, 20).startswith("WAIT")
        assert build_recommendation(5, 90).startswith("NEUTRAL")

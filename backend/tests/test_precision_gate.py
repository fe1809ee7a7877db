"""Tests for the precision gate."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from core.errors import CandleSeriesError
from core.models.candle import Candle
from core.models.config import GateThresholds
from core.models.signal import Side
from core.precision_gate import (
    CRITERIA_COUNT,
    GateStatus,
    PrecisionGate,
    TimeframeState,
    open_interest_delta_pct,
    timeframe_state,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

T0 = datetime(2025, 4, 1, tzinfo=timezone.utc)


def state(tf: str, direction: Side | None = Side.LONG, adx: float = 30.0, atr_pct: float = 0.01) -> TimeframeState:
    return TimeframeState(timeframe=tf, direction=direction, adx=adx, atr_pct=atr_pct)


def aligned(direction: Side = Side.LONG, **kwargs) -> list[TimeframeState]:
    return [state(tf, direction, **kwargs) for tf in ("15m", "1h", "4h")]


def make_candles(closes) -> list[Candle]:
    return [
        Candle(time=T0 + timedelta(hours=i), open=c, high=c + 1.0, low=c - 1.0, close=c)
        for i, c in enumerate(closes)
    ]


GATE = PrecisionGate()


# ---------------------------------------------------------------------------
# Decision shape
# ---------------------------------------------------------------------------

class TestDecision:
    def test_all_criteria_pass(self):
        decision = GATE.evaluate(aligned())
        assert decision.status is GateStatus.GO
        assert decision.is_go
        assert decision.side is Side.LONG
        assert decision.score == 1.0
        assert len(decision.reasons) == CRITERIA_COUNT

    def test_reasons_always_complete(self):
        decision = GATE.evaluate([state("a", None), state("b", None), state("c", None)])
        assert decision.status is GateStatus.NO
        assert len(decision.reasons) == CRITERIA_COUNT
        assert len(decision.checks) == CRITERIA_COUNT

    def test_reasons_serialized(self):
        data = GATE.evaluate(aligned()).model_dump()
        assert len(data["reasons"]) == CRITERIA_COUNT

    @pytest.mark.parametrize("count", [0, 1, 2])
    def test_fewer_than_three_timeframes(self, count):
        with pytest.raises(ValueError):
            GATE.evaluate(aligned()[:count])

    def test_missing_optionals_pass_as_na(self):
        decision = GATE.evaluate(aligned())
        assert sum("n/a" in r for r in decision.reasons) == 3


# ---------------------------------------------------------------------------
# Consensus
# ---------------------------------------------------------------------------

class TestConsensus:
    def test_two_of_three_is_enough(self):
        states = [state("a", Side.SHORT), state("b", Side.SHORT), state("c", Side.LONG, adx=5.0)]
        decision = GATE.evaluate(states)
        assert decision.side is Side.SHORT
        # The dissenting timeframe is outside the pool, so its weak ADX does not count
        assert decision.is_go

    def test_split_vote_has_no_side(self):
        states = [state("a", Side.LONG), state("b", Side.SHORT), state("c", None)]
        decision = GATE.evaluate(states)
        assert decision.side is None
        assert decision.status is GateStatus.NO
        # consensus, ADX and volatility fail; the three optional checks pass
        assert decision.score == pytest.approx(0.5)

    def test_tie_has_no_side(self):
        states = [state("a", Side.LONG), state("b", Side.LONG), state("c", Side.SHORT), state("d", Side.SHORT)]
        assert GATE.evaluate(states).side is None


# ---------------------------------------------------------------------------
# Thresholds
# ---------------------------------------------------------------------------

class TestThresholds:
    def test_weak_adx_in_pool(self):
        states = aligned()
        states[1] = state("1h", adx=15.0)
        decision = GATE.evaluate(states)
        assert decision.status is GateStatus.NO
        assert decision.score == pytest.approx(5 / 6)
        assert "ADX below" in decision.reasons[1]

    @pytest.mark.parametrize("atr_pct", [0.001, 0.05])
    def test_volatility_outside_band(self, atr_pct):
        decision = GATE.evaluate(aligned(atr_pct=atr_pct))
        assert decision.status is GateStatus.NO
        assert "outside" in decision.reasons[2]

    def test_band_edges_inclusive(self):
        states = [state("a", atr_pct=0.003), state("b", atr_pct=0.025), state("c")]
        assert GATE.evaluate(states).is_go

    def test_model_score(self):
        assert GATE.evaluate(aligned(), model_score=0.6).is_go
        assert not GATE.evaluate(aligned(), model_score=0.59).is_go

    def test_funding(self):
        assert GATE.evaluate(aligned(), funding_rate=-0.0007).is_go
        assert not GATE.evaluate(aligned(), funding_rate=0.001).is_go

    def test_custom_thresholds(self):
        gate = PrecisionGate(GateThresholds(min_adx=40.0))
        assert not gate.evaluate(aligned()).is_go

    def test_inverted_band_rejected(self):
        with pytest.raises(ValidationError):
            GateThresholds(atr_pct_min=0.03, atr_pct_max=0.01)


class TestOpenInterest:
    def test_long_tolerates_small_drop(self):
        assert GATE.evaluate(aligned(), oi_delta_pct=-0.2).is_go
        assert not GATE.evaluate(aligned(), oi_delta_pct=-0.5).is_go

    def test_short_tolerates_small_rise(self):
        assert GATE.evaluate(aligned(Side.SHORT), oi_delta_pct=0.2).is_go
        assert not GATE.evaluate(aligned(Side.SHORT), oi_delta_pct=0.5).is_go

    def test_no_side_passes(self):
        states = [state("a", None), state("b", None), state("c", None)]
        decision = GATE.evaluate(states, oi_delta_pct=-10.0)
        assert decision.checks[5].passed

    def test_delta_pct(self):
        assert open_interest_delta_pct(110.0, 100.0) == pytest.approx(10.0)
        assert open_interest_delta_pct(None, 100.0) is None
        assert open_interest_delta_pct(110.0, None) is None
        assert open_interest_delta_pct(110.0, 0.0) is None


# ---------------------------------------------------------------------------
# Timeframe state from candles
# ---------------------------------------------------------------------------

class TestTimeframeState:
    def test_uptrend(self):
        result = timeframe_state("1h", make_candles([100.0 + i for i in range(250)]))
        assert result.direction is Side.LONG
        assert result.adx > 20
        assert result.close == 349.0
        assert result.atr_pct == pytest.approx(2.0 / 349.0, rel=1e-3)

    def test_downtrend(self):
        result = timeframe_state("4h", make_candles([400.0 - i for i in range(250)]))
        assert result.direction is Side.SHORT

    def test_flat_has_no_direction(self):
        result = timeframe_state("1d", make_candles([100.0] * 50))
        assert result.direction is None

    def test_empty_input(self):
        with pytest.raises(CandleSeriesError):
            timeframe_state("1h", [])

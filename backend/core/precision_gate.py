"""Precision gate: a conjunctive GO/NO decision for one instrument.

Six criteria are always evaluated and always explained:

1. Timeframe consensus - at least two timeframes share a direction
2. Trend strength - ADX >= min on every timeframe of the consensus pool
3. Volatility band - ATR / price inside [min, max] on every pool timeframe
4. Model score - >= min when supplied
5. Funding rate - |funding| <= max when supplied
6. Open interest - change does not contradict the side when supplied

Missing optional inputs pass with a "n/a" reason. The gate keeps no state
between calls.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Sequence

from pydantic import BaseModel, ConfigDict, Field, computed_field

from core.errors import CandleSeriesError
from core.indicators import adx, atr, ema
from core.models.candle import Candle, CandleSeries
from core.models.config import GateThresholds
from core.models.signal import Side

logger = logging.getLogger(__name__)

MIN_TIMEFRAMES = 3
CRITERIA_COUNT = 6


class GateStatus(str, Enum):
    GO = "GO"
    NO = "NO"


class TimeframeState(BaseModel):
    """Directional bias and volatility of one timeframe at its last closed bar."""

    model_config = ConfigDict(frozen=True)

    timeframe: str
    direction: Side | None
    adx: float
    atr_pct: float
    close: float = 0.0


class GateCheck(BaseModel):
    model_config = ConfigDict(frozen=True)

    criterion: str
    passed: bool
    reason: str


class GateDecision(BaseModel):
    status: GateStatus
    side: Side | None = None
    score: float
    checks: list[GateCheck] = Field(default_factory=list)
    timeframes: list[TimeframeState] = Field(default_factory=list)

    @computed_field
    @property
    def reasons(self) -> list[str]:
        return [c.reason for c in self.checks]

    @property
    def is_go(self) -> bool:
        return self.status == GateStatus.GO


def timeframe_state(
    timeframe: str,
    candles: Sequence[Candle],
    fast: int = 50,
    slow: int = 200,
    period: int = 14,
) -> TimeframeState:
    """Derive direction (EMA fast vs slow), ADX and ATR% from candles.

    Raises:
        CandleSeriesError: If the input is malformed or has no closed bars.
    """
    series = CandleSeries.from_candles(candles)
    if len(series) == 0:
        raise CandleSeriesError(f"no closed candles for timeframe {timeframe}")

    highs, lows, closes = series.get_highs(), series.get_lows(), series.get_closes()
    fast_ema = ema(closes, fast)[-1]
    slow_ema = ema(closes, slow)[-1]
    if fast_ema > slow_ema:
        direction = Side.LONG
    elif fast_ema < slow_ema:
        direction = Side.SHORT
    else:
        direction = None

    close = closes[-1]
    atr_value = atr(highs, lows, closes, period)[-1]
    return TimeframeState(
        timeframe=timeframe,
        direction=direction,
        adx=adx(highs, lows, closes, period).adx[-1],
        atr_pct=atr_value / close if close > 0 else 0.0,
        close=close,
    )


def open_interest_delta_pct(current: float | None, previous: float | None) -> float | None:
    """Percent change of open interest, or None when it cannot be computed."""
    if current is None or not previous:
        return None
    return (current - previous) / previous * 100


class PrecisionGate:
    """Evaluate the six gate criteria against configured thresholds."""

    def __init__(self, thresholds: GateThresholds | None = None):
        self.thresholds = thresholds or GateThresholds()

    def evaluate(
        self,
        states: Sequence[TimeframeState],
        model_score: float | None = None,
        funding_rate: float | None = None,
        oi_delta_pct: float | None = None,
    ) -> GateDecision:
        """Evaluate the gate.

        Raises:
            ValueError: If fewer than three timeframes are supplied.
        """
        if len(states) < MIN_TIMEFRAMES:
            raise ValueError(
                f"precision gate needs at least {MIN_TIMEFRAMES} timeframes, got {len(states)}"
            )

        side, pool = self._consensus(states)
        checks = [
            self._check_consensus(states, side, pool),
            self._check_adx(pool),
            self._check_volatility(pool),
            self._check_model(model_score),
            self._check_funding(funding_rate),
            self._check_open_interest(side, oi_delta_pct),
        ]

        passed = sum(1 for c in checks if c.passed)
        status = GateStatus.GO if passed == len(checks) else GateStatus.NO
        decision = GateDecision(
            status=status,
            side=side,
            score=passed / len(checks),
            checks=checks,
            timeframes=list(states),
        )
        logger.debug(
            "Gate %s side=%s score=%.2f",
            status.value, side.value if side else "-", decision.score,
        )
        return decision

    @staticmethod
    def _consensus(states: Sequence[TimeframeState]) -> tuple[Side | None, list[TimeframeState]]:
        longs = [s for s in states if s.direction is Side.LONG]
        shorts = [s for s in states if s.direction is Side.SHORT]
        if len(longs) >= 2 and len(longs) > len(shorts):
            return Side.LONG, longs
        if len(shorts) >= 2 and len(shorts) > len(longs):
            return Side.SHORT, shorts
        return None, []

    @staticmethod
    def _check_consensus(
        states: Sequence[TimeframeState], side: Side | None, pool: list[TimeframeState]
    ) -> GateCheck:
        if side is None:
            votes = ", ".join(
                f"{s.timeframe}={s.direction.value if s.direction else 'FLAT'}" for s in states
            )
            return GateCheck(criterion="consensus", passed=False, reason=f"No timeframe consensus ({votes})")
        tfs = ", ".join(s.timeframe for s in pool)
        return GateCheck(
            criterion="consensus",
            passed=True,
            reason=f"Consensus {side.value} on {len(pool)}/{len(states)} timeframes ({tfs})",
        )

    def _check_adx(self, pool: list[TimeframeState]) -> GateCheck:
        min_adx = self.thresholds.min_adx
        if not pool:
            return GateCheck(criterion="adx", passed=False, reason="ADX not checked: no consensus pool")
        weak = [s for s in pool if s.adx < min_adx]
        values = ", ".join(f"{s.timeframe}={s.adx:.1f}" for s in pool)
        if weak:
            return GateCheck(criterion="adx", passed=False, reason=f"ADX below {min_adx:g} ({values})")
        return GateCheck(criterion="adx", passed=True, reason=f"ADX >= {min_adx:g} ({values})")

    def _check_volatility(self, pool: list[TimeframeState]) -> GateCheck:
        lo, hi = self.thresholds.atr_pct_min, self.thresholds.atr_pct_max
        band = f"[{lo * 100:.2f}%, {hi * 100:.2f}%]"
        if not pool:
            return GateCheck(criterion="volatility", passed=False, reason="ATR% not checked: no consensus pool")
        values = ", ".join(f"{s.timeframe}={s.atr_pct * 100:.2f}%" for s in pool)
        if all(lo <= s.atr_pct <= hi for s in pool):
            return GateCheck(criterion="volatility", passed=True, reason=f"ATR% inside {band} ({values})")
        return GateCheck(criterion="volatility", passed=False, reason=f"ATR% outside {band} ({values})")

    def _check_model(self, score: float | None) -> GateCheck:
        minimum = self.thresholds.min_model_score
        if score is None:
            return GateCheck(criterion="model", passed=True, reason="Model score n/a")
        passed = score >= minimum
        op = ">=" if passed else "<"
        return GateCheck(criterion="model", passed=passed, reason=f"Model score {score:.2f} {op} {minimum:.2f}")

    def _check_funding(self, funding: float | None) -> GateCheck:
        limit = self.thresholds.funding_abs_max
        if funding is None:
            return GateCheck(criterion="funding", passed=True, reason="Funding rate n/a")
        passed = abs(funding) <= limit
        op = "<=" if passed else ">"
        return GateCheck(
            criterion="funding",
            passed=passed,
            reason=f"|Funding| {abs(funding) * 100:.4f}% {op} {limit * 100:.4f}%",
        )

    def _check_open_interest(self, side: Side | None, delta: float | None) -> GateCheck:
        tol = self.thresholds.oi_tolerance_pct
        if delta is None:
            return GateCheck(criterion="open_interest", passed=True, reason="Open interest change n/a")
        if side is None:
            return GateCheck(
                criterion="open_interest",
                passed=True,
                reason=f"Open interest {delta:+.2f}% (no side to confirm)",
            )
        if side is Side.LONG:
            passed = delta >= -tol
        else:
            passed = delta <= tol
        verdict = "supports" if passed else "contradicts"
        return GateCheck(
            criterion="open_interest",
            passed=passed,
            reason=f"Open interest {delta:+.2f}% {verdict} {side.value}",
        )

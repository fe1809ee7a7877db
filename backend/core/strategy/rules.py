"""Declarative signal rules.

A rule turns a candle series into two boolean conditions per bar, one
bullish and one bearish. The generator fires an event only where a
condition switches from false to true, so rules describe states
("fast above slow") and never have to track crossings themselves.

Indicator inputs are referenced with :class:`Line` so a strategy is pure
data: ``CrossoverRule("ema_cross", Line.of("ema", period=12), Line.of("ema", period=26))``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Protocol, runtime_checkable

from core import indicators as ind
from core.models.candle import CandleSeries

LineFunc = Callable[..., list[float]]


def _ohlcv(attr: str) -> LineFunc:
    def read(s: CandleSeries) -> list[float]:
        return [getattr(c, attr) for c in s.candles]
    return read


_LINES: dict[str, LineFunc] = {
    "open": _ohlcv("open"),
    "high": _ohlcv("high"),
    "low": _ohlcv("low"),
    "close": _ohlcv("close"),
    "volume": _ohlcv("volume"),
    "ema": lambda s, period: ind.ema(s.get_closes(), period),
    "sma": lambda s, period: ind.sma(s.get_closes(), period),
    "volume_sma": lambda s, period: ind.sma(s.get_volumes(), period),
    "rsi": lambda s, period=14: ind.rsi(s.get_closes(), period),
    "macd": lambda s, fast=12, slow=26, signal=9: ind.macd(s.get_closes(), fast, slow, signal).line,
    "macd_signal": lambda s, fast=12, slow=26, signal=9: ind.macd(s.get_closes(), fast, slow, signal).signal,
    "atr": lambda s, period=14: ind.atr(s.get_highs(), s.get_lows(), s.get_closes(), period),
    "adx": lambda s, period=14: ind.adx(s.get_highs(), s.get_lows(), s.get_closes(), period).adx,
    "donchian_upper": lambda s, period=20: ind.donchian(s.get_highs(), s.get_lows(), period).upper,
    "donchian_lower": lambda s, period=20: ind.donchian(s.get_highs(), s.get_lows(), period).lower,
    "bollinger_upper": lambda s, period=20, k=2.0: ind.bollinger(s.get_closes(), period, k).upper,
    "bollinger_lower": lambda s, period=20, k=2.0: ind.bollinger(s.get_closes(), period, k).lower,
    "stochastic_k": lambda s, period=14, smooth=3: ind.stochastic(
        s.get_highs(), s.get_lows(), s.get_closes(), period, smooth
    ).k,
    "williams_r": lambda s, period=14: ind.williams_r(s.get_highs(), s.get_lows(), s.get_closes(), period),
    "cci": lambda s, period=20: ind.cci(s.get_highs(), s.get_lows(), s.get_closes(), period),
    "momentum": lambda s, period=10: ind.momentum(s.get_closes(), period),
    "sar": lambda s, step=0.02, max_step=0.2: ind.parabolic_sar(s.get_highs(), s.get_lows(), step, max_step),
    "tenkan": lambda s, period=9: ind.ichimoku(s.get_highs(), s.get_lows(), tenkan_period=period).tenkan,
    "kijun": lambda s, period=26: ind.ichimoku(s.get_highs(), s.get_lows(), kijun_period=period).kijun,
    "senkou_a": lambda s, tenkan=9, kijun=26: ind.ichimoku(s.get_highs(), s.get_lows(), tenkan, kijun).senkou_a,
    "senkou_b": lambda s, period=52: ind.ichimoku(s.get_highs(), s.get_lows(), senkou_period=period).senkou_b,
}


@dataclass(frozen=True)
class Line:
    """Reference to one indicator series with fixed parameters."""

    indicator: str
    params: tuple[tuple[str, Any], ...] = ()

    @classmethod
    def of(cls, indicator: str, **params: Any) -> Line:
        if indicator not in _LINES:
            raise ValueError(f"Unknown indicator line '{indicator}'")
        return cls(indicator, tuple(sorted(params.items())))

    @property
    def key(self) -> str:
        """Snapshot key, e.g. ``ema_12`` or ``macd_signal_12_9_26``."""
        if not self.params:
            return self.indicator
        return "_".join([self.indicator, *(f"{v:g}" if isinstance(v, float) else str(v) for _, v in self.params)])

    def compute(self, series: CandleSeries) -> list[float]:
        return _LINES[self.indicator](series, **dict(self.params))


CLOSE = Line.of("close")


@dataclass
class RuleOutput:
    """Per-bar conditions of one rule plus the series it looked at."""

    bullish: list[bool]
    bearish: list[bool]
    lines: dict[str, list[float]] = field(default_factory=dict)


@runtime_checkable
class Rule(Protocol):
    """Anything that can evaluate per-bar bullish/bearish conditions."""

    name: str

    def evaluate(self, series: CandleSeries) -> RuleOutput:
        ...


@dataclass(frozen=True)
class CrossoverRule:
    """Bullish while ``fast`` is above ``slow``, bearish while below.

    Edge-triggering turns this into the classic crossover:
    BUY when prev(fast) <= prev(slow) and fast > slow, SELL mirrored.
    """

    name: str
    fast: Line
    slow: Line

    def evaluate(self, series: CandleSeries) -> RuleOutput:
        fast = self.fast.compute(series)
        slow = self.slow.compute(series)
        return RuleOutput(
            bullish=[f > s for f, s in zip(fast, slow)],
            bearish=[f < s for f, s in zip(fast, slow)],
            lines={self.fast.key: fast, self.slow.key: slow},
        )


@dataclass(frozen=True)
class BreakoutRule:
    """Close beyond the previous bar's channel boundary.

    The boundary is read at ``i - 1`` so the current bar never defines the
    level it breaks. An optional trend filter requires ``filter > min_trend``.
    """

    name: str
    upper: Line
    lower: Line
    trend_filter: Line | None = None
    min_trend: float = 20.0

    def evaluate(self, series: CandleSeries) -> RuleOutput:
        closes = CLOSE.compute(series)
        upper = self.upper.compute(series)
        lower = self.lower.compute(series)
        lines = {self.upper.key: upper, self.lower.key: lower}

        trending = [True] * len(closes)
        if self.trend_filter is not None:
            trend = self.trend_filter.compute(series)
            trending = [t > self.min_trend for t in trend]
            lines[self.trend_filter.key] = trend

        bullish = [False] * len(closes)
        bearish = [False] * len(closes)
        for i in range(1, len(closes)):
            bullish[i] = trending[i] and closes[i] > upper[i - 1]
            bearish[i] = trending[i] and closes[i] < lower[i - 1]
        return RuleOutput(bullish, bearish, lines)


@dataclass(frozen=True)
class ThresholdReversalRule:
    """Oscillator recovery from an extreme.

    Bullish while the value is above ``oversold`` and bearish while it is
    below ``overbought``; the edges are the moments the oscillator climbs
    back out of oversold or drops back out of overbought.
    """

    name: str
    line: Line
    oversold: float
    overbought: float

    def evaluate(self, series: CandleSeries) -> RuleOutput:
        values = self.line.compute(series)
        return RuleOutput(
            bullish=[v > self.oversold for v in values],
            bearish=[v < self.overbought for v in values],
            lines={self.line.key: values},
        )


@dataclass(frozen=True)
class VolumeBreakoutRule:
    """Volume above ``multiple`` times its trailing average with price agreeing."""

    name: str
    period: int = 20
    multiple: float = 2.0

    def evaluate(self, series: CandleSeries) -> RuleOutput:
        closes = CLOSE.compute(series)
        volume = Line.of("volume").compute(series)
        average = Line.of("volume_sma", period=self.period).compute(series)

        bullish = [False] * len(closes)
        bearish = [False] * len(closes)
        for i in range(1, len(closes)):
            spike = volume[i] > self.multiple * average[i]
            bullish[i] = spike and closes[i] > closes[i - 1]
            bearish[i] = spike and closes[i] < closes[i - 1]
        return RuleOutput(bullish, bearish, {"volume": volume, f"volume_sma_{self.period}": average})


@dataclass(frozen=True)
class MomentumReversalRule:
    """Momentum flipping sign and pushing past ``threshold`` percent."""

    name: str
    period: int = 10
    threshold: float = 5.0

    def evaluate(self, series: CandleSeries) -> RuleOutput:
        line = Line.of("momentum", period=self.period)
        mom = line.compute(series)

        bullish = [False] * len(mom)
        bearish = [False] * len(mom)
        for i in range(1, len(mom)):
            bullish[i] = mom[i] > self.threshold and mom[i - 1] <= 0
            bearish[i] = mom[i] < -self.threshold and mom[i - 1] >= 0
        return RuleOutput(bullish, bearish, {line.key: mom})


@dataclass(frozen=True)
class CloudRule:
    """Ichimoku: close above the cloud with tenkan over kijun (mirrored for bearish)."""

    name: str
    tenkan: int = 9
    kijun: int = 26
    senkou: int = 52

    def evaluate(self, series: CandleSeries) -> RuleOutput:
        closes = CLOSE.compute(series)
        lines = ind.ichimoku(series.get_highs(), series.get_lows(), self.tenkan, self.kijun, self.senkou)

        bullish, bearish = [], []
        for c, t, k, a, b in zip(closes, lines.tenkan, lines.kijun, lines.senkou_a, lines.senkou_b):
            bullish.append(c > max(a, b) and t > k)
            bearish.append(c < min(a, b) and t < k)
        return RuleOutput(
            bullish,
            bearish,
            {
                "tenkan": lines.tenkan,
                "kijun": lines.kijun,
                "senkou_a": lines.senkou_a,
                "senkou_b": lines.senkou_b,
            },
        )

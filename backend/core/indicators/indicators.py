"""Technical indicators for signal generation.

Every function takes an ordered series (oldest first) and returns plain
float lists with exactly the input length. The value at index ``i`` only
depends on inputs at indices ``<= i``. History shorter than a lookback
yields the documented seed or neutral value instead of NaN, and empty
input yields empty output.
"""

from __future__ import annotations

from typing import Callable, NamedTuple, Sequence

import numpy as np

RSI_EPSILON = 1e-8
CCI_CONSTANT = 0.015


class MacdLines(NamedTuple):
    line: list[float]
    signal: list[float]
    histogram: list[float]


class AdxLines(NamedTuple):
    adx: list[float]
    plus_di: list[float]
    minus_di: list[float]


class Channel(NamedTuple):
    upper: list[float]
    middle: list[float]
    lower: list[float]


class StochasticLines(NamedTuple):
    k: list[float]
    d: list[float]


class IchimokuLines(NamedTuple):
    tenkan: list[float]
    kijun: list[float]
    senkou_a: list[float]
    senkou_b: list[float]


# =============================================================================
# NumPy helpers
# =============================================================================

def _array(values: Sequence[float]) -> np.ndarray:
    return np.asarray(values, dtype=np.float64)


def _smooth(arr: np.ndarray, alpha: float) -> np.ndarray:
    """Recursive exponential smoothing seeded with the first value."""
    out = np.empty_like(arr)
    if arr.size == 0:
        return out
    out[0] = arr[0]
    for i in range(1, arr.size):
        out[i] = out[i - 1] + alpha * (arr[i] - out[i - 1])
    return out


def _rolling(
    arr: np.ndarray, period: int, func: Callable[[np.ndarray], float]
) -> np.ndarray:
    """Apply ``func`` over a trailing window that shrinks at the start."""
    out = np.empty_like(arr)
    for i in range(arr.size):
        out[i] = func(arr[max(0, i - period + 1) : i + 1])
    return out


def _full_window(n: int, period: int) -> np.ndarray:
    return np.arange(n) >= period - 1


# =============================================================================
# Moving averages
# =============================================================================

def ema(values: Sequence[float], period: int) -> list[float]:
    """
    Calculate Exponential Moving Average.

    k = 2 / (period + 1), seeded with the first value so the output is
    defined from index 0.

    Args:
        values: Sequence of price values
        period: EMA period

    Returns:
        List of EMA values (same length as input)
    """
    if len(values) == 0:
        return []
    return _smooth(_array(values), 2.0 / (period + 1)).tolist()


def sma(values: Sequence[float], period: int) -> list[float]:
    """
    Calculate Simple Moving Average.

    Before ``period`` samples exist the mean covers all available samples.

    Args:
        values: Sequence of price values
        period: SMA period

    Returns:
        List of SMA values
    """
    if len(values) == 0:
        return []
    return _rolling(_array(values), period, np.mean).tolist()


def highest(values: Sequence[float], period: int) -> list[float]:
    """Highest value over a trailing (shrinking at the start) window."""
    if len(values) == 0:
        return []
    return _rolling(_array(values), period, np.max).tolist()


def lowest(values: Sequence[float], period: int) -> list[float]:
    """Lowest value over a trailing (shrinking at the start) window."""
    if len(values) == 0:
        return []
    return _rolling(_array(values), period, np.min).tolist()


# =============================================================================
# Volatility and trend strength
# =============================================================================

def true_range(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
) -> list[float]:
    """
    Calculate True Range.

    TR = max(high - low, abs(high - prev_close), abs(low - prev_close)).
    The first bar has no previous close and uses high - low.

    Args:
        highs: Sequence of high prices
        lows: Sequence of low prices
        closes: Sequence of close prices

    Returns:
        List of True Range values
    """
    h, l, c = _array(highs), _array(lows), _array(closes)
    if h.size == 0:
        return []
    prev_close = np.concatenate(([c[0]], c[:-1]))
    tr = np.maximum(h - l, np.maximum(np.abs(h - prev_close), np.abs(l - prev_close)))
    tr[0] = h[0] - l[0]
    return tr.tolist()


def atr(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = 14,
) -> list[float]:
    """
    Calculate Average True Range (ATR).

    Uses Wilder's smoothing (alpha = 1 / period) seeded with the first
    true range.

    Args:
        highs: Sequence of high prices
        lows: Sequence of low prices
        closes: Sequence of close prices
        period: ATR period

    Returns:
        List of ATR values
    """
    tr = _array(true_range(highs, lows, closes))
    if tr.size == 0:
        return []
    return _smooth(tr, 1.0 / period).tolist()


def adx(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = 14,
) -> AdxLines:
    """
    Calculate the Average Directional Index with its DI lines.

    +DM/-DM and true range are Wilder-smoothed like ATR, the DI lines are
    percentages of smoothed true range and ADX is the EMA of DX.

    Args:
        highs: Sequence of high prices
        lows: Sequence of low prices
        closes: Sequence of close prices
        period: Smoothing period

    Returns:
        AdxLines(adx, plus_di, minus_di); all zero while price does not move
    """
    h, l = _array(highs), _array(lows)
    n = h.size
    if n == 0:
        return AdxLines([], [], [])

    up = np.zeros(n)
    down = np.zeros(n)
    up[1:] = h[1:] - h[:-1]
    down[1:] = l[:-1] - l[1:]
    plus_dm = np.where((up > down) & (up > 0), up, 0.0)
    minus_dm = np.where((down > up) & (down > 0), down, 0.0)

    alpha = 1.0 / period
    tr_s = _smooth(_array(true_range(highs, lows, closes)), alpha)
    plus_s = _smooth(plus_dm, alpha)
    minus_s = _smooth(minus_dm, alpha)

    with np.errstate(divide="ignore", invalid="ignore"):
        plus_di = np.where(tr_s > 0, 100.0 * plus_s / tr_s, 0.0)
        minus_di = np.where(tr_s > 0, 100.0 * minus_s / tr_s, 0.0)
        di_sum = plus_di + minus_di
        dx = np.where(di_sum > 0, 100.0 * np.abs(plus_di - minus_di) / di_sum, 0.0)

    adx_line = _smooth(dx, 2.0 / (period + 1))
    return AdxLines(adx_line.tolist(), plus_di.tolist(), minus_di.tolist())


def donchian(
    highs: Sequence[float],
    lows: Sequence[float],
    period: int = 20,
) -> Channel:
    """
    Calculate the Donchian channel (rolling highest high / lowest low).

    Returns:
        Channel(upper, middle, lower)
    """
    upper = _array(highest(highs, period))
    lower = _array(lowest(lows, period))
    return Channel(upper.tolist(), ((upper + lower) / 2).tolist(), lower.tolist())


def bollinger(
    values: Sequence[float],
    period: int = 20,
    k: float = 2.0,
) -> Channel:
    """
    Calculate Bollinger Bands.

    SMA +/- k population standard deviations over the trailing window.

    Args:
        values: Sequence of close prices
        period: Window length
        k: Band width in standard deviations

    Returns:
        Channel(upper, middle, lower)
    """
    arr = _array(values)
    if arr.size == 0:
        return Channel([], [], [])
    middle = _rolling(arr, period, np.mean)
    std = _rolling(arr, period, np.std)
    return Channel((middle + k * std).tolist(), middle.tolist(), (middle - k * std).tolist())


# =============================================================================
# Oscillators
# =============================================================================

def rsi(values: Sequence[float], period: int = 14) -> list[float]:
    """
    Calculate the Relative Strength Index.

    Per-bar gains and losses (zero on the first bar) are smoothed with the
    EMA recursion. A zero average loss is replaced by a small epsilon, and
    a bar with neither gains nor losses so far reads as the neutral 50.

    Args:
        values: Sequence of close prices
        period: RSI period

    Returns:
        List of RSI values in [0, 100]
    """
    arr = _array(values)
    if arr.size == 0:
        return []
    delta = np.diff(arr, prepend=arr[0])
    alpha = 2.0 / (period + 1)
    avg_gain = _smooth(np.clip(delta, 0.0, None), alpha)
    avg_loss = _smooth(np.clip(-delta, 0.0, None), alpha)

    rs = avg_gain / np.where(avg_loss > 0, avg_loss, RSI_EPSILON)
    out = 100.0 - 100.0 / (1.0 + rs)
    out[(avg_gain == 0) & (avg_loss == 0)] = 50.0
    return out.tolist()


def macd(
    values: Sequence[float],
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> MacdLines:
    """
    Calculate MACD.

    line = EMA(fast) - EMA(slow), signal = EMA(line, signal),
    histogram = line - signal.

    Returns:
        MacdLines(line, signal, histogram)
    """
    arr = _array(values)
    if arr.size == 0:
        return MacdLines([], [], [])
    line = _smooth(arr, 2.0 / (fast + 1)) - _smooth(arr, 2.0 / (slow + 1))
    signal_line = _smooth(line, 2.0 / (signal + 1))
    return MacdLines(line.tolist(), signal_line.tolist(), (line - signal_line).tolist())


def stochastic(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = 14,
    smooth: int = 3,
) -> StochasticLines:
    """
    Calculate the Stochastic oscillator.

    %K is 50 until a full window exists or while the window range is flat.
    %D is the SMA of %K over ``smooth`` bars.

    Returns:
        StochasticLines(k, d)
    """
    h, l, c = _array(highs), _array(lows), _array(closes)
    n = c.size
    if n == 0:
        return StochasticLines([], [])
    hh = _rolling(h, period, np.max)
    ll = _rolling(l, period, np.min)
    rng = hh - ll

    k = np.full(n, 50.0)
    valid = _full_window(n, period) & (rng > 0)
    k[valid] = 100.0 * (c[valid] - ll[valid]) / rng[valid]
    d = _rolling(k, smooth, np.mean)
    return StochasticLines(k.tolist(), d.tolist())


def williams_r(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = 14,
) -> list[float]:
    """
    Calculate Williams %R in [-100, 0].

    Reads -50 until a full window exists or while the window range is flat.
    """
    h, l, c = _array(highs), _array(lows), _array(closes)
    n = c.size
    if n == 0:
        return []
    hh = _rolling(h, period, np.max)
    ll = _rolling(l, period, np.min)
    rng = hh - ll

    out = np.full(n, -50.0)
    valid = _full_window(n, period) & (rng > 0)
    out[valid] = -100.0 * (hh[valid] - c[valid]) / rng[valid]
    return out.tolist()


def cci(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = 20,
) -> list[float]:
    """
    Calculate the Commodity Channel Index on typical price.

    Reads 0 until a full window exists or when the mean deviation is zero.
    """
    tp = (_array(highs) + _array(lows) + _array(closes)) / 3
    n = tp.size
    out = np.zeros(n)
    for i in range(period - 1, n):
        window = tp[i - period + 1 : i + 1]
        mean = window.mean()
        mean_dev = np.abs(window - mean).mean()
        if mean_dev > 0:
            out[i] = (tp[i] - mean) / (CCI_CONSTANT * mean_dev)
    return out.tolist()


def momentum(values: Sequence[float], period: int = 10) -> list[float]:
    """Percent change against the close ``period`` bars earlier (0 before that)."""
    arr = _array(values)
    out = np.zeros(arr.size)
    if arr.size > period:
        prev = arr[:-period]
        with np.errstate(divide="ignore", invalid="ignore"):
            out[period:] = np.where(prev != 0, (arr[period:] - prev) / prev * 100.0, 0.0)
    return out.tolist()


# =============================================================================
# Ichimoku and Parabolic SAR
# =============================================================================

def ichimoku(
    highs: Sequence[float],
    lows: Sequence[float],
    tenkan_period: int = 9,
    kijun_period: int = 26,
    senkou_period: int = 52,
) -> IchimokuLines:
    """
    Calculate Ichimoku lines, undisplaced.

    Senkou spans are reported at the bar they are computed on rather than
    projected forward, so the cloud at ``i`` uses only data up to ``i``.
    """
    h, l = _array(highs), _array(lows)
    if h.size == 0:
        return IchimokuLines([], [], [], [])

    def midpoint(period: int) -> np.ndarray:
        return (_rolling(h, period, np.max) + _rolling(l, period, np.min)) / 2

    tenkan = midpoint(tenkan_period)
    kijun = midpoint(kijun_period)
    senkou_a = (tenkan + kijun) / 2
    senkou_b = midpoint(senkou_period)
    return IchimokuLines(tenkan.tolist(), kijun.tolist(), senkou_a.tolist(), senkou_b.tolist())


def parabolic_sar(
    highs: Sequence[float],
    lows: Sequence[float],
    step: float = 0.02,
    max_step: float = 0.2,
) -> list[float]:
    """
    Calculate Wilder's Parabolic SAR.

    Starts in an uptrend with the first low as the SAR, so a one-bar
    series returns that low.

    Args:
        highs: Sequence of high prices
        lows: Sequence of low prices
        step: Acceleration factor increment
        max_step: Acceleration factor cap

    Returns:
        List of SAR values
    """
    n = len(highs)
    if n == 0:
        return []

    sar = [float(lows[0])] * n
    uptrend = True
    extreme = float(highs[0])
    af = step

    for i in range(1, n):
        value = sar[i - 1] + af * (extreme - sar[i - 1])
        if uptrend:
            value = min(value, lows[i - 1], lows[i - 2] if i >= 2 else lows[i - 1])
            if lows[i] < value:
                uptrend = False
                value = extreme
                extreme = float(lows[i])
                af = step
            elif highs[i] > extreme:
                extreme = float(highs[i])
                af = min(af + step, max_step)
        else:
            value = max(value, highs[i - 1], highs[i - 2] if i >= 2 else highs[i - 1])
            if highs[i] > value:
                uptrend = True
                value = extreme
                extreme = float(highs[i])
                af = step
            elif lows[i] < extreme:
                extreme = float(lows[i])
                af = min(af + step, max_step)
        sar[i] = float(value)

    return sar


# =============================================================================
# IndicatorCalculator class
# =============================================================================

class IndicatorCalculator:
    """Calculator for the indicator frame used by analyzers and audits."""

    def __init__(
        self,
        fast_ema: int = 50,
        slow_ema: int = 200,
        rsi_period: int = 14,
        atr_period: int = 14,
        adx_period: int = 14,
        channel_period: int = 20,
        volume_period: int = 20,
    ):
        self.fast_ema = fast_ema
        self.slow_ema = slow_ema
        self.rsi_period = rsi_period
        self.atr_period = atr_period
        self.adx_period = adx_period
        self.channel_period = channel_period
        self.volume_period = volume_period

    def calculate_all(
        self,
        highs: Sequence[float],
        lows: Sequence[float],
        closes: Sequence[float],
        volumes: Sequence[float],
    ) -> dict[str, list[float]]:
        """
        Calculate all indicators for the given OHLCV data.

        Args:
            highs: List of high prices
            lows: List of low prices
            closes: List of close prices
            volumes: List of volumes

        Returns:
            Dict of indicator name -> series, each aligned with the input
        """
        macd_lines = macd(closes)
        adx_lines = adx(highs, lows, closes, self.adx_period)
        don = donchian(highs, lows, self.channel_period)
        bands = bollinger(closes, self.channel_period)

        return {
            "ema_fast": ema(closes, self.fast_ema),
            "ema_slow": ema(closes, self.slow_ema),
            "rsi": rsi(closes, self.rsi_period),
            "macd": macd_lines.line,
            "macd_signal": macd_lines.signal,
            "macd_hist": macd_lines.histogram,
            "atr": atr(highs, lows, closes, self.atr_period),
            "adx": adx_lines.adx,
            "plus_di": adx_lines.plus_di,
            "minus_di": adx_lines.minus_di,
            "donchian_upper": don.upper,
            "donchian_lower": don.lower,
            "bollinger_upper": bands.upper,
            "bollinger_lower": bands.lower,
            "volume_sma": sma(volumes, self.volume_period),
        }

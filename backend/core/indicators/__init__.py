"""Technical indicators (pure math, no I/O)."""

from core.indicators.indicators import (
    AdxLines,
    Channel,
    IchimokuLines,
    IndicatorCalculator,
    MacdLines,
    StochasticLines,
    adx,
    atr,
    bollinger,
    cci,
    donchian,
    ema,
    highest,
    ichimoku,
    lowest,
    macd,
    momentum,
    parabolic_sar,
    rsi,
    sma,
    stochastic,
    true_range,
    williams_r,
)
from core.indicators.levels import (
    PIVOT_HIGH,
    PIVOT_LOW,
    Pivot,
    SupportResistance,
    VolumeProfile,
    confirmed_pivots,
    find_pivots,
    levels_from_pivots,
    nearest_above,
    nearest_below,
    support_resistance,
    volume_profile,
)
from core.indicators.patterns import (
    BEARISH,
    BULLISH,
    ChartPattern,
    double_tops_bottoms,
    head_and_shoulders,
    rsi_divergences,
    triangles,
)

__all__ = [
    "AdxLines",
    "Channel",
    "IchimokuLines",
    "IndicatorCalculator",
    "MacdLines",
    "StochasticLines",
    "adx",
    "atr",
    "bollinger",
    "cci",
    "donchian",
    "ema",
    "highest",
    "ichimoku",
    "lowest",
    "macd",
    "momentum",
    "parabolic_sar",
    "rsi",
    "sma",
    "stochastic",
    "true_range",
    "williams_r",
    "PIVOT_HIGH",
    "PIVOT_LOW",
    "Pivot",
    "SupportResistance",
    "VolumeProfile",
    "confirmed_pivots",
    "find_pivots",
    "levels_from_pivots",
    "nearest_above",
    "nearest_below",
    "support_resistance",
    "volume_profile",
    "BEARISH",
    "BULLISH",
    "ChartPattern",
    "double_tops_bottoms",
    "head_and_shoulders",
    "rsi_divergences",
    "triangles",
]

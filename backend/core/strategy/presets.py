"""Built-in strategies.

Each factory returns a :class:`StrategyDefinition`; parameters override
the defaults, e.g. ``create_strategy("ema_cross", fast=9, slow=21)``.
"""

from core.strategy.generator import StrategyDefinition
from core.strategy.registry import register_strategy
from core.strategy.rules import (
    CLOSE,
    BreakoutRule,
    CloudRule,
    CrossoverRule,
    Line,
    MomentumReversalRule,
    ThresholdReversalRule,
    VolumeBreakoutRule,
)


@register_strategy("ema_cross")
def ema_cross(fast: int = 12, slow: int = 26) -> StrategyDefinition:
    """Fast EMA crossing the slow EMA."""
    return StrategyDefinition(
        name="ema_cross",
        rules=(CrossoverRule("ema_cross", Line.of("ema", period=fast), Line.of("ema", period=slow)),),
        min_bars=slow,
        params={"fast": fast, "slow": slow},
    )


@register_strategy("golden_cross")
def golden_cross(fast: int = 50, slow: int = 200, min_bars: int = 210) -> StrategyDefinition:
    """EMA50/EMA200 golden and death crosses; meaningless on short history."""
    return StrategyDefinition(
        name="golden_cross",
        rules=(CrossoverRule("golden_cross", Line.of("ema", period=fast), Line.of("ema", period=slow)),),
        min_bars=min_bars,
        params={"fast": fast, "slow": slow, "min_bars": min_bars},
    )


@register_strategy("ema_price_cross")
def ema_price_cross(period: int = 20) -> StrategyDefinition:
    """Close crossing its own EMA."""
    return StrategyDefinition(
        name="ema_price_cross",
        rules=(CrossoverRule("ema_price_cross", CLOSE, Line.of("ema", period=period)),),
        min_bars=period,
        params={"period": period},
    )


@register_strategy("sma_cross")
def sma_cross(fast: int = 20, slow: int = 50) -> StrategyDefinition:
    return StrategyDefinition(
        name="sma_cross",
        rules=(CrossoverRule("sma_cross", Line.of("sma", period=fast), Line.of("sma", period=slow)),),
        min_bars=slow,
        params={"fast": fast, "slow": slow},
    )


@register_strategy("macd_cross")
def macd_cross(fast: int = 12, slow: int = 26, signal: int = 9) -> StrategyDefinition:
    """MACD line crossing its signal line."""
    params = {"fast": fast, "slow": slow, "signal": signal}
    return StrategyDefinition(
        name="macd_cross",
        rules=(CrossoverRule("macd_cross", Line.of("macd", **params), Line.of("macd_signal", **params)),),
        min_bars=slow + signal,
        params=params,
    )


@register_strategy("rsi_reversal")
def rsi_reversal(period: int = 14, oversold: float = 30, overbought: float = 70) -> StrategyDefinition:
    return StrategyDefinition(
        name="rsi_reversal",
        rules=(ThresholdReversalRule("rsi_reversal", Line.of("rsi", period=period), oversold, overbought),),
        min_bars=period + 1,
        params={"period": period, "oversold": oversold, "overbought": overbought},
    )


@register_strategy("stochastic_reversal")
def stochastic_reversal(
    period: int = 14, smooth: int = 3, oversold: float = 20, overbought: float = 80
) -> StrategyDefinition:
    line = Line.of("stochastic_k", period=period, smooth=smooth)
    return StrategyDefinition(
        name="stochastic_reversal",
        rules=(ThresholdReversalRule("stochastic_reversal", line, oversold, overbought),),
        min_bars=period,
        params={"period": period, "smooth": smooth, "oversold": oversold, "overbought": overbought},
    )


@register_strategy("williams_reversal")
def williams_reversal(period: int = 14, oversold: float = -80, overbought: float = -20) -> StrategyDefinition:
    return StrategyDefinition(
        name="williams_reversal",
        rules=(ThresholdReversalRule("williams_reversal", Line.of("williams_r", period=period), oversold, overbought),),
        min_bars=period,
        params={"period": period, "oversold": oversold, "overbought": overbought},
    )


@register_strategy("cci_reversal")
def cci_reversal(period: int = 20, oversold: float = -100, overbought: float = 100) -> StrategyDefinition:
    return StrategyDefinition(
        name="cci_reversal",
        rules=(ThresholdReversalRule("cci_reversal", Line.of("cci", period=period), oversold, overbought),),
        min_bars=period,
        params={"period": period, "oversold": oversold, "overbought": overbought},
    )


@register_strategy("bollinger_breakout")
def bollinger_breakout(period: int = 20, k: float = 2.0) -> StrategyDefinition:
    """Close outside the previous bar's Bollinger band."""
    return StrategyDefinition(
        name="bollinger_breakout",
        rules=(
            BreakoutRule(
                "bollinger_breakout",
                Line.of("bollinger_upper", period=period, k=k),
                Line.of("bollinger_lower", period=period, k=k),
            ),
        ),
        min_bars=period,
        params={"period": period, "k": k},
    )


@register_strategy("donchian_breakout")
def donchian_breakout(period: int = 20, adx_period: int = 14, min_adx: float = 20.0) -> StrategyDefinition:
    """Close beyond the previous Donchian channel while ADX confirms a trend."""
    return StrategyDefinition(
        name="donchian_breakout",
        rules=(
            BreakoutRule(
                "donchian_breakout",
                Line.of("donchian_upper", period=period),
                Line.of("donchian_lower", period=period),
                trend_filter=Line.of("adx", period=adx_period),
                min_trend=min_adx,
            ),
        ),
        min_bars=period + 1,
        params={"period": period, "adx_period": adx_period, "min_adx": min_adx},
    )


@register_strategy("ichimoku_cloud")
def ichimoku_cloud(tenkan: int = 9, kijun: int = 26, senkou: int = 52) -> StrategyDefinition:
    return StrategyDefinition(
        name="ichimoku_cloud",
        rules=(CloudRule("ichimoku_cloud", tenkan, kijun, senkou),),
        min_bars=senkou,
        params={"tenkan": tenkan, "kijun": kijun, "senkou": senkou},
    )


@register_strategy("parabolic_sar")
def parabolic_sar(step: float = 0.02, max_step: float = 0.2) -> StrategyDefinition:
    """Close crossing the SAR."""
    return StrategyDefinition(
        name="parabolic_sar",
        rules=(CrossoverRule("parabolic_sar", CLOSE, Line.of("sar", step=step, max_step=max_step)),),
        min_bars=2,
        params={"step": step, "max_step": max_step},
    )


@register_strategy("volume_breakout")
def volume_breakout(period: int = 20, multiple: float = 2.0) -> StrategyDefinition:
    return StrategyDefinition(
        name="volume_breakout",
        rules=(VolumeBreakoutRule("volume_breakout", period, multiple),),
        min_bars=period,
        params={"period": period, "multiple": multiple},
    )


@register_strategy("momentum_reversal")
def momentum_reversal(period: int = 10, threshold: float = 5.0) -> StrategyDefinition:
    return StrategyDefinition(
        name="momentum_reversal",
        rules=(MomentumReversalRule("momentum_reversal", period, threshold),),
        min_bars=period + 1,
        params={"period": period, "threshold": threshold},
    )

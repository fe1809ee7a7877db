"""Sizing, gate and aggregation configuration models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class StopType(str, Enum):
    """How the stop distance of a new position is derived."""

    ATR = "ATR"
    FIXED_PERCENT = "FIXED_PERCENT"
    SUPPORT_RESISTANCE = "SUPPORT_RESISTANCE"


class SizingPolicy(BaseModel):
    """Risk-based position sizing parameters."""

    initial_capital: float = Field(default=10_000.0, gt=0)

    # Percent of current equity risked per trade
    risk_percent: float = Field(default=2.0, gt=0, le=100)

    stop_type: StopType = StopType.ATR
    atr_period: int = Field(default=14, ge=1)
    atr_multiplier: float = Field(default=2.0, gt=0)
    fixed_stop_percent: float = Field(default=3.0, gt=0)

    # Bars on each side of a pivot for support/resistance stops
    pivot_period: int = Field(default=2, ge=1)

    leverage: float = Field(default=1.0, ge=1)

    # Fraction of notional charged on entry and on exit
    commission: float = Field(default=0.0, ge=0, lt=1)

    # Take-profit distance as a multiple of the stop distance
    reward_ratio: float = Field(default=2.0, gt=0)


class GateThresholds(BaseModel):
    """Thresholds for the precision gate."""

    min_adx: float = 20.0
    atr_pct_min: float = 0.003
    atr_pct_max: float = 0.025
    min_model_score: float = 0.60
    funding_abs_max: float = 0.0007

    # Open-interest change (in percent) tolerated against the chosen side
    oi_tolerance_pct: float = 0.2

    @model_validator(mode="after")
    def _check_band(self):
        if self.atr_pct_min > self.atr_pct_max:
            raise ValueError(
                f"atr_pct_min ({self.atr_pct_min}) must not exceed "
                f"atr_pct_max ({self.atr_pct_max})"
            )
        return self


class AggregationWeights(BaseModel):
    """Per-source weights for the signal aggregator.

    Extra keys weight additional (custom or remote) sources by name.
    """

    model_config = ConfigDict(extra="allow")

    multi_timeframe: float = Field(default=0.25, ge=0)
    technical: float = Field(default=0.10, ge=0)
    pattern: float = Field(default=0.10, ge=0)
    volume: float = Field(default=0.15, ge=0)
    order_flow: float = Field(default=0.15, ge=0)
    risk: float = Field(default=0.10, ge=0)
    precision_gate: float = Field(default=0.10, ge=0)
    market_structure: float = Field(default=0.05, ge=0)

    @model_validator(mode="after")
    def _check_extra(self):
        for name, value in (self.model_extra or {}).items():
            if not isinstance(value, (int, float)) or isinstance(value, bool) or value < 0:
                raise ValueError(f"weight for '{name}' must be a non-negative number, got {value!r}")
        return self

    def as_dict(self) -> dict[str, float]:
        return {name: float(value) for name, value in self.model_dump().items()}


DEFAULT_SOURCE_WEIGHTS: dict[str, float] = AggregationWeights().as_dict()

"""Core data models."""

from core.models.candle import Candle, CandleSeries
from core.models.config import (
    DEFAULT_SOURCE_WEIGHTS,
    AggregationWeights,
    GateThresholds,
    SizingPolicy,
    StopType,
)
from core.models.signal import Side, SignalEvent, SignalKind
from core.models.trade import EXIT_AT_END, EXIT_ON_SIGNAL, EquityPoint, Position, Trade

__all__ = [
    "Candle",
    "CandleSeries",
    "DEFAULT_SOURCE_WEIGHTS",
    "AggregationWeights",
    "GateThresholds",
    "SizingPolicy",
    "StopType",
    "Side",
    "SignalEvent",
    "SignalKind",
    "EXIT_AT_END",
    "EXIT_ON_SIGNAL",
    "EquityPoint",
    "Position",
    "Trade",
]

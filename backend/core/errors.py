"""Exceptions raised by the core.

Every error here means "the input or configuration is broken". An empty
signal list or a backtest with no trades is a normal result and never
raises.
"""


class SignalDeskError(Exception):
    """Base class for core errors."""


class CandleSeriesError(SignalDeskError, ValueError):
    """Candle input violates its preconditions.

    Raised for out-of-order or duplicate timestamps, a forming bar that is
    not the last element, and malformed OHLCV values.
    """

    def __init__(self, message: str, index: int | None = None):
        super().__init__(message if index is None else f"{message} (at index {index})")
        self.index = index


class SourceUnavailable(SignalDeskError):
    """An analyzer source cannot produce a score for the given context."""

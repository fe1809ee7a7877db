"""Candle (OHLCV bar) data models."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Sequence

from pydantic import BaseModel, ConfigDict, Field, model_validator

from core.errors import CandleSeriesError


class Candle(BaseModel):
    """One OHLCV bar. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    time: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0
    is_closed: bool = True

    @model_validator(mode="after")
    def _check_prices(self):
        values = (self.open, self.high, self.low, self.close, self.volume)
        if not all(math.isfinite(v) for v in values):
            raise ValueError("candle values must be finite")
        if self.high < self.low:
            raise ValueError(f"high {self.high} is below low {self.low}")
        if self.volume < 0:
            raise ValueError(f"volume {self.volume} is negative")
        return self

    @property
    def is_bullish(self) -> bool:
        return self.close > self.open

    @property
    def is_bearish(self) -> bool:
        return self.close < self.open

    @property
    def range_size(self) -> float:
        """Full range (high - low) of the bar."""
        return self.high - self.low

    @property
    def typical_price(self) -> float:
        return (self.high + self.low + self.close) / 3


class CandleSeries(BaseModel):
    """A validated, closed-only, strictly time-ordered run of candles.

    Build it with :meth:`from_candles`, which enforces the ordering rules
    and drops a trailing forming bar.
    """

    candles: list[Candle] = Field(default_factory=list)

    @classmethod
    def from_candles(cls, candles: Sequence[Candle]) -> CandleSeries:
        """Validate raw input and return the closed-bar series.

        Raises:
            CandleSeriesError: If timestamps are not strictly increasing or
                a forming bar appears anywhere but the last position.
        """
        rows = list(candles)
        if rows and not rows[-1].is_closed:
            rows = rows[:-1]

        for i, candle in enumerate(rows):
            if not candle.is_closed:
                raise CandleSeriesError("forming candle inside the series", index=i)
            if i > 0 and candle.time <= rows[i - 1].time:
                raise CandleSeriesError(
                    f"candle time {candle.time.isoformat()} does not follow "
                    f"{rows[i - 1].time.isoformat()}",
                    index=i,
                )
        return cls(candles=rows)

    def get_opens(self) -> list[float]:
        return [c.open for c in self.candles]

    def get_highs(self) -> list[float]:
        return [c.high for c in self.candles]

    def get_lows(self) -> list[float]:
        return [c.low for c in self.candles]

    def get_closes(self) -> list[float]:
        return [c.close for c in self.candles]

    def get_volumes(self) -> list[float]:
        return [c.volume for c in self.candles]

    def __len__(self) -> int:
        return len(self.candles)

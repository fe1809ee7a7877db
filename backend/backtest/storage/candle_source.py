"""Candle data source for backtesting.

Reads Binance-style kline CSV files (open time in epoch milliseconds,
then open, high, low, close, volume; extra columns ignored). Header and
blank lines are skipped.
"""

from __future__ import annotations

import csv
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Protocol

from pydantic import ValidationError

from core.errors import CandleSeriesError
from core.models.candle import Candle

logger = logging.getLogger(__name__)


class CandleSource(Protocol):
    """Protocol for candle data access."""

    def load(self) -> list[Candle]: ...


class CsvCandleSource:
    """Load candles from a kline CSV file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> list[Candle]:
        """Read all candles in file order.

        Raises:
            CandleSeriesError: If a data row cannot be parsed.
        """
        with open(self.path, newline="") as f:
            candles = list(self._iter_rows(csv.reader(f)))
        logger.info("Loaded %d candles from %s", len(candles), self.path)
        return candles

    @staticmethod
    def _iter_rows(reader) -> Iterator[Candle]:
        for line_no, row in enumerate(reader, start=1):
            if not row or not row[0].strip().isdigit():
                continue
            try:
                yield Candle(
                    time=datetime.fromtimestamp(int(row[0]) / 1000, tz=timezone.utc),
                    open=float(row[1]),
                    high=float(row[2]),
                    low=float(row[3]),
                    close=float(row[4]),
                    volume=float(row[5]),
                )
            except (IndexError, ValueError, ValidationError) as e:
                raise CandleSeriesError(f"unparseable candle row on line {line_no}: {e}") from e

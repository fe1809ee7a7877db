"""Backtest storage layer: candle input and trade journals."""

from backtest.storage.candle_source import CandleSource, CsvCandleSource
from backtest.storage.journal_repo import (
    InMemoryTradeJournal,
    JsonFileTradeJournal,
    TradeJournalRepository,
)

__all__ = [
    "CandleSource",
    "CsvCandleSource",
    "InMemoryTradeJournal",
    "JsonFileTradeJournal",
    "TradeJournalRepository",
]

"""Trade journal repositories.

The backtest runner receives a journal by injection and only ever calls
``save`` and ``load``; nothing in the core touches storage directly.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol, Sequence, runtime_checkable

from pydantic import TypeAdapter

from core.models.trade import Trade

logger = logging.getLogger(__name__)

_TRADES = TypeAdapter(list[Trade])


@runtime_checkable
class TradeJournalRepository(Protocol):
    """Protocol that trade journal backends must implement."""

    def save(self, trades: Sequence[Trade]) -> int:
        """Append trades to the journal. Returns the number saved."""
        ...

    def load(self) -> list[Trade]:
        """Return every journaled trade in insertion order."""
        ...


class InMemoryTradeJournal:
    """Journal kept in process memory."""

    def __init__(self) -> None:
        self._trades: list[Trade] = []

    def save(self, trades: Sequence[Trade]) -> int:
        self._trades.extend(trades)
        return len(trades)

    def load(self) -> list[Trade]:
        return list(self._trades)


class JsonFileTradeJournal:
    """Journal stored as a JSON array of trades in a single file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def save(self, trades: Sequence[Trade]) -> int:
        existing = self.load()
        existing.extend(trades)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_bytes(_TRADES.dump_json(existing, indent=2))
        logger.info("Journaled %d trades to %s (%d total)", len(trades), self.path, len(existing))
        return len(trades)

    def load(self) -> list[Trade]:
        if not self.path.exists():
            return []
        return _TRADES.validate_json(self.path.read_bytes())

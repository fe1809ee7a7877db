"""BacktestRunner: orchestrates the full backtest pipeline.

candles -> SignalGenerator -> PositionSimulator -> StatisticsCalculator

Runs synchronously and keeps no state between runs, so separate runs can
execute side by side. Each run gets a run_id derived from its config and
data range for tracking and comparison.
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Sequence

from core.models.candle import Candle, CandleSeries
from core.models.config import SizingPolicy
from core.strategy import SignalGenerator, create_strategy

from backtest.engine import PositionSimulator
from backtest.stats import BacktestResult, StatisticsCalculator
from backtest.storage.journal_repo import TradeJournalRepository

logger = logging.getLogger(__name__)

# Fewer closed bars than this and a backtest is not attempted
MIN_BACKTEST_BARS = 100


@dataclass
class BacktestConfig:
    """Configuration for a backtest run."""

    strategy_name: str = "ema_cross"
    strategy_params: dict[str, Any] = field(default_factory=dict)
    sizing: SizingPolicy = field(default_factory=SizingPolicy)
    symbol: str = ""
    timeframe: str = ""
    min_bars: int = MIN_BACKTEST_BARS


def generate_run_id(config: BacktestConfig, series: CandleSeries) -> str:
    """Generate a deterministic run ID from config + data range."""
    first = series.candles[0].time.isoformat() if len(series) else ""
    last = series.candles[-1].time.isoformat() if len(series) else ""
    key = (
        f"{config.strategy_name}"
        f":{json.dumps(config.strategy_params, sort_keys=True)}"
        f":{config.sizing.model_dump_json()}"
        f":{config.symbol}:{config.timeframe}"
        f":{first}:{last}:{len(series)}"
    )
    return hashlib.sha256(key.encode()).hexdigest()[:16]


class BacktestRunner:
    """Run a single-symbol backtest."""

    def __init__(
        self,
        config: BacktestConfig,
        journal: TradeJournalRepository | None = None,
    ):
        self.config = config
        self._journal = journal

    def run(self, candles: Sequence[Candle]) -> BacktestResult:
        """Execute the full backtest pipeline.

        Raises:
            CandleSeriesError: If the candles are out of order or malformed.
            KeyError: If the strategy name is not registered.
        """
        start_time = time.time()
        series = CandleSeries.from_candles(candles)
        strategy = create_strategy(self.config.strategy_name, **self.config.strategy_params)
        run_id = generate_run_id(self.config, series)
        metadata = dict(
            symbol=self.config.symbol,
            timeframe=self.config.timeframe,
            run_id=run_id,
            bars=len(series),
            start_time=series.candles[0].time if len(series) else None,
            end_time=series.candles[-1].time if len(series) else None,
        )

        if len(series) < self.config.min_bars:
            logger.warning(
                f"Backtest run={run_id}: {len(series)} closed bars, "
                f"need {self.config.min_bars}; skipping"
            )
            capital = self.config.sizing.initial_capital
            return BacktestResult(
                strategy=strategy.name,
                initial_capital=capital,
                final_capital=capital,
                insufficient_data=True,
                **metadata,
            )

        logger.info(
            f"Starting backtest run={run_id}: {strategy.name} {self.config.symbol} "
            f"{self.config.timeframe} over {len(series)} bars"
        )

        events = SignalGenerator(strategy).generate(series)
        simulation = PositionSimulator(self.config.sizing).run(series.candles, events)

        calculator = StatisticsCalculator()
        result = calculator.calculate(
            trades=simulation.trades,
            equity_curve=simulation.equity_curve,
            initial_capital=simulation.initial_capital,
            final_capital=simulation.final_capital,
            strategy=strategy.name,
            signals=events,
            signals_ignored=simulation.signals_ignored,
            sizing_failures=simulation.sizing_failures,
            **metadata,
        )

        if self._journal is not None and result.trades:
            count = self._journal.save(result.trades)
            logger.info(f"Journaled {count} trades (run={run_id})")

        elapsed = time.time() - start_time
        logger.info(
            f"Backtest run={run_id} completed in {elapsed:.2f}s: "
            f"{result.total_trades} trades, return {result.total_return_percent:+.2f}%"
        )
        return result

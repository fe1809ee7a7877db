"""Backtesting system: signal generation, position simulation and statistics.

Depends only on core/ for business logic. Candles come from a CSV file
or from the caller; trades can be journaled through an injected
repository.

Usage:
    python -m backtest --candles BTCUSDT-1h.csv --strategy golden_cross
    python -m backtest --list-strategies
"""

from backtest.runner import BacktestConfig, BacktestRunner
from backtest.stats import BacktestResult

__all__ = ["BacktestConfig", "BacktestRunner", "BacktestResult"]

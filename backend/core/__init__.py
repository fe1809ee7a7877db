"""Core logic for indicators, signals, sizing and the precision gate.

This package contains pure business logic with no I/O dependencies
(no storage or network access). It is shared between the backtesting
system (backtest/) and the decision service (decision/).
"""

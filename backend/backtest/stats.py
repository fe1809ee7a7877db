"""Statistics calculator for backtest results.

Computes overall metrics, risk-adjusted ratios and a long/short breakdown
from the trade ledger and the per-bar equity curve.

Conventions:
  - A winner has pnl > 0, a loser pnl < 0; a scratch trade is neither.
  - Trade returns for Sharpe/Sortino are the trades' pnl_percent values.
  - Every ratio with a zero denominator (or fewer than two trades for the
    dispersion-based ones) is reported as 0, never NaN or inf.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from statistics import fmean, pstdev

from core.models.signal import SignalEvent, Side
from core.models.trade import EquityPoint, Trade

logger = logging.getLogger(__name__)


@dataclass
class DirectionStats:
    direction: str  # "LONG" or "SHORT"
    total: int = 0
    wins: int = 0
    losses: int = 0
    pnl: float = 0.0

    @property
    def win_rate(self) -> float:
        return (self.wins / self.total * 100) if self.total > 0 else 0.0


@dataclass
class BacktestResult:
    """Complete backtest results."""

    # Metadata
    strategy: str
    symbol: str = ""
    timeframe: str = ""
    run_id: str = ""
    start_time: datetime | None = None
    end_time: datetime | None = None
    bars: int = 0
    insufficient_data: bool = False

    # Ledger and curve
    trades: list[Trade] = field(default_factory=list)
    equity_curve: list[EquityPoint] = field(default_factory=list)
    signals: list[SignalEvent] = field(default_factory=list)

    # Capital
    initial_capital: float = 0.0
    final_capital: float = 0.0
    total_return: float = 0.0
    total_return_percent: float = 0.0

    # Overall
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0  # fraction in [0, 1]
    average_win: float = 0.0
    average_loss: float = 0.0  # magnitude
    largest_win: float = 0.0
    largest_loss: float = 0.0  # magnitude
    profit_factor: float = 0.0
    expectancy: float = 0.0
    max_consecutive_losses: int = 0
    average_holding: timedelta = timedelta(0)

    # Risk-adjusted
    max_drawdown: float = 0.0
    max_drawdown_percent: float = 0.0
    sharpe_ratio: float = 0.0
    sortino_ratio: float = 0.0
    calmar_ratio: float = 0.0

    # Run counters
    signals_ignored: int = 0
    sizing_failures: int = 0

    by_direction: list[DirectionStats] = field(default_factory=list)


class StatisticsCalculator:
    """Calculate comprehensive backtest statistics."""

    def calculate(
        self,
        trades: list[Trade],
        equity_curve: list[EquityPoint],
        initial_capital: float,
        final_capital: float,
        strategy: str,
        **metadata,
    ) -> BacktestResult:
        result = BacktestResult(
            strategy=strategy,
            trades=trades,
            equity_curve=equity_curve,
            initial_capital=initial_capital,
            final_capital=final_capital,
            **metadata,
        )
        self._calc_capital(result)
        self._calc_overall(result)
        self._calc_streaks(result)
        self._calc_risk_adjusted(result)
        self._calc_by_direction(result)
        return result

    def _calc_capital(self, result: BacktestResult) -> None:
        result.total_return = result.final_capital - result.initial_capital
        if result.initial_capital > 0:
            result.total_return_percent = result.total_return / result.initial_capital * 100

    def _calc_overall(self, result: BacktestResult) -> None:
        trades = result.trades
        wins = [t.pnl for t in trades if t.is_winner]
        losses = [-t.pnl for t in trades if t.is_loser]

        result.total_trades = len(trades)
        result.winning_trades = len(wins)
        result.losing_trades = len(losses)
        if not trades:
            return

        result.win_rate = len(wins) / len(trades)
        result.average_win = fmean(wins) if wins else 0.0
        result.average_loss = fmean(losses) if losses else 0.0
        result.largest_win = max(wins, default=0.0)
        result.largest_loss = max(losses, default=0.0)

        gross_loss = result.average_loss * len(losses)
        if gross_loss > 0:
            result.profit_factor = result.average_win * len(wins) / gross_loss

        result.expectancy = (
            result.win_rate * result.average_win
            - (1 - result.win_rate) * result.average_loss
        )
        result.average_holding = sum(
            (t.holding_duration for t in trades), timedelta(0)
        ) / len(trades)

    def _calc_streaks(self, result: BacktestResult) -> None:
        longest = current = 0
        for trade in result.trades:
            if trade.is_loser:
                current += 1
                longest = max(longest, current)
            else:
                current = 0
        result.max_consecutive_losses = longest

    def _calc_risk_adjusted(self, result: BacktestResult) -> None:
        result.max_drawdown_percent = max(
            (p.drawdown_percent for p in result.equity_curve), default=0.0
        )
        peak = result.initial_capital
        for point in result.equity_curve:
            peak = max(peak, point.equity)
            result.max_drawdown = max(result.max_drawdown, peak - point.equity)

        returns = [t.pnl_percent for t in result.trades]
        if len(returns) >= 2:
            mean = fmean(returns)
            std = pstdev(returns)
            if std > 0:
                result.sharpe_ratio = mean / std
            downside = math.sqrt(fmean([min(r, 0.0) ** 2 for r in returns]))
            if downside > 0:
                result.sortino_ratio = mean / downside

        if result.max_drawdown_percent > 0:
            result.calmar_ratio = result.total_return_percent / result.max_drawdown_percent

    def _calc_by_direction(self, result: BacktestResult) -> None:
        groups: dict[str, DirectionStats] = {}
        for trade in result.trades:
            label = trade.side.value
            if label not in groups:
                groups[label] = DirectionStats(direction=label)
            stats = groups[label]
            stats.total += 1
            stats.pnl += trade.pnl
            if trade.is_winner:
                stats.wins += 1
            elif trade.is_loser:
                stats.losses += 1
        order = {Side.LONG.value: 0, Side.SHORT.value: 1}
        result.by_direction = sorted(groups.values(), key=lambda s: order[s.direction])

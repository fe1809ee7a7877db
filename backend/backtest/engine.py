"""Single-position backtest simulation engine.

Walks a closed candle series bar by bar and applies signal events to a
two-state machine:

    FLAT + BUY/SELL       -> OPEN (LONG/SHORT), sized by the SizingPolicy
    OPEN + opposing event -> close at the event price, back to FLAT
    OPEN + same direction -> ignored
    last bar while OPEN   -> forced close at the last close

Equity is marked to market once per bar, so drawdown includes unrealized
moves of the open position.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Sequence

from core.indicators import atr, confirmed_pivots, find_pivots, levels_from_pivots
from core.models.candle import Candle
from core.models.config import SizingPolicy, StopType
from core.models.signal import SignalEvent
from core.models.trade import EXIT_AT_END, EXIT_ON_SIGNAL, EquityPoint, Position, Trade
from core.risk import position_size, stop_distance

logger = logging.getLogger(__name__)


@dataclass
class SimulationResult:
    """Ledger and equity curve of one simulation run."""

    initial_capital: float
    final_capital: float
    trades: list[Trade] = field(default_factory=list)
    equity_curve: list[EquityPoint] = field(default_factory=list)
    signals_seen: int = 0
    signals_ignored: int = 0
    sizing_failures: int = 0


class PositionSimulator:
    """Replay signal events against candles with at most one open position."""

    def __init__(self, policy: SizingPolicy | None = None):
        self.policy = policy or SizingPolicy()

    def run(self, candles: Sequence[Candle], events: Sequence[SignalEvent]) -> SimulationResult:
        """Simulate a run.

        Args:
            candles: Closed candles in time order (as validated by CandleSeries)
            events: Signal events whose ``index`` refers to ``candles``

        Returns:
            SimulationResult with one EquityPoint per candle
        """
        run = _Run(self.policy, candles)
        by_index: dict[int, list[SignalEvent]] = defaultdict(list)
        for event in events:
            by_index[event.index].append(event)

        last = len(candles) - 1
        for i, candle in enumerate(candles):
            for event in by_index.get(i, ()):
                run.on_signal(event)
            if i == last and run.position is not None:
                run.close(candle.close, i, EXIT_AT_END, exit_rule="")
            run.mark(candle)

        result = run.result()
        logger.info(
            "Simulation done: %d trades, capital %.2f -> %.2f (%d signals, %d ignored, %d sizing failures)",
            len(result.trades), result.initial_capital, result.final_capital,
            result.signals_seen, result.signals_ignored, result.sizing_failures,
        )
        return result


class _Run:
    """Mutable state of a single simulation; never shared between runs."""

    def __init__(self, policy: SizingPolicy, candles: Sequence[Candle]):
        self.policy = policy
        self.candles = candles
        self.capital = policy.initial_capital
        self.peak = policy.initial_capital
        self.position: Position | None = None

        self.trades: list[Trade] = []
        self.equity_curve: list[EquityPoint] = []
        self.signals_seen = 0
        self.signals_ignored = 0
        self.sizing_failures = 0

        highs = [c.high for c in candles]
        lows = [c.low for c in candles]
        closes = [c.close for c in candles]
        self._atr = atr(highs, lows, closes, policy.atr_period)
        self._pivots = (
            find_pivots(highs, lows, policy.pivot_period)
            if policy.stop_type == StopType.SUPPORT_RESISTANCE
            else []
        )

    def on_signal(self, event: SignalEvent) -> None:
        self.signals_seen += 1
        side = event.side

        if self.position is None:
            self.open(event)
        elif self.position.side is not side:
            self.close(event.price, event.index, EXIT_ON_SIGNAL, exit_rule=event.rule)
        else:
            self.signals_ignored += 1
            logger.debug("Ignoring %s %s: already %s", event.kind.value, event.rule, side.value)

    def open(self, event: SignalEvent) -> None:
        levels = levels_from_pivots(
            confirmed_pivots(self._pivots, event.index, self.policy.pivot_period)
        )
        distance = stop_distance(
            self.policy,
            event.side,
            event.price,
            self._atr[event.index],
            levels.supports,
            levels.resistances,
        )
        equity = self.capital
        size = position_size(equity, self.policy.risk_percent, distance)
        if size <= 0 or not math.isfinite(size):
            self.sizing_failures += 1
            logger.warning(
                "Sizing failed for %s at index %d: stop distance %s; no position opened",
                event.rule, event.index, distance,
            )
            return

        fee = size * event.price * self.policy.commission
        self.position = Position(
            side=event.side,
            entry_time=event.time,
            entry_price=event.price,
            size=size,
            stop_distance=distance,
            entry_index=event.index,
            entry_rule=event.rule,
            entry_fee=fee,
        )
        logger.debug(
            "Opened %s %.6f @ %.4f (stop distance %.4f)",
            event.side.value, size, event.price, distance,
        )

    def close(self, price: float, index: int, reason: str, exit_rule: str) -> None:
        pos = self.position
        if pos is None:
            return
        exit_fee = pos.size * price * self.policy.commission
        fees = pos.entry_fee + exit_fee
        pnl = pos.unrealized_pnl(price) - fees
        # Net of fees, relative to the entry notional
        pnl_percent = pnl / (pos.entry_price * pos.size) * 100

        trade = Trade(
            side=pos.side,
            entry_time=pos.entry_time,
            exit_time=self.candles[index].time,
            entry_price=pos.entry_price,
            exit_price=price,
            size=pos.size,
            pnl=pnl,
            pnl_percent=pnl_percent,
            entry_index=pos.entry_index,
            exit_index=index,
            entry_rule=pos.entry_rule,
            exit_rule=exit_rule,
            exit_reason=reason,
            fees=fees,
        )
        self.trades.append(trade)
        self.capital += pnl
        self.position = None
        logger.debug("Closed %s @ %.4f pnl=%.2f (%s)", trade.side.value, price, pnl, reason)

    def mark(self, candle: Candle) -> None:
        equity = self.capital
        if self.position is not None:
            equity += self.position.unrealized_pnl(candle.close) - self.position.entry_fee
        self.peak = max(self.peak, equity)
        drawdown = (self.peak - equity) / self.peak * 100 if self.peak > 0 else 0.0
        # Equity below zero reads as a full drawdown
        drawdown = min(100.0, max(0.0, drawdown))
        self.equity_curve.append(
            EquityPoint(time=candle.time, equity=equity, drawdown_percent=drawdown)
        )

    def result(self) -> SimulationResult:
        return SimulationResult(
            initial_capital=self.policy.initial_capital,
            final_capital=self.capital,
            trades=self.trades,
            equity_curve=self.equity_curve,
            signals_seen=self.signals_seen,
            signals_ignored=self.signals_ignored,
            sizing_failures=self.sizing_failures,
        )

"""Report formatting for backtest results.

Outputs results to console (formatted tables) and JSON files. The JSON
form is a flat record of metrics plus the trade ledger and equity curve.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta
from enum import Enum

from backtest.stats import BacktestResult


class ReportEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, timedelta):
            return obj.total_seconds()
        if isinstance(obj, Enum):
            return obj.value
        return super().default(obj)


class ReportFormatter:
    """Format backtest results for display and export."""

    @staticmethod
    def print_console(result: BacktestResult) -> None:
        """Print formatted report to console."""
        print("\n" + "=" * 70)
        print(f"  BACKTEST RESULTS - {result.strategy}")
        print("=" * 70)
        if result.symbol or result.timeframe:
            print(f"  Market: {result.symbol} {result.timeframe}".rstrip())
        if result.start_time and result.end_time:
            print(f"  Period: {result.start_time:%Y-%m-%d %H:%M} → {result.end_time:%Y-%m-%d %H:%M}")
        print(f"  Bars:   {result.bars}")

        if result.insufficient_data:
            print("\n  Not enough data for a backtest; no trades simulated.")
            print("\n" + "=" * 70)
            return

        # Overall
        print("\n" + "-" * 70)
        print("  OVERALL")
        print("-" * 70)
        print(f"  Capital:        {result.initial_capital:,.2f} → {result.final_capital:,.2f}")
        print(f"  Total return:   {result.total_return:+,.2f} ({result.total_return_percent:+.2f}%)")
        print(f"  Trades:         {result.total_trades}")
        print(f"  Winners:        {result.winning_trades}")
        print(f"  Losers:         {result.losing_trades}")
        print(f"  Win rate:       {result.win_rate * 100:.1f}%")
        print(f"  Profit factor:  {result.profit_factor:.2f}")
        print(f"  Expectancy:     {result.expectancy:+,.2f} per trade")
        print(f"  Avg win/loss:   {result.average_win:,.2f} / {result.average_loss:,.2f}")
        print(f"  Max loss streak:{result.max_consecutive_losses:>4}")

        # Risk
        print("\n" + "-" * 70)
        print("  RISK")
        print("-" * 70)
        print(f"  Max drawdown:   {result.max_drawdown_percent:.2f}% (${result.max_drawdown:,.2f})")
        print(f"  Sharpe:         {result.sharpe_ratio:.2f}")
        print(f"  Sortino:        {result.sortino_ratio:.2f}")
        print(f"  Calmar:         {result.calmar_ratio:.2f}")
        if result.sizing_failures:
            print(f"  Sizing failures:{result.sizing_failures:>4}")

        # By Direction
        if result.by_direction:
            print("\n" + "-" * 70)
            print("  BY DIRECTION")
            print("-" * 70)
            print(f"  {'Direction':<12} {'Total':>6} {'Wins':>6} {'Losses':>6} {'Win%':>8} {'P&L':>12}")
            for s in result.by_direction:
                print(f"  {s.direction:<12} {s.total:>6} {s.wins:>6} {s.losses:>6} {s.win_rate:>7.1f}% {s.pnl:>+12,.2f}")

        # Last trades
        if result.trades:
            print("\n" + "-" * 70)
            print("  TRADES (last 10)")
            print("-" * 70)
            print(f"  {'Entry':<17} {'Side':<6} {'Entry px':>11} {'Exit px':>11} {'P&L':>11} {'P&L%':>8}")
            for t in result.trades[-10:]:
                print(
                    f"  {t.entry_time:%Y-%m-%d %H:%M} {t.side.value:<6} {t.entry_price:>11.4f} "
                    f"{t.exit_price:>11.4f} {t.pnl:>+11.2f} {t.pnl_percent:>+7.2f}%"
                )

        print("\n" + "=" * 70)

    @staticmethod
    def to_record(result: BacktestResult) -> dict:
        """Flat metric record (no nested collections)."""
        return {
            "run_id": result.run_id,
            "strategy": result.strategy,
            "symbol": result.symbol,
            "timeframe": result.timeframe,
            "start_time": result.start_time.isoformat() if result.start_time else None,
            "end_time": result.end_time.isoformat() if result.end_time else None,
            "bars": result.bars,
            "insufficient_data": result.insufficient_data,
            "initial_capital": round(result.initial_capital, 2),
            "final_capital": round(result.final_capital, 2),
            "total_return": round(result.total_return, 2),
            "total_return_percent": round(result.total_return_percent, 4),
            "total_trades": result.total_trades,
            "winning_trades": result.winning_trades,
            "losing_trades": result.losing_trades,
            "win_rate": round(result.win_rate, 4),
            "profit_factor": round(result.profit_factor, 4),
            "expectancy": round(result.expectancy, 4),
            "average_win": round(result.average_win, 2),
            "average_loss": round(result.average_loss, 2),
            "largest_win": round(result.largest_win, 2),
            "largest_loss": round(result.largest_loss, 2),
            "max_consecutive_losses": result.max_consecutive_losses,
            "average_holding_seconds": result.average_holding.total_seconds(),
            "max_drawdown": round(result.max_drawdown, 2),
            "max_drawdown_percent": round(result.max_drawdown_percent, 4),
            "sharpe_ratio": round(result.sharpe_ratio, 4),
            "sortino_ratio": round(result.sortino_ratio, 4),
            "calmar_ratio": round(result.calmar_ratio, 4),
            "signals": len(result.signals),
            "signals_ignored": result.signals_ignored,
            "sizing_failures": result.sizing_failures,
        }

    @staticmethod
    def to_dict(result: BacktestResult) -> dict:
        """Convert results to a JSON-serializable dict."""
        data = ReportFormatter.to_record(result)
        data["by_direction"] = [
            {
                "direction": s.direction,
                "total": s.total,
                "wins": s.wins,
                "losses": s.losses,
                "win_rate": round(s.win_rate, 2),
                "pnl": round(s.pnl, 2),
            }
            for s in result.by_direction
        ]
        data["trades"] = [t.model_dump(mode="json") for t in result.trades]
        data["equity_curve"] = [p.model_dump(mode="json") for p in result.equity_curve]
        return data

    @staticmethod
    def save_json(result: BacktestResult, filepath: str) -> None:
        """Save results to JSON file."""
        data = ReportFormatter.to_dict(result)
        with open(filepath, "w") as f:
            json.dump(data, f, indent=2, cls=ReportEncoder)
        print(f"\nResults saved to {filepath}")

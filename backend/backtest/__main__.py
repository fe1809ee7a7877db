"""CLI entry point for the backtesting system.

Usage:
    python -m backtest --candles BTCUSDT-1h.csv
    python -m backtest --candles BTCUSDT-1h.csv --strategy golden_cross --risk-percent 1
    python -m backtest --candles ETHUSDT-4h.csv --strategy donchian_breakout --param period=55
    python -m backtest --list-strategies
"""

import argparse
import json
import logging
import sys

from pydantic import ValidationError

from core.errors import CandleSeriesError
from core.models.config import SizingPolicy, StopType
from core.strategy import get_strategy_factory, list_strategies

from backtest.config import get_backtest_settings
from backtest.report import ReportFormatter
from backtest.runner import BacktestConfig, BacktestRunner
from backtest.storage.candle_source import CsvCandleSource
from backtest.storage.journal_repo import JsonFileTradeJournal


def parse_param(text: str) -> tuple[str, object]:
    """Parse NAME=VALUE, reading VALUE as JSON when possible."""
    name, sep, raw = text.partition("=")
    if not sep or not name:
        raise argparse.ArgumentTypeError(
            f"Invalid parameter: {text} (expected NAME=VALUE)"
        )
    try:
        value = json.loads(raw)
    except ValueError:
        value = raw
    return name.strip(), value


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    settings = get_backtest_settings()
    parser = argparse.ArgumentParser(
        description="Backtest a signal strategy over a kline CSV file",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m backtest --candles BTCUSDT-1h.csv
  python -m backtest --candles BTCUSDT-1h.csv --strategy golden_cross --stop-type FIXED_PERCENT
  python -m backtest --candles ETHUSDT-4h.csv --strategy rsi_reversal --param oversold=25
  python -m backtest --list-strategies
        """,
    )

    parser.add_argument(
        "--list-strategies",
        action="store_true",
        help="List registered strategies and exit",
    )
    parser.add_argument(
        "--candles",
        type=str,
        default=None,
        help="Kline CSV file (open time ms, open, high, low, close, volume)",
    )
    parser.add_argument(
        "--strategy",
        type=str,
        default=settings.strategy,
        help=f"Strategy name (default: {settings.strategy})",
    )
    parser.add_argument(
        "--param",
        type=parse_param,
        action="append",
        default=[],
        help="Strategy parameter override NAME=VALUE (repeatable)",
    )
    parser.add_argument("--symbol", type=str, default="", help="Symbol label for the report")
    parser.add_argument("--timeframe", type=str, default="", help="Timeframe label for the report")
    parser.add_argument(
        "--capital", type=float, default=settings.initial_capital,
        help=f"Initial capital (default: {settings.initial_capital:g})",
    )
    parser.add_argument(
        "--risk-percent", type=float, default=settings.risk_percent,
        help=f"Percent of equity risked per trade (default: {settings.risk_percent:g})",
    )
    parser.add_argument(
        "--stop-type",
        type=StopType,
        choices=list(StopType),
        default=settings.stop_type,
        help=f"Stop placement (default: {settings.stop_type.value})",
    )
    parser.add_argument(
        "--atr-mult", type=float, default=settings.atr_multiplier,
        help=f"ATR multiplier for ATR stops (default: {settings.atr_multiplier:g})",
    )
    parser.add_argument(
        "--stop-percent", type=float, default=settings.fixed_stop_percent,
        help=f"Stop distance for FIXED_PERCENT stops (default: {settings.fixed_stop_percent:g})",
    )
    parser.add_argument(
        "--leverage", type=float, default=settings.leverage,
        help=f"Leverage (default: {settings.leverage:g})",
    )
    parser.add_argument(
        "--journal",
        type=str,
        default=settings.journal_path or None,
        help="Append trades to this JSON journal file",
    )
    parser.add_argument(
        "--output", "-o",
        type=str,
        default=None,
        help="Output file path for JSON results",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose logging",
    )
    return parser.parse_args(argv)


def cmd_list_strategies() -> None:
    """List registered strategies with their one-line description."""
    for name in list_strategies():
        doc = (get_strategy_factory(name).__doc__ or "").strip().splitlines()
        print(f"  {name:<22} {doc[0] if doc else ''}")


def cmd_run_backtest(args: argparse.Namespace) -> int:
    """Run a backtest. Returns the process exit code."""
    if not args.candles:
        print("Error: --candles is required for a backtest")
        return 1

    settings = get_backtest_settings()
    try:
        sizing = SizingPolicy(
            **{
                **settings.sizing_policy().model_dump(),
                "initial_capital": args.capital,
                "risk_percent": args.risk_percent,
                "stop_type": args.stop_type,
                "atr_multiplier": args.atr_mult,
                "fixed_stop_percent": args.stop_percent,
                "leverage": args.leverage,
            }
        )
    except ValidationError as e:
        print(f"Error: invalid sizing options: {e}")
        return 2

    config = BacktestConfig(
        strategy_name=args.strategy,
        strategy_params=dict(args.param),
        sizing=sizing,
        symbol=args.symbol,
        timeframe=args.timeframe,
        min_bars=settings.min_bars,
    )
    journal = JsonFileTradeJournal(args.journal) if args.journal else None

    try:
        candles = CsvCandleSource(args.candles).load()
        result = BacktestRunner(config, journal=journal).run(candles)
    except CandleSeriesError as e:
        print(f"Error: invalid candle data: {e}")
        return 2
    except KeyError as e:
        print(f"Error: {e.args[0]}")
        return 2
    except TypeError as e:
        print(f"Error: invalid strategy parameters: {e}")
        return 2
    except OSError as e:
        print(f"Error: {e}")
        return 2

    ReportFormatter.print_console(result)
    if args.output:
        ReportFormatter.save_json(result, args.output)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    # Configure logging
    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    if args.list_strategies:
        cmd_list_strategies()
        return 0
    return cmd_run_backtest(args)


if __name__ == "__main__":
    sys.exit(main())

"""REST API routes."""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from core.errors import CandleSeriesError
from core.models.candle import Candle
from core.models.config import SizingPolicy
from core.precision_gate import (
    GateDecision,
    PrecisionGate,
    open_interest_delta_pct,
    timeframe_state,
)
from core.strategy import get_strategy_factory, list_strategies

from backtest.report import ReportFormatter
from backtest.runner import MIN_BACKTEST_BARS, BacktestConfig, BacktestRunner

from decision.aggregator import AggregatedSignal, SignalAggregator
from decision.config import get_settings
from decision.service import build_aggregator, build_gate
from decision.sources import AnalysisContext

logger = logging.getLogger(__name__)

router = APIRouter()


# Request / response models
class StrategyInfo(BaseModel):
    name: str
    description: str


class BacktestRequest(BaseModel):
    """Backtest request model."""

    candles: list[Candle]
    strategy: str = "ema_cross"
    params: dict[str, Any] = Field(default_factory=dict)
    sizing: SizingPolicy = Field(default_factory=SizingPolicy)
    symbol: str = ""
    timeframe: str = ""
    min_bars: int = Field(default=MIN_BACKTEST_BARS, ge=1)


class GateRequest(BaseModel):
    """Precision gate request: candles per timeframe plus optional market data."""

    candles: dict[str, list[Candle]]
    model_score: Optional[float] = None
    funding_rate: Optional[float] = None
    open_interest: Optional[float] = None
    previous_open_interest: Optional[float] = None


# Dependencies
def get_aggregator(request: Request) -> SignalAggregator:
    aggregator = getattr(request.app.state, "aggregator", None)
    if aggregator is None:
        aggregator = build_aggregator(get_settings())
        request.app.state.aggregator = aggregator
    return aggregator


def get_gate() -> PrecisionGate:
    return build_gate(get_settings())


def _unprocessable(e: Exception) -> HTTPException:
    return HTTPException(status_code=422, detail=str(e))


@router.get("/strategies", response_model=list[StrategyInfo])
async def get_strategies():
    """List registered strategies."""
    result = []
    for name in list_strategies():
        doc = (get_strategy_factory(name).__doc__ or "").strip().splitlines()
        result.append(StrategyInfo(name=name, description=doc[0] if doc else ""))
    return result


@router.post("/backtest")
def run_backtest(body: BacktestRequest):
    """Run a backtest over the supplied candles.

    Synchronous on purpose: FastAPI runs it in the threadpool, so a long
    simulation does not block the event loop.
    """
    try:
        get_strategy_factory(body.strategy)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=e.args[0])

    config = BacktestConfig(
        strategy_name=body.strategy,
        strategy_params=body.params,
        sizing=body.sizing,
        symbol=body.symbol,
        timeframe=body.timeframe,
        min_bars=body.min_bars,
    )
    try:
        result = BacktestRunner(config).run(body.candles)
    except (CandleSeriesError, TypeError) as e:
        raise _unprocessable(e)
    return ReportFormatter.to_dict(result)


@router.post("/aggregate", response_model=AggregatedSignal)
async def aggregate(
    context: AnalysisContext,
    aggregator: SignalAggregator = Depends(get_aggregator),
):
    """Aggregate every analyzer source into one signal."""
    try:
        return await aggregator.aggregate(context)
    except CandleSeriesError as e:
        raise _unprocessable(e)


@router.post("/gate", response_model=GateDecision)
async def evaluate_gate(body: GateRequest, gate: PrecisionGate = Depends(get_gate)):
    """Evaluate the precision gate over three or more timeframes."""
    try:
        states = [timeframe_state(tf, candles) for tf, candles in body.candles.items()]
        return gate.evaluate(
            states,
            model_score=body.model_score,
            funding_rate=body.funding_rate,
            oi_delta_pct=open_interest_delta_pct(
                body.open_interest, body.previous_open_interest
            ),
        )
    except ValueError as e:
        raise _unprocessable(e)

"""Signal generation over a closed candle series.

One generator serves every strategy: it evaluates the strategy's rules
once over the whole series and emits an event wherever a rule condition
turns from false to true between two consecutive closed bars.

This module is pure business logic with no I/O dependencies.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from core.indicators import adx, atr
from core.models.candle import Candle, CandleSeries
from core.models.signal import SignalEvent, SignalKind
from core.strategy.rules import Rule, RuleOutput

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StrategyDefinition:
    """A named, ordered set of rules plus the history they need."""

    name: str
    rules: tuple[Rule, ...]
    min_bars: int = 2
    description: str = ""
    params: dict = field(default_factory=dict)


class SignalGenerator:
    """Evaluate a strategy over candles and emit edge-triggered events.

    Events are ordered by bar index, then by rule declaration order, with
    a rule's BUY before its SELL on the same bar.
    """

    def __init__(self, strategy: StrategyDefinition):
        self.strategy = strategy

    def generate(self, candles: Sequence[Candle] | CandleSeries) -> list[SignalEvent]:
        """Generate signal events.

        A trailing forming bar is ignored. Input shorter than the
        strategy's ``min_bars`` yields no events.

        Raises:
            CandleSeriesError: If the candles are out of order or a forming
                bar is not the last one.
        """
        series = candles if isinstance(candles, CandleSeries) else CandleSeries.from_candles(candles)
        n = len(series)
        if n < self.strategy.min_bars:
            logger.debug(
                "%s: %d closed bars, need %d; no signals",
                self.strategy.name, n, self.strategy.min_bars,
            )
            return []

        highs, lows, closes = series.get_highs(), series.get_lows(), series.get_closes()
        context = {
            "close": closes,
            "atr": atr(highs, lows, closes),
            "adx": adx(highs, lows, closes).adx,
        }
        outputs = [(rule, rule.evaluate(series)) for rule in self.strategy.rules]

        events: list[SignalEvent] = []
        for i in range(1, n):
            for rule, out in outputs:
                if out.bullish[i] and not out.bullish[i - 1]:
                    events.append(self._event(series, i, SignalKind.BUY, rule, out, context))
                if out.bearish[i] and not out.bearish[i - 1]:
                    events.append(self._event(series, i, SignalKind.SELL, rule, out, context))

        logger.info(
            "%s: %d signals over %d bars", self.strategy.name, len(events), n
        )
        return events

    @staticmethod
    def _event(
        series: CandleSeries,
        index: int,
        kind: SignalKind,
        rule: Rule,
        out: RuleOutput,
        context: dict[str, list[float]],
    ) -> SignalEvent:
        snapshot = {key: values[index] for key, values in context.items()}
        snapshot.update({key: values[index] for key, values in out.lines.items()})
        candle = series.candles[index]
        logger.debug("%s %s at %s (%s)", kind.value, rule.name, candle.time, candle.close)
        return SignalEvent(
            index=index,
            time=candle.time,
            kind=kind,
            rule=rule.name,
            price=candle.close,
            indicator_snapshot=snapshot,
        )

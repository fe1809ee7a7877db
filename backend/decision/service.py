"""Wiring: settings + desk config -> gate, sources and aggregator."""

import logging

from core.precision_gate import PrecisionGate

from decision.aggregator import SignalAggregator
from decision.config import Settings
from decision.desk_config import DeskConfig
from decision.sources import (
    RemoteAnalyzerClient,
    RemoteAnalyzerSource,
    default_extractor,
    default_sources,
    risk_extractor,
)

logger = logging.getLogger(__name__)

_EXTRACTORS = {"score": default_extractor, "risk": risk_extractor}


def build_gate(settings: Settings) -> PrecisionGate:
    return PrecisionGate(settings.gate_thresholds())


def build_aggregator(
    settings: Settings,
    desk: DeskConfig | None = None,
    client: RemoteAnalyzerClient | None = None,
) -> SignalAggregator:
    """Build the aggregator from the built-in sources plus configured remotes.

    Remote sources are skipped with a warning when no ``client`` is given.
    The caller owns the client and closes it.
    """
    desk = desk or DeskConfig()
    sources = [
        s for s in default_sources(build_gate(settings))
        if s.name not in desk.disabled_sources
    ]

    remotes = desk.get_enabled_remotes()
    if remotes and client is None:
        logger.warning(
            "No analyzer client configured; skipping %d remote sources", len(remotes)
        )
    elif remotes:
        local_names = {s.name for s in sources}
        for entry in remotes:
            if entry.name in local_names:
                logger.warning("Remote source %s shadows a local source; skipping", entry.name)
                continue
            sources.append(
                RemoteAnalyzerSource(entry.name, entry.endpoint, client, _EXTRACTORS[entry.extractor])
            )

    weights = desk.merged_weights(settings.aggregation_weights().as_dict())
    logger.info("Aggregator sources: %s", ", ".join(s.name for s in sources))
    return SignalAggregator(
        sources,
        weights=weights.as_dict(),
        timeout=settings.source_timeout,
        sizing=settings.sizing_policy(),
        pivot_period=settings.pivot_period,
    )

"""Analyzer sources for the signal aggregator."""

from decision.sources.base import (
    AnalysisContext,
    AnalyzerSource,
    ScoringModel,
    SourceResult,
    clamp,
    finite_score,
)
from decision.sources.local import (
    LocalSource,
    MarketStructureSource,
    ModelScoreSource,
    MultiTimeframeSource,
    OrderFlowSource,
    PatternSource,
    PrecisionGateSource,
    RiskSource,
    TechnicalSource,
    VolumeSource,
    default_sources,
    risk_label,
    risk_score_from_total,
)
from decision.sources.remote import (
    RemoteAnalyzerClient,
    RemoteAnalyzerSource,
    default_extractor,
    risk_extractor,
)

__all__ = [
    "AnalysisContext",
    "AnalyzerSource",
    "ScoringModel",
    "SourceResult",
    "clamp",
    "finite_score",
    "LocalSource",
    "MarketStructureSource",
    "ModelScoreSource",
    "MultiTimeframeSource",
    "OrderFlowSource",
    "PatternSource",
    "PrecisionGateSource",
    "RiskSource",
    "TechnicalSource",
    "VolumeSource",
    "default_sources",
    "risk_label",
    "risk_score_from_total",
    "RemoteAnalyzerClient",
    "RemoteAnalyzerSource",
    "default_extractor",
    "risk_extractor",
]

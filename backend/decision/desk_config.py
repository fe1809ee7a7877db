"""Desk configuration loaded from desk.yaml.

Supports:
- Per-source weight overrides (merged over the defaults)
- Hosted analyzer functions added as remote sources
- Disabling built-in local sources by name
- No YAML file = built-in sources with default weights
"""

import logging
import os
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from core.models.config import AggregationWeights

logger = logging.getLogger(__name__)

_EXTRACTORS = ("score", "risk")


class RemoteSourceEntry(BaseModel):
    """A hosted analyzer function used as an aggregation source."""

    name: str
    endpoint: str
    weight: float = Field(default=0.0, ge=0)
    extractor: str = "score"
    enabled: bool = True

    @model_validator(mode="after")
    def _validate(self):
        if self.extractor not in _EXTRACTORS:
            raise ValueError(
                f"extractor must be one of {_EXTRACTORS}, got '{self.extractor}'"
            )
        return self


class DeskConfig(BaseModel):
    """Top-level desk.yaml configuration."""

    weights: dict[str, float] = Field(default_factory=dict)
    disabled_sources: list[str] = Field(default_factory=list)
    remote_sources: list[RemoteSourceEntry] = Field(default_factory=list)
    analyzer_api_key_env: str = ""

    @model_validator(mode="after")
    def _validate(self):
        names = [r.name for r in self.remote_sources]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"duplicate remote source names: {duplicates}")
        return self

    @property
    def analyzer_api_key(self) -> str:
        if not self.analyzer_api_key_env:
            return ""
        return os.environ.get(self.analyzer_api_key_env, "")

    def get_enabled_remotes(self) -> list[RemoteSourceEntry]:
        return [r for r in self.remote_sources if r.enabled]

    def merged_weights(self, base: dict[str, float]) -> AggregationWeights:
        """Defaults, then YAML overrides, then each enabled remote source's weight."""
        merged = dict(base)
        merged.update(self.weights)
        for remote in self.get_enabled_remotes():
            merged.setdefault(remote.name, remote.weight)
        return AggregationWeights(**merged)


_DEFAULT_PATH = Path(__file__).parent.parent / "desk.yaml"


def load_desk_config(path: Path | None = None) -> DeskConfig:
    """Load desk config from YAML file.

    Falls back to defaults (built-in sources only) if file doesn't exist.
    """
    config_path = path or _DEFAULT_PATH

    # Load .env into os.environ so analyzer_api_key can read it
    env_path = config_path.parent / ".env"
    load_dotenv(env_path, override=False)

    if not config_path.exists():
        logger.info("No desk.yaml found at %s, using defaults", config_path)
        return DeskConfig()

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    config = DeskConfig(**raw)
    logger.info(
        "Loaded desk config: %d weight overrides, %d remote sources (%d enabled), %d disabled",
        len(config.weights),
        len(config.remote_sources),
        len(config.get_enabled_remotes()),
        len(config.disabled_sources),
    )
    return config

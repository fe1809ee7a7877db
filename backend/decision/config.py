"""Decision service configuration."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from core.models.config import AggregationWeights, GateThresholds, SizingPolicy


class Settings(BaseSettings):
    """Decision service settings loaded from ``DESK_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="DESK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Aggregation (JSON object in the environment, e.g. DESK_WEIGHTS='{"risk": 0.2}')
    weights: dict[str, float] = AggregationWeights().as_dict()
    source_timeout: float = 5.0
    pivot_period: int = 10

    # Hosted analyzer functions; empty base URL = local sources only
    analyzer_base_url: str = ""
    analyzer_api_key: str = ""

    # Account
    account_equity: float = 10_000.0
    risk_percent: float = 2.0
    leverage: float = 1.0

    # Precision gate
    gate_min_adx: float = 20.0
    gate_atr_pct_min: float = 0.003
    gate_atr_pct_max: float = 0.025
    gate_min_model_score: float = 0.60
    gate_funding_abs_max: float = 0.0007
    gate_oi_tolerance_pct: float = 0.2

    # Optional desk.yaml; empty = next to the backend package
    config_path: str = ""

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    def gate_thresholds(self) -> GateThresholds:
        return GateThresholds(
            min_adx=self.gate_min_adx,
            atr_pct_min=self.gate_atr_pct_min,
            atr_pct_max=self.gate_atr_pct_max,
            min_model_score=self.gate_min_model_score,
            funding_abs_max=self.gate_funding_abs_max,
            oi_tolerance_pct=self.gate_oi_tolerance_pct,
        )

    def aggregation_weights(self) -> AggregationWeights:
        return AggregationWeights(**self.weights)

    def sizing_policy(self) -> SizingPolicy:
        return SizingPolicy(
            initial_capital=self.account_equity,
            risk_percent=self.risk_percent,
            leverage=self.leverage,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

"""Backtest-specific configuration.

Loaded from ``BACKTEST_*`` environment variables (and ``.env``); the CLI
overrides individual values with its flags.
"""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict

from core.models.config import SizingPolicy, StopType


class BacktestSettings(BaseSettings):
    """Backtest configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="BACKTEST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    strategy: str = "ema_cross"

    # Fewer closed bars than this and no backtest is attempted
    min_bars: int = 100

    # Sizing
    initial_capital: float = 10_000.0
    risk_percent: float = 2.0
    stop_type: StopType = StopType.ATR
    atr_period: int = 14
    atr_multiplier: float = 2.0
    fixed_stop_percent: float = 3.0
    leverage: float = 1.0
    commission: float = 0.0

    # Empty = no journal
    journal_path: str = ""

    def sizing_policy(self) -> SizingPolicy:
        return SizingPolicy(
            initial_capital=self.initial_capital,
            risk_percent=self.risk_percent,
            stop_type=self.stop_type,
            atr_period=self.atr_period,
            atr_multiplier=self.atr_multiplier,
            fixed_stop_percent=self.fixed_stop_percent,
            leverage=self.leverage,
            commission=self.commission,
        )


_settings: BacktestSettings | None = None


def get_backtest_settings() -> BacktestSettings:
    """Get cached backtest settings instance."""
    global _settings
    if _settings is None:
        _settings = BacktestSettings()
    return _settings

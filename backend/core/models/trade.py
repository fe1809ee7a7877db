"""Position, trade and equity models produced by the simulator."""

from datetime import datetime, timedelta

from pydantic import BaseModel, ConfigDict

from core.models.signal import Side

# Exit reasons
EXIT_ON_SIGNAL = "opposing signal"
EXIT_AT_END = "position closed at end"


class Position(BaseModel):
    """The single open position of a simulation run."""

    side: Side
    entry_time: datetime
    entry_price: float
    size: float
    stop_distance: float
    entry_index: int
    entry_rule: str = ""
    entry_fee: float = 0.0

    def unrealized_pnl(self, price: float) -> float:
        """Mark-to-market P&L at ``price``, before fees."""
        return (price - self.entry_price) * self.size * self.side.sign

    @property
    def stop_price(self) -> float:
        return self.entry_price - self.stop_distance * self.side.sign


class Trade(BaseModel):
    """A completed position. Trades are only ever appended to a ledger."""

    model_config = ConfigDict(frozen=True)

    side: Side
    entry_time: datetime
    exit_time: datetime
    entry_price: float
    exit_price: float
    size: float
    pnl: float
    pnl_percent: float
    entry_index: int
    exit_index: int
    entry_rule: str = ""
    exit_rule: str = ""
    exit_reason: str = EXIT_ON_SIGNAL
    fees: float = 0.0

    @property
    def holding_duration(self) -> timedelta:
        return self.exit_time - self.entry_time

    @property
    def is_winner(self) -> bool:
        return self.pnl > 0

    @property
    def is_loser(self) -> bool:
        return self.pnl < 0


class EquityPoint(BaseModel):
    """Account equity after one processed bar."""

    model_config = ConfigDict(frozen=True)

    time: datetime
    equity: float
    drawdown_percent: float

"""Signal event models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Side(str, Enum):
    """Position side."""

    LONG = "LONG"
    SHORT = "SHORT"

    @property
    def sign(self) -> int:
        return 1 if self is Side.LONG else -1

    @property
    def opposite(self) -> "Side":
        return Side.SHORT if self is Side.LONG else Side.LONG


class SignalKind(str, Enum):
    """Signal event kind."""

    BUY = "BUY"
    SELL = "SELL"

    @property
    def side(self) -> Side:
        return Side.LONG if self is SignalKind.BUY else Side.SHORT


class SignalEvent(BaseModel):
    """A rule firing on one closed bar.

    ``indicator_snapshot`` holds the indicator values the rule saw at
    ``index`` so the decision can be audited later.
    """

    model_config = ConfigDict(frozen=True)

    index: int
    time: datetime
    kind: SignalKind
    rule: str
    price: float
    indicator_snapshot: dict[str, float] = Field(default_factory=dict)

    @property
    def side(self) -> Side:
        return self.kind.side

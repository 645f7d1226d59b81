"""Enumerations used across the journal engine."""

from enum import Enum


class Side(str, Enum):
    BUY = "BUY"
    SELL = "SELL"

    @property
    def opposite(self) -> "Side":
        return Side.SELL if self is Side.BUY else Side.BUY


class PairingMethod(str, Enum):
    """Lot ordering policy used when closing open quantity."""

    FIFO = "FIFO"  # Oldest opposing lot first
    LIFO = "LIFO"  # Newest opposing lot first


class TradeOutcome(str, Enum):
    """Win / loss / break-even classification of a closed pair."""

    WIN = "win"
    LOSS = "loss"
    BREAKEVEN = "breakeven"


class StorageBackend(str, Enum):
    MEMORY = "memory"
    SQL = "sql"


class StrategyMetricsScope(str, Enum):
    """Which pair set feeds the ``strategy_*`` fields of the metrics report."""

    UNFILTERED = "unfiltered"  # Ignore the request date range
    FILTERED = "filtered"      # Same date-filtered pairs as every other field

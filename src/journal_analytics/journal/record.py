"""Round-trip pair record, the core derived data model.

A PairedTrade is one matched entry + exit quantity: a closed position
slice produced by the lot matcher.  It is recomputed on every request
(pairing policy and date range are request parameters) and never
persisted.

An OpenLot is the residual of an execution that no opposing execution
has consumed yet, reported for open-position views.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from journal_analytics.core.enums import Side, TradeOutcome


@dataclass(frozen=True)
class PairedTrade:
    """A closed round-trip slice.

    Parameters
    ----------
    entry_side : Side
        ``BUY`` for a long round trip, ``SELL`` for a short one.
    multiplier : Decimal
        Contract multiplier applied to the price delta (1 for shares).
    """

    symbol: str
    entry_execution_id: int
    exit_execution_id: int
    entry_side: Side
    quantity: Decimal
    entry_price: Decimal
    exit_price: Decimal
    entry_timestamp: datetime
    exit_timestamp: datetime
    entry_fees: Decimal
    exit_fees: Decimal
    gross_pnl: Decimal
    net_pnl: Decimal
    strategy_id: int | None = None
    multiplier: Decimal = Decimal("1")

    # ------------------------------------------------------------------ #
    # Computed properties                                                  #
    # ------------------------------------------------------------------ #

    @property
    def direction(self) -> str:
        return "long" if self.entry_side is Side.BUY else "short"

    @property
    def direction_sign(self) -> int:
        return 1 if self.entry_side is Side.BUY else -1

    @property
    def total_fees(self) -> Decimal:
        return self.entry_fees + self.exit_fees

    @property
    def outcome(self) -> TradeOutcome:
        if self.net_pnl > 0:
            return TradeOutcome.WIN
        if self.net_pnl < 0:
            return TradeOutcome.LOSS
        return TradeOutcome.BREAKEVEN

    @property
    def entry_notional(self) -> Decimal:
        return self.quantity * self.entry_price

    @property
    def hold_duration_seconds(self) -> float:
        return (self.exit_timestamp - self.entry_timestamp).total_seconds()

    @property
    def return_pct(self) -> float:
        """Direction-adjusted price return in percent (0.0 for a zero entry price)."""
        if self.entry_price == 0:
            return 0.0
        move = (self.exit_price - self.entry_price) / self.entry_price
        return float(move * 100 * self.direction_sign)

    @property
    def sort_key(self) -> tuple:
        """Chronological order by exit, stable across identical timestamps."""
        return (self.exit_timestamp, self.exit_execution_id, self.entry_execution_id)

    # ------------------------------------------------------------------ #
    # Serialisation                                                        #
    # ------------------------------------------------------------------ #

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "direction": self.direction,
            "entry_execution_id": self.entry_execution_id,
            "exit_execution_id": self.exit_execution_id,
            "quantity": float(self.quantity),
            "entry_price": float(self.entry_price),
            "exit_price": float(self.exit_price),
            "entry_timestamp": self.entry_timestamp.isoformat(),
            "exit_timestamp": self.exit_timestamp.isoformat(),
            "entry_fees": float(self.entry_fees),
            "exit_fees": float(self.exit_fees),
            "gross_pnl": float(self.gross_pnl),
            "net_pnl": float(self.net_pnl),
            "outcome": self.outcome.value,
            "strategy_id": self.strategy_id,
        }


@dataclass(frozen=True)
class OpenLot:
    """Unmatched residual quantity of one execution."""

    execution_id: int
    symbol: str
    side: Side
    quantity: Decimal
    price: Decimal
    timestamp: datetime
    fees: Decimal  # Fee remainder not yet allocated to any pair
    strategy_id: int | None = None

    @property
    def cost_basis(self) -> Decimal:
        return self.price * self.quantity

    @property
    def signed_quantity(self) -> Decimal:
        return self.quantity if self.side is Side.BUY else -self.quantity

    def to_dict(self) -> dict:
        return {
            "execution_id": self.execution_id,
            "symbol": self.symbol,
            "side": self.side.value,
            "quantity": float(self.quantity),
            "price": float(self.price),
            "cost_basis": float(self.cost_basis),
            "timestamp": self.timestamp.isoformat(),
            "fees": float(self.fees),
            "strategy_id": self.strategy_id,
        }

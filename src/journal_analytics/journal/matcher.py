"""Lot matcher: executions -> round-trip pairs + open lots.

Executions are grouped per symbol and replayed in ``(timestamp, id)``
order.  Each symbol keeps two queues of open lots, one per side.  A new
execution closes opposing quantity from the front of the opposing queue
(FIFO) or from its back (LIFO), emitting one :class:`PairedTrade` per
consumed slice.  Whatever is left over is pushed onto the same-side
queue as a new open lot.

Fees are allocated per slice as ``matched / original * fee``; the slice
that exhausts a lot takes the remainder instead, so the fee slices of an
execution always sum to exactly its fee.

Usage::

    matcher = LotMatcher()
    result = matcher.match(executions, PairingMethod.FIFO)
    for pair in result.pairs:
        ...
"""

from __future__ import annotations

import logging
from collections import defaultdict, deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from journal_analytics.core.enums import PairingMethod, Side
from journal_analytics.core.models import Execution

from .record import OpenLot, PairedTrade
from .symbols import contract_multiplier

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")


@dataclass
class _Lot:
    """Mutable matching-time residual of one execution."""

    execution_id: int
    symbol: str
    side: Side
    original_quantity: Decimal
    remaining_quantity: Decimal
    price: Decimal
    timestamp: datetime
    total_fees: Decimal
    strategy_id: int | None = None
    fees_charged: Decimal = _ZERO

    @classmethod
    def from_execution(cls, execution: Execution) -> _Lot:
        return cls(
            execution_id=execution.id,
            symbol=execution.symbol,
            side=execution.side,
            original_quantity=execution.quantity,
            remaining_quantity=execution.quantity,
            price=execution.price,
            timestamp=execution.timestamp,
            total_fees=execution.fees,
            strategy_id=execution.strategy_id,
        )

    @property
    def is_closed(self) -> bool:
        return self.remaining_quantity <= 0

    def take(self, quantity: Decimal) -> Decimal:
        """Consume *quantity* and return the fee slice it carries."""
        self.remaining_quantity -= quantity
        if self.remaining_quantity <= 0:
            fee = self.total_fees - self.fees_charged
        else:
            fee = self.total_fees * quantity / self.original_quantity
        self.fees_charged += fee
        return fee

    def to_open_lot(self) -> OpenLot:
        return OpenLot(
            execution_id=self.execution_id,
            symbol=self.symbol,
            side=self.side,
            quantity=self.remaining_quantity,
            price=self.price,
            timestamp=self.timestamp,
            fees=self.total_fees - self.fees_charged,
            strategy_id=self.strategy_id,
        )


@dataclass
class MatchResult:
    """Pairs whose exit falls in the requested window, plus every open lot."""

    pairs: list[PairedTrade] = field(default_factory=list)
    open_lots: list[OpenLot] = field(default_factory=list)


class LotMatcher:
    """Pairs executions into round trips under a FIFO or LIFO policy.

    Parameters
    ----------
    option_multiplier : Decimal
        Contract multiplier applied to gross P&L of OCC option symbols.
    """

    def __init__(self, option_multiplier: Decimal = Decimal("100")) -> None:
        self._option_multiplier = option_multiplier

    def match(
        self,
        executions: Iterable[Execution],
        method: PairingMethod = PairingMethod.FIFO,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> MatchResult:
        """Match all *executions*; keep pairs with ``start <= exit <= end``.

        The window is applied to the exit timestamp only: an entry from
        before *start* still closes against an exit inside the window.
        Open lots are reported regardless of the window.
        """
        by_symbol: dict[str, list[Execution]] = defaultdict(list)
        for execution in executions:
            by_symbol[execution.symbol].append(execution)

        result = MatchResult()
        for symbol in sorted(by_symbol):
            ordered = sorted(by_symbol[symbol], key=lambda e: (e.timestamp, e.id))
            pairs, open_lots = self._match_symbol(symbol, ordered, method)
            result.pairs.extend(
                p for p in pairs
                if (start is None or p.exit_timestamp >= start)
                and (end is None or p.exit_timestamp <= end)
            )
            result.open_lots.extend(open_lots)

        result.pairs.sort(key=lambda p: p.sort_key)
        logger.debug(
            "Matched %d pairs, %d open lots (%s)",
            len(result.pairs), len(result.open_lots), method.value,
        )
        return result

    def _match_symbol(
        self,
        symbol: str,
        executions: list[Execution],
        method: PairingMethod,
    ) -> tuple[list[PairedTrade], list[OpenLot]]:
        multiplier = contract_multiplier(symbol, self._option_multiplier)
        queues: dict[Side, deque[_Lot]] = {Side.BUY: deque(), Side.SELL: deque()}
        pairs: list[PairedTrade] = []

        for execution in executions:
            incoming = _Lot.from_execution(execution)
            opposing = queues[incoming.side.opposite]

            while not incoming.is_closed and opposing:
                resting = opposing[0] if method is PairingMethod.FIFO else opposing[-1]
                qty = min(incoming.remaining_quantity, resting.remaining_quantity)
                entry_fee = resting.take(qty)
                exit_fee = incoming.take(qty)
                pairs.append(self._build_pair(resting, incoming, qty, entry_fee, exit_fee, multiplier))

                if resting.is_closed:
                    if method is PairingMethod.FIFO:
                        opposing.popleft()
                    else:
                        opposing.pop()

            if not incoming.is_closed:
                queues[incoming.side].append(incoming)

        open_lots = [lot.to_open_lot() for side in (Side.BUY, Side.SELL) for lot in queues[side]]
        return pairs, open_lots

    @staticmethod
    def _build_pair(
        entry: _Lot,
        exit_: _Lot,
        qty: Decimal,
        entry_fee: Decimal,
        exit_fee: Decimal,
        multiplier: Decimal,
    ) -> PairedTrade:
        sign = 1 if entry.side is Side.BUY else -1
        gross = (exit_.price - entry.price) * qty * sign * multiplier
        return PairedTrade(
            symbol=entry.symbol,
            entry_execution_id=entry.execution_id,
            exit_execution_id=exit_.execution_id,
            entry_side=entry.side,
            quantity=qty,
            entry_price=entry.price,
            exit_price=exit_.price,
            entry_timestamp=entry.timestamp,
            exit_timestamp=exit_.timestamp,
            entry_fees=entry_fee,
            exit_fees=exit_fee,
            gross_pnl=gross,
            net_pnl=gross - entry_fee - exit_fee,
            # Entry-side tag wins when both legs carry one
            strategy_id=entry.strategy_id if entry.strategy_id is not None else exit_.strategy_id,
            multiplier=multiplier,
        )

"""Tabular reports over pairs and open lots.

* per-symbol P&L (option contracts folded into their underlying)
* per-strategy volume and P&L
* most recent closed trades
* pairs belonging to one strategy (or to none)
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from journal_analytics.core.enums import TradeOutcome

from .record import OpenLot, PairedTrade
from .segmentation import strategy_name
from .stats import safe_div
from .symbols import underlying_symbol


@dataclass(frozen=True)
class SymbolPnl:
    symbol: str
    closed_positions: int
    open_position_qty: float
    total_gross_pnl: float
    total_net_pnl: float
    total_fees: float
    winning_trades: int
    losing_trades: int
    win_rate: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "closed_positions": self.closed_positions,
            "open_position_qty": self.open_position_qty,
            "total_gross_pnl": self.total_gross_pnl,
            "total_net_pnl": self.total_net_pnl,
            "total_fees": self.total_fees,
            "winning_trades": self.winning_trades,
            "losing_trades": self.losing_trades,
            "win_rate": self.win_rate,
        }


@dataclass(frozen=True)
class StrategyPerformance:
    strategy_id: int | None
    strategy_name: str
    trade_count: int
    total_volume: float
    estimated_pnl: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategy_id": self.strategy_id,
            "strategy_name": self.strategy_name,
            "trade_count": self.trade_count,
            "total_volume": self.total_volume,
            "estimated_pnl": self.estimated_pnl,
        }


@dataclass(frozen=True)
class RecentTrade:
    symbol: str
    direction: str
    entry_timestamp: str
    exit_timestamp: str
    quantity: float
    entry_price: float
    exit_price: float
    net_pnl: float
    strategy_id: int | None
    strategy_name: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "direction": self.direction,
            "entry_timestamp": self.entry_timestamp,
            "exit_timestamp": self.exit_timestamp,
            "quantity": self.quantity,
            "entry_price": self.entry_price,
            "exit_price": self.exit_price,
            "net_pnl": self.net_pnl,
            "strategy_id": self.strategy_id,
            "strategy_name": self.strategy_name,
        }


@dataclass
class _SymbolAccumulator:
    closed: int = 0
    gross: Decimal = Decimal("0")
    net: Decimal = Decimal("0")
    fees: Decimal = Decimal("0")
    wins: int = 0
    losses: int = 0
    open_signed: Decimal = Decimal("0")

    def record(self, pair: PairedTrade) -> None:
        self.closed += 1
        self.gross += pair.gross_pnl
        self.net += pair.net_pnl
        self.fees += pair.total_fees
        if pair.outcome is TradeOutcome.WIN:
            self.wins += 1
        elif pair.outcome is TradeOutcome.LOSS:
            self.losses += 1


def symbol_pnl(pairs: Sequence[PairedTrade], open_lots: Sequence[OpenLot]) -> list[SymbolPnl]:
    """Per-underlying P&L rows, best net P&L first."""
    acc: dict[str, _SymbolAccumulator] = defaultdict(_SymbolAccumulator)
    for pair in pairs:
        acc[underlying_symbol(pair.symbol)].record(pair)
    for lot in open_lots:
        acc[underlying_symbol(lot.symbol)].open_signed += lot.signed_quantity

    rows = [
        SymbolPnl(
            symbol=symbol,
            closed_positions=a.closed,
            open_position_qty=float(abs(a.open_signed)),
            total_gross_pnl=float(a.gross),
            total_net_pnl=float(a.net),
            total_fees=float(a.fees),
            winning_trades=a.wins,
            losing_trades=a.losses,
            win_rate=safe_div(a.wins, a.wins + a.losses),
        )
        for symbol, a in acc.items()
    ]
    rows.sort(key=lambda r: r.symbol)
    rows.sort(key=lambda r: r.total_net_pnl, reverse=True)
    return rows


def strategy_performance(
    pairs: Sequence[PairedTrade],
    names: Mapping[int, str],
) -> list[StrategyPerformance]:
    counts: dict[int | None, int] = defaultdict(int)
    volume: dict[int | None, Decimal] = defaultdict(Decimal)
    pnl: dict[int | None, Decimal] = defaultdict(Decimal)
    for pair in pairs:
        counts[pair.strategy_id] += 1
        volume[pair.strategy_id] += pair.entry_notional
        pnl[pair.strategy_id] += pair.net_pnl

    rows = [
        StrategyPerformance(
            strategy_id=sid,
            strategy_name=strategy_name(sid, names),
            trade_count=counts[sid],
            total_volume=float(volume[sid]),
            estimated_pnl=float(pnl[sid]),
        )
        for sid in counts
    ]
    rows.sort(key=lambda r: r.strategy_name)
    rows.sort(key=lambda r: r.trade_count, reverse=True)
    return rows


def recent_trades(
    pairs: Sequence[PairedTrade],
    limit: int,
    names: Mapping[int, str],
) -> list[RecentTrade]:
    """The *limit* most recently closed pairs, newest first."""
    newest = sorted(pairs, key=lambda p: p.sort_key, reverse=True)[:limit]
    return [
        RecentTrade(
            symbol=p.symbol,
            direction=p.direction,
            entry_timestamp=p.entry_timestamp.isoformat(),
            exit_timestamp=p.exit_timestamp.isoformat(),
            quantity=float(p.quantity),
            entry_price=float(p.entry_price),
            exit_price=float(p.exit_price),
            net_pnl=float(p.net_pnl),
            strategy_id=p.strategy_id,
            strategy_name=names.get(p.strategy_id) if p.strategy_id is not None else None,
        )
        for p in newest
    ]


def pairs_for_strategy(pairs: Sequence[PairedTrade], strategy_id: int | None) -> list[PairedTrade]:
    """Pairs tagged with *strategy_id*; ``None`` selects unassigned pairs."""
    return [p for p in pairs if p.strategy_id == strategy_id]

"""Tests for the position and strategy report builders."""

from decimal import Decimal

import pytest

from journal_analytics.core.enums import Side
from journal_analytics.journal.record import OpenLot
from journal_analytics.journal.reports import (
    pairs_for_strategy,
    recent_trades,
    strategy_performance,
    symbol_pnl,
)

from .conftest import BASE_TIME, make_pair


def _lot(symbol, side, quantity):
    return OpenLot(
        execution_id=99,
        symbol=symbol,
        side=side,
        quantity=Decimal(quantity),
        price=Decimal("1"),
        timestamp=BASE_TIME,
        fees=Decimal("0"),
    )


class TestSymbolPnl:
    def test_options_and_shares_share_a_row(self):
        pairs = [
            make_pair(10, index=0, symbol="SPY"),
            make_pair(-4, index=1, symbol="SPY251218C00679000"),
        ]
        rows = symbol_pnl(pairs, [])

        assert len(rows) == 1
        row = rows[0]
        assert row.symbol == "SPY"
        assert row.closed_positions == 2
        assert row.total_net_pnl == pytest.approx(6.0)
        assert row.win_rate == 0.5

    def test_open_quantity_is_absolute_net(self):
        lots = [_lot("AAPL", Side.BUY, "10"), _lot("AAPL", Side.SELL, "4"), _lot("TSLA", Side.SELL, "3")]
        rows = {r.symbol: r for r in symbol_pnl([], lots)}

        assert rows["AAPL"].open_position_qty == 6.0
        assert rows["TSLA"].open_position_qty == 3.0
        assert rows["TSLA"].closed_positions == 0

    def test_sorted_by_net_descending(self):
        pairs = [
            make_pair(-5, index=0, symbol="AAA"),
            make_pair(20, index=1, symbol="BBB"),
        ]
        assert [r.symbol for r in symbol_pnl(pairs, [])] == ["BBB", "AAA"]


class TestStrategyPerformance:
    def test_rows(self):
        pairs = [
            make_pair(10, index=0, strategy_id=1),
            make_pair(5, index=1, strategy_id=1),
            make_pair(-2, index=2),
        ]
        rows = strategy_performance(pairs, {1: "Breakout"})

        assert [(r.strategy_id, r.strategy_name, r.trade_count) for r in rows] == [
            (1, "Breakout", 2),
            (None, "Unassigned", 1),
        ]
        assert rows[0].estimated_pnl == pytest.approx(15.0)
        assert rows[0].total_volume == pytest.approx(200.0)

    def test_empty(self):
        assert strategy_performance([], {}) == []


class TestRecentTrades:
    def test_newest_first_with_limit(self):
        pairs = [make_pair(i, index=i) for i in range(1, 8)]
        rows = recent_trades(pairs, 3, {})

        assert [r.net_pnl for r in rows] == [7.0, 6.0, 5.0]
        assert rows[0].direction == "long"

    def test_strategy_name(self):
        pairs = [make_pair(1, index=0, strategy_id=2), make_pair(1, index=1)]
        rows = recent_trades(pairs, 5, {2: "Scalp"})
        assert [r.strategy_name for r in rows] == [None, "Scalp"]


class TestPairsForStrategy:
    def test_none_selects_unassigned(self):
        pairs = [make_pair(1, index=0, strategy_id=1), make_pair(2, index=1)]
        assert [p.net_pnl for p in pairs_for_strategy(pairs, None)] == [Decimal("2")]
        assert [p.net_pnl for p in pairs_for_strategy(pairs, 1)] == [Decimal("1")]
        assert pairs_for_strategy(pairs, 5) == []

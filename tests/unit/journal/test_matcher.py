"""Tests for LotMatcher: FIFO/LIFO pairing, fee allocation, date window."""

from datetime import timedelta
from decimal import Decimal

from journal_analytics.core.enums import PairingMethod, Side, TradeOutcome
from journal_analytics.journal.matcher import LotMatcher

from .conftest import BASE_TIME, make_execution


class TestSimpleRoundTrips:
    def test_long_round_trip(self):
        executions = [
            make_execution(1, "BUY", "10", "100", fees="1"),
            make_execution(2, "SELL", "10", "110", fees="1"),
        ]
        result = LotMatcher().match(executions)

        assert len(result.pairs) == 1
        pair = result.pairs[0]
        assert pair.direction == "long"
        assert pair.entry_execution_id == 1
        assert pair.exit_execution_id == 2
        assert pair.gross_pnl == Decimal("100")
        assert pair.net_pnl == Decimal("98")
        assert pair.outcome is TradeOutcome.WIN
        assert result.open_lots == []

    def test_short_round_trip_profits_when_price_falls(self):
        executions = [
            make_execution(1, "SELL", "5", "50"),
            make_execution(2, "BUY", "5", "40"),
        ]
        pair = LotMatcher().match(executions).pairs[0]

        assert pair.direction == "short"
        assert pair.entry_side is Side.SELL
        assert pair.gross_pnl == Decimal("50")
        assert pair.return_pct == 20.0

    def test_symbols_are_matched_independently(self):
        executions = [
            make_execution(1, "BUY", symbol="AAPL"),
            make_execution(2, "SELL", symbol="MSFT"),
        ]
        result = LotMatcher().match(executions)

        assert result.pairs == []
        assert {lot.symbol for lot in result.open_lots} == {"AAPL", "MSFT"}

    def test_unmatched_executions_become_open_lots(self):
        executions = [make_execution(1, "BUY", "5", "100", fees="2")]
        result = LotMatcher().match(executions)

        assert result.pairs == []
        lot = result.open_lots[0]
        assert lot.quantity == Decimal("5")
        assert lot.fees == Decimal("2")
        assert lot.cost_basis == Decimal("500")


class TestPairingMethod:
    def _executions(self):
        return [
            make_execution(1, "BUY", "10", "100"),
            make_execution(2, "BUY", "10", "120"),
            make_execution(3, "SELL", "10", "130"),
        ]

    def test_fifo_closes_oldest_lot(self):
        result = LotMatcher().match(self._executions(), PairingMethod.FIFO)

        assert result.pairs[0].entry_execution_id == 1
        assert result.pairs[0].gross_pnl == Decimal("300")
        assert [lot.execution_id for lot in result.open_lots] == [2]

    def test_lifo_closes_newest_lot(self):
        result = LotMatcher().match(self._executions(), PairingMethod.LIFO)

        assert result.pairs[0].entry_execution_id == 2
        assert result.pairs[0].gross_pnl == Decimal("100")
        assert [lot.execution_id for lot in result.open_lots] == [1]

    def test_exit_spanning_several_lots(self):
        executions = [
            make_execution(1, "BUY", "4", "100"),
            make_execution(2, "BUY", "6", "110"),
            make_execution(3, "SELL", "10", "120"),
        ]
        pairs = LotMatcher().match(executions).pairs

        assert [p.quantity for p in pairs] == [Decimal("4"), Decimal("6")]
        assert sum(p.gross_pnl for p in pairs) == Decimal("140")

    def test_oversized_exit_flips_into_opposite_lot(self):
        executions = [
            make_execution(1, "BUY", "5", "100"),
            make_execution(2, "SELL", "8", "105", fees="8"),
        ]
        result = LotMatcher().match(executions)

        assert result.pairs[0].quantity == Decimal("5")
        assert result.pairs[0].exit_fees == Decimal("5")
        lot = result.open_lots[0]
        assert lot.side is Side.SELL
        assert lot.quantity == Decimal("3")
        assert lot.fees == Decimal("3")

    def test_same_timestamp_keeps_id_order(self):
        executions = [
            make_execution(2, "SELL", "1", "110", timestamp=BASE_TIME),
            make_execution(1, "BUY", "1", "100", timestamp=BASE_TIME),
        ]
        pair = LotMatcher().match(executions).pairs[0]

        assert pair.direction == "long"
        assert pair.entry_execution_id == 1

    def _partial_exit(self):
        return [
            make_execution(1, "BUY", "10", "10"),
            make_execution(2, "BUY", "10", "12"),
            make_execution(3, "SELL", "15", "15"),
        ]

    def test_fifo_partial_exit_leaves_newest_remainder(self):
        result = LotMatcher().match(self._partial_exit(), PairingMethod.FIFO)

        assert [(p.quantity, p.entry_price) for p in result.pairs] == [
            (Decimal("10"), Decimal("10")),
            (Decimal("5"), Decimal("12")),
        ]
        assert [(lot.quantity, lot.price) for lot in result.open_lots] == [(Decimal("5"), Decimal("12"))]
        assert sum(p.gross_pnl for p in result.pairs) == Decimal("65")

    def test_lifo_partial_exit_leaves_oldest_remainder(self):
        result = LotMatcher().match(self._partial_exit(), PairingMethod.LIFO)

        # Pairs sharing an exit are ordered by entry id
        assert [(p.quantity, p.entry_price) for p in result.pairs] == [
            (Decimal("5"), Decimal("10")),
            (Decimal("10"), Decimal("12")),
        ]
        assert [(lot.quantity, lot.price) for lot in result.open_lots] == [(Decimal("5"), Decimal("10"))]
        assert sum(p.gross_pnl for p in result.pairs) == Decimal("55")


class TestFeeAllocation:
    def test_partial_exits_split_entry_fee(self):
        executions = [
            make_execution(1, "BUY", "10", "100", fees="3"),
            make_execution(2, "SELL", "3", "101"),
            make_execution(3, "SELL", "3", "101"),
            make_execution(4, "SELL", "4", "101"),
        ]
        pairs = LotMatcher().match(executions).pairs

        assert [p.entry_fees for p in pairs] == [Decimal("0.9"), Decimal("0.9"), Decimal("1.2")]

    def test_final_slice_takes_remainder(self):
        executions = [
            make_execution(1, "BUY", "3", "100", fees="1"),
            make_execution(2, "SELL", "1", "100"),
            make_execution(3, "SELL", "1", "100"),
            make_execution(4, "SELL", "1", "100"),
        ]
        pairs = LotMatcher().match(executions).pairs

        assert sum(p.entry_fees for p in pairs) == Decimal("1")
        assert pairs[-1].entry_fees > pairs[0].entry_fees

    def test_net_is_gross_minus_both_fees(self):
        executions = [
            make_execution(1, "BUY", "10", "100", fees="2.5"),
            make_execution(2, "SELL", "10", "99", fees="1.5"),
        ]
        pair = LotMatcher().match(executions).pairs[0]

        assert pair.gross_pnl == Decimal("-10")
        assert pair.net_pnl == Decimal("-14")
        assert pair.total_fees == Decimal("4")


class TestOptionMultiplier:
    def test_option_gross_uses_contract_multiplier(self):
        symbol = "SPY251218C00679000"
        executions = [
            make_execution(1, "BUY", "1", "2.50", fees="0.65", symbol=symbol),
            make_execution(2, "SELL", "1", "3.00", fees="0.65", symbol=symbol),
        ]
        pair = LotMatcher().match(executions).pairs[0]

        assert pair.multiplier == Decimal("100")
        assert pair.gross_pnl == Decimal("50")
        assert pair.net_pnl == Decimal("48.70")

    def test_shares_are_not_multiplied(self):
        executions = [
            make_execution(1, "BUY", "1", "2.50", symbol="SPY"),
            make_execution(2, "SELL", "1", "3.00", symbol="SPY"),
        ]
        pair = LotMatcher().match(executions).pairs[0]

        assert pair.multiplier == Decimal("1")
        assert pair.gross_pnl == Decimal("0.50")

    def test_custom_multiplier(self):
        symbol = "SPY251218P00600000"
        executions = [
            make_execution(1, "BUY", "2", "1", symbol=symbol),
            make_execution(2, "SELL", "2", "2", symbol=symbol),
        ]
        pair = LotMatcher(option_multiplier=Decimal("10")).match(executions).pairs[0]

        assert pair.gross_pnl == Decimal("20")


class TestStrategyAttribution:
    def test_entry_strategy_wins(self):
        executions = [
            make_execution(1, "BUY", strategy_id=1),
            make_execution(2, "SELL", strategy_id=2),
        ]
        assert LotMatcher().match(executions).pairs[0].strategy_id == 1

    def test_exit_strategy_used_when_entry_untagged(self):
        executions = [
            make_execution(1, "BUY"),
            make_execution(2, "SELL", strategy_id=2),
        ]
        assert LotMatcher().match(executions).pairs[0].strategy_id == 2


class TestDateWindow:
    def _executions(self):
        day = timedelta(days=1)
        return [
            make_execution(1, "BUY", "1", "100", timestamp=BASE_TIME),
            make_execution(2, "SELL", "1", "110", timestamp=BASE_TIME + day),
            make_execution(3, "BUY", "1", "100", timestamp=BASE_TIME + 2 * day),
            make_execution(4, "SELL", "1", "90", timestamp=BASE_TIME + 3 * day),
        ]

    def test_window_applies_to_exit_time(self):
        start = BASE_TIME + timedelta(hours=1)  # after the first entry
        end = BASE_TIME + timedelta(days=1)     # exactly the first exit
        pairs = LotMatcher().match(self._executions(), start=start, end=end).pairs

        assert [p.exit_execution_id for p in pairs] == [2]

    def test_open_lots_ignore_window(self):
        executions = self._executions()[:3]
        result = LotMatcher().match(executions, end=BASE_TIME)

        assert result.pairs == []
        assert [lot.execution_id for lot in result.open_lots] == [3]

    def test_pairs_sorted_by_exit(self):
        executions = self._executions() + [
            make_execution(5, "SELL", "1", "50", symbol="MSFT", timestamp=BASE_TIME),
            make_execution(6, "BUY", "1", "40", symbol="MSFT", timestamp=BASE_TIME + timedelta(hours=36)),
        ]
        pairs = LotMatcher().match(executions).pairs

        assert [p.exit_execution_id for p in pairs] == [2, 6, 4]

"""Integration: SqlTradeStore on a file-backed SQLite database."""

from __future__ import annotations

from datetime import timezone
from decimal import Decimal

import pytest

from journal_analytics.core.errors import UnknownExecutionError, UnknownStrategyError
from journal_analytics.service import AnalyticsService
from journal_analytics.storage.sql_store import SqlTradeStore

from ..conftest import BASE_TIME, new_execution, round_trip


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'journal.db'}"


@pytest.fixture
def sql_store(db_url):
    store = SqlTradeStore(db_url)
    yield store
    store.close()


class TestSqlTradeStore:
    def test_add_and_snapshot(self, sql_store):
        added = sql_store.add_executions(round_trip(0, "2.5", quantity="3"))
        assert [e.id for e in added] == [1, 2]

        snap = sql_store.snapshot()
        assert len(snap.executions) == 2
        sell = snap.executions[1]
        assert sell.price == Decimal("102.5")
        assert sell.quantity == Decimal("3")
        assert sell.timestamp.tzinfo is not None
        assert sell.timestamp.astimezone(timezone.utc) == added[1].timestamp

    def test_dedupe_keys_survive_round_trip(self, sql_store):
        execution = new_execution(price="12.34", fees="0.5")
        sql_store.add_executions([execution])
        assert execution.dedupe_key in sql_store.snapshot().dedupe_keys

    def test_persists_across_instances(self, db_url):
        first = SqlTradeStore(db_url)
        first.add_executions(round_trip(0, "1"))
        first.create_strategy("Breakout", description="Opening range")
        first.close()

        second = SqlTradeStore(db_url)
        try:
            snap = second.snapshot()
            assert len(snap.executions) == 2
            assert snap.strategy_names == {1: "Breakout"}
            assert snap.strategies[1].description == "Opening range"
        finally:
            second.close()

    def test_version_advances_on_write(self, sql_store):
        before = sql_store.snapshot().version
        sql_store.add_executions([new_execution()])
        assert sql_store.snapshot().version > before

    def test_clear(self, sql_store):
        sql_store.add_executions(round_trip(0, "1") + round_trip(1, "1"))
        assert sql_store.clear() == 4
        assert sql_store.snapshot().executions == ()

    def test_assign_and_unassign(self, sql_store):
        (execution,) = sql_store.add_executions([new_execution()])
        strategy = sql_store.create_strategy("Scalp", color="#ff0000")

        assert sql_store.assign_strategy(execution.id, strategy.id).strategy_id == strategy.id
        assert sql_store.snapshot().executions[0].strategy_id == strategy.id
        assert sql_store.assign_strategy(execution.id, None).strategy_id is None

    def test_unknown_ids(self, sql_store):
        (execution,) = sql_store.add_executions([new_execution()])
        with pytest.raises(UnknownExecutionError):
            sql_store.assign_strategy(999, None)
        with pytest.raises(UnknownStrategyError):
            sql_store.assign_strategy(execution.id, 999)

    def test_failed_assign_leaves_row_untouched(self, sql_store):
        strategy = sql_store.create_strategy("Swing")
        (execution,) = sql_store.add_executions([new_execution(strategy_id=strategy.id)])
        with pytest.raises(UnknownStrategyError):
            sql_store.assign_strategy(execution.id, 999)
        assert sql_store.snapshot().executions[0].strategy_id == strategy.id


class TestServiceOverSql:
    def test_analytics_match_memory_store(self, sql_store, service, memory_store):
        executions = (
            round_trip(0, "5")
            + round_trip(1, "-2", symbol="MSFT")
            + [new_execution(symbol="TSLA", side="SELL", quantity="2", timestamp=BASE_TIME)]
        )
        sql_store.add_executions(executions)
        memory_store.add_executions(executions)
        sql_service = AnalyticsService(sql_store)

        assert sql_service.compute_metrics() == service.compute_metrics()
        assert sql_service.compute_symbol_pnl() == service.compute_symbol_pnl()
        assert len(sql_service.get_open_positions()) == 1

    def test_import_csv(self, sql_store):
        svc = AnalyticsService(sql_store)
        text = (
            "symbol,side,quantity,price,timestamp,fees\n"
            "AAPL,BUY,10,100,2024-01-02T14:30:00Z,1\n"
            "AAPL,SELL,10,110,2024-01-02T15:30:00Z,1\n"
        )
        assert svc.import_trades_csv(text).imported == 2
        assert svc.import_trades_csv(text).skipped_duplicates == 2
        assert svc.compute_metrics().net_profit == pytest.approx(98.0)

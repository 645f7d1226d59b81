"""Tests for MemoryTradeStore and the store factory."""

from decimal import Decimal

import pytest

from journal_analytics.core.config import StorageConfig
from journal_analytics.core.errors import UnknownExecutionError, UnknownStrategyError
from journal_analytics.storage import MemoryTradeStore, create_store

from ..conftest import new_execution, round_trip


class TestMemoryTradeStore:
    def test_ids_are_sequential(self, memory_store):
        first = memory_store.add_executions(round_trip(0, "5"))
        second = memory_store.add_executions(round_trip(1, "5"))
        assert [e.id for e in first + second] == [1, 2, 3, 4]

    def test_snapshot_is_point_in_time(self, memory_store):
        memory_store.add_executions(round_trip(0, "5"))
        before = memory_store.snapshot()
        memory_store.add_executions(round_trip(1, "5"))

        assert len(before.executions) == 2
        assert len(memory_store.snapshot().executions) == 4
        assert memory_store.snapshot().version > before.version

    def test_clear(self, memory_store):
        memory_store.add_executions(round_trip(0, "5"))
        assert memory_store.clear() == 2
        assert memory_store.snapshot().executions == ()

    def test_clear_keeps_strategies(self, memory_store):
        memory_store.create_strategy("Breakout")
        memory_store.clear()
        assert memory_store.snapshot().strategy_names == {1: "Breakout"}

    def test_dedupe_keys(self, memory_store):
        execution = new_execution(price="12.5")
        memory_store.add_executions([execution])
        assert execution.dedupe_key in memory_store.snapshot().dedupe_keys


class TestStrategies:
    def test_create_and_assign(self, memory_store):
        (execution,) = memory_store.add_executions([new_execution()])
        strategy = memory_store.create_strategy("Breakout", color="#00ff00")
        updated = memory_store.assign_strategy(execution.id, strategy.id)

        assert updated.strategy_id == strategy.id
        assert memory_store.snapshot().executions[0].strategy_id == strategy.id
        assert memory_store.snapshot().strategies[strategy.id].color == "#00ff00"

    def test_unassign(self, memory_store):
        strategy = memory_store.create_strategy("Scalp")
        (execution,) = memory_store.add_executions([new_execution(strategy_id=strategy.id)])
        assert memory_store.assign_strategy(execution.id, None).strategy_id is None

    def test_unknown_strategy(self, memory_store):
        (execution,) = memory_store.add_executions([new_execution()])
        with pytest.raises(UnknownStrategyError):
            memory_store.assign_strategy(execution.id, 42)

    def test_unknown_execution(self, memory_store):
        with pytest.raises(UnknownExecutionError):
            memory_store.assign_strategy(42, None)

    def test_executions_are_immutable(self, memory_store):
        (execution,) = memory_store.add_executions([new_execution()])
        with pytest.raises(Exception):
            execution.price = Decimal("1")


class TestCreateStore:
    def test_memory_default(self):
        assert isinstance(create_store(StorageConfig()), MemoryTradeStore)

    def test_sql_backend(self, tmp_path):
        from journal_analytics.storage.sql_store import SqlTradeStore

        url = f"sqlite:///{tmp_path / 'nested' / 'journal.db'}"
        store = create_store(StorageConfig(backend="sql", database_url=url))
        try:
            assert isinstance(store, SqlTradeStore)
            assert (tmp_path / "nested" / "journal.db").exists()
        finally:
            store.close()

"""In-memory trade store.

State is an immutable tuple replaced wholesale under a lock on every
write, so readers holding an older snapshot are never disturbed and a
new snapshot is always all-or-nothing with respect to an import.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from types import MappingProxyType

from journal_analytics.core.errors import UnknownExecutionError, UnknownStrategyError
from journal_analytics.core.models import Execution, NewExecution, Strategy

from .base import TradeSnapshot, TradeStore

logger = logging.getLogger(__name__)


class MemoryTradeStore(TradeStore):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._executions: tuple[Execution, ...] = ()
        self._strategies: dict[int, Strategy] = {}
        self._next_execution_id = 1
        self._next_strategy_id = 1
        self._version = 0

    def snapshot(self) -> TradeSnapshot:
        with self._lock:
            return TradeSnapshot(
                executions=self._executions,
                strategies=MappingProxyType(dict(self._strategies)),
                version=self._version,
            )

    def add_executions(self, executions: Sequence[NewExecution]) -> list[Execution]:
        with self._lock:
            start = self._next_execution_id
            added = [e.with_id(start + i) for i, e in enumerate(executions)]
            self._executions = self._executions + tuple(added)
            self._next_execution_id = start + len(added)
            self._version += 1
        logger.debug("Stored %d executions (version %d)", len(added), self._version)
        return added

    def clear(self) -> int:
        with self._lock:
            removed = len(self._executions)
            self._executions = ()
            self._version += 1
        return removed

    def create_strategy(
        self,
        name: str,
        description: str | None = None,
        color: str | None = None,
    ) -> Strategy:
        with self._lock:
            strategy = Strategy(
                id=self._next_strategy_id,
                name=name,
                description=description,
                color=color,
            )
            self._strategies[strategy.id] = strategy
            self._next_strategy_id += 1
            self._version += 1
        return strategy

    def assign_strategy(self, execution_id: int, strategy_id: int | None) -> Execution:
        with self._lock:
            if strategy_id is not None and strategy_id not in self._strategies:
                raise UnknownStrategyError(f"No strategy with id {strategy_id}")
            for idx, execution in enumerate(self._executions):
                if execution.id == execution_id:
                    break
            else:
                raise UnknownExecutionError(f"No execution with id {execution_id}")

            updated = execution.model_copy(update={"strategy_id": strategy_id})
            self._executions = self._executions[:idx] + (updated,) + self._executions[idx + 1:]
            self._version += 1
        return updated

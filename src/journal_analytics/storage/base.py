"""Trade store interface and the immutable snapshot it hands out.

Every analytics request reads exactly one :class:`TradeSnapshot`.  A
store must guarantee that a snapshot never reflects a partially applied
import: it is taken either before or after a write, never during one.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from journal_analytics.core.models import Execution, NewExecution, Strategy


@dataclass(frozen=True)
class TradeSnapshot:
    """Point-in-time, read-only view of the store."""

    executions: tuple[Execution, ...] = ()
    strategies: Mapping[int, Strategy] = field(default_factory=dict)
    version: int = 0

    @property
    def strategy_names(self) -> dict[int, str]:
        return {sid: s.name for sid, s in self.strategies.items()}

    @property
    def dedupe_keys(self) -> set[tuple]:
        return {e.dedupe_key for e in self.executions}


class TradeStore(ABC):
    """Persistence boundary for executions and strategies."""

    @abstractmethod
    def snapshot(self) -> TradeSnapshot:
        """Return a consistent view of all executions and strategies."""

    @abstractmethod
    def add_executions(self, executions: Sequence[NewExecution]) -> list[Execution]:
        """Insert *executions* atomically and return them with their ids."""

    @abstractmethod
    def clear(self) -> int:
        """Delete every execution; return how many were removed."""

    @abstractmethod
    def create_strategy(
        self,
        name: str,
        description: str | None = None,
        color: str | None = None,
    ) -> Strategy: ...

    @abstractmethod
    def assign_strategy(self, execution_id: int, strategy_id: int | None) -> Execution:
        """Tag an execution with a strategy (``None`` clears the tag).

        Raises:
            UnknownExecutionError: no execution with *execution_id*.
            UnknownStrategyError: no strategy with *strategy_id*.
        """

    def close(self) -> None:
        """Release resources held by the store."""

"""SQLAlchemy-backed trade store (SQLite by default).

Tables
------
executions   one row per imported fill; money stored as ``Numeric``
strategies   user-defined strategy catalogue

Snapshots read both tables inside a single transaction.  Writers and
snapshot readers are additionally serialised by a process-level lock,
so an import is never half-visible to a request in the same process.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from types import MappingProxyType

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    create_engine,
    delete,
    func,
    select,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from journal_analytics.core.errors import (
    StorageError,
    UnknownExecutionError,
    UnknownStrategyError,
)
from journal_analytics.core.models import Execution, NewExecution, Strategy

from .base import TradeSnapshot, TradeStore

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# ORM models
# ---------------------------------------------------------------------------

class Base(DeclarativeBase):
    """Shared declarative base for the journal tables."""

    pass


class StrategyRow(Base):
    __tablename__ = "strategies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    color: Mapped[str | None] = mapped_column(String(32), nullable=True)

    def to_model(self) -> Strategy:
        return Strategy(id=self.id, name=self.name, description=self.description, color=self.color)


class ExecutionRow(Base):
    """Persisted execution.  Timestamps are stored as UTC."""

    __tablename__ = "executions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    symbol: Mapped[str] = mapped_column(String(32), nullable=False)
    side: Mapped[str] = mapped_column(String(4), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(24, 8), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(24, 8), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    fees: Mapped[Decimal] = mapped_column(Numeric(24, 8), nullable=False, default=Decimal("0"))
    order_type: Mapped[str] = mapped_column(String(32), nullable=False, default="MARKET")
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="FILLED")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    strategy_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("strategies.id", ondelete="SET NULL"), nullable=True,
    )

    __table_args__ = (
        Index("ix_executions_symbol_ts", "symbol", "timestamp"),
    )

    @classmethod
    def from_model(cls, execution: NewExecution) -> ExecutionRow:
        return cls(
            symbol=execution.symbol,
            side=execution.side.value,
            quantity=execution.quantity,
            price=execution.price,
            timestamp=execution.timestamp,
            fees=execution.fees,
            order_type=execution.order_type,
            status=execution.status,
            notes=execution.notes,
            strategy_id=execution.strategy_id,
        )

    def to_model(self) -> Execution:
        return Execution(
            id=self.id,
            symbol=self.symbol,
            side=self.side,
            quantity=self.quantity,
            price=self.price,
            timestamp=self.timestamp,
            fees=self.fees,
            order_type=self.order_type,
            status=self.status,
            notes=self.notes,
            strategy_id=self.strategy_id,
        )


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

def create_sql_engine(url: str, *, echo: bool = False) -> Engine:
    """Create an engine, making sure a SQLite file's directory exists."""
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite" and parsed.database not in (None, "", ":memory:"):
        Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(url, echo=echo)
    logger.info("Created engine for %s", parsed.render_as_string(hide_password=True))
    return engine


class SqlTradeStore(TradeStore):
    """Trade store over a synchronous SQLAlchemy engine.

    Args:
        url: Database URL, e.g. ``sqlite:///data/journal.db``.
        echo: If ``True``, log all emitted SQL statements.
    """

    def __init__(self, url: str, *, echo: bool = False) -> None:
        self._engine = create_sql_engine(url, echo=echo)
        self._sessions = sessionmaker(self._engine, expire_on_commit=False)
        self._lock = threading.RLock()
        self._version = 0
        Base.metadata.create_all(self._engine)

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        with self._lock:
            try:
                with self._sessions.begin() as session:
                    yield session
            except SQLAlchemyError as exc:
                raise StorageError(f"Trade store operation failed: {exc}") from exc

    def snapshot(self) -> TradeSnapshot:
        with self._transaction() as session:
            executions = tuple(
                row.to_model()
                for row in session.scalars(select(ExecutionRow).order_by(ExecutionRow.id))
            )
            strategies = {
                row.id: row.to_model()
                for row in session.scalars(select(StrategyRow).order_by(StrategyRow.id))
            }
            version = self._version
        return TradeSnapshot(
            executions=executions,
            strategies=MappingProxyType(strategies),
            version=version,
        )

    def add_executions(self, executions: Sequence[NewExecution]) -> list[Execution]:
        with self._transaction() as session:
            rows = [ExecutionRow.from_model(e) for e in executions]
            session.add_all(rows)
            session.flush()
            added = [row.to_model() for row in rows]
            self._version += 1
        logger.debug("Stored %d executions", len(added))
        return added

    def clear(self) -> int:
        with self._transaction() as session:
            removed = session.scalar(select(func.count()).select_from(ExecutionRow)) or 0
            session.execute(delete(ExecutionRow))
            self._version += 1
        return removed

    def create_strategy(
        self,
        name: str,
        description: str | None = None,
        color: str | None = None,
    ) -> Strategy:
        with self._transaction() as session:
            row = StrategyRow(name=name, description=description, color=color)
            session.add(row)
            session.flush()
            strategy = row.to_model()
            self._version += 1
        return strategy

    def assign_strategy(self, execution_id: int, strategy_id: int | None) -> Execution:
        with self._transaction() as session:
            row = session.get(ExecutionRow, execution_id)
            if row is None:
                raise UnknownExecutionError(f"No execution with id {execution_id}")
            if strategy_id is not None and session.get(StrategyRow, strategy_id) is None:
                raise UnknownStrategyError(f"No strategy with id {strategy_id}")
            row.strategy_id = strategy_id
            session.flush()
            updated = row.to_model()
            self._version += 1
        return updated

    def close(self) -> None:
        self._engine.dispose()

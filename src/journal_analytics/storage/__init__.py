"""Trade stores (in-memory and SQL) and CSV import."""

from __future__ import annotations

from journal_analytics.core.config import StorageConfig
from journal_analytics.core.enums import StorageBackend

from .base import TradeSnapshot, TradeStore
from .memory_store import MemoryTradeStore


def create_store(config: StorageConfig) -> TradeStore:
    """Build the configured store backend."""
    if config.backend is StorageBackend.SQL:
        from .sql_store import SqlTradeStore

        return SqlTradeStore(config.database_url, echo=config.echo)
    return MemoryTradeStore()


__all__ = ["MemoryTradeStore", "TradeSnapshot", "TradeStore", "create_store"]

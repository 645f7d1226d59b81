"""Shared fixtures for the journal-analytics test suite."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from journal_analytics.core.config import Settings
from journal_analytics.core.models import NewExecution
from journal_analytics.service import AnalyticsService
from journal_analytics.storage.memory_store import MemoryTradeStore

# Tuesday 2024-01-02 14:30 UTC
BASE_TIME = datetime(2024, 1, 2, 14, 30, tzinfo=timezone.utc)


def new_execution(
    symbol: str = "AAPL",
    side: str = "BUY",
    quantity: str = "10",
    price: str = "100",
    timestamp: datetime | None = None,
    fees: str = "0",
    strategy_id: int | None = None,
) -> NewExecution:
    """Helper to create an unsaved execution."""
    return NewExecution(
        symbol=symbol,
        side=side,
        quantity=Decimal(quantity),
        price=Decimal(price),
        timestamp=timestamp or BASE_TIME,
        fees=Decimal(fees),
        strategy_id=strategy_id,
    )


def round_trip(
    day_offset: int,
    pnl_per_share: str,
    symbol: str = "AAPL",
    quantity: str = "10",
    strategy_id: int | None = None,
) -> list[NewExecution]:
    """A long buy at 100 closed 30 minutes later, *day_offset* days after BASE_TIME."""
    opened = BASE_TIME + timedelta(days=day_offset)
    exit_price = Decimal("100") + Decimal(pnl_per_share)
    return [
        new_execution(symbol, "BUY", quantity, "100", opened, strategy_id=strategy_id),
        new_execution(symbol, "SELL", quantity, str(exit_price), opened + timedelta(minutes=30),
                      strategy_id=strategy_id),
    ]


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def memory_store() -> MemoryTradeStore:
    return MemoryTradeStore()


@pytest.fixture
def service(memory_store, settings) -> AnalyticsService:
    return AnalyticsService(memory_store, settings)

"""Shared helpers for journal analyzer tests."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from journal_analytics.core.enums import Side
from journal_analytics.core.models import Execution
from journal_analytics.journal.record import PairedTrade

BASE_TIME = datetime(2024, 1, 2, 14, 30, tzinfo=timezone.utc)


@pytest.fixture
def base_time():
    return BASE_TIME


def make_execution(
    id: int,
    side: str = "BUY",
    quantity: str = "10",
    price: str = "100",
    timestamp: datetime | None = None,
    fees: str = "0",
    symbol: str = "AAPL",
    strategy_id: int | None = None,
) -> Execution:
    """Helper to create a stored Execution."""
    return Execution(
        id=id,
        symbol=symbol,
        side=side,
        quantity=Decimal(quantity),
        price=Decimal(price),
        timestamp=timestamp or BASE_TIME + timedelta(minutes=id),
        fees=Decimal(fees),
        strategy_id=strategy_id,
    )


def make_pair(
    net_pnl: float,
    index: int = 0,
    exit_time: datetime | None = None,
    symbol: str = "AAPL",
    strategy_id: int | None = None,
    quantity: str = "1",
    entry_price: str = "100",
) -> PairedTrade:
    """Create a fee-free long pair whose net P&L is *net_pnl*.

    Pairs built with increasing *index* close one day apart.
    """
    qty = Decimal(quantity)
    entry = Decimal(entry_price)
    pnl = Decimal(str(net_pnl))
    exit_ts = exit_time or BASE_TIME + timedelta(days=index)
    return PairedTrade(
        symbol=symbol,
        entry_execution_id=2 * index + 1,
        exit_execution_id=2 * index + 2,
        entry_side=Side.BUY,
        quantity=qty,
        entry_price=entry,
        exit_price=entry + pnl / qty,
        entry_timestamp=exit_ts - timedelta(minutes=30),
        exit_timestamp=exit_ts,
        entry_fees=Decimal("0"),
        exit_fees=Decimal("0"),
        gross_pnl=pnl,
        net_pnl=pnl,
        strategy_id=strategy_id,
    )


def make_pairs(pnls: list[float], **kwargs) -> list[PairedTrade]:
    """One pair per P&L value, closing on consecutive days."""
    return [make_pair(pnl, index=i, **kwargs) for i, pnl in enumerate(pnls)]

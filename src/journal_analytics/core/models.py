"""Core domain models: raw executions and strategies.

Executions are immutable pydantic models.  They are created by import,
never mutated, and removed only by a bulk clear.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from .enums import Side


def to_utc(value: datetime) -> datetime:
    """Normalise a datetime to aware UTC.  Naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class NewExecution(BaseModel):
    """A validated execution that has not been assigned a store id yet."""

    model_config = {"frozen": True}

    symbol: str = Field(min_length=1)
    side: Side
    quantity: Decimal = Field(gt=0)
    price: Decimal = Field(ge=0)
    timestamp: datetime
    fees: Decimal = Field(default=Decimal("0"), ge=0)
    strategy_id: int | None = None
    order_type: str = "MARKET"
    status: str = "FILLED"
    notes: str | None = None

    @field_validator("symbol")
    @classmethod
    def _strip_symbol(cls, value: str) -> str:
        value = value.strip().upper()
        if not value:
            raise ValueError("symbol must not be blank")
        return value

    @field_validator("side", mode="before")
    @classmethod
    def _upper_side(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("timestamp")
    @classmethod
    def _utc_timestamp(cls, value: datetime) -> datetime:
        return to_utc(value)

    @property
    def dedupe_key(self) -> tuple:
        """Identity used to skip re-imported rows."""
        return (self.symbol, self.side, self.quantity, self.price, self.timestamp)

    @property
    def notional(self) -> Decimal:
        return self.quantity * self.price

    def with_id(self, execution_id: int) -> Execution:
        return Execution(id=execution_id, **self.model_dump(exclude={"id"}))


class Execution(NewExecution):
    """A single filled buy or sell, as imported from a broker export.

    Created by import, never mutated, removed only by a bulk clear.
    """

    id: int


class Strategy(BaseModel):
    """A user-defined trading strategy that executions can be tagged with."""

    model_config = {"frozen": True}

    id: int
    name: str = Field(min_length=1)
    description: str | None = None
    color: str | None = None

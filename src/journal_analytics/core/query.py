"""Request parameter parsing and validation.

Every analytics operation takes some mix of pairing method, date range,
concentration percent and limit.  They are validated here once so that
analyzers only ever see well-formed input.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo

from .enums import PairingMethod
from .errors import (
    ConcentrationPercentError,
    InvalidDateRangeError,
    InvalidLimitError,
    UnknownPairingMethodError,
)
from .models import to_utc

MIN_CONCENTRATION_PERCENT = 5.0
MAX_CONCENTRATION_PERCENT = 30.0


@dataclass(frozen=True)
class AnalyticsQuery:
    """Validated request scope: pairing policy plus an inclusive exit-time window."""

    pairing_method: PairingMethod
    start: datetime | None = None
    end: datetime | None = None

    def contains(self, ts: datetime) -> bool:
        if self.start is not None and ts < self.start:
            return False
        if self.end is not None and ts > self.end:
            return False
        return True

    @property
    def is_bounded(self) -> bool:
        return self.start is not None or self.end is not None


def parse_pairing_method(
    value: str | PairingMethod | None,
    default: PairingMethod = PairingMethod.FIFO,
) -> PairingMethod:
    """Resolve a pairing method, failing fast on anything unrecognised.

    ``None`` (parameter omitted) resolves to *default*.
    """
    if value is None:
        return default
    if isinstance(value, PairingMethod):
        return value
    try:
        return PairingMethod(str(value).strip().upper())
    except ValueError:
        raise UnknownPairingMethodError(str(value)) from None


def parse_date_bound(
    value: str | date | datetime | None,
    *,
    is_end: bool,
    tz: tzinfo = timezone.utc,
) -> datetime | None:
    """Parse an ISO-8601 date or datetime into an aware UTC bound.

    A date-only bound is a calendar day in *tz*, the same zone the
    analyzers bucket trading days in.  A date-only end bound covers the
    whole day (up to the last microsecond).
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_utc(value)
    if isinstance(value, date):
        return _day_bound(value, is_end, tz)

    text = str(value).strip()
    if len(text) == 10:
        try:
            return _day_bound(date.fromisoformat(text), is_end, tz)
        except ValueError:
            raise InvalidDateRangeError(f"Invalid date {text!r}") from None
    try:
        return to_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        raise InvalidDateRangeError(f"Invalid date {text!r}") from None


def _day_bound(day: date, is_end: bool, tz: tzinfo) -> datetime:
    if is_end:
        next_midnight = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
        return next_midnight.astimezone(timezone.utc) - timedelta(microseconds=1)
    return datetime.combine(day, time.min, tzinfo=tz).astimezone(timezone.utc)


def build_query(
    pairing_method: str | PairingMethod | None,
    start_date: str | date | datetime | None = None,
    end_date: str | date | datetime | None = None,
    *,
    default_method: PairingMethod = PairingMethod.FIFO,
    tz: tzinfo = timezone.utc,
) -> AnalyticsQuery:
    """Validate raw request parameters into an :class:`AnalyticsQuery`.

    Raises:
        UnknownPairingMethodError: pairing method not FIFO/LIFO.
        InvalidDateRangeError: unparseable date, or start after end.
    """
    method = parse_pairing_method(pairing_method, default_method)
    start = parse_date_bound(start_date, is_end=False, tz=tz)
    end = parse_date_bound(end_date, is_end=True, tz=tz)
    if start is not None and end is not None and start > end:
        raise InvalidDateRangeError(
            f"Start date {start.isoformat()} is after end date {end.isoformat()}"
        )
    return AnalyticsQuery(pairing_method=method, start=start, end=end)


def validate_concentration_percent(value: float | None, default: float = 10.0) -> float:
    """Return the concentration percent, rejecting values outside [5, 30]."""
    if value is None:
        value = default
    try:
        pct = float(value)
    except (TypeError, ValueError):
        raise ConcentrationPercentError(f"Concentration percent {value!r} is not a number") from None
    if math.isnan(pct) or not (MIN_CONCENTRATION_PERCENT <= pct <= MAX_CONCENTRATION_PERCENT):
        raise ConcentrationPercentError(
            f"Concentration percent must be between {MIN_CONCENTRATION_PERCENT:g} "
            f"and {MAX_CONCENTRATION_PERCENT:g}, got {value!r}"
        )
    return pct


def validate_limit(value: int | None, default: int = 5) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise InvalidLimitError(f"Limit must be a positive integer, got {value!r}")
    return value

"""Daily P&L series, cumulative equity curve and drawdown periods.

Pairs are bucketed by exit date in the analytics timezone.  The curve
starts from zero equity; a drawdown is the distance below the running
peak, and the best surge is the largest rise from a running trough to a
later close.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, timezone, tzinfo
from decimal import Decimal
from typing import Any

from .record import PairedTrade
from .stats import local_exit


@dataclass(frozen=True)
class DailyPnl:
    date: date
    profit_loss: float
    trade_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "profit_loss": self.profit_loss,
            "trade_count": self.trade_count,
        }


@dataclass(frozen=True)
class EquityPoint:
    date: date
    daily_pnl: float
    cumulative_pnl: float
    peak_equity: float
    drawdown: float
    drawdown_pct: float
    is_max_drawdown: bool = False
    is_best_surge: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "daily_pnl": self.daily_pnl,
            "cumulative_pnl": self.cumulative_pnl,
            "peak_equity": self.peak_equity,
            "drawdown": self.drawdown,
            "drawdown_pct": self.drawdown_pct,
            "is_max_drawdown": self.is_max_drawdown,
            "is_best_surge": self.is_best_surge,
        }


@dataclass(frozen=True)
class DrawdownMetrics:
    max_drawdown: float = 0.0
    max_drawdown_pct: float = 0.0
    max_drawdown_start: date | None = None
    max_drawdown_end: date | None = None
    avg_drawdown: float = 0.0
    longest_drawdown_days: int = 0
    longest_drawdown_start: date | None = None
    longest_drawdown_end: date | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_drawdown": self.max_drawdown,
            "max_drawdown_pct": self.max_drawdown_pct,
            "max_drawdown_start": _iso(self.max_drawdown_start),
            "max_drawdown_end": _iso(self.max_drawdown_end),
            "avg_drawdown": self.avg_drawdown,
            "longest_drawdown_days": self.longest_drawdown_days,
            "longest_drawdown_start": _iso(self.longest_drawdown_start),
            "longest_drawdown_end": _iso(self.longest_drawdown_end),
        }


@dataclass(frozen=True)
class EquityCurve:
    points: list[EquityPoint] = field(default_factory=list)
    drawdown: DrawdownMetrics = field(default_factory=DrawdownMetrics)
    best_surge_value: float = 0.0
    best_surge_start: date | None = None
    best_surge_end: date | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "points": [p.to_dict() for p in self.points],
            "drawdown": self.drawdown.to_dict(),
            "best_surge_value": self.best_surge_value,
            "best_surge_start": _iso(self.best_surge_start),
            "best_surge_end": _iso(self.best_surge_end),
        }


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None


def _pct(drawdown: float, peak: float) -> float:
    if peak == 0:
        return 0.0
    return drawdown / abs(peak) * 100.0


def _within(day: date, start: date | None, end: date | None) -> bool:
    return start is not None and end is not None and start <= day <= end


class EquityCurveAnalyzer:
    def __init__(self, tz: tzinfo = timezone.utc) -> None:
        self._tz = tz

    def daily_pnl(self, pairs: Sequence[PairedTrade]) -> list[DailyPnl]:
        totals: dict[date, Decimal] = {}
        counts: dict[date, int] = {}
        for pair in pairs:
            day = local_exit(pair, self._tz).date()
            totals[day] = totals.get(day, Decimal("0")) + pair.net_pnl
            counts[day] = counts.get(day, 0) + 1
        return [
            DailyPnl(date=day, profit_loss=float(totals[day]), trade_count=counts[day])
            for day in sorted(totals)
        ]

    def equity_curve(self, pairs: Sequence[PairedTrade]) -> EquityCurve:
        days = self.daily_pnl(pairs)
        if not days:
            return EquityCurve()

        cumulative = 0.0
        peak = 0.0
        peak_day: date | None = None
        trough = 0.0
        trough_day: date | None = None

        raw: list[tuple[DailyPnl, float, float, float]] = []
        max_dd = 0.0
        max_dd_peak = 0.0
        max_dd_start = max_dd_end = None
        best_surge = 0.0
        surge_start = surge_end = None

        run_start: date | None = None
        run_days = 0
        longest_days = 0
        longest_start = longest_end = None
        dd_values: list[float] = []

        for day in days:
            cumulative += day.profit_loss
            if cumulative > peak:
                peak = cumulative
                peak_day = day.date
            drawdown = peak - cumulative

            if drawdown > max_dd:
                max_dd = drawdown
                max_dd_peak = peak
                max_dd_start = peak_day or days[0].date
                max_dd_end = day.date

            if cumulative - trough > best_surge:
                best_surge = cumulative - trough
                surge_start = trough_day or days[0].date
                surge_end = day.date
            if cumulative < trough:
                trough = cumulative
                trough_day = day.date

            if drawdown > 0:
                dd_values.append(drawdown)
                if run_days == 0:
                    run_start = day.date
                run_days += 1
                if run_days > longest_days:
                    longest_days = run_days
                    longest_start = run_start
                    longest_end = day.date
            else:
                run_days = 0

            raw.append((day, cumulative, peak, drawdown))

        points = [
            EquityPoint(
                date=day.date,
                daily_pnl=day.profit_loss,
                cumulative_pnl=cum,
                peak_equity=pk,
                drawdown=dd,
                drawdown_pct=_pct(dd, pk),
                is_max_drawdown=_within(day.date, max_dd_start, max_dd_end),
                is_best_surge=_within(day.date, surge_start, surge_end),
            )
            for day, cum, pk, dd in raw
        ]
        return EquityCurve(
            points=points,
            drawdown=DrawdownMetrics(
                max_drawdown=max_dd,
                max_drawdown_pct=_pct(max_dd, max_dd_peak),
                max_drawdown_start=max_dd_start,
                max_drawdown_end=max_dd_end,
                avg_drawdown=sum(dd_values) / len(dd_values) if dd_values else 0.0,
                longest_drawdown_days=longest_days,
                longest_drawdown_start=longest_start,
                longest_drawdown_end=longest_end,
            ),
            best_surge_value=best_surge,
            best_surge_start=surge_start,
            best_surge_end=surge_end,
        )

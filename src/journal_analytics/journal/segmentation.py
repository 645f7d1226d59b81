"""Evaluation breakdown: performance by weekday, day, hour, symbol, strategy.

Calendar buckets use the pair's exit timestamp converted to the
configured analytics timezone.  Every weekday (0=Monday), day of month
(1-31) and hour (0-23) is emitted, zero-filled when empty, so that a
chart axis is always complete.  Symbol and strategy buckets only exist
for groups that traded and are ordered by total P&L, best first.

Usage::

    analyzer = SegmentationAnalyzer(tz=ZoneInfo("America/New_York"))
    report = analyzer.analyze(pairs, strategy_names={1: "Breakout"})
    print(report.weekday[0].win_rate)
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import timezone, tzinfo
from decimal import Decimal
from typing import Any

from journal_analytics.core.enums import TradeOutcome

from .record import PairedTrade
from .stats import local_exit, ratio_or_none, safe_div
from .symbols import underlying_symbol

DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

UNASSIGNED_STRATEGY = "Unassigned"
UNKNOWN_STRATEGY = "Unknown"


def hour_label(hour: int) -> str:
    return f"{hour:02d}:00-{hour:02d}:59"


@dataclass
class _BucketStats:
    """Accumulator for one bucket."""

    trades: int = 0
    wins: int = 0
    losses: int = 0
    total_pnl: Decimal = Decimal("0")
    gross_profit: Decimal = Decimal("0")
    gross_loss: Decimal = Decimal("0")

    def record(self, pair: PairedTrade) -> None:
        self.trades += 1
        self.total_pnl += pair.net_pnl
        if pair.outcome is TradeOutcome.WIN:
            self.wins += 1
            self.gross_profit += pair.net_pnl
        elif pair.outcome is TradeOutcome.LOSS:
            self.losses += 1
            self.gross_loss += pair.net_pnl

    def to_performance(self) -> BucketPerformance:
        average_win = safe_div(float(self.gross_profit), self.wins)
        average_loss = safe_div(float(self.gross_loss), self.losses)
        return BucketPerformance(
            trade_count=self.trades,
            win_rate=safe_div(self.wins, self.trades),
            total_pnl=float(self.total_pnl),
            average_pnl=safe_div(float(self.total_pnl), self.trades),
            average_win=average_win,
            average_loss=average_loss,
            payoff_ratio=ratio_or_none(average_win, abs(average_loss)),
            profit_factor=ratio_or_none(float(self.gross_profit), abs(float(self.gross_loss))),
            gross_profit=float(self.gross_profit),
            gross_loss=float(self.gross_loss),
        )


@dataclass(frozen=True)
class BucketPerformance:
    """Ratio metrics for one group of pairs.

    ``average_loss`` and ``gross_loss`` are negative.  ``payoff_ratio``
    and ``profit_factor`` follow the metrics sentinel convention.
    """

    trade_count: int = 0
    win_rate: float = 0.0
    total_pnl: float = 0.0
    average_pnl: float = 0.0
    average_win: float = 0.0
    average_loss: float = 0.0
    payoff_ratio: float | None = 0.0
    profit_factor: float | None = 0.0
    gross_profit: float = 0.0
    gross_loss: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "trade_count": self.trade_count,
            "win_rate": self.win_rate,
            "total_pnl": self.total_pnl,
            "average_pnl": self.average_pnl,
            "average_win": self.average_win,
            "average_loss": self.average_loss,
            "payoff_ratio": self.payoff_ratio,
            "profit_factor": self.profit_factor,
            "gross_profit": self.gross_profit,
            "gross_loss": self.gross_loss,
        }


@dataclass(frozen=True)
class EvaluationMetrics:
    weekday: list[tuple[int, BucketPerformance]] = field(default_factory=list)
    day_of_month: list[tuple[int, BucketPerformance]] = field(default_factory=list)
    hour_of_day: list[tuple[int, BucketPerformance]] = field(default_factory=list)
    symbol: list[tuple[str, BucketPerformance]] = field(default_factory=list)
    strategy: list[tuple[int | None, str, BucketPerformance]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "weekday_performance": [
                {"weekday": d, "weekday_name": DAY_NAMES[d], **perf.to_dict()}
                for d, perf in self.weekday
            ],
            "day_of_month_performance": [
                {"day": d, **perf.to_dict()} for d, perf in self.day_of_month
            ],
            "time_of_day_performance": [
                {"hour": h, "hour_label": hour_label(h), **perf.to_dict()}
                for h, perf in self.hour_of_day
            ],
            "symbol_performance": [
                {"symbol": s, **perf.to_dict()} for s, perf in self.symbol
            ],
            "strategy_performance": [
                {"strategy_id": sid, "strategy_name": name, **perf.to_dict()}
                for sid, name, perf in self.strategy
            ],
        }


class SegmentationAnalyzer:
    """Groups pairs into calendar, symbol and strategy buckets.

    Parameters
    ----------
    tz : tzinfo
        Timezone used to derive weekday, day and hour from exit times.
    """

    def __init__(self, tz: tzinfo = timezone.utc) -> None:
        self._tz = tz

    def analyze(
        self,
        pairs: Sequence[PairedTrade],
        strategy_names: Mapping[int, str] | None = None,
    ) -> EvaluationMetrics:
        names = strategy_names or {}
        weekday: dict[int, _BucketStats] = {d: _BucketStats() for d in range(7)}
        day: dict[int, _BucketStats] = {d: _BucketStats() for d in range(1, 32)}
        hour: dict[int, _BucketStats] = {h: _BucketStats() for h in range(24)}
        symbol: dict[str, _BucketStats] = defaultdict(_BucketStats)
        strategy: dict[int | None, _BucketStats] = defaultdict(_BucketStats)

        for pair in pairs:
            local = local_exit(pair, self._tz)
            weekday[local.weekday()].record(pair)
            day[local.day].record(pair)
            hour[local.hour].record(pair)
            symbol[underlying_symbol(pair.symbol)].record(pair)
            strategy[pair.strategy_id].record(pair)

        return EvaluationMetrics(
            weekday=_fixed(weekday),
            day_of_month=_fixed(day),
            hour_of_day=_fixed(hour),
            symbol=_ranked((key, stats) for key, stats in symbol.items()),
            strategy=[
                (sid, strategy_name(sid, names), perf)
                for sid, perf in _ranked(strategy.items())
            ],
        )


def strategy_name(strategy_id: int | None, names: Mapping[int, str]) -> str:
    if strategy_id is None:
        return UNASSIGNED_STRATEGY
    return names.get(strategy_id, UNKNOWN_STRATEGY)


def _fixed(buckets: dict[int, _BucketStats]) -> list[tuple[int, BucketPerformance]]:
    return [(key, stats.to_performance()) for key, stats in sorted(buckets.items())]


def _ranked(items: Iterable[tuple[Any, _BucketStats]]) -> list[tuple[Any, BucketPerformance]]:
    rows = [(key, stats.to_performance()) for key, stats in items]
    # Stable tie-break on the key's string form (None sorts as "")
    rows.sort(key=lambda row: str(row[0]) if row[0] is not None else "")
    rows.sort(key=lambda row: row[1].total_pnl, reverse=True)
    return rows

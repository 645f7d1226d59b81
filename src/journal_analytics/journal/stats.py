"""Shared numeric helpers for the pair analyzers.

All helpers are total: empty input and zero denominators produce 0.0
(or ``None`` where a ratio is documented to be unbounded), never NaN or
infinity.
"""

from __future__ import annotations

import math
from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import date, datetime, tzinfo
from decimal import Decimal

from journal_analytics.core.enums import TradeOutcome

from .record import PairedTrade


def safe_div(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return 0.0
    return numerator / denominator


def ratio_or_none(numerator: float, denominator: float) -> float | None:
    """Ratio with the profit-factor sentinel convention.

    * no numerator (nothing won)     -> 0.0
    * numerator but zero denominator -> ``None`` (unbounded)
    """
    if numerator == 0:
        return 0.0
    if denominator == 0:
        return None
    return numerator / denominator


def mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return math.fsum(values) / len(values)


def chronological(pairs: Iterable[PairedTrade]) -> list[PairedTrade]:
    return sorted(pairs, key=lambda p: p.sort_key)


def local_exit(pair: PairedTrade, tz: tzinfo) -> datetime:
    return pair.exit_timestamp.astimezone(tz)


def daily_net_pnl(pairs: Iterable[PairedTrade], tz: tzinfo) -> dict[date, Decimal]:
    """Net P&L per exit date in *tz*, in ascending date order."""
    days: dict[date, Decimal] = defaultdict(Decimal)
    for pair in pairs:
        days[local_exit(pair, tz).date()] += pair.net_pnl
    return dict(sorted(days.items()))


def max_drawdown(pnls: Iterable[float]) -> float:
    """Largest peak-to-trough drop of the running sum, peak starting at 0."""
    equity = 0.0
    peak = 0.0
    worst = 0.0
    for pnl in pnls:
        equity += pnl
        peak = max(peak, equity)
        worst = max(worst, peak - equity)
    return worst


def streaks(outcomes: Iterable[TradeOutcome]) -> tuple[int, int, int, int]:
    """Return ``(longest_win, longest_loss, current_win, current_loss)``.

    A breakeven outcome ends both a win and a loss run.
    """
    longest_win = longest_loss = 0
    win_run = loss_run = 0
    for outcome in outcomes:
        if outcome is TradeOutcome.WIN:
            win_run += 1
            loss_run = 0
        elif outcome is TradeOutcome.LOSS:
            loss_run += 1
            win_run = 0
        else:
            win_run = loss_run = 0
        longest_win = max(longest_win, win_run)
        longest_loss = max(longest_loss, loss_run)
    return longest_win, longest_loss, win_run, loss_run

"""Return distribution and profit concentration analysis.

Answers "is my edge broad, or carried by a handful of outliers?".

Histogram
    Equal-width bins over ``[min(net_pnl), max(net_pnl)]``.  The last bin
    is closed so that the maximum lands in it; a degenerate range
    (all values equal) yields one bin; no trades yields no bins.

Concentration
    ``top_profit_count = ceil(k% * winners)`` (exact decimal arithmetic);
    ``profit_share_top`` is the share of positive P&L carried by those
    winners.  Losses are treated symmetrically.

Stability
    ``100 * (1 - 0.6 * profit_share_top - 0.4 * cv / (1 + cv))`` clamped
    to ``[0, 100]``, where ``cv`` is the population coefficient of
    variation of winning returns (0 with fewer than two winners).  The
    score is 0 when there are no winners at all.
"""

from __future__ import annotations

import math
import statistics
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any

from .record import PairedTrade

PROFIT_SHARE_WEIGHT = 0.6
DISPERSION_WEIGHT = 0.4
SMALL_SAMPLE = 30


@dataclass(frozen=True)
class HistogramBin:
    bin_start: float
    bin_end: float
    count: int
    total_pnl: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "bin_start": self.bin_start,
            "bin_end": self.bin_end,
            "count": self.count,
            "total_pnl": self.total_pnl,
        }


@dataclass(frozen=True)
class ConcentrationStats:
    concentration_percent: float
    total_trades: int = 0
    profitable_trades_count: int = 0
    losing_trades_count: int = 0
    top_profit_count: int = 0
    top_loss_count: int = 0
    profit_share_top: float = 0.0
    loss_share_top: float = 0.0
    mean_return: float = 0.0
    median_return: float = 0.0
    coefficient_of_variation: float = 0.0
    stability_score: float = 0.0
    insights: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "concentration_percent": self.concentration_percent,
            "total_trades": self.total_trades,
            "profitable_trades_count": self.profitable_trades_count,
            "losing_trades_count": self.losing_trades_count,
            "top_profit_count": self.top_profit_count,
            "top_loss_count": self.top_loss_count,
            "profit_share_top": self.profit_share_top,
            "loss_share_top": self.loss_share_top,
            "mean_return": self.mean_return,
            "median_return": self.median_return,
            "coefficient_of_variation": self.coefficient_of_variation,
            "stability_score": self.stability_score,
            "insights": list(self.insights),
        }


@dataclass(frozen=True)
class DistributionReport:
    histogram: list[HistogramBin]
    concentration: ConcentrationStats

    def to_dict(self) -> dict[str, Any]:
        return {
            "histogram": [b.to_dict() for b in self.histogram],
            "concentration": self.concentration.to_dict(),
        }


def top_count(percent: float, population: int) -> int:
    """``ceil(percent% * population)`` without binary float rounding."""
    return math.ceil(Decimal(str(percent)) * population / 100)


def build_histogram(values: Sequence[Decimal], bins: int) -> list[HistogramBin]:
    if not values:
        return []
    low = float(min(values))
    high = float(max(values))
    if low == high:
        return [HistogramBin(low, high, len(values), float(sum(values, Decimal("0"))))]

    width = (high - low) / bins
    counts = [0] * bins
    totals = [Decimal("0")] * bins
    for value in values:
        idx = min(int((float(value) - low) / width), bins - 1)
        counts[idx] += 1
        totals[idx] += value

    return [
        HistogramBin(
            bin_start=low + i * width,
            bin_end=high if i == bins - 1 else low + (i + 1) * width,
            count=counts[i],
            total_pnl=float(totals[i]),
        )
        for i in range(bins)
    ]


class DistributionAnalyzer:
    """Histogram plus concentration and stability statistics.

    Parameters
    ----------
    bins : int
        Number of equal-width histogram bins.  Default 20.
    """

    def __init__(self, bins: int = 20) -> None:
        self._bins = max(1, bins)

    def analyze(self, pairs: Sequence[PairedTrade], concentration_percent: float = 10.0) -> DistributionReport:
        values = [p.net_pnl for p in pairs]
        return DistributionReport(
            histogram=build_histogram(values, self._bins),
            concentration=self.concentration(values, concentration_percent),
        )

    def concentration(self, values: Sequence[Decimal], percent: float) -> ConcentrationStats:
        if not values:
            return ConcentrationStats(
                concentration_percent=percent,
                insights=["No trades in the selected range."],
            )

        winners = sorted((v for v in values if v > 0), reverse=True)
        losers = sorted(v for v in values if v < 0)
        k_profit = top_count(percent, len(winners))
        k_loss = top_count(percent, len(losers))

        profit_share = _share(winners[:k_profit], winners)
        loss_share = _share(losers[:k_loss], losers)

        mean_return = float(sum(values, Decimal("0")) / len(values))
        median_return = float(statistics.median(values))
        cv = _coefficient_of_variation([float(v) for v in winners])
        score = stability_score(profit_share, cv) if winners else 0.0

        stats = ConcentrationStats(
            concentration_percent=percent,
            total_trades=len(values),
            profitable_trades_count=len(winners),
            losing_trades_count=len(losers),
            top_profit_count=k_profit,
            top_loss_count=k_loss,
            profit_share_top=profit_share,
            loss_share_top=loss_share,
            mean_return=mean_return,
            median_return=median_return,
            coefficient_of_variation=cv,
            stability_score=score,
        )
        return _with_insights(stats)


def stability_score(profit_share_top: float, cv: float) -> float:
    raw = 100.0 * (1.0 - PROFIT_SHARE_WEIGHT * profit_share_top - DISPERSION_WEIGHT * cv / (1.0 + cv))
    return min(100.0, max(0.0, raw))


def _share(top: Sequence[Decimal], everything: Sequence[Decimal]) -> float:
    total = sum(everything, Decimal("0"))
    if total == 0:
        return 0.0
    return float(sum(top, Decimal("0")) / total)


def _coefficient_of_variation(winners: list[float]) -> float:
    if len(winners) < 2:
        return 0.0
    avg = statistics.mean(winners)
    if avg == 0:
        return 0.0
    return statistics.pstdev(winners) / avg


def _with_insights(stats: ConcentrationStats) -> ConcentrationStats:
    pct = f"{stats.concentration_percent:g}%"
    lines: list[str] = []

    if stats.total_trades < SMALL_SAMPLE:
        lines.append(f"Limited data: only {stats.total_trades} trades, results may be noisy.")

    if stats.profitable_trades_count:
        share = stats.profit_share_top * 100
        if stats.profit_share_top < 0.2:
            lines.append(f"Profits are well distributed: the top {pct} of winners carry {share:.1f}% of total profit.")
        elif stats.profit_share_top <= 0.4:
            lines.append(f"Profits are moderately concentrated: the top {pct} of winners carry {share:.1f}% of total profit.")
        elif stats.profit_share_top <= 0.7:
            lines.append(
                f"A few winners carry most of the profit: the top {pct} produce {share:.1f}%. "
                "Consider systematizing the conditions of your best trades."
            )
        else:
            lines.append(
                f"Severe profit concentration: the top {pct} of winners produce {share:.1f}% of total profit."
            )

    if stats.losing_trades_count:
        share = stats.loss_share_top * 100
        if stats.loss_share_top > 0.7:
            lines.append(
                f"Severe loss concentration: the worst {pct} of losers cause {share:.1f}% of total loss. "
                "Consider hard stops or a daily loss limit."
            )
        elif stats.loss_share_top > 0.5:
            lines.append(f"A small group of losers drives most drawdown: the worst {pct} cause {share:.1f}% of total loss.")

    if stats.median_return != 0 and abs(stats.mean_return) / abs(stats.median_return) >= 1.5:
        lines.append("Mean and median returns differ sharply; results are skewed by a few large trades.")

    if stats.profitable_trades_count:
        if stats.stability_score >= 80:
            lines.append("Performance is broadly supported by many trades rather than a few outliers.")
        elif stats.stability_score < 50:
            lines.append("Results are unstable; focus on repeating your best setups and capping the worst trades.")

    return replace(stats, insights=lines)

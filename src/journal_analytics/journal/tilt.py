"""Tilt analysis: does trading quality degrade after losses?

Works on the chronological sequence of closed pairs (ordered by exit
time, ties by exit then entry execution id) across all symbols and
strategies.

Streak statistics use the *at least k* semantic: a trade belongs to the
"after k losses" sample when the k trades immediately before it were
all losses, regardless of what came before those.  The samples are
therefore nested (sample(k+1) is a subset of sample(k)), which is what a
"stop after N losses in a row" rule needs.  Breakeven trades are counted
in the samples as non-wins.

Score (0-10, clamped)
    4 * min(1, drop / 0.5)           win-rate drop after a loss
  + 3 * min(1, growth)               loss-size growth after a loss
  + 3 * min(1, excess / 0.5)         extra chance of chaining losses

Usage::

    analyzer = TiltAnalyzer(TiltConfig())
    stats = analyzer.analyze(pairs)
    print(stats.tilt_category, stats.recommended_streak)
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from typing import Any

from journal_analytics.core.config import TiltConfig

from .record import PairedTrade
from .stats import chronological, mean, safe_div

logger = logging.getLogger(__name__)

MAX_DROP = 0.5
WIN_DROP_WEIGHT = 4.0
LOSS_GROWTH_WEIGHT = 3.0
LOSS_CHAIN_WEIGHT = 3.0

LOW_TILT = "Low Tilt"
MODERATE_TILT = "Moderate Tilt"
HIGH_TILT = "High Tilt"
INSUFFICIENT_DATA = "Insufficient Data"


@dataclass(frozen=True)
class StreakStats:
    k: int
    sample_size: int
    win_rate_after_k_losses: float
    avg_pnl_after_k_losses: float
    is_reliable: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "k": self.k,
            "sample_size": self.sample_size,
            "win_rate_after_k_losses": self.win_rate_after_k_losses,
            "avg_pnl_after_k_losses": self.avg_pnl_after_k_losses,
            "is_reliable": self.is_reliable,
        }


@dataclass(frozen=True)
class TiltStats:
    total_trades: int = 0
    baseline_win_rate: float = 0.0
    baseline_loss_rate: float = 0.0
    win_rate_after_loss: float = 0.0
    win_rate_after_win: float = 0.0
    win_rate_after_2_losses: float = 0.0
    avg_loss_normally: float = 0.0
    avg_loss_after_loss: float = 0.0
    prob_loss_after_loss: float = 0.0
    tilt_score: float = 0.0
    tilt_category: str = INSUFFICIENT_DATA
    recommended_streak: int | None = None
    streak_stats: list[StreakStats] = field(default_factory=list)
    coaching_lines: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_trades": self.total_trades,
            "baseline_win_rate": self.baseline_win_rate,
            "baseline_loss_rate": self.baseline_loss_rate,
            "win_rate_after_loss": self.win_rate_after_loss,
            "win_rate_after_win": self.win_rate_after_win,
            "win_rate_after_2_losses": self.win_rate_after_2_losses,
            "avg_loss_normally": self.avg_loss_normally,
            "avg_loss_after_loss": self.avg_loss_after_loss,
            "prob_loss_after_loss": self.prob_loss_after_loss,
            "tilt_score": self.tilt_score,
            "tilt_category": self.tilt_category,
            "recommended_streak": self.recommended_streak,
            "streak_stats": [s.to_dict() for s in self.streak_stats],
            "coaching_lines": list(self.coaching_lines),
        }


def after_losses(pnls: Sequence[float], k: int) -> list[float]:
    """P&L of every trade whose k immediate predecessors were all losses."""
    return [
        pnls[i]
        for i in range(k, len(pnls))
        if all(p < 0 for p in pnls[i - k:i])
    ]


def after_win(pnls: Sequence[float]) -> list[float]:
    return [pnls[i] for i in range(1, len(pnls)) if pnls[i - 1] > 0]


def _win_rate(sample: Sequence[float]) -> float:
    return safe_div(sum(1 for p in sample if p > 0), len(sample))


class TiltAnalyzer:
    """Conditional streak statistics and a composite tilt score."""

    def __init__(self, config: TiltConfig | None = None) -> None:
        self._config = config or TiltConfig()

    def analyze(self, pairs: Sequence[PairedTrade]) -> TiltStats:
        cfg = self._config
        pnls = [float(p.net_pnl) for p in chronological(pairs)]
        n = len(pnls)

        losses = [p for p in pnls if p < 0]
        baseline = _win_rate(pnls)
        baseline_loss_rate = safe_div(len(losses), n)
        avg_loss_normally = mean(losses)

        streak_stats = [self._streak(pnls, k) for k in range(1, cfg.max_streak + 1)]

        after_one = after_losses(pnls, 1)
        after_two = after_losses(pnls, 2)
        after_w = after_win(pnls)
        losses_after_loss = [p for p in after_one if p < 0]

        win_rate_after_loss = _win_rate(after_one) if after_one else baseline
        win_rate_after_2 = _win_rate(after_two) if after_two else baseline
        win_rate_after_w = _win_rate(after_w) if after_w else baseline
        avg_loss_after_loss = mean(losses_after_loss) if losses_after_loss else avg_loss_normally
        prob_loss_after_loss = safe_div(len(losses_after_loss), len(after_one))

        if n < cfg.min_history:
            logger.debug("Tilt: %d trades, below history minimum %d", n, cfg.min_history)
            return TiltStats(
                total_trades=n,
                baseline_win_rate=baseline,
                baseline_loss_rate=baseline_loss_rate,
                win_rate_after_loss=win_rate_after_loss,
                win_rate_after_win=win_rate_after_w,
                win_rate_after_2_losses=win_rate_after_2,
                avg_loss_normally=avg_loss_normally,
                avg_loss_after_loss=avg_loss_after_loss,
                prob_loss_after_loss=prob_loss_after_loss,
                streak_stats=streak_stats,
                coaching_lines=[
                    f"Not enough trade history to evaluate tilt yet: "
                    f"{n} of {cfg.min_history} trades needed."
                ],
            )

        score = tilt_score(
            baseline,
            win_rate_after_loss,
            avg_loss_normally,
            avg_loss_after_loss,
            prob_loss_after_loss,
            baseline_loss_rate,
        )
        recommended = self._recommended_streak(baseline, streak_stats)

        stats = TiltStats(
            total_trades=n,
            baseline_win_rate=baseline,
            baseline_loss_rate=baseline_loss_rate,
            win_rate_after_loss=win_rate_after_loss,
            win_rate_after_win=win_rate_after_w,
            win_rate_after_2_losses=win_rate_after_2,
            avg_loss_normally=avg_loss_normally,
            avg_loss_after_loss=avg_loss_after_loss,
            prob_loss_after_loss=prob_loss_after_loss,
            tilt_score=score,
            tilt_category=tilt_category(score),
            recommended_streak=recommended,
            streak_stats=streak_stats,
        )
        return replace(stats, coaching_lines=coaching_lines(stats))

    def _streak(self, pnls: Sequence[float], k: int) -> StreakStats:
        sample = after_losses(pnls, k)
        return StreakStats(
            k=k,
            sample_size=len(sample),
            win_rate_after_k_losses=_win_rate(sample),
            avg_pnl_after_k_losses=mean(sample),
            is_reliable=len(sample) >= self._config.min_sample_size,
        )

    def _recommended_streak(self, baseline: float, streak_stats: Sequence[StreakStats]) -> int | None:
        for stat in streak_stats:
            if not stat.is_reliable:
                continue
            drop = baseline - stat.win_rate_after_k_losses
            if drop >= self._config.win_drop_threshold and stat.avg_pnl_after_k_losses < 0:
                return stat.k
        return None


def tilt_score(
    baseline_win_rate: float,
    win_rate_after_loss: float,
    avg_loss_normally: float,
    avg_loss_after_loss: float,
    prob_loss_after_loss: float,
    baseline_loss_rate: float,
) -> float:
    drop = max(0.0, baseline_win_rate - win_rate_after_loss)
    drop_part = WIN_DROP_WEIGHT * min(1.0, drop / MAX_DROP)

    growth_part = 0.0
    if avg_loss_normally < 0:
        growth = max(0.0, abs(avg_loss_after_loss) / abs(avg_loss_normally) - 1.0)
        growth_part = LOSS_GROWTH_WEIGHT * min(1.0, growth)

    excess = max(0.0, prob_loss_after_loss - baseline_loss_rate)
    chain_part = LOSS_CHAIN_WEIGHT * min(1.0, excess / MAX_DROP)

    return min(10.0, max(0.0, drop_part + growth_part + chain_part))


def tilt_category(score: float) -> str:
    if score <= 3.0:
        return LOW_TILT
    if score <= 7.0:
        return MODERATE_TILT
    return HIGH_TILT


def coaching_lines(stats: TiltStats) -> list[str]:
    base = stats.baseline_win_rate * 100
    after = stats.win_rate_after_loss * 100
    lines: list[str] = []

    if stats.tilt_category == LOW_TILT:
        lines.append("Your results after a losing trade are close to your baseline; no strong sign of tilt.")
        lines.append(f"You win {base:.1f}% overall and {after:.1f}% right after a loss.")
    elif stats.tilt_category == MODERATE_TILT:
        lines.append("Your performance degrades after losing trades, but not severely.")
        lines.append(
            f"Win rate drops from {base:.1f}% to {after:.1f}% after a loss; "
            f"another loss follows a loss {stats.prob_loss_after_loss * 100:.1f}% of the time."
        )
    else:
        lines.append("Your trading shows strong signs of tilt after losses.")
        lines.append(
            f"Win rate falls from {base:.1f}% to {after:.1f}% after a loss "
            f"and to {stats.win_rate_after_2_losses * 100:.1f}% after two in a row."
        )

    if stats.avg_loss_normally < 0 and abs(stats.avg_loss_after_loss) > abs(stats.avg_loss_normally):
        lines.append(
            f"Losses grow after losing: {abs(stats.avg_loss_after_loss):.2f} on average "
            f"versus {abs(stats.avg_loss_normally):.2f} normally."
        )

    if stats.recommended_streak is not None:
        lines.append(f"Consider stopping for the day after {stats.recommended_streak} consecutive losing trades.")
    elif stats.tilt_category != LOW_TILT:
        lines.append("No streak length stands out as a clear cutoff; a daily loss cap is the safer rule.")

    return lines

"""Portfolio-level performance metrics over a set of paired trades.

The aggregator is a pure function of its inputs: the date-filtered pair
set for every regular field, plus a separate pair set for the
``strategy_*`` fields.  Which set feeds the strategy fields is decided
by the caller (see ``analytics.strategy_metrics_scope``).

Sentinels
---------
* ``profit_factor`` / ``risk_reward_ratio``: 0.0 when there are no
  winners, ``None`` when there are winners but no losers.
* ``average_loss`` / ``largest_loss``: negative (0.0 when no losers).
* ``sharpe_ratio``: mean / sample stdev of daily net P&L, 0.0 with fewer
  than two trading days or zero dispersion.  Not annualised.
"""

from __future__ import annotations

import logging
import statistics
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
from datetime import date, timezone, tzinfo
from decimal import Decimal

from journal_analytics.core.enums import TradeOutcome

from .record import PairedTrade
from .stats import (
    chronological,
    daily_net_pnl,
    max_drawdown,
    mean,
    ratio_or_none,
    safe_div,
    streaks,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SymbolCount:
    symbol: str
    count: int
    profit_loss: float


@dataclass(frozen=True)
class Metrics:
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    breakeven_trades: int = 0
    win_rate: float = 0.0
    average_profit: float = 0.0
    average_loss: float = 0.0
    largest_win: float = 0.0
    largest_loss: float = 0.0
    total_volume: float = 0.0
    total_pnl: float = 0.0
    net_profit: float = 0.0
    total_fees: float = 0.0
    average_trade: float = 0.0
    expectancy: float = 0.0
    profit_factor: float | None = 0.0
    risk_reward_ratio: float | None = 0.0
    max_drawdown: float = 0.0
    sharpe_ratio: float = 0.0
    trades_per_day: float = 0.0
    best_day: float = 0.0
    worst_day: float = 0.0
    best_day_date: str | None = None
    worst_day_date: str | None = None
    consecutive_wins: int = 0
    consecutive_losses: int = 0
    current_win_streak: int = 0
    current_loss_streak: int = 0
    average_holding_time_seconds: float = 0.0
    average_gain_pct: float = 0.0
    average_loss_pct: float = 0.0
    largest_win_pct: float = 0.0
    largest_loss_pct: float = 0.0
    strategy_win_rate: float = 0.0
    strategy_winning_trades: int = 0
    strategy_losing_trades: int = 0
    strategy_profit_loss: float = 0.0
    strategy_consecutive_wins: int = 0
    strategy_consecutive_losses: int = 0
    trades_by_symbol: list[SymbolCount] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


class MetricsAggregator:
    """Computes :class:`Metrics` from paired trades.

    Parameters
    ----------
    tz : tzinfo
        Timezone defining trading-day boundaries for the daily series.
    """

    def __init__(self, tz: tzinfo = timezone.utc) -> None:
        self._tz = tz

    def compute(
        self,
        pairs: Sequence[PairedTrade],
        strategy_pairs: Sequence[PairedTrade] | None = None,
    ) -> Metrics:
        """Aggregate *pairs*; ``strategy_*`` fields come from *strategy_pairs*.

        When *strategy_pairs* is ``None`` the strategy fields use *pairs*.
        """
        strategy_fields = self._strategy_fields(
            pairs if strategy_pairs is None else strategy_pairs
        )
        if not pairs:
            return Metrics(**strategy_fields)

        ordered = chronological(pairs)
        nets = [float(p.net_pnl) for p in ordered]
        wins = [float(p.net_pnl) for p in ordered if p.outcome is TradeOutcome.WIN]
        losses = [float(p.net_pnl) for p in ordered if p.outcome is TradeOutcome.LOSS]
        n = len(ordered)

        gross_profit = sum((p.net_pnl for p in ordered if p.net_pnl > 0), Decimal("0"))
        gross_loss = sum((p.net_pnl for p in ordered if p.net_pnl < 0), Decimal("0"))
        net_profit = sum((p.net_pnl for p in ordered), Decimal("0"))

        win_rate = len(wins) / n
        average_profit = mean(wins)
        average_loss = mean(losses)

        longest_win, longest_loss, current_win, current_loss = streaks(p.outcome for p in ordered)

        daily = daily_net_pnl(ordered, self._tz)
        best_day, best_date = self._extreme_day(daily, best=True)
        worst_day, worst_date = self._extreme_day(daily, best=False)

        win_pcts = [p.return_pct for p in ordered if p.outcome is TradeOutcome.WIN and p.entry_price > 0]
        loss_pcts = [p.return_pct for p in ordered if p.outcome is TradeOutcome.LOSS and p.entry_price > 0]

        metrics = Metrics(
            total_trades=n,
            winning_trades=len(wins),
            losing_trades=len(losses),
            breakeven_trades=n - len(wins) - len(losses),
            win_rate=win_rate,
            average_profit=average_profit,
            average_loss=average_loss,
            largest_win=max(wins, default=0.0),
            largest_loss=min(losses, default=0.0),
            total_volume=float(sum((p.entry_notional for p in ordered), Decimal("0"))),
            total_pnl=float(sum((p.gross_pnl for p in ordered), Decimal("0"))),
            net_profit=float(net_profit),
            total_fees=float(sum((p.total_fees for p in ordered), Decimal("0"))),
            average_trade=float(net_profit) / n,
            expectancy=win_rate * average_profit + (1 - win_rate) * average_loss,
            profit_factor=ratio_or_none(float(gross_profit), abs(float(gross_loss))),
            risk_reward_ratio=ratio_or_none(average_profit, abs(average_loss)),
            max_drawdown=max_drawdown(nets),
            sharpe_ratio=self._sharpe([float(v) for v in daily.values()]),
            trades_per_day=safe_div(n, len(daily)),
            best_day=best_day,
            worst_day=worst_day,
            best_day_date=best_date,
            worst_day_date=worst_date,
            consecutive_wins=longest_win,
            consecutive_losses=longest_loss,
            current_win_streak=current_win,
            current_loss_streak=current_loss,
            average_holding_time_seconds=mean([max(0.0, p.hold_duration_seconds) for p in ordered]),
            average_gain_pct=mean(win_pcts),
            average_loss_pct=mean(loss_pcts),
            largest_win_pct=max(win_pcts, default=0.0),
            largest_loss_pct=min(loss_pcts, default=0.0),
            trades_by_symbol=self._by_symbol(ordered),
            **strategy_fields,
        )
        logger.debug("Metrics over %d pairs: net=%.2f", n, metrics.net_profit)
        return metrics

    # ------------------------------------------------------------------ #
    # Internals                                                            #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _sharpe(daily: list[float]) -> float:
        if len(daily) < 2:
            return 0.0
        stdev = statistics.stdev(daily)
        if stdev == 0:
            return 0.0
        return statistics.mean(daily) / stdev

    @staticmethod
    def _extreme_day(daily: dict[date, Decimal], *, best: bool) -> tuple[float, str | None]:
        if not daily:
            return 0.0, None
        pick = max if best else min
        day = pick(daily, key=lambda d: daily[d])
        return float(daily[day]), day.isoformat()

    @staticmethod
    def _by_symbol(pairs: Sequence[PairedTrade]) -> list[SymbolCount]:
        counts: dict[str, int] = defaultdict(int)
        totals: dict[str, Decimal] = defaultdict(Decimal)
        for pair in pairs:
            counts[pair.symbol] += 1
            totals[pair.symbol] += pair.net_pnl
        rows = [SymbolCount(symbol=s, count=counts[s], profit_loss=float(totals[s])) for s in counts]
        rows.sort(key=lambda r: (-r.count, r.symbol))
        return rows

    @staticmethod
    def _strategy_fields(pairs: Sequence[PairedTrade]) -> dict:
        tagged = chronological(p for p in pairs if p.strategy_id is not None)
        wins = sum(1 for p in tagged if p.outcome is TradeOutcome.WIN)
        losses = sum(1 for p in tagged if p.outcome is TradeOutcome.LOSS)
        longest_win, longest_loss, _, _ = streaks(p.outcome for p in tagged)
        return {
            "strategy_win_rate": safe_div(wins, wins + losses),
            "strategy_winning_trades": wins,
            "strategy_losing_trades": losses,
            "strategy_profit_loss": float(sum((p.net_pnl for p in tagged), Decimal("0"))),
            "strategy_consecutive_wins": longest_win,
            "strategy_consecutive_losses": longest_loss,
        }

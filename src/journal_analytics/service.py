"""Analytics service: the named operations the presentation layer calls.

Each operation validates its parameters, reads exactly one store
snapshot, runs the lot matcher over it and hands the pair set to the
relevant analyzer.  The service keeps no mutable state of its own, so
one instance can serve concurrent requests.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from journal_analytics.core.config import Settings
from journal_analytics.core.enums import StrategyMetricsScope
from journal_analytics.core.models import Execution, Strategy
from journal_analytics.core.query import (
    AnalyticsQuery,
    build_query,
    validate_concentration_percent,
    validate_limit,
)
from journal_analytics.journal.distribution import DistributionAnalyzer, DistributionReport
from journal_analytics.journal.equity import DailyPnl, EquityCurve, EquityCurveAnalyzer
from journal_analytics.journal.export import PairExporter
from journal_analytics.journal.matcher import LotMatcher
from journal_analytics.journal.metrics import Metrics, MetricsAggregator
from journal_analytics.journal.record import OpenLot, PairedTrade
from journal_analytics.journal.reports import (
    RecentTrade,
    StrategyPerformance,
    SymbolPnl,
    pairs_for_strategy,
    recent_trades,
    strategy_performance,
    symbol_pnl,
)
from journal_analytics.journal.segmentation import EvaluationMetrics, SegmentationAnalyzer
from journal_analytics.journal.tilt import TiltAnalyzer, TiltStats
from journal_analytics.observability.logger import get_request_id, new_request_id, set_request_id
from journal_analytics.storage.base import TradeSnapshot, TradeStore
from journal_analytics.storage.csv_import import CsvImporter, ImportResult

logger = logging.getLogger(__name__)

DateArg = str | date | datetime | None


@dataclass(frozen=True)
class _Matched:
    """One snapshot matched under one pairing method."""

    snapshot: TradeSnapshot
    query: AnalyticsQuery
    all_pairs: list[PairedTrade]
    open_lots: list[OpenLot]

    @property
    def pairs(self) -> list[PairedTrade]:
        """Pairs whose exit falls inside the query window."""
        if not self.query.is_bounded:
            return self.all_pairs
        return [p for p in self.all_pairs if self.query.contains(p.exit_timestamp)]


class AnalyticsService:
    """Entry point for every analytics, import and strategy operation.

    Args:
        store: Trade store to read snapshots from and write imports to.
        settings: Application settings; defaults are used when omitted.
    """

    def __init__(self, store: TradeStore, settings: Settings | None = None) -> None:
        self._store = store
        self._settings = settings or Settings()
        tz = self._settings.analytics.tzinfo
        self._matcher = LotMatcher(self._settings.matching.option_multiplier)
        self._metrics = MetricsAggregator(tz)
        self._segmentation = SegmentationAnalyzer(tz)
        self._distribution = DistributionAnalyzer(self._settings.analytics.histogram_bins)
        self._tilt = TiltAnalyzer(self._settings.tilt)
        self._equity = EquityCurveAnalyzer(tz)
        self._importer = CsvImporter()
        self._exporter = PairExporter()

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def store(self) -> TradeStore:
        return self._store

    # ------------------------------------------------------------------ #
    # Analytics                                                            #
    # ------------------------------------------------------------------ #

    def compute_metrics(
        self,
        pairing_method: str | None = None,
        start_date: DateArg = None,
        end_date: DateArg = None,
    ) -> Metrics:
        with self._operation("compute_metrics"):
            matched = self._match(pairing_method, start_date, end_date)
            pairs = matched.pairs
            scope = self._settings.analytics.strategy_metrics_scope
            strategy_pairs = matched.all_pairs if scope is StrategyMetricsScope.UNFILTERED else pairs
            self._log("compute_metrics", matched, len(pairs))
            return self._metrics.compute(pairs, strategy_pairs=strategy_pairs)

    def compute_symbol_pnl(
        self,
        pairing_method: str | None = None,
        start_date: DateArg = None,
        end_date: DateArg = None,
    ) -> list[SymbolPnl]:
        with self._operation("compute_symbol_pnl"):
            matched = self._match(pairing_method, start_date, end_date)
            pairs = matched.pairs
            self._log("compute_symbol_pnl", matched, len(pairs))
            return symbol_pnl(pairs, matched.open_lots)

    def compute_strategy_performance(
        self,
        pairing_method: str | None = None,
        start_date: DateArg = None,
        end_date: DateArg = None,
    ) -> list[StrategyPerformance]:
        with self._operation("compute_strategy_performance"):
            matched = self._match(pairing_method, start_date, end_date)
            pairs = matched.pairs
            self._log("compute_strategy_performance", matched, len(pairs))
            return strategy_performance(pairs, matched.snapshot.strategy_names)

    def compute_recent_trades(
        self,
        limit: int | None = None,
        pairing_method: str | None = None,
        start_date: DateArg = None,
        end_date: DateArg = None,
    ) -> list[RecentTrade]:
        with self._operation("compute_recent_trades"):
            n = validate_limit(limit, self._settings.analytics.default_recent_limit)
            matched = self._match(pairing_method, start_date, end_date)
            pairs = matched.pairs
            self._log("compute_recent_trades", matched, len(pairs))
            return recent_trades(pairs, n, matched.snapshot.strategy_names)

    def compute_evaluation_metrics(
        self,
        pairing_method: str | None = None,
        start_date: DateArg = None,
        end_date: DateArg = None,
    ) -> EvaluationMetrics:
        with self._operation("compute_evaluation_metrics"):
            matched = self._match(pairing_method, start_date, end_date)
            pairs = matched.pairs
            self._log("compute_evaluation_metrics", matched, len(pairs))
            return self._segmentation.analyze(pairs, matched.snapshot.strategy_names)

    def compute_distribution_concentration(
        self,
        pairing_method: str | None = None,
        start_date: DateArg = None,
        end_date: DateArg = None,
        concentration_percent: float | None = None,
    ) -> DistributionReport:
        with self._operation("compute_distribution_concentration"):
            pct = validate_concentration_percent(
                concentration_percent, self._settings.analytics.default_concentration_percent,
            )
            matched = self._match(pairing_method, start_date, end_date)
            pairs = matched.pairs
            self._log("compute_distribution_concentration", matched, len(pairs))
            return self._distribution.analyze(pairs, pct)

    def compute_tilt_metric(
        self,
        pairing_method: str | None = None,
        start_date: DateArg = None,
        end_date: DateArg = None,
    ) -> TiltStats:
        with self._operation("compute_tilt_metric"):
            matched = self._match(pairing_method, start_date, end_date)
            pairs = matched.pairs
            self._log("compute_tilt_metric", matched, len(pairs))
            return self._tilt.analyze(pairs)

    def compute_daily_pnl(
        self,
        pairing_method: str | None = None,
        start_date: DateArg = None,
        end_date: DateArg = None,
    ) -> list[DailyPnl]:
        with self._operation("compute_daily_pnl"):
            matched = self._match(pairing_method, start_date, end_date)
            pairs = matched.pairs
            self._log("compute_daily_pnl", matched, len(pairs))
            return self._equity.daily_pnl(pairs)

    def compute_equity_curve(
        self,
        pairing_method: str | None = None,
        start_date: DateArg = None,
        end_date: DateArg = None,
    ) -> EquityCurve:
        with self._operation("compute_equity_curve"):
            matched = self._match(pairing_method, start_date, end_date)
            pairs = matched.pairs
            self._log("compute_equity_curve", matched, len(pairs))
            return self._equity.equity_curve(pairs)

    def get_open_positions(self, pairing_method: str | None = None) -> list[OpenLot]:
        with self._operation("get_open_positions"):
            matched = self._match(pairing_method)
            self._log("get_open_positions", matched, len(matched.all_pairs))
            return matched.open_lots

    def get_paired_trades_by_strategy(
        self,
        strategy_id: int | None,
        pairing_method: str | None = None,
        start_date: DateArg = None,
        end_date: DateArg = None,
    ) -> list[PairedTrade]:
        """Pairs attributed to *strategy_id*; ``None`` selects unassigned pairs."""
        with self._operation("get_paired_trades_by_strategy"):
            matched = self._match(pairing_method, start_date, end_date)
            selected = pairs_for_strategy(matched.pairs, strategy_id)
            self._log("get_paired_trades_by_strategy", matched, len(selected))
            return selected

    def export_paired_trades(
        self,
        fmt: str = "csv",
        pairing_method: str | None = None,
        start_date: DateArg = None,
        end_date: DateArg = None,
    ) -> str:
        with self._operation("export_paired_trades"):
            matched = self._match(pairing_method, start_date, end_date)
            pairs = matched.pairs
            names = matched.snapshot.strategy_names
            self._log("export_paired_trades", matched, len(pairs))
            if fmt.lower() == "json":
                return self._exporter.to_json(pairs, strategy_names=names)
            return self._exporter.to_csv(pairs, strategy_names=names)

    # ------------------------------------------------------------------ #
    # Writes                                                               #
    # ------------------------------------------------------------------ #

    def import_trades_csv(self, text: str) -> ImportResult:
        """Validate and import CSV *text*; nothing is written on error.

        Raises:
            CsvImportError: one or more rows failed validation.
        """
        with self._operation("import_trades_csv"):
            return self._importer.import_into(self._store, text)

    def clear_all_trades(self) -> int:
        with self._operation("clear_all_trades"):
            removed = self._store.clear()
            logger.info("Cleared %d executions", removed)
            return removed

    def create_strategy(
        self,
        name: str,
        description: str | None = None,
        color: str | None = None,
    ) -> Strategy:
        with self._operation("create_strategy"):
            strategy = self._store.create_strategy(name, description, color)
            logger.info("Created strategy %d (%s)", strategy.id, strategy.name)
            return strategy

    def assign_trade_strategy(self, execution_id: int, strategy_id: int | None) -> Execution:
        with self._operation("assign_trade_strategy"):
            return self._store.assign_strategy(execution_id, strategy_id)

    # ------------------------------------------------------------------ #
    # Internals                                                            #
    # ------------------------------------------------------------------ #

    @contextmanager
    def _operation(self, name: str) -> Iterator[str]:
        """Bind a request id for the duration of one operation.

        An id already set by the caller (e.g. the HTTP middleware) is kept.
        """
        outer = get_request_id()
        rid = outer or new_request_id()
        try:
            yield rid
        finally:
            if not outer:
                set_request_id("")

    def _match(
        self,
        pairing_method: str | None,
        start_date: DateArg = None,
        end_date: DateArg = None,
    ) -> _Matched:
        query = build_query(
            pairing_method,
            start_date,
            end_date,
            default_method=self._settings.matching.default_pairing_method,
            tz=self._settings.analytics.tzinfo,
        )
        snapshot = self._store.snapshot()
        result = self._matcher.match(snapshot.executions, query.pairing_method)
        return _Matched(
            snapshot=snapshot,
            query=query,
            all_pairs=result.pairs,
            open_lots=result.open_lots,
        )

    @staticmethod
    def _log(operation: str, matched: _Matched, pair_count: int) -> None:
        logger.debug(
            "%s method=%s pairs=%d snapshot_version=%d",
            operation,
            matched.query.pairing_method.value,
            pair_count,
            matched.snapshot.version,
        )


def render(value: Any) -> Any:
    """Convert an operation result into JSON-ready data."""
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, (list, tuple)):
        return [render(v) for v in value]
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    return value

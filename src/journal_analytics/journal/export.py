"""Paired-trade export: CSV and JSON output for external analysis.

Usage::

    exporter = PairExporter()
    csv_str = exporter.to_csv(pairs)
    json_str = exporter.to_json(pairs, strategy_names={1: "Breakout"})
"""

from __future__ import annotations

import csv
import io
import json
import logging
from collections.abc import Mapping, Sequence
from typing import Any

from .record import PairedTrade
from .segmentation import strategy_name

logger = logging.getLogger(__name__)

# Default CSV columns
_CSV_COLUMNS = [
    "symbol",
    "direction",
    "outcome",
    "entry_execution_id",
    "exit_execution_id",
    "quantity",
    "entry_price",
    "exit_price",
    "entry_timestamp",
    "exit_timestamp",
    "hold_duration_seconds",
    "entry_fees",
    "exit_fees",
    "gross_pnl",
    "net_pnl",
    "return_pct",
    "strategy_id",
    "strategy_name",
]


class PairExporter:
    """Export paired trades to CSV/JSON.

    Parameters
    ----------
    decimal_places : int
        Rounding precision for money and price fields.  Default 4.
    """

    def __init__(self, *, decimal_places: int = 4) -> None:
        self._dp = decimal_places

    def to_csv(
        self,
        pairs: Sequence[PairedTrade],
        *,
        strategy_names: Mapping[int, str] | None = None,
        columns: list[str] | None = None,
    ) -> str:
        """Export pairs as a CSV string with a header row."""
        cols = columns or _CSV_COLUMNS
        names = strategy_names or {}
        buf = io.StringIO()
        writer = csv.DictWriter(buf, fieldnames=cols, extrasaction="ignore")
        writer.writeheader()

        for pair in pairs:
            row = self._pair_to_row(pair, names)
            writer.writerow({c: row.get(c, "") for c in cols})

        logger.debug("Exported %d pairs as CSV", len(pairs))
        return buf.getvalue()

    def to_json(
        self,
        pairs: Sequence[PairedTrade],
        *,
        strategy_names: Mapping[int, str] | None = None,
        indent: int = 2,
    ) -> str:
        """Export pairs as a JSON list of objects."""
        names = strategy_names or {}
        rows = [self._pair_to_row(p, names) for p in pairs]
        return json.dumps(rows, indent=indent, default=str)

    def _pair_to_row(self, pair: PairedTrade, names: Mapping[int, str]) -> dict[str, Any]:
        dp = self._dp
        return {
            "symbol": pair.symbol,
            "direction": pair.direction,
            "outcome": pair.outcome.value,
            "entry_execution_id": pair.entry_execution_id,
            "exit_execution_id": pair.exit_execution_id,
            "quantity": float(pair.quantity),
            "entry_price": round(float(pair.entry_price), dp),
            "exit_price": round(float(pair.exit_price), dp),
            "entry_timestamp": pair.entry_timestamp.isoformat(),
            "exit_timestamp": pair.exit_timestamp.isoformat(),
            "hold_duration_seconds": round(pair.hold_duration_seconds, 1),
            "entry_fees": round(float(pair.entry_fees), dp),
            "exit_fees": round(float(pair.exit_fees), dp),
            "gross_pnl": round(float(pair.gross_pnl), dp),
            "net_pnl": round(float(pair.net_pnl), dp),
            "return_pct": round(pair.return_pct, dp),
            "strategy_id": pair.strategy_id,
            "strategy_name": strategy_name(pair.strategy_id, names),
        }

"""CSV import of broker executions.

Two layouts are understood:

generic
    ``symbol, side, quantity, price, timestamp`` plus optional
    ``order_type, status, fees, notes, strategy_id``.  ISO-8601
    timestamps; naive values are taken as UTC.
webull
    Webull order-history export, detected by its ``Filled`` /
    ``Placed Time`` / ``Filled Time`` headers.  Times are US/Eastern
    (``MM/DD/YYYY HH:MM:SS EST``), prices may carry an ``@`` prefix.

Import is all-or-nothing: every row is validated first and any error
aborts the whole file with a :class:`CsvImportError` listing the
problems by line number.  Rows that duplicate a stored execution (or an
earlier row of the same file) are skipped, as are unfilled orders.
"""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from journal_analytics.core.errors import CsvImportError
from journal_analytics.core.models import NewExecution

from .base import TradeStore

logger = logging.getLogger(__name__)

WEBULL_MARKERS = {"Filled", "Placed Time", "Filled Time"}
WEBULL_FEE_COLUMNS = ("Commission", "Fees", "Fee", "Total Fees")
WEBULL_TZ = ZoneInfo("America/New_York")
GENERIC_REQUIRED = ("symbol", "side", "quantity", "price", "timestamp")
FILLED_STATUSES = {"FILLED", ""}


class _SkipRow(Exception):
    """Row is valid but intentionally not imported."""


@dataclass
class ImportResult:
    imported: int = 0
    skipped_duplicates: int = 0
    skipped_unfilled: int = 0
    execution_ids: list[int] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "imported": self.imported,
            "skipped_duplicates": self.skipped_duplicates,
            "skipped_unfilled": self.skipped_unfilled,
            "execution_ids": list(self.execution_ids),
        }


@dataclass
class ParsedCsv:
    rows: list[NewExecution] = field(default_factory=list)
    skipped_duplicates: int = 0
    skipped_unfilled: int = 0


def is_webull(headers: list[str]) -> bool:
    return any(h.strip() in WEBULL_MARKERS for h in headers)


def parse_decimal(raw: str | None, column: str) -> Decimal:
    text = (raw or "").strip().lstrip("@").replace("$", "").replace(",", "").strip()
    try:
        return Decimal(text)
    except InvalidOperation:
        raise ValueError(f"invalid {column} {raw!r}") from None


def parse_webull_time(raw: str) -> datetime:
    """``12/18/2025 13:25:11 EST`` -> aware US/Eastern datetime."""
    parts = raw.split()
    if len(parts) < 2:
        raise ValueError(f"invalid time {raw!r}")
    try:
        naive = datetime.strptime(f"{parts[0]} {parts[1]}", "%m/%d/%Y %H:%M:%S")
    except ValueError:
        raise ValueError(f"invalid time {raw!r}") from None
    return naive.replace(tzinfo=WEBULL_TZ)


def parse_iso_time(raw: str) -> datetime:
    try:
        return datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    except ValueError:
        raise ValueError(f"invalid timestamp {raw!r}") from None


class CsvImporter:
    """Parses CSV text into executions and writes them to a store."""

    def parse(self, text: str, existing_keys: set[tuple] | None = None) -> ParsedCsv:
        """Validate *text* completely.

        Raises:
            CsvImportError: if any row is malformed.  Nothing is returned
                in that case, so the caller writes nothing.
        """
        reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
        headers = [h.strip() for h in (reader.fieldnames or [])]
        webull = is_webull(headers)
        if not webull:
            missing = [c for c in GENERIC_REQUIRED if c not in headers]
            if missing:
                raise CsvImportError([f"missing column(s): {', '.join(missing)}"])

        seen = set(existing_keys or ())
        parsed = ParsedCsv()
        errors: list[str] = []

        for line_no, raw in enumerate(reader, start=2):
            row = {(k or "").strip(): (v or "").strip() for k, v in raw.items() if k is not None}
            try:
                execution = self._webull_row(row) if webull else self._generic_row(row)
            except _SkipRow:
                parsed.skipped_unfilled += 1
                logger.debug("Line %d: skipped unfilled order", line_no)
                continue
            except ValidationError as exc:
                detail = "; ".join(
                    f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors()
                )
                errors.append(f"line {line_no}: {detail}")
                continue
            except ValueError as exc:
                errors.append(f"line {line_no}: {exc}")
                continue

            if execution.dedupe_key in seen:
                parsed.skipped_duplicates += 1
                logger.debug("Line %d: skipped duplicate %s", line_no, execution.symbol)
                continue
            seen.add(execution.dedupe_key)
            parsed.rows.append(execution)

        if errors:
            raise CsvImportError(errors)
        return parsed

    def import_into(self, store: TradeStore, text: str) -> ImportResult:
        """Parse *text* and write the accepted rows in one store transaction."""
        parsed = self.parse(text, store.snapshot().dedupe_keys)
        added = store.add_executions(parsed.rows) if parsed.rows else []
        result = ImportResult(
            imported=len(added),
            skipped_duplicates=parsed.skipped_duplicates,
            skipped_unfilled=parsed.skipped_unfilled,
            execution_ids=[e.id for e in added],
        )
        logger.info(
            "Imported %d executions (%d duplicates, %d unfilled skipped)",
            result.imported, result.skipped_duplicates, result.skipped_unfilled,
        )
        return result

    # ------------------------------------------------------------------ #
    # Row parsers                                                          #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _generic_row(row: dict[str, str]) -> NewExecution:
        status = row.get("status", "").upper()
        if status not in FILLED_STATUSES:
            raise _SkipRow()
        strategy = row.get("strategy_id", "")
        return NewExecution(
            symbol=row.get("symbol", ""),
            side=row.get("side", ""),
            quantity=parse_decimal(row.get("quantity"), "quantity"),
            price=parse_decimal(row.get("price"), "price"),
            timestamp=parse_iso_time(row.get("timestamp", "")),
            fees=parse_decimal(row.get("fees"), "fees") if row.get("fees") else Decimal("0"),
            order_type=row.get("order_type") or "MARKET",
            status="FILLED",
            notes=row.get("notes") or None,
            strategy_id=int(strategy) if strategy else None,
        )

    @staticmethod
    def _webull_row(row: dict[str, str]) -> NewExecution:
        filled = row.get("Filled", "") or "0"
        if row.get("Status", "").lower() == "cancelled" or parse_decimal(filled, "Filled") == 0:
            raise _SkipRow()

        price_raw = row.get("Avg Price") or row.get("Price")
        time_raw = row.get("Filled Time") or row.get("Placed Time", "")
        fee_raw = next((row[c] for c in WEBULL_FEE_COLUMNS if row.get(c)), None)
        return NewExecution(
            symbol=row.get("Symbol", ""),
            side=row.get("Side", ""),
            quantity=parse_decimal(filled, "Filled"),
            price=parse_decimal(price_raw, "price"),
            timestamp=parse_webull_time(time_raw),
            fees=parse_decimal(fee_raw, "fee") if fee_raw else Decimal("0"),
            order_type=row.get("Time-in-Force") or "DAY",
            status="FILLED",
            notes=row.get("Name") or None,
        )

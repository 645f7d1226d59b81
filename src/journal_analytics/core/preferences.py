"""Versioned user preferences with migration and change notification.

Preferences live in one JSON document.  Older documents are upgraded
through a chain of registered migrations before validation, and every
successful :meth:`PreferencesStore.update` is pushed to subscribers so
views never have to poll.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from .enums import PairingMethod
from .errors import ConfigError
from .query import MAX_CONCENTRATION_PERCENT, MIN_CONCENTRATION_PERCENT

logger = logging.getLogger(__name__)

CURRENT_SCHEMA_VERSION = 2

DEFAULT_VISIBLE_METRICS = [
    "total_trades",
    "win_rate",
    "net_profit",
    "profit_factor",
    "expectancy",
    "max_drawdown",
    "sharpe_ratio",
    "average_profit",
    "average_loss",
    "consecutive_wins",
    "consecutive_losses",
]


class ColorThresholds(BaseModel):
    model_config = {"extra": "forbid"}

    positive: float = 0.0  # P&L above this renders as a gain
    negative: float = 0.0  # P&L below this renders as a loss


class Preferences(BaseModel):
    model_config = {"extra": "forbid"}

    schema_version: int = CURRENT_SCHEMA_VERSION
    visible_metrics: list[str] = Field(default_factory=lambda: list(DEFAULT_VISIBLE_METRICS))
    section_order: list[str] = Field(default_factory=list)
    color_thresholds: ColorThresholds = Field(default_factory=ColorThresholds)
    default_pairing_method: PairingMethod = PairingMethod.FIFO
    concentration_percent: float = Field(
        default=10.0, ge=MIN_CONCENTRATION_PERCENT, le=MAX_CONCENTRATION_PERCENT,
    )


Migration = Callable[[dict[str, Any]], dict[str, Any]]
Subscriber = Callable[[Preferences], None]


def _v1_to_v2(doc: dict[str, Any]) -> dict[str, Any]:
    """v1 stored ``{"metric_visibility": {name: bool}}``."""
    doc = dict(doc)
    visibility = doc.pop("metric_visibility", None) or {}
    if "visible_metrics" not in doc:
        doc["visible_metrics"] = [name for name, shown in visibility.items() if shown]
    doc["schema_version"] = 2
    return doc


# from_version -> migration producing from_version + 1
MIGRATIONS: dict[int, Migration] = {1: _v1_to_v2}


def migrate(doc: dict[str, Any]) -> dict[str, Any]:
    """Upgrade a raw preferences document to the current schema version.

    Raises:
        ConfigError: the document is from a newer schema or no migration
            path exists.
    """
    version = int(doc.get("schema_version", 1))
    if version > CURRENT_SCHEMA_VERSION:
        raise ConfigError(
            f"Preferences schema v{version} is newer than supported v{CURRENT_SCHEMA_VERSION}"
        )
    while version < CURRENT_SCHEMA_VERSION:
        step = MIGRATIONS.get(version)
        if step is None:
            raise ConfigError(f"No preferences migration from schema v{version}")
        doc = step(doc)
        logger.info("Migrated preferences from schema v%d to v%d", version, version + 1)
        version += 1
    return doc


class PreferencesStore:
    """JSON-file preferences with atomic saves and push notification.

    Args:
        path: Location of the preferences document.  A missing file
            yields default preferences.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._subscribers: list[Subscriber] = []
        self._current: Preferences | None = None
        self._error_count = 0

    @property
    def path(self) -> Path:
        return self._path

    @property
    def error_count(self) -> int:
        """Number of subscriber callbacks that raised."""
        return self._error_count

    def load(self) -> Preferences:
        with self._lock:
            self._current = self._read()
            return self._current

    def current(self) -> Preferences:
        with self._lock:
            if self._current is None:
                self._current = self._read()
            return self._current

    def save(self, prefs: Preferences) -> None:
        with self._lock:
            self._write(prefs)
            self._current = prefs

    def update(self, **changes: Any) -> Preferences:
        """Apply *changes*, validate, persist, then notify subscribers.

        Raises:
            ConfigError: the resulting document does not validate.
        """
        with self._lock:
            base = self._current if self._current is not None else self._read()
            merged = {**base.model_dump(mode="json"), **changes}
            try:
                prefs = Preferences.model_validate(merged)
            except ValidationError as exc:
                raise ConfigError(f"Invalid preferences: {exc}") from exc
            self._write(prefs)
            self._current = prefs
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback(prefs)
            except Exception:
                self._error_count += 1
                logger.exception("Preferences subscriber %r failed", callback)
        return prefs

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register *callback*; returns a function that unsubscribes it."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    # ------------------------------------------------------------------ #

    def _read(self) -> Preferences:
        if not self._path.exists():
            return Preferences()
        try:
            doc = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid preferences file {self._path}: {exc}") from exc
        if not isinstance(doc, dict):
            raise ConfigError(f"Invalid preferences file {self._path}: expected an object")
        try:
            return Preferences.model_validate(migrate(doc))
        except ValidationError as exc:
            raise ConfigError(f"Invalid preferences file {self._path}: {exc}") from exc

    def _write(self, prefs: Preferences) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self._path.parent, prefix=".prefs-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(prefs.model_dump(mode="json"), f, indent=2)
            os.replace(tmp, self._path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

"""Configuration management.

Loads from TOML config files + environment variables.
Uses pydantic-settings for validation and env var overriding.
"""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from .enums import PairingMethod, StorageBackend, StrategyMetricsScope


# ---------------------------------------------------------------------------
# Sub-configs
# ---------------------------------------------------------------------------

class MatchingConfig(BaseModel):
    default_pairing_method: PairingMethod = PairingMethod.FIFO
    option_multiplier: Decimal = Decimal("100")  # Contract size for OCC option symbols


class AnalyticsConfig(BaseModel):
    timezone: str = "UTC"  # Bucketing / trading-day boundaries
    histogram_bins: int = Field(default=20, ge=1, le=200)
    strategy_metrics_scope: StrategyMetricsScope = StrategyMetricsScope.UNFILTERED
    default_recent_limit: int = Field(default=5, ge=1)
    default_concentration_percent: float = 10.0

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone {value!r}") from exc
        return value

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


class TiltConfig(BaseModel):
    max_streak: int = Field(default=4, ge=1, le=20)
    min_sample_size: int = Field(default=10, ge=1)  # Per-k sample before trusted
    min_history: int = Field(default=10, ge=1)  # Trades before a score is given
    win_drop_threshold: float = 0.15


class StorageConfig(BaseModel):
    backend: StorageBackend = StorageBackend.MEMORY
    database_url: str = "sqlite:///data/journal.db"
    echo: bool = False


class ObservabilityConfig(BaseModel):
    log_level: str = "INFO"
    log_format: str = "console"  # "json" or "console"


# ---------------------------------------------------------------------------
# Top-level settings
# ---------------------------------------------------------------------------

class Settings(BaseSettings):
    """Top-level application settings.

    Loaded from TOML config files, overridden by environment variables.
    """

    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    analytics: AnalyticsConfig = Field(default_factory=AnalyticsConfig)
    tilt: TiltConfig = Field(default_factory=TiltConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    # Web adapter
    host: str = "127.0.0.1"
    port: int = 8765
    preferences_path: str = "data/preferences.json"

    model_config = {"env_prefix": "JOURNAL_", "env_nested_delimiter": "__"}


def load_settings(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> Settings:
    """Load settings from TOML file + env vars.

    Args:
        config_path: Path to TOML config file (optional).
        overrides: Dict of overrides to apply on top.

    Raises:
        ConfigError: If the file exists but is not valid TOML.
    """
    data: dict[str, Any] = {}

    if config_path:
        path = Path(config_path)
        if path.exists():
            import tomli

            from .errors import ConfigError

            try:
                with open(path, "rb") as f:
                    data = tomli.load(f)
            except tomli.TOMLDecodeError as exc:
                raise ConfigError(f"Invalid config file {path}: {exc}") from exc

    if overrides:
        for key, value in overrides.items():
            if isinstance(value, dict) and isinstance(data.get(key), dict):
                data[key] = {**data[key], **value}
            else:
                data[key] = value

    return Settings(**data)

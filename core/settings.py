"""
Core Module - Runtime Settings.

============================================================
RESPONSIBILITY
============================================================
Loads runtime settings for the analytics engine from the
environment (a local .env file is honoured).

Scoring constants are NOT here: they belong to the versioned
risk model configuration in risk_index.config. Everything in
this module is operational (windows, limits, connections).

============================================================
ENVIRONMENT VARIABLES
============================================================
DATABASE_URL             SQLAlchemy URL; unset falls back to local
                         SQLite, set-but-blank is an error
SIGNAL_WINDOW_DAYS       Trailing window for candidate signals
SIGNAL_CANDIDATE_LIMIT   Max candidate signals per matching run
MACRO_HALF_LIFE_DAYS     Half-life for macro link decay
RESCAN_DEDUPE_HOURS      Input-hash dedupe window
EXPOSURE_PERCENTILE      Portfolio percentile for High exposure
STALE_SCAN_DAYS          Age after which a scan is stale
LOG_LEVEL                Root log level for the CLI

============================================================
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from .exceptions import InvalidConfigError, MissingConfigError


logger = logging.getLogger(__name__)


DEFAULT_DATABASE_URL = "sqlite:///./risk_analytics.db"


def _env_int(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise InvalidConfigError(key, raw, "expected an integer") from e
    if value <= 0:
        raise InvalidConfigError(key, raw, "must be positive")
    return value


def _env_float(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise InvalidConfigError(key, raw, "expected a number") from e
    if value <= 0:
        raise InvalidConfigError(key, raw, "must be positive")
    return value


@dataclass(frozen=True)
class AnalyticsSettings:
    """
    Operational settings for the analytics engine.

    Defaults mirror production behaviour: a 30-day signal window
    capped at 200 candidates, 24h rescan dedupe, and the 80th
    purchase-price percentile for exposure labeling.
    """

    database_url: str = DEFAULT_DATABASE_URL
    signal_window_days: int = 30
    signal_candidate_limit: int = 200
    macro_half_life_days: float = 14.0
    rescan_dedupe_hours: int = 24
    exposure_percentile: float = 0.8
    stale_scan_days: int = 30
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if not 0 < self.exposure_percentile <= 1:
            raise InvalidConfigError(
                "EXPOSURE_PERCENTILE", self.exposure_percentile, "must be in (0, 1]"
            )

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "AnalyticsSettings":
        """Build settings from environment variables (after loading .env)."""
        load_dotenv(dotenv_path)

        database_url = os.getenv("DATABASE_URL")
        if database_url is None:
            logger.warning("DATABASE_URL not set, using local SQLite database")
            database_url = DEFAULT_DATABASE_URL
        elif not database_url.strip():
            # an emptied value must not silently switch to a local file
            raise MissingConfigError("DATABASE_URL", source=dotenv_path or "environment")

        return cls(
            database_url=database_url,
            signal_window_days=_env_int("SIGNAL_WINDOW_DAYS", 30),
            signal_candidate_limit=_env_int("SIGNAL_CANDIDATE_LIMIT", 200),
            macro_half_life_days=_env_float("MACRO_HALF_LIFE_DAYS", 14.0),
            rescan_dedupe_hours=_env_int("RESCAN_DEDUPE_HOURS", 24),
            exposure_percentile=_env_float("EXPOSURE_PERCENTILE", 0.8),
            stale_scan_days=_env_int("STALE_SCAN_DAYS", 30),
            log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
        )

    def to_dict(self) -> Dict[str, Any]:
        # Never expose credentials embedded in the URL
        return {
            "database": self.database_url.split("@")[-1],
            "signal_window_days": self.signal_window_days,
            "signal_candidate_limit": self.signal_candidate_limit,
            "macro_half_life_days": self.macro_half_life_days,
            "rescan_dedupe_hours": self.rescan_dedupe_hours,
            "exposure_percentile": self.exposure_percentile,
            "stale_scan_days": self.stale_scan_days,
            "log_level": self.log_level,
        }


_settings: Optional[AnalyticsSettings] = None


def get_settings() -> AnalyticsSettings:
    """Get process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = AnalyticsSettings.from_env()
    return _settings


def reset_settings() -> None:
    """Forget cached settings (used by tests)."""
    global _settings
    _settings = None

"""Centralized configuration using Pydantic Settings (v2).

This module exposes a single, cached `settings` instance that reads from:
- Real environment variables (highest precedence)
- `.env` files at the repository root: .env, .env.local

Timing values are expressed in seconds. The analytics opt-out flag is only
read here; it is up to the host (see `usagestats.cli`) to honour it by never
constructing the reporting service.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevelName = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

DEFAULT_ANALYTICS_URL = "https://analytics.pyroscope.io/api/events"


class Settings(BaseSettings):
    """Typed configuration loaded from env and `.env` files.

    Attributes
    ----------
    log_level : LogLevelName
        Global log level string; maps from `LOG_LEVEL`.
    analytics_opt_out : bool
        When true the host must not start the reporting service at all.
        Maps from `USAGESTATS_ANALYTICS_OPT_OUT`.
    analytics_url : str
        Collector endpoint receiving the JSON snapshots.
    upload_timeout : float
        Total timeout of a single upload roundtrip.
    grace_period, snapshot_frequency, upload_frequency : float
        Delay before the first report, and the persistence/upload periods.
    data_dir : Path
        Root directory of the file-backed storage.
    """

    log_level: LogLevelName = Field(default="INFO", alias="LOG_LEVEL")

    analytics_opt_out: bool = Field(default=False, alias="USAGESTATS_ANALYTICS_OPT_OUT")
    analytics_url: str = Field(default=DEFAULT_ANALYTICS_URL, alias="USAGESTATS_ANALYTICS_URL")
    upload_timeout: float = Field(default=60.0, gt=0, alias="USAGESTATS_UPLOAD_TIMEOUT")

    grace_period: float = Field(default=1.0, ge=0, alias="USAGESTATS_GRACE_PERIOD")
    snapshot_frequency: float = Field(default=5.0, gt=0, alias="USAGESTATS_SNAPSHOT_FREQUENCY")
    upload_frequency: float = Field(default=10.0, gt=0, alias="USAGESTATS_UPLOAD_FREQUENCY")

    data_dir: Path = Field(default=Path("data"), alias="USAGESTATS_DATA_DIR")

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    def log_level_numeric(self) -> int:
        """Return the numeric logging level corresponding to `self.log_level`."""
        return getattr(logging, self.log_level, logging.INFO)


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Create and cache a `Settings` instance.

    We keep this behind an LRU cache so tests can force a rebuild via
    `load_settings.cache_clear()` after mutating `os.environ`.
    """
    return Settings()


# Export a ready-to-use singleton (import-time read of env / .env files).
settings: Settings = load_settings()


def get_logger(name: str = "usagestats") -> logging.Logger:
    """Return a process-global logger configured to the current `LOG_LEVEL`."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
        )
        logger.addHandler(handler)
    logger.setLevel(load_settings().log_level_numeric())
    logger.propagate = False
    return logger

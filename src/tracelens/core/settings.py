"""Centralized application configuration using Pydantic Settings (v2).

This module exposes a single, cached `settings` instance that reads from:
- Real environment variables (highest precedence)
- `.env` files at the working directory: .env, .env.local
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevelName = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class Settings(BaseSettings):
    """Typed application configuration loaded from env and `.env` files.

    Attributes
    ----------
    log_level : LogLevelName
        Global log level string; maps from `LOG_LEVEL`.
    results_dir_name : str
        Name of the directory the test runner writes results into; searched
        for in the working directory and its parents.
    archive_name : str
        File name of the per-test trace archive inside the results directory.
    stale_after_seconds : int
        Archives older than this are flagged stale in listings and headers.
    issue_limit : int
        Maximum number of issues listed in a diagnosis report.
    key_actions_only : bool
        Keep only user-facing API calls (navigation, input, assertions)
        when building the action list.
    """

    log_level: LogLevelName = Field(default="WARNING", alias="LOG_LEVEL")
    results_dir_name: str = Field(default="test-results", alias="TRACELENS_RESULTS_DIR")
    archive_name: str = Field(default="trace.zip", alias="TRACELENS_ARCHIVE_NAME")
    stale_after_seconds: int = Field(default=600, ge=0, alias="TRACELENS_STALE_AFTER")
    issue_limit: int = Field(default=10, ge=1, alias="TRACELENS_ISSUE_LIMIT")
    key_actions_only: bool = Field(default=True, alias="TRACELENS_KEY_ACTIONS_ONLY")

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def log_level_numeric(self) -> int:
        """Return the numeric logging level corresponding to `self.log_level`."""
        return getattr(logging, self.log_level, logging.WARNING)


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Create and cache a `Settings` instance.

    We keep this behind an LRU cache so tests can force a rebuild via
    `load_settings.cache_clear()` after mutating `os.environ`.
    """
    return Settings()


# Export a ready-to-use singleton (import-time read of env / .env files).
settings: Settings = load_settings()


def get_logger(name: str = "tracelens") -> logging.Logger:
    """Return a process-global logger writing to stderr at the configured level."""
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


__all__ = ["Settings", "get_logger", "load_settings", "settings"]

"""Shared fixtures: isolated settings and an on-disk results directory."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest

from tracelens.core.settings import load_settings


@pytest.fixture(autouse=True)  # type: ignore[misc]
def _isolated_settings(monkeypatch: Any) -> Iterator[None]:
    """Run every test with defaults, whatever the developer's shell exports."""
    for var in (
        "TRACELENS_RESULTS_DIR",
        "TRACELENS_ARCHIVE_NAME",
        "TRACELENS_STALE_AFTER",
        "TRACELENS_ISSUE_LIMIT",
        "TRACELENS_KEY_ACTIONS_ONLY",
    ):
        monkeypatch.delenv(var, raising=False)
    load_settings.cache_clear()
    yield
    load_settings.cache_clear()


@pytest.fixture  # type: ignore[misc]
def results_dir(tmp_path: Path) -> Path:
    """An empty ``test-results/`` directory inside a throwaway project root."""
    path = tmp_path / "project" / "test-results"
    path.mkdir(parents=True)
    return path

"""TraceContext: the immutable, time-ordered model of one recorded test run.

Every report and the diagnostic engine read from a :class:`TraceContext`; none
of them mutate it. All collections are tuples sorted ascending by timestamp,
which the nearest-screenshot search and the time-window queries rely on.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from tracelens.core.errors import CorrelationGap

from .events import (
    BrowserEvent,
    ConsoleMessage,
    LogEntry,
    RunnerError,
    RunnerOutput,
    ScreencastFrame,
)

Verdict = Literal["passed", "failed", "unknown"]


class Action(BaseModel):
    """An action-start merged with its matching action-end.

    ``end_time`` and ``error`` stay ``None`` for an *incomplete* action, i.e.
    a call that started but never finished (a hang or a crash mid-call).
    """

    model_config = ConfigDict(frozen=True)

    call_id: str
    api_name: str
    start_time: float
    end_time: float | None = None
    params: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None

    @property
    def incomplete(self) -> bool:
        return self.end_time is None

    @property
    def succeeded(self) -> bool:
        return self.end_time is not None and self.error is None

    @property
    def duration(self) -> float | None:
        if self.end_time is None:
            return None
        return self.end_time - self.start_time

    def _param(self, key: str) -> str | None:
        value = self.params.get(key)
        return str(value) if value else None

    @property
    def selector(self) -> str | None:
        return self._param("selector")

    @property
    def url(self) -> str | None:
        return self._param("url")

    @property
    def value(self) -> str | None:
        return self._param("value")


class ErrorContext(BaseModel):
    """Parsed ``error-context.md``, written by the runner only for failed tests."""

    model_config = ConfigDict(frozen=True)

    test_name: str
    location: str
    error_message: str


class TraceContext(BaseModel):
    """Normalized aggregate of one trace.

    Attributes
    ----------
    trace_dir : Path
        Directory holding the extracted trace files and ``resources/``.
    test_name : str
        Title from the context options, else the error-context name, else
        the directory name.
    start_time : float
        Monotonic start clock from the context options (0 when absent).
    duration : float
        Latest browser event time minus ``start_time``; never negative.
    verdict : Verdict
        ``failed`` when runner output, a page error or an error-context
        document says so; ``unknown`` when the trace holds no events.
    """

    model_config = ConfigDict(frozen=True)

    trace_dir: Path
    test_name: str
    start_time: float = 0.0
    duration: float = 0.0
    verdict: Verdict = "unknown"
    error_time: float | None = None
    error_message: str | None = None
    error_location: str | None = None
    expected: str | None = None
    received: str | None = None

    screenshots: tuple[ScreencastFrame, ...] = ()
    console_messages: tuple[ConsoleMessage, ...] = ()
    page_errors: tuple[BrowserEvent, ...] = ()
    actions: tuple[Action, ...] = ()
    logs: tuple[LogEntry, ...] = ()
    runner_output: tuple[RunnerOutput, ...] = ()
    runner_errors: tuple[RunnerError, ...] = ()

    error_context: ErrorContext | None = None
    gaps: tuple[CorrelationGap, ...] = ()

    def screenshot_path(self, frame: ScreencastFrame) -> Path:
        """Return the resource file holding ``frame``'s image bytes."""
        return self.trace_dir / "resources" / frame.sha1


__all__ = ["Action", "ErrorContext", "TraceContext", "Verdict"]

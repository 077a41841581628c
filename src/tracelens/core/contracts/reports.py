"""Output shapes of the read-only report projections.

All models serialize with camelCase aliases; optional fields that are
``None`` are dropped from the JSON envelope.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _ReportModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ---- Screenshots -------------------------------------------------------------


class ScreenshotRef(_ReportModel):
    index: int
    path: str
    timestamp: float


class ScreenshotWindow(_ReportModel):
    """Screenshot nearest to a timestamp plus its neighbours.

    The empty sentinel has ``target=""`` and ``target_index=-1``.
    """

    target: str
    target_index: int
    timestamp: float
    action: str | None = None
    before: list[ScreenshotRef] = Field(default_factory=list)
    after: list[ScreenshotRef] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.target_index < 0

    def target_ref(self) -> ScreenshotRef:
        return ScreenshotRef(index=self.target_index, path=self.target, timestamp=self.timestamp)


class ScreenshotRow(_ReportModel):
    index: int
    timestamp: float
    path: str
    width: int
    height: int


# ---- Summary -----------------------------------------------------------------


class SummaryCounts(_ReportModel):
    screenshots: int
    console_messages: int
    errors: int
    actions: int
    incomplete_actions: int


class TraceSummary(_ReportModel):
    test_name: str
    duration: str
    status: str
    error_time: float | None = None
    error_message: str | None = None
    error_location: str | None = None
    expected: str | None = None
    received: str | None = None
    counts: SummaryCounts


# ---- Console / actions / errors ----------------------------------------------


class ConsoleRow(_ReportModel):
    timestamp: float
    type: str
    text: str
    location: str | None = None


class ActionRow(_ReportModel):
    timestamp: float
    api_name: str
    end_time: float | None = None
    duration: float | None = None
    selector: str | None = None
    url: str | None = None
    value: str | None = None
    error: str | None = None
    incomplete: bool | None = None


class ErrorScreenshots(_ReportModel):
    before: list[ScreenshotRef] = Field(default_factory=list)
    target: ScreenshotRef
    after: list[ScreenshotRef] = Field(default_factory=list)


class ErrorDetail(_ReportModel):
    """A failure with its visual and console context."""

    timestamp: float
    message: str
    stack: str | None = None
    location: str | None = None
    source: str | None = None
    screenshots: ErrorScreenshots
    console_context: list[ConsoleRow] = Field(default_factory=list)


# ---- Around / timeline -------------------------------------------------------


class WindowConsole(_ReportModel):
    time: float
    type: str
    text: str


class WindowAction(_ReportModel):
    time: float
    api_name: str


class WindowLog(_ReportModel):
    time: float
    message: str


class WindowError(_ReportModel):
    time: float
    message: str | None = None


class WindowEvents(_ReportModel):
    console: list[WindowConsole] = Field(default_factory=list)
    actions: list[WindowAction] = Field(default_factory=list)
    logs: list[WindowLog] = Field(default_factory=list)
    errors: list[WindowError] = Field(default_factory=list)


class AroundReport(_ReportModel):
    target_time: float
    window: str
    nearest_screenshot: str
    events: WindowEvents


class TimelineEntry(_ReportModel):
    time: float
    type: str
    description: str


__all__ = [
    "ActionRow",
    "AroundReport",
    "ConsoleRow",
    "ErrorDetail",
    "ErrorScreenshots",
    "ScreenshotRef",
    "ScreenshotRow",
    "ScreenshotWindow",
    "SummaryCounts",
    "TimelineEntry",
    "TraceSummary",
    "WindowAction",
    "WindowConsole",
    "WindowError",
    "WindowEvents",
    "WindowLog",
]

"""Raw trace events: the closed set of line kinds found in trace files.

Each line of ``test.trace`` and ``<n>-trace.trace`` is a JSON object tagged
by its ``type`` field. This module models every kind we consume as a frozen
Pydantic v2 model and joins them in a discriminated union, :data:`RawEvent`.

Wire format
-----------
The recorder writes camelCase keys (``callId``, ``startTime``...). Models use
snake_case attributes with a camelCase alias generator, so both spellings
validate. Unknown keys are preserved as model extras (``model_extra``) so a
newer recorder does not break decoding.

Timestamps
----------
Every model exposes ``at``: the event's monotonic timestamp in milliseconds,
or ``None`` for kinds that carry none (``input``, ``error``).
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


class EventKind(str, Enum):
    """Logical event kinds, independent of the recorder's wire tags."""

    CONTEXT_OPTIONS = "context-options"
    ACTION_START = "action-start"
    ACTION_END = "action-end"
    SCREENCAST_FRAME = "screencast-frame"
    CONSOLE_MESSAGE = "console-message"
    LOG = "log"
    BROWSER_ERROR = "browser-error"
    INPUT = "input"
    FRAME_SNAPSHOT = "frame-snapshot"
    RUNNER_STDOUT = "runner-stdout"
    RUNNER_STDERR = "runner-stderr"
    RUNNER_ERROR = "runner-error"


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        frozen=True,
    )


class ErrorPayload(_WireModel):
    """Error object attached to a failed action or a page error."""

    message: str = ""
    stack: str | None = None
    name: str | None = None


class ConsoleLocation(_WireModel):
    """Source location of a console message."""

    url: str = ""
    line_number: int = 0
    column_number: int = 0


# ---- Browser shard events ----------------------------------------------------


class ContextOptions(_WireModel):
    """First line of a browser shard: run metadata and the start clock."""

    kind: ClassVar[EventKind] = EventKind.CONTEXT_OPTIONS

    type: Literal["context-options"]
    version: int = 0
    origin: str = ""
    browser_name: str = ""
    platform: str = ""
    wall_time: float = 0.0
    monotonic_time: float = 0.0
    sdk_language: str = ""
    title: str | None = None
    context_id: str | None = None
    options: dict[str, Any] = Field(default_factory=dict)

    @property
    def at(self) -> float | None:
        return self.monotonic_time


class ActionStart(_WireModel):
    """An API call starting (wire tag ``before``)."""

    kind: ClassVar[EventKind] = EventKind.ACTION_START

    type: Literal["before"]
    call_id: str
    start_time: float
    api_name: str | None = None
    class_name: str = Field(default="", alias="class")
    method: str = ""
    params: dict[str, Any] = Field(default_factory=dict)
    step_id: str | None = None
    page_id: str | None = None
    parent_id: str | None = None

    @property
    def at(self) -> float | None:
        return self.start_time

    @property
    def display_name(self) -> str:
        """``apiName`` when recorded, else ``<class>.<method>`` (``Page.goto`` → ``page.goto``)."""
        if self.api_name:
            return self.api_name
        owner = self.class_name[:1].lower() + self.class_name[1:]
        return f"{owner}.{self.method}" if owner else self.method


class ActionEnd(_WireModel):
    """An API call finishing (wire tag ``after``)."""

    kind: ClassVar[EventKind] = EventKind.ACTION_END

    type: Literal["after"]
    call_id: str
    end_time: float
    result: dict[str, Any] | None = None
    error: ErrorPayload | None = None

    @property
    def at(self) -> float | None:
        return self.end_time


class ScreencastFrame(_WireModel):
    """A screenshot; the image bytes live in ``resources/<sha1>``."""

    kind: ClassVar[EventKind] = EventKind.SCREENCAST_FRAME

    type: Literal["screencast-frame"]
    sha1: str
    timestamp: float
    page_id: str = ""
    width: int = 0
    height: int = 0
    frame_swap_wall_time: float | None = None

    @property
    def at(self) -> float | None:
        return self.timestamp


class ConsoleMessage(_WireModel):
    kind: ClassVar[EventKind] = EventKind.CONSOLE_MESSAGE

    type: Literal["console"]
    time: float
    message_type: str = "log"
    text: str = ""
    args: list[Any] | None = None
    location: ConsoleLocation | None = None
    page_id: str = ""

    @property
    def at(self) -> float | None:
        return self.time

    @property
    def location_label(self) -> str | None:
        """``<file>:<line>`` taken from the location URL, if any."""
        if self.location is None:
            return None
        return f"{self.location.url.split('/')[-1]}:{self.location.line_number}"


class LogEntry(_WireModel):
    """A recorder log line emitted while an action runs."""

    kind: ClassVar[EventKind] = EventKind.LOG

    type: Literal["log"]
    time: float
    call_id: str = ""
    message: str = ""

    @property
    def at(self) -> float | None:
        return self.time


class BrowserEvent(_WireModel):
    """A protocol-level browser event; page errors use method ``pageError``."""

    kind: ClassVar[EventKind] = EventKind.BROWSER_ERROR

    type: Literal["event"]
    time: float
    class_name: str = Field(default="", alias="class")
    method: str = ""
    params: dict[str, Any] = Field(default_factory=dict)
    page_id: str | None = None

    @property
    def at(self) -> float | None:
        return self.time

    @property
    def is_page_error(self) -> bool:
        return self.method == "pageError"

    def _error_field(self, key: str) -> str | None:
        outer = self.params.get("error")
        inner = outer.get("error") if isinstance(outer, dict) else None
        value = inner.get(key) if isinstance(inner, dict) else None
        return str(value) if value is not None else None

    @property
    def error_message(self) -> str | None:
        return self._error_field("message")

    @property
    def error_stack(self) -> str | None:
        return self._error_field("stack")


class InputEvent(_WireModel):
    kind: ClassVar[EventKind] = EventKind.INPUT

    type: Literal["input"]
    call_id: str = ""
    point: dict[str, float] | None = None
    input_snapshot: str | None = None

    @property
    def at(self) -> float | None:
        return None


class FrameSnapshot(_WireModel):
    kind: ClassVar[EventKind] = EventKind.FRAME_SNAPSHOT

    type: Literal["frame-snapshot"]
    snapshot: dict[str, Any] = Field(default_factory=dict)

    @property
    def at(self) -> float | None:
        value = self.snapshot.get("timestamp")
        return float(value) if isinstance(value, int | float) else None


# ---- Runner events (test.trace) ----------------------------------------------


class RunnerStdout(_WireModel):
    kind: ClassVar[EventKind] = EventKind.RUNNER_STDOUT

    type: Literal["stdout"]
    timestamp: float = 0.0
    text: str = ""

    @property
    def at(self) -> float | None:
        return self.timestamp


class RunnerStderr(_WireModel):
    kind: ClassVar[EventKind] = EventKind.RUNNER_STDERR

    type: Literal["stderr"]
    timestamp: float = 0.0
    text: str = ""

    @property
    def at(self) -> float | None:
        return self.timestamp


class RunnerError(_WireModel):
    """A structured test failure reported by the runner (no timestamp)."""

    kind: ClassVar[EventKind] = EventKind.RUNNER_ERROR

    type: Literal["error"]
    message: str = ""
    stack: list[dict[str, Any]] | None = None

    @property
    def at(self) -> float | None:
        return None


RunnerOutput = RunnerStdout | RunnerStderr

RawEvent = Annotated[
    ContextOptions
    | ActionStart
    | ActionEnd
    | ScreencastFrame
    | ConsoleMessage
    | LogEntry
    | BrowserEvent
    | InputEvent
    | FrameSnapshot
    | RunnerStdout
    | RunnerStderr
    | RunnerError,
    Field(discriminator="type"),
]

RAW_EVENT_ADAPTER: TypeAdapter[RawEvent] = TypeAdapter(RawEvent)

# Wire tags accepted by the union; anything else is an unmodelled kind.
WIRE_TYPES: frozenset[str] = frozenset(
    {
        "context-options",
        "before",
        "after",
        "screencast-frame",
        "console",
        "log",
        "event",
        "input",
        "frame-snapshot",
        "stdout",
        "stderr",
        "error",
    }
)


__all__ = [
    "RAW_EVENT_ADAPTER",
    "WIRE_TYPES",
    "ActionEnd",
    "ActionStart",
    "BrowserEvent",
    "ConsoleLocation",
    "ConsoleMessage",
    "ContextOptions",
    "ErrorPayload",
    "EventKind",
    "FrameSnapshot",
    "InputEvent",
    "LogEntry",
    "RawEvent",
    "RunnerError",
    "RunnerOutput",
    "RunnerStderr",
    "RunnerStdout",
    "ScreencastFrame",
]

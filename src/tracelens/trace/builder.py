"""
Trace context builder: fuse parsed event streams into one :class:`TraceContext`.

Flow Overview
-------------
1. **Bucket** every event by kind (exhaustive ``match`` over the union).
   Browser shards supply options, actions, screenshots, console, page
   errors and logs; ``test.trace`` supplies runner output and errors only.
2. **Merge actions**: pair each action-start with the action-end sharing its
   call id. Ends without a start are dropped; starts without an end are kept
   as *incomplete* actions. Both gaps are recorded on the context.
3. **Verdict** (first match wins):
   a. runner stdout/stderr containing ``Error:`` or ``Expected`` → failed;
   b. any page error → failed, using the first one;
   c. otherwise passed.
   An ``error-context.md`` document always overrides the result to failed.
4. **Sort** every collection by timestamp and freeze the aggregate.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, TypeVar, assert_never

from tracelens.core.contracts.context import Action, ErrorContext, TraceContext, Verdict
from tracelens.core.contracts.events import (
    ActionEnd,
    ActionStart,
    BrowserEvent,
    ConsoleMessage,
    ContextOptions,
    FrameSnapshot,
    InputEvent,
    LogEntry,
    RawEvent,
    RunnerError,
    RunnerOutput,
    RunnerStderr,
    RunnerStdout,
    ScreencastFrame,
)
from tracelens.core.errors import CorrelationGap
from tracelens.core.settings import get_logger

from .parser import ParsedTrace

logger = get_logger("tracelens.trace.builder")

# User-facing API calls kept when filtering to key actions (substring match).
KEY_ACTIONS: tuple[str, ...] = (
    "page.goto",
    "page.click",
    "locator.click",
    "locator.fill",
    "locator.type",
    "locator.press",
    "page.fill",
    "page.type",
    "expect.toHaveValue",
    "expect.toBeVisible",
    "expect.toHaveText",
    "expect.toHaveURL",
    "expect.toHaveTitle",
    "expect.not.toBeVisible",
)

ASSERTION_MARKERS: tuple[str, ...] = ("Error:", "Expected")

_EXPECTED_RE = re.compile(r"^\s*Expected[^:\n]*:\s*(.+?)\s*$", re.MULTILINE)
_RECEIVED_RE = re.compile(r"^\s*Received[^:\n]*:\s*(.+?)\s*$", re.MULTILINE)


def is_key_action(api_name: str) -> bool:
    return any(action in api_name for action in KEY_ACTIONS)


@dataclass
class _Buckets:
    options: ContextOptions | None = None
    starts: list[ActionStart] = field(default_factory=list)
    ends: list[ActionEnd] = field(default_factory=list)
    screenshots: list[ScreencastFrame] = field(default_factory=list)
    console: list[ConsoleMessage] = field(default_factory=list)
    logs: list[LogEntry] = field(default_factory=list)
    page_errors: list[BrowserEvent] = field(default_factory=list)
    runner_output: list[RunnerOutput] = field(default_factory=list)
    runner_errors: list[RunnerError] = field(default_factory=list)


def _bucket(events: Iterable[RawEvent]) -> _Buckets:
    buckets = _Buckets()
    for event in events:
        match event:
            case ContextOptions():
                if buckets.options is None:
                    buckets.options = event
            case ActionStart():
                buckets.starts.append(event)
            case ActionEnd():
                buckets.ends.append(event)
            case ScreencastFrame():
                buckets.screenshots.append(event)
            case ConsoleMessage():
                buckets.console.append(event)
            case LogEntry():
                buckets.logs.append(event)
            case BrowserEvent():
                if event.is_page_error:
                    buckets.page_errors.append(event)
            case RunnerStdout() | RunnerStderr():
                buckets.runner_output.append(event)
            case RunnerError():
                buckets.runner_errors.append(event)
            case InputEvent() | FrameSnapshot():
                pass
            case _:
                assert_never(event)
    return buckets


def merge_actions(
    starts: Sequence[ActionStart],
    ends: Sequence[ActionEnd],
    *,
    key_actions_only: bool = True,
) -> tuple[list[Action], list[CorrelationGap]]:
    """Pair starts and ends by call id.

    Returns the merged actions (sorted by start time) and the correlation
    gaps: ``orphan-end`` for ends without any start, ``incomplete`` for kept
    starts that never ended. The first start per call id wins.
    """
    ends_by_id: dict[str, ActionEnd] = {}
    for end in ends:
        ends_by_id.setdefault(end.call_id, end)

    start_ids = {start.call_id for start in starts}
    gaps = [
        CorrelationGap(call_id=call_id, kind="orphan-end")
        for call_id in ends_by_id
        if call_id not in start_ids
    ]

    seen: set[str] = set()
    actions: list[Action] = []
    for start in starts:
        if start.call_id in seen:
            continue
        seen.add(start.call_id)
        name = start.display_name
        if key_actions_only and not is_key_action(name):
            continue
        end = ends_by_id.get(start.call_id)
        if end is None:
            gaps.append(CorrelationGap(call_id=start.call_id, kind="incomplete"))
        actions.append(
            Action(
                call_id=start.call_id,
                api_name=name,
                start_time=start.start_time,
                end_time=end.end_time if end else None,
                params=dict(start.params),
                error=(end.error.message or "Unknown error") if end and end.error else None,
            )
        )
    actions.sort(key=lambda a: a.start_time)
    return actions, gaps


def compute_verdict(
    runner_output: Sequence[RunnerOutput],
    page_errors: Sequence[BrowserEvent],
    error_context: ErrorContext | None,
) -> tuple[Verdict, float | None, str | None]:
    """Return ``(verdict, error_time, error_message)``; inputs are time-sorted."""
    verdict: Verdict = "passed"
    error_time: float | None = None
    error_message: str | None = None

    failure = next(
        (out for out in runner_output if any(m in out.text for m in ASSERTION_MARKERS)),
        None,
    )
    if failure is not None:
        verdict, error_time, error_message = "failed", failure.timestamp, failure.text
    elif page_errors:
        first = page_errors[0]
        verdict, error_time, error_message = "failed", first.time, first.error_message

    if error_context is not None:
        verdict = "failed"
        error_message = error_context.error_message
    return verdict, error_time, error_message


def extract_expectation(message: str | None) -> tuple[str | None, str | None]:
    """Pull the ``Expected: ...`` / ``Received: ...`` values out of an assertion."""
    if not message:
        return None, None
    expected = _EXPECTED_RE.search(message)
    received = _RECEIVED_RE.search(message)
    return (
        expected.group(1) if expected else None,
        received.group(1) if received else None,
    )


class _Timed(Protocol):
    @property
    def at(self) -> float | None: ...


_E = TypeVar("_E", bound=_Timed)


def _by_time(events: Iterable[_E]) -> list[_E]:
    return sorted(events, key=lambda e: e.at or 0.0)


def build_context(
    parsed: ParsedTrace,
    trace_dir: Path,
    *,
    error_context: ErrorContext | None = None,
    key_actions_only: bool = True,
    fallback_name: str | None = None,
) -> TraceContext:
    """Build the immutable :class:`TraceContext` for one parsed trace.

    Parameters
    ----------
    parsed : ParsedTrace
        Runner and browser events as produced by the parser.
    trace_dir : Path
        Directory the trace was read from (screenshot paths hang off it).
    error_context : ErrorContext | None
        Parsed ``error-context.md``; forces a failed verdict when present.
    key_actions_only : bool
        Keep only user-facing API calls in ``actions``.
    fallback_name : str | None
        Test name used when neither the trace nor the error context has one.
    """
    # test.trace carries its own context-options and step events; only the
    # browser shards describe the page session.
    buckets = _bucket(parsed.browser_events)
    runner = _bucket(parsed.runner_events)

    actions, gaps = merge_actions(buckets.starts, buckets.ends, key_actions_only=key_actions_only)
    for gap in gaps:
        logger.debug("Correlation gap in %s: %s %s", trace_dir, gap.kind, gap.call_id)

    runner_output = _by_time(runner.runner_output)
    page_errors = _by_time(buckets.page_errors)

    if not parsed.runner_events and not parsed.browser_events and error_context is None:
        verdict: Verdict = "unknown"
        error_time: float | None = None
        error_message: str | None = None
    else:
        verdict, error_time, error_message = compute_verdict(
            runner_output,
            page_errors,
            error_context,
        )
    expected, received = extract_expectation(error_message)

    start_time = buckets.options.monotonic_time if buckets.options else 0.0
    stamps = [t for t in (e.at for e in parsed.browser_events) if t is not None]
    duration = max(max(stamps, default=start_time) - start_time, 0.0)

    test_name = (
        (buckets.options.title if buckets.options else None)
        or (error_context.test_name if error_context else None)
        or fallback_name
        or trace_dir.name
    )

    return TraceContext(
        trace_dir=trace_dir,
        test_name=test_name,
        start_time=start_time,
        duration=duration,
        verdict=verdict,
        error_time=error_time,
        error_message=error_message,
        error_location=error_context.location if error_context else None,
        expected=expected,
        received=received,
        screenshots=tuple(_by_time(buckets.screenshots)),
        console_messages=tuple(_by_time(buckets.console)),
        page_errors=tuple(page_errors),
        actions=tuple(actions),
        logs=tuple(_by_time(buckets.logs)),
        runner_output=tuple(runner_output),
        runner_errors=tuple(runner.runner_errors),
        error_context=error_context,
        gaps=tuple(gaps),
    )


__all__ = [
    "ASSERTION_MARKERS",
    "KEY_ACTIONS",
    "build_context",
    "compute_verdict",
    "extract_expectation",
    "is_key_action",
    "merge_actions",
]

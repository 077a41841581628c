"""
Read-only report projections over a built :class:`TraceContext`.

Every function here is pure: it reads the context (whose collections are
already sorted by time) and returns new report models. Projections can run
in any order, any number of times.

Screenshot correlation
----------------------
:func:`nearest_screenshots` binary-searches the sorted screenshots for the
frame with the smallest absolute time difference to a target (the earlier
frame wins a tie), then slices ``context`` frames on each side, clipped at
the list bounds. With no screenshots it returns an empty sentinel window
(``target=""``, ``targetIndex=-1``).
"""

from __future__ import annotations

from bisect import bisect_left
from collections.abc import Sequence
from pathlib import Path

from tracelens.core.contracts.context import Action, TraceContext
from tracelens.core.contracts.events import ConsoleMessage, ScreencastFrame
from tracelens.core.contracts.queries import AroundQuery, ConsoleQuery, ScreenshotQuery
from tracelens.core.contracts.reports import (
    ActionRow,
    AroundReport,
    ConsoleRow,
    ErrorDetail,
    ErrorScreenshots,
    ScreenshotRef,
    ScreenshotRow,
    ScreenshotWindow,
    SummaryCounts,
    TimelineEntry,
    TraceSummary,
    WindowAction,
    WindowConsole,
    WindowError,
    WindowEvents,
    WindowLog,
)
from tracelens.core.errors import QueryError

ERROR_CONTEXT_SCREENSHOTS = 2
CONSOLE_CONTEXT_MS = 1000.0
_MESSAGE_CAP = 500


def _ref(trace_dir: Path, frames: Sequence[ScreencastFrame], index: int) -> ScreenshotRef:
    frame = frames[index]
    return ScreenshotRef(
        index=index,
        path=str(trace_dir / "resources" / frame.sha1),
        timestamp=frame.timestamp,
    )


def nearest_index(frames: Sequence[ScreencastFrame], timestamp: float) -> int:
    """Index of the frame closest to ``timestamp`` in time-sorted ``frames``."""
    stamps = [frame.timestamp for frame in frames]
    pos = bisect_left(stamps, timestamp)
    if pos == 0:
        return 0
    if pos == len(stamps):
        return len(stamps) - 1
    before, after = stamps[pos - 1], stamps[pos]
    return pos - 1 if timestamp - before <= after - timestamp else pos


def action_at(actions: Sequence[Action], timestamp: float) -> Action | None:
    """Latest action started at or before ``timestamp``."""
    found: Action | None = None
    for action in actions:
        if action.start_time > timestamp:
            break
        found = action
    return found


def nearest_screenshots(
    frames: Sequence[ScreencastFrame],
    timestamp: float,
    context: int,
    trace_dir: Path,
    actions: Sequence[Action] = (),
) -> ScreenshotWindow:
    """Screenshot closest to ``timestamp`` with ``context`` neighbours per side."""
    if not frames:
        return ScreenshotWindow(target="", target_index=-1, timestamp=0.0)

    index = nearest_index(frames, timestamp)
    target = _ref(trace_dir, frames, index)
    action = action_at(actions, target.timestamp)
    return ScreenshotWindow(
        target=target.path,
        target_index=index,
        timestamp=target.timestamp,
        action=action.api_name if action else None,
        before=[_ref(trace_dir, frames, i) for i in range(max(0, index - context), index)],
        after=[
            _ref(trace_dir, frames, i)
            for i in range(index + 1, min(len(frames), index + 1 + context))
        ],
    )


def _window_for(ctx: TraceContext, timestamp: float, context: int) -> ScreenshotWindow:
    return nearest_screenshots(ctx.screenshots, timestamp, context, ctx.trace_dir, ctx.actions)


def _console_row(msg: ConsoleMessage) -> ConsoleRow:
    return ConsoleRow(
        timestamp=msg.time,
        type=msg.message_type,
        text=msg.text,
        location=msg.location_label,
    )


def _format_seconds(ms: float) -> str:
    return f"{ms / 1000:.2f}s"


# --------------------------------------------------------------------------- #
# Projections
# --------------------------------------------------------------------------- #


def summary(ctx: TraceContext) -> TraceSummary:
    """Overview: verdict, error, expected/received and collection counts."""
    return TraceSummary(
        test_name=ctx.test_name,
        duration=_format_seconds(ctx.duration) if ctx.duration else "unknown",
        status=ctx.verdict,
        error_time=ctx.error_time,
        error_message=ctx.error_message[:_MESSAGE_CAP] if ctx.error_message else None,
        error_location=ctx.error_location,
        expected=ctx.expected,
        received=ctx.received,
        counts=SummaryCounts(
            screenshots=len(ctx.screenshots),
            console_messages=len(ctx.console_messages),
            errors=len(ctx.page_errors),
            actions=len(ctx.actions),
            incomplete_actions=sum(1 for a in ctx.actions if a.incomplete),
        ),
    )


def _error_detail(
    ctx: TraceContext,
    timestamp: float,
    message: str,
    *,
    stack: str | None = None,
    location: str | None = None,
    source: str | None = None,
    with_console: bool = True,
) -> ErrorDetail:
    window = _window_for(ctx, timestamp, ERROR_CONTEXT_SCREENSHOTS)
    console = (
        [
            _console_row(m)
            for m in ctx.console_messages
            if abs(m.time - timestamp) < CONSOLE_CONTEXT_MS
        ]
        if with_console
        else []
    )
    return ErrorDetail(
        timestamp=timestamp,
        message=message,
        stack=stack,
        location=location,
        source=source,
        screenshots=ErrorScreenshots(
            before=window.before, target=window.target_ref(), after=window.after
        ),
        console_context=console,
    )


def errors(ctx: TraceContext) -> list[ErrorDetail]:
    """Page errors with visual/console context, or the best fallback failure.

    Without page errors, the error-context document is reported at the last
    screenshot (assertions fail at the end of a run); failing that, the
    computed error time is used.
    """
    details = [
        _error_detail(
            ctx,
            page_error.time,
            page_error.error_message or "Unknown error",
            stack=page_error.error_stack,
        )
        for page_error in ctx.page_errors
    ]
    if details:
        return details

    if ctx.error_context is not None:
        last = ctx.screenshots[-1].timestamp if ctx.screenshots else 0.0
        return [
            _error_detail(
                ctx,
                last,
                ctx.error_context.error_message,
                location=ctx.error_context.location,
                source="error-context.md",
                with_console=False,
            )
        ]

    if ctx.error_time is not None:
        return [_error_detail(ctx, ctx.error_time, ctx.error_message or "Test failed")]
    return []


def actions(ctx: TraceContext) -> list[ActionRow]:
    return [
        ActionRow(
            timestamp=action.start_time,
            api_name=action.api_name,
            end_time=action.end_time,
            duration=action.duration,
            selector=action.selector,
            url=action.url,
            value=action.value,
            error=action.error,
            incomplete=True if action.incomplete else None,
        )
        for action in ctx.actions
    ]


def screenshots(ctx: TraceContext) -> list[ScreenshotRow]:
    return [
        ScreenshotRow(
            index=index,
            timestamp=frame.timestamp,
            path=str(ctx.screenshot_path(frame)),
            width=frame.width,
            height=frame.height,
        )
        for index, frame in enumerate(ctx.screenshots)
    ]


def screenshot(ctx: TraceContext, query: ScreenshotQuery) -> ScreenshotWindow:
    """A specific screenshot (by index, or at the error) plus neighbours.

    Raises
    ------
    QueryError
        If an index is requested that does not exist.
    """
    if query.at == "error":
        last = ctx.screenshots[-1].timestamp if ctx.screenshots else 0.0
        timestamp = ctx.error_time if ctx.error_time is not None else last
    else:
        if query.at >= len(ctx.screenshots):
            raise QueryError(
                f"Screenshot index {query.at} out of range (0-{len(ctx.screenshots) - 1})"
            )
        timestamp = ctx.screenshots[query.at].timestamp
    return _window_for(ctx, timestamp, query.effective_context)


def console(ctx: TraceContext, query: ConsoleQuery) -> list[ConsoleRow]:
    """Console messages filtered by type and/or regex, capped at ``limit``."""
    pattern = query.pattern()
    rows: list[ConsoleRow] = []
    for msg in ctx.console_messages:
        if query.type is not None and msg.message_type != query.type:
            continue
        if pattern is not None and not pattern.search(msg.text):
            continue
        rows.append(_console_row(msg))
        if len(rows) >= query.limit:
            break
    return rows


def around(ctx: TraceContext, query: AroundQuery) -> AroundReport:
    """Every signal within ``±window`` ms of ``time`` plus the nearest screenshot."""
    time, window = query.time, query.window

    def near(t: float) -> bool:
        return abs(t - time) <= window

    nearest = _window_for(ctx, time, 1)
    return AroundReport(
        target_time=time,
        window=f"±{window:g}ms",
        nearest_screenshot=nearest.target,
        events=WindowEvents(
            console=[
                WindowConsole(time=m.time, type=m.message_type, text=m.text[:200])
                for m in ctx.console_messages
                if near(m.time)
            ],
            actions=[
                WindowAction(time=a.start_time, api_name=a.api_name)
                for a in ctx.actions
                if near(a.start_time)
            ],
            logs=[WindowLog(time=log.time, message=log.message) for log in ctx.logs if near(log.time)],
            errors=[
                WindowError(time=e.time, message=e.error_message)
                for e in ctx.page_errors
                if near(e.time)
            ],
        ),
    )


def describe_action(action: Action) -> str:
    """``page.goto → https://...``, with selector and failure markers."""
    text = action.api_name
    if action.url:
        text = f"{text} → {action.url}"
    if action.selector:
        text = f"{text} → {action.selector[:50]}"
    if action.error:
        text = f"{text} [FAILED: {action.error}]"
    elif action.incomplete:
        text = f"{text} [INCOMPLETE]"
    return text


def timeline(ctx: TraceContext) -> list[TimelineEntry]:
    """Chronological merge of actions, console errors and page errors."""
    entries = [
        TimelineEntry(
            time=ctx.start_time, type="start", description=f"Test started: {ctx.test_name}"
        )
    ]
    entries.extend(
        TimelineEntry(time=a.start_time, type="action", description=describe_action(a))
        for a in ctx.actions
    )
    entries.extend(
        TimelineEntry(time=m.time, type="console.error", description=m.text[:100])
        for m in ctx.console_messages
        if m.message_type == "error"
    )
    entries.extend(
        TimelineEntry(
            time=e.time, type="pageError", description=e.error_message or "Unknown error"
        )
        for e in ctx.page_errors
    )
    if ctx.duration:
        entries.append(
            TimelineEntry(
                time=ctx.start_time + ctx.duration,
                type="end",
                description=f"Test {ctx.verdict}: {_format_seconds(ctx.duration)}",
            )
        )
    return sorted(entries, key=lambda e: e.time)


__all__ = [
    "action_at",
    "actions",
    "around",
    "console",
    "describe_action",
    "errors",
    "nearest_index",
    "nearest_screenshots",
    "screenshot",
    "screenshots",
    "summary",
    "timeline",
]

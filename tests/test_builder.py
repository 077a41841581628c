"""
Tests for the trace context builder.

Scope
-----
1.  **Action merge**: call-id pairing, incomplete actions, orphan ends.
2.  **Verdict**: runner output beats page errors; error-context always fails
    the run; an empty trace is ``unknown``.
3.  **Ordering**: every collection ends up sorted by timestamp.
"""

from __future__ import annotations

from pathlib import Path

from tracelens.core.contracts.context import ErrorContext
from tracelens.core.contracts.events import RAW_EVENT_ADAPTER, RawEvent
from tracelens.trace.builder import (
    build_context,
    extract_expectation,
    is_key_action,
    merge_actions,
)
from tracelens.trace.error_context import load_error_context, parse_error_context
from tracelens.trace.parser import ParsedTrace
from trace_events import (
    Event,
    after_event,
    before_event,
    console_event,
    context_options_event,
    error_context_md,
    frame_event,
    page_error_event,
    stdout_event,
)


def _events(*raw: Event) -> list[RawEvent]:
    return [RAW_EVENT_ADAPTER.validate_python(e) for e in raw]


def _parsed(browser: list[Event] | None = None, runner: list[Event] | None = None) -> ParsedTrace:
    return ParsedTrace(
        runner_events=_events(*(runner or [])),
        browser_events=_events(*(browser or [])),
    )


# ---- Actions -----------------------------------------------------------------


def test_start_and_end_merge_by_call_id() -> None:
    starts = _events(before_event("c1", 100, "page.goto", url="https://app.test"))
    ends = _events(after_event("c1", 250))
    actions, gaps = merge_actions(starts, ends)  # type: ignore[arg-type]

    assert len(actions) == 1
    action = actions[0]
    assert action.end_time == 250
    assert action.duration == 150
    assert action.url == "https://app.test"
    assert action.succeeded
    assert gaps == []


def test_start_without_end_is_incomplete() -> None:
    starts = _events(before_event("c1", 100, "locator.click", selector="#save"))
    actions, gaps = merge_actions(starts, [])  # type: ignore[arg-type]

    assert actions[0].incomplete
    assert actions[0].end_time is None
    assert [(g.call_id, g.kind) for g in gaps] == [("c1", "incomplete")]


def test_end_without_start_is_dropped_as_orphan() -> None:
    actions, gaps = merge_actions([], _events(after_event("ghost", 10)))  # type: ignore[arg-type]
    assert actions == []
    assert [(g.call_id, g.kind) for g in gaps] == [("ghost", "orphan-end")]


def test_failed_end_carries_error_message() -> None:
    starts = _events(before_event("c1", 1, "locator.fill", selector="#email", value="a@b"))
    ends = _events(after_event("c1", 2, error="Timeout 5000ms exceeded"))
    actions, _ = merge_actions(starts, ends)  # type: ignore[arg-type]
    assert actions[0].error == "Timeout 5000ms exceeded"
    assert not actions[0].succeeded
    assert actions[0].value == "a@b"


def test_key_action_filter() -> None:
    assert is_key_action("page.goto")
    assert is_key_action("expect.toBeVisible")
    assert not is_key_action("browserContext.newPage")

    starts = _events(
        before_event("c1", 1, "browserContext.newPage"),
        before_event("c2", 2, "page.goto"),
    )
    filtered, _ = merge_actions(starts, [])  # type: ignore[arg-type]
    everything, _ = merge_actions(starts, [], key_actions_only=False)  # type: ignore[arg-type]
    assert [a.api_name for a in filtered] == ["page.goto"]
    assert len(everything) == 2


# ---- Verdict -------------------------------------------------------------------


def test_runner_assertion_output_wins_over_page_error(tmp_path: Path) -> None:
    ctx = build_context(
        _parsed(
            browser=[context_options_event(), page_error_event(1200, "boom")],
            runner=[stdout_event(1500, "Error: expect(locator).toBeVisible()")],
        ),
        tmp_path,
    )
    assert ctx.verdict == "failed"
    assert ctx.error_time == 1500
    assert ctx.error_message is not None and ctx.error_message.startswith("Error:")


def test_page_error_fails_the_run(tmp_path: Path) -> None:
    ctx = build_context(
        _parsed(
            browser=[
                context_options_event(),
                page_error_event(1300, "second"),
                page_error_event(1200, "first"),
            ]
        ),
        tmp_path,
    )
    assert ctx.verdict == "failed"
    assert ctx.error_time == 1200
    assert ctx.error_message == "first"


def test_clean_streams_pass(tmp_path: Path) -> None:
    ctx = build_context(
        _parsed(browser=[context_options_event(), console_event(1100, "ready")]), tmp_path
    )
    assert ctx.verdict == "passed"
    assert ctx.error_message is None


def test_error_context_overrides_a_passing_stream(tmp_path: Path) -> None:
    doc = parse_error_context(error_context_md("Expected visible, got hidden"))
    ctx = build_context(
        _parsed(browser=[context_options_event(), console_event(1100, "ready")]),
        tmp_path,
        error_context=doc,
    )
    assert ctx.verdict == "failed"
    assert ctx.error_message == "Expected visible, got hidden"
    assert ctx.error_location == "tests/login.spec.ts:12"


def test_empty_trace_is_unknown(tmp_path: Path) -> None:
    ctx = build_context(_parsed(), tmp_path)
    assert ctx.verdict == "unknown"
    assert ctx.duration == 0
    assert ctx.test_name == tmp_path.name


def test_expected_and_received_are_extracted() -> None:
    message = (
        "Error: expect(locator).toHaveText(expected)\n\n"
        'Expected string: "Welcome"\n'
        'Received string: "Sign in"\n'
    )
    assert extract_expectation(message) == ('"Welcome"', '"Sign in"')
    assert extract_expectation(None) == (None, None)


# ---- Shape ---------------------------------------------------------------------


def test_collections_are_time_sorted_and_duration_non_negative(tmp_path: Path) -> None:
    ctx = build_context(
        _parsed(
            browser=[
                context_options_event("sorting", monotonic_time=1000),
                frame_event("b", 1300),
                frame_event("a", 1100),
                console_event(1250, "late"),
                console_event(1050, "early"),
                before_event("c2", 1200, "locator.click", selector="#b"),
                before_event("c1", 1010, "page.goto", url="https://x.test"),
            ]
        ),
        tmp_path,
    )
    assert [f.sha1 for f in ctx.screenshots] == ["a", "b"]
    assert [m.text for m in ctx.console_messages] == ["early", "late"]
    assert [a.call_id for a in ctx.actions] == ["c1", "c2"]
    assert ctx.start_time == 1000
    assert ctx.duration == 300
    assert ctx.test_name == "sorting"


def test_events_before_start_clamp_duration(tmp_path: Path) -> None:
    ctx = build_context(
        _parsed(browser=[context_options_event(monotonic_time=5000), console_event(10, "x")]),
        tmp_path,
    )
    assert ctx.duration == 0


def test_test_name_falls_back_to_error_context_then_archive(tmp_path: Path) -> None:
    doc = ErrorContext(test_name="from doc", location="a.ts:1", error_message="x")
    no_title = {"type": "context-options", "monotonicTime": 1}
    assert build_context(_parsed(browser=[no_title]), tmp_path, error_context=doc).test_name == (
        "from doc"
    )
    assert (
        build_context(_parsed(browser=[no_title]), tmp_path, fallback_name="login").test_name
        == "login"
    )


# ---- error-context.md ------------------------------------------------------------


def test_error_context_defaults_and_lookup(tmp_path: Path) -> None:
    doc = parse_error_context("# Error details\n\n```\n\n```\n")
    assert doc is not None
    assert doc.test_name == "Unknown test"
    assert doc.location == "Unknown location"
    assert doc.error_message == "Unknown error"
    assert parse_error_context("# Test info\n- Name: x\n") is None

    trace_dir = tmp_path / "login" / "unzipped"
    trace_dir.mkdir(parents=True)
    (tmp_path / "login" / "error-context.md").write_text(
        error_context_md("Expected 1"), encoding="utf-8"
    )
    found = load_error_context(trace_dir)
    assert found is not None and found.error_message == "Expected 1"


def test_runner_file_does_not_shadow_browser_session(tmp_path: Path) -> None:
    runner_options = {"type": "context-options", "origin": "testRunner", "monotonicTime": 200}
    ctx = build_context(
        _parsed(
            browser=[
                context_options_event("login works", monotonic_time=1000),
                before_event("call@9", 1500, "expect.toBeVisible"),
                after_event("call@9", 2000),
            ],
            runner=[
                runner_options,
                before_event("expect@3", 1500, "expect.toBeVisible"),
                after_event("expect@3", 2000),
                stdout_event(1900, "Error: expect(locator).toBeVisible()"),
            ],
        ),
        tmp_path,
    )
    assert ctx.test_name == "login works"
    assert ctx.start_time == 1000
    assert ctx.duration == 1000
    assert [a.call_id for a in ctx.actions] == ["call@9"]
    assert ctx.gaps == ()
    assert [o.text for o in ctx.runner_output] == ["Error: expect(locator).toBeVisible()"]
    assert ctx.verdict == "failed"

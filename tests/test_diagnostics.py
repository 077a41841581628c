"""
Tests for the diagnostic engine and its signature table.

Scope
-----
1.  **Classification**: first matching signature wins, one label per signal.
2.  **Noise**: telemetry suppression and the 1000 ms deduplication window.
3.  **Ranking**: critical categories drive the primary diagnosis.
4.  **Recovery**: failures retried successfully are hidden unless verbose.
"""

from __future__ import annotations

from pathlib import Path

from tracelens.core.contracts.context import TraceContext
from tracelens.core.contracts.events import RAW_EVENT_ADAPTER
from tracelens.core.contracts.queries import DiagnoseOptions
from tracelens.diagnostics.engine import (
    CLEAN_EXPLANATION,
    deduplicate,
    diagnose,
    find_issues,
)
from tracelens.diagnostics.signatures import SIGNATURES, match_signature
from tracelens.trace.builder import build_context
from tracelens.trace.error_context import parse_error_context
from tracelens.trace.parser import ParsedTrace
from trace_events import (
    Event,
    after_event,
    before_event,
    console_event,
    context_options_event,
    error_context_md,
    page_error_event,
    stdout_event,
)


def _ctx(
    tmp_path: Path,
    *browser: Event,
    runner: tuple[Event, ...] = (),
    error_context: str | None = None,
) -> TraceContext:
    parsed = ParsedTrace(
        runner_events=[RAW_EVENT_ADAPTER.validate_python(e) for e in runner],
        browser_events=[
            RAW_EVENT_ADAPTER.validate_python(e) for e in (context_options_event(), *browser)
        ],
    )
    doc = parse_error_context(error_context) if error_context else None
    return build_context(parsed, tmp_path, error_context=doc)


def test_timeout_console_message_is_one_warning(tmp_path: Path) -> None:
    report = diagnose(_ctx(tmp_path, console_event(1500, "Timed out waiting for foo")))

    assert report.issue_count == 1
    assert report.by_category == {"Timeout": 1}
    assert report.issues[0].category == "Timeout"
    assert report.issues[0].source == "console"
    assert report.summary.startswith("⚠️")
    assert "1 potential issue(s)" in report.summary


def test_clean_trace_reports_no_patterns(tmp_path: Path) -> None:
    report = diagnose(_ctx(tmp_path, console_event(1100, "app ready"), console_event(1200, "ok")))

    assert report.issue_count == 0
    assert report.issues == []
    assert "No known error patterns detected" in report.summary
    assert report.primary_diagnosis.explanation == CLEAN_EXPLANATION


def test_first_matching_signature_wins() -> None:
    sig = match_signature("Timed out waiting for response with status of 500")
    assert sig is not None and sig.category == "Timeout"
    assert match_signature("all good") is None
    assert len({s.category for s in SIGNATURES}) == len(SIGNATURES)


def test_bursts_collapse_to_earliest_issue(tmp_path: Path) -> None:
    ctx = _ctx(
        tmp_path,
        console_event(1000, "Failed to load resource: the server responded with a status of 500"),
        console_event(1400, "Failed to load resource: the server responded with a status of 500"),
        console_event(1900, "Failed to load resource: the server responded with a status of 502"),
        console_event(2100, "Failed to load resource: the server responded with a status of 503"),
    )
    issues = find_issues(ctx)

    assert [i.timestamp for i in issues] == [1000, 2100]
    assert deduplicate(issues) == issues


def test_dedup_is_per_category(tmp_path: Path) -> None:
    issues = find_issues(
        _ctx(
            tmp_path,
            console_event(1000, "net::ERR_CONNECTION_REFUSED"),
            console_event(1100, "Uncaught Error: kaboom"),
        )
    )
    assert [i.category for i in issues] == ["Navigation Error", "Console Error"]


def test_telemetry_noise_is_suppressed(tmp_path: Path) -> None:
    report = diagnose(
        _ctx(
            tmp_path,
            console_event(1000, "Uncaught Error: sentry transport failed"),
            console_event(1200, "Uncaught Error: x", url="https://o1.ingest.sentry.io/api/1"),
        )
    )
    assert report.issue_count == 0


def test_critical_category_drives_primary_diagnosis(tmp_path: Path) -> None:
    report = diagnose(
        _ctx(
            tmp_path,
            console_event(1000, "Timed out waiting for selector"),
            console_event(3000, "the server responded with a status of 500"),
        )
    )
    assert report.issue_count == 2
    assert report.summary.startswith("🚨 CRITICAL ISSUES FOUND - 2 unique error(s)")
    assert report.primary_diagnosis.remedy == "Check server logs for the actual error."


def test_error_context_becomes_assertion_failure(tmp_path: Path) -> None:
    report = diagnose(
        _ctx(tmp_path, error_context=error_context_md("Expected visible, got hidden"))
    )
    assert report.by_category == {"Test Assertion Failed": 1}
    assert report.issues[0].timestamp == 0
    assert report.summary.startswith("🚨")


def test_page_errors_and_runner_output_are_scanned(tmp_path: Path) -> None:
    issues = find_issues(
        _ctx(
            tmp_path,
            page_error_event(1500, "strict mode violation: locator resolved to 2 elements"),
            runner=(stdout_event(1800, "connect ECONNREFUSED 127.0.0.1:5432"),),
        )
    )
    assert [(i.category, i.source) for i in issues] == [
        ("Strict Mode Violation", "page-error"),
        ("Connection Error", "runner-output"),
    ]


def _retried_ctx(tmp_path: Path) -> TraceContext:
    return _ctx(
        tmp_path,
        console_event(1500, "Timed out waiting for locator('#save') to be visible"),
        before_event("c1", 2000, "locator.click", selector="#save"),
        after_event("c1", 2100),
    )


def test_retried_failure_is_hidden_by_default(tmp_path: Path) -> None:
    report = diagnose(_retried_ctx(tmp_path))

    assert report.issue_count == 0
    assert report.recovered_count == 1
    assert report.issues == []
    assert "1 recovered issue(s) hidden" in report.summary
    assert "--verbose" in report.primary_diagnosis.remedy


def test_retried_failure_is_listed_when_verbose(tmp_path: Path) -> None:
    report = diagnose(_retried_ctx(tmp_path), DiagnoseOptions(verbose=True))

    assert report.issue_count == 0
    assert len(report.issues) == 1
    assert report.issues[0].recovered is True
    assert report.by_category == {}


def test_failed_retry_does_not_recover(tmp_path: Path) -> None:
    ctx = _ctx(
        tmp_path,
        console_event(1500, "Timed out waiting for locator('#save')"),
        before_event("c1", 2000, "locator.click", selector="#save"),
        after_event("c1", 2100, error="Timeout 5000ms exceeded"),
    )
    assert diagnose(ctx).issue_count == 1


def test_generic_selector_inside_a_longer_word_does_not_recover(tmp_path: Path) -> None:
    ctx = _ctx(
        tmp_path,
        console_event(1500, "Timed out waiting for buttonbar"),
        console_event(3500, "Timed out waiting for locator('.submit-button')"),
        before_event("c1", 5000, "locator.click", selector="button"),
        after_event("c1", 5100),
    )
    report = diagnose(ctx)

    assert report.issue_count == 2
    assert report.recovered_count == 0


def test_issue_list_is_capped_but_counts_are_not(tmp_path: Path) -> None:
    events = [console_event(1000 + i * 2000, f"status of 404 for /item/{i}") for i in range(15)]
    report = diagnose(_ctx(tmp_path, *events), DiagnoseOptions(limit=10))

    assert report.issue_count == 15
    assert report.by_category == {"HTTP 4xx Error": 15}
    assert len(report.issues) == 10


def test_long_text_is_snipped(tmp_path: Path) -> None:
    ctx = _ctx(tmp_path, console_event(1000, "Uncaught Error: " + "x" * 1000))

    snippet = diagnose(ctx).issues[0].snippet
    assert len(snippet) == 203
    assert snippet.endswith("...")
    assert len(find_issues(ctx)[0].text) == 800


def test_diagnosis_is_repeatable(tmp_path: Path) -> None:
    ctx = _retried_ctx(tmp_path)
    assert diagnose(ctx).model_dump() == diagnose(ctx).model_dump()

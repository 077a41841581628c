"""
Diagnostic engine: classify every textual signal in a trace and rank the result.

Flow Overview
-------------
1. **Collect** signals: console messages, page errors, runner stdout/stderr,
   runner error events and the error-context document.
2. **Suppress** known telemetry noise, then **classify** each remaining
   signal with the first matching signature (one label per signal). The
   error-context document falls back to "Test Assertion Failed".
3. **Sort** by timestamp and **deduplicate**: same category within 1000 ms
   collapses to the earliest issue.
4. **Recover**: an issue naming the selector of a later action that
   completed without error is marked ``recovered`` (a successful retry).
   The selector must appear as a whole token, not inside a longer word.
5. **Report**: counts per category, the primary diagnosis and the first
   ``limit`` issues. Recovered issues are listed only in verbose mode.

The engine is a pure function of the context: running it twice on the same
trace yields identical reports.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from tracelens.core.contracts.context import Action, TraceContext
from tracelens.core.contracts.diagnosis import (
    DiagnosisReport,
    Issue,
    IssueSource,
    IssueView,
    PrimaryDiagnosis,
)
from tracelens.core.contracts.queries import DiagnoseOptions

from .signatures import ASSERTION_FAILED, Signature, is_critical, is_suppressed, match_signature

DEDUP_WINDOW_MS = 1000.0
_TEXT_CAP = 800

CLEAN_EXPLANATION = "No known error patterns were detected in the trace."


@dataclass(frozen=True, slots=True)
class Signal:
    """One piece of text from the trace that may describe a failure."""

    timestamp: float
    source: IssueSource
    text: str
    location: str | None = None
    fallback: Signature | None = None


def collect_signals(ctx: TraceContext) -> list[Signal]:
    """Gather every textual signal of ``ctx`` in a deterministic order."""
    signals: list[Signal] = []
    for msg in ctx.console_messages:
        url = msg.location.url if msg.location else None
        signals.append(Signal(msg.time, "console", msg.text, url))
    for page_error in ctx.page_errors:
        signals.append(Signal(page_error.time, "page-error", page_error.error_message or ""))
    for out in ctx.runner_output:
        signals.append(Signal(out.timestamp, "runner-output", out.text))
    for runner_error in ctx.runner_errors:
        if runner_error.message:
            signals.append(Signal(0.0, "runner-output", runner_error.message))
    if ctx.error_context is not None:
        signals.append(
            Signal(0.0, "runner-output", ctx.error_context.error_message, fallback=ASSERTION_FAILED)
        )
    return signals


def classify(signals: Iterable[Signal]) -> list[Issue]:
    """Turn matching, unsuppressed signals into issues sorted by time."""
    issues: list[Issue] = []
    for signal in signals:
        if not signal.text or is_suppressed(signal.text, signal.location):
            continue
        signature = match_signature(signal.text) or signal.fallback
        if signature is None:
            continue
        issues.append(
            Issue(
                category=signature.category,
                timestamp=signal.timestamp,
                source=signal.source,
                text=signal.text[:_TEXT_CAP],
                explanation=signature.explanation,
                remedy=signature.remedy,
            )
        )
    return sorted(issues, key=lambda i: i.timestamp)


def deduplicate(issues: Sequence[Issue], window: float = DEDUP_WINDOW_MS) -> list[Issue]:
    """Drop issues within ``window`` ms of a kept issue of the same category.

    ``issues`` must be sorted by timestamp; the earliest of a burst is kept.
    """
    last_kept: dict[str, float] = {}
    kept: list[Issue] = []
    for issue in issues:
        previous = last_kept.get(issue.category)
        if previous is not None and abs(issue.timestamp - previous) < window:
            continue
        last_kept[issue.category] = issue.timestamp
        kept.append(issue)
    return kept


def _names_selector(text: str, selector: str) -> bool:
    # Whole-token match: "button" must not hit "buttonbar" or "submit-button".
    return re.search(rf"(?<![\w-]){re.escape(selector)}(?![\w-])", text) is not None


def _retried_successfully(issue: Issue, actions: Sequence[Action]) -> bool:
    # Untimed issues (runner errors, error-context) describe the final outcome.
    if issue.timestamp <= 0:
        return False
    return any(
        action.succeeded
        and action.start_time > issue.timestamp
        and action.selector is not None
        and _names_selector(issue.text, action.selector)
        for action in actions
    )


def mark_recovered(issues: Sequence[Issue], actions: Sequence[Action]) -> list[Issue]:
    return [
        issue.model_copy(update={"recovered": True})
        if _retried_successfully(issue, actions)
        else issue
        for issue in issues
    ]


def find_issues(ctx: TraceContext) -> list[Issue]:
    """All unique issues of ``ctx`` in time order, recovered ones flagged."""
    return mark_recovered(deduplicate(classify(collect_signals(ctx))), ctx.actions)


def _summary_line(active: int, recovered: int, critical: bool, verbose: bool) -> str:
    if recovered == 0:
        note = ""
    elif verbose:
        note = f" (+{recovered} recovered)"
    else:
        note = f" ({recovered} recovered issue(s) hidden)"

    if active == 0:
        return f"✅ No known error patterns detected{note}"
    if critical:
        return f"🚨 CRITICAL ISSUES FOUND - {active} unique error(s) detected{note}"
    return f"⚠️  {active} potential issue(s) detected{note}"


def _primary(active: Sequence[Issue], recovered: int, verbose: bool) -> PrimaryDiagnosis:
    if not active:
        if recovered and not verbose:
            note = f" ({recovered} recovered issue(s) hidden, use --verbose to see)"
        elif recovered:
            note = f" ({recovered} recovered issue(s) listed)"
        else:
            note = ""
        return PrimaryDiagnosis(
            explanation=CLEAN_EXPLANATION,
            remedy=f"Trace looks clean.{note} If test still fails, check server logs.",
        )
    chosen = next((i for i in active if is_critical(i.category)), active[0])
    return PrimaryDiagnosis(explanation=chosen.explanation, remedy=chosen.remedy)


def build_report(issues: Sequence[Issue], options: DiagnoseOptions) -> DiagnosisReport:
    """Aggregate unique issues into a :class:`DiagnosisReport`."""
    active = [i for i in issues if not i.recovered]
    recovered = len(issues) - len(active)
    listed = list(issues) if options.verbose else active

    by_category: dict[str, int] = {}
    for issue in active:
        by_category[issue.category] = by_category.get(issue.category, 0) + 1
    critical = any(is_critical(category) for category in by_category)

    return DiagnosisReport(
        summary=_summary_line(len(active), recovered, critical, options.verbose),
        issue_count=len(active),
        recovered_count=recovered or None,
        by_category=by_category,
        primary_diagnosis=_primary(active, recovered, options.verbose),
        issues=[
            IssueView(
                category=issue.category,
                timestamp=issue.timestamp,
                source=issue.source,
                explanation=issue.explanation,
                remedy=issue.remedy,
                snippet=issue.snippet(),
                recovered=True if issue.recovered else None,
            )
            for issue in listed[: options.limit]
        ],
    )


def diagnose(ctx: TraceContext, options: DiagnoseOptions | None = None) -> DiagnosisReport:
    """Scan ``ctx`` against the signature table and return the diagnosis."""
    return build_report(find_issues(ctx), options or DiagnoseOptions())


__all__ = [
    "CLEAN_EXPLANATION",
    "DEDUP_WINDOW_MS",
    "Signal",
    "build_report",
    "classify",
    "collect_signals",
    "deduplicate",
    "diagnose",
    "find_issues",
    "mark_recovered",
]

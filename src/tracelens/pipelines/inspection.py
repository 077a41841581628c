"""
Inspection pipeline: from a user-supplied path to a built trace context.

Flow Overview
-------------
1. **Resolve** the path (or select one interactively) and extract archives
   through the cache (:mod:`tracelens.trace.loader`).
2. **Parse** ``test.trace`` and every browser shard
   (:mod:`tracelens.trace.parser`).
3. **Read** the optional ``error-context.md`` side document.
4. **Build** the immutable :class:`TraceContext`.

``diagnose_all`` repeats that flow for every archive under the results
directory, one trace at a time. A trace that fails to load is reported in
place and the batch carries on with the next one.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from tracelens.core.contracts.context import TraceContext
from tracelens.core.contracts.diagnosis import DiagnosisReport
from tracelens.core.contracts.queries import DiagnoseOptions
from tracelens.core.errors import NotFoundError
from tracelens.core.settings import Settings, get_logger
from tracelens.diagnostics.engine import diagnose
from tracelens.trace.builder import build_context
from tracelens.trace.error_context import load_error_context
from tracelens.trace.loader import Invocation, ResolvedTrace, resolve_trace
from tracelens.trace.parser import load_trace_events

logger = get_logger("tracelens.pipelines.inspection")


@dataclass(frozen=True, slots=True)
class TraceSession:
    """A resolved trace together with its built context."""

    resolved: ResolvedTrace
    context: TraceContext

    @property
    def trace_path(self) -> Path:
        return self.resolved.trace_dir


def load_context(resolved: ResolvedTrace, settings: Settings) -> TraceContext:
    """Parse and build the context for an already resolved trace directory."""
    parsed = load_trace_events(resolved.trace_dir)
    fallback_name = resolved.archive.parent.name if resolved.archive else None
    return build_context(
        parsed,
        resolved.trace_dir,
        error_context=load_error_context(resolved.trace_dir),
        key_actions_only=settings.key_actions_only,
        fallback_name=fallback_name,
    )


def open_trace(path: Path | None, invocation: Invocation) -> TraceSession:
    """Resolve ``path`` (or select interactively) and build its context."""
    resolved = resolve_trace(path, invocation)
    return TraceSession(resolved=resolved, context=load_context(resolved, invocation.settings))


# --------------------------------------------------------------------------- #
# Batch diagnosis
# --------------------------------------------------------------------------- #


class _BatchModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class BatchEntry(_BatchModel):
    """Outcome for one trace: a diagnosis, or the error that stopped it."""

    test_name: str
    trace_path: str
    diagnosis: DiagnosisReport | None = None
    error: str | None = None


class BatchReport(_BatchModel):
    analyzed: int
    clean_skipped: int = 0
    traces: list[BatchEntry] = Field(default_factory=list)


def diagnose_all(invocation: Invocation, options: DiagnoseOptions) -> BatchReport:
    """Diagnose every archive under the results directory.

    Clean traces are counted but not listed unless ``options.verbose``.

    Raises
    ------
    NotFoundError
        If there is no results directory or it holds no archives.
    """
    candidates = sorted(invocation.discover(), key=lambda c: c.test_name)
    if not candidates:
        raise NotFoundError(
            f"No {invocation.settings.archive_name} files found in {invocation.results_dir}"
        )

    entries: list[BatchEntry] = []
    skipped = 0
    for candidate in candidates:
        try:
            session = open_trace(candidate.path, invocation)
            report = diagnose(session.context, options)
        except Exception as exc:  # noqa: BLE001 - isolate each trace
            logger.warning("Failed to diagnose %s: %s", candidate.path, exc)
            entries.append(
                BatchEntry(
                    test_name=candidate.test_name,
                    trace_path=str(candidate.path),
                    error=str(exc) or type(exc).__name__,
                )
            )
            continue

        if not options.verbose and report.issue_count == 0:
            skipped += 1
            continue
        entries.append(
            BatchEntry(
                test_name=candidate.test_name,
                trace_path=str(session.trace_path),
                diagnosis=report,
            )
        )

    return BatchReport(analyzed=len(candidates), clean_skipped=skipped, traces=entries)


__all__ = [
    "BatchEntry",
    "BatchReport",
    "TraceSession",
    "diagnose_all",
    "load_context",
    "open_trace",
]

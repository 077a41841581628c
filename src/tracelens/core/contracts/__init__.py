"""Pydantic contracts shared across tracelens.

- ``events``    : the raw, tagged trace events as decoded from JSONL.
- ``context``   : the immutable :class:`TraceContext` aggregate.
- ``diagnosis`` : issues and the diagnosis report.
- ``queries``   : validated parameters for parametrized reports.
- ``reports``   : output shapes of the report projections.
"""

from __future__ import annotations

from .context import Action, ErrorContext, TraceContext, Verdict
from .diagnosis import DiagnosisReport, Issue, IssueSource, IssueView, PrimaryDiagnosis
from .queries import AroundQuery, ConsoleQuery, DiagnoseOptions, ScreenshotQuery

__all__ = [
    "Action",
    "AroundQuery",
    "ConsoleQuery",
    "DiagnoseOptions",
    "DiagnosisReport",
    "ErrorContext",
    "Issue",
    "IssueSource",
    "IssueView",
    "PrimaryDiagnosis",
    "ScreenshotQuery",
    "TraceContext",
    "Verdict",
]

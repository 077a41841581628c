"""Diagnosis contracts: issues found in a trace and the aggregate report.

Serialized with camelCase keys (``issueCount``, ``primaryDiagnosis``...) so
the JSON output reads the same as the other report projections.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

IssueSource = Literal["console", "page-error", "runner-output"]

SNIPPET_WIDTH = 200


class _ReportModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class Issue(_ReportModel):
    """One diagnostic finding.

    ``text`` is the raw signal (capped at 800 characters). ``recovered``
    marks a failure that a later successful retry superseded.
    """

    category: str
    timestamp: float
    source: IssueSource
    text: str
    explanation: str
    remedy: str
    recovered: bool = False

    def snippet(self, width: int = SNIPPET_WIDTH) -> str:
        if len(self.text) <= width:
            return self.text
        return self.text[:width] + "..."


class IssueView(_ReportModel):
    """Issue as listed in a report; ``recovered`` only appears when true."""

    category: str
    timestamp: float
    source: IssueSource
    explanation: str
    remedy: str
    snippet: str
    recovered: bool | None = None


class PrimaryDiagnosis(_ReportModel):
    explanation: str
    remedy: str


class DiagnosisReport(_ReportModel):
    """Aggregate diagnosis for one trace.

    Fields
    ------
    summary : str
        One-line verdict with a status marker.
    issue_count : int
        Number of unique, non-recovered issues.
    recovered_count : int | None
        Number of recovered issues; omitted when zero.
    by_category : dict[str, int]
        Non-recovered issue counts per category (never capped).
    primary_diagnosis : PrimaryDiagnosis
        Explanation and remedy of the most important issue.
    issues : list[IssueView]
        Up to ``limit`` issues in time order.
    """

    summary: str
    issue_count: int
    recovered_count: int | None = None
    by_category: dict[str, int] = Field(default_factory=dict)
    primary_diagnosis: PrimaryDiagnosis
    issues: list[IssueView] = Field(default_factory=list)


__all__ = [
    "DiagnosisReport",
    "Issue",
    "IssueSource",
    "IssueView",
    "PrimaryDiagnosis",
    "SNIPPET_WIDTH",
]

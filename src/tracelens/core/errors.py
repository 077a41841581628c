"""Error taxonomy for trace loading, parsing and querying.

Two families live here:

- **Fatal errors** (exceptions): anything that prevents producing a trace
  context or answering a query. The CLI turns each into a ``{"error": ...}``
  document and a non-zero exit code.
- **Recoverable records** (frozen dataclasses): per-line parse failures and
  action correlation gaps. They are collected and reported, never raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


class TraceLensError(Exception):
    """Base class for every fatal tracelens error."""


class NotFoundError(TraceLensError):
    """The trace path, results directory or trace candidates do not exist."""


class InvalidPathError(TraceLensError):
    """The path exists but is neither a directory nor a trace archive."""


class InvalidArchiveError(InvalidPathError):
    """The path is a file but cannot be extracted as a zip archive."""


class SelectionError(TraceLensError):
    """The operator's interactive trace choice was not a valid option."""


class QueryError(TraceLensError):
    """A report query is invalid for this trace (bad regex, index out of range)."""


@dataclass(frozen=True, slots=True)
class ParseError:
    """A single line that could not be decoded into an event.

    Attributes
    ----------
    source : str
        File name the line came from (empty when decoding a bare object).
    line_no : int
        1-based line number inside ``source`` (0 when unknown).
    reason : str
        Human-readable decode failure.
    snippet : str
        First 100 characters of the offending line.
    quiet : bool
        True for lines that are well-formed but of a kind we do not model;
        these are skipped without a warning.
    """

    source: str
    line_no: int
    reason: str
    snippet: str = ""
    quiet: bool = False


GapKind = Literal["orphan-end", "incomplete"]


@dataclass(frozen=True, slots=True)
class CorrelationGap:
    """An action-start/action-end pair that could not be matched."""

    call_id: str
    kind: GapKind


__all__ = [
    "CorrelationGap",
    "GapKind",
    "InvalidArchiveError",
    "InvalidPathError",
    "NotFoundError",
    "ParseError",
    "QueryError",
    "SelectionError",
    "TraceLensError",
]

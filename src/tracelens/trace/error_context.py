"""Reader for ``error-context.md``, the runner's failure side document.

The runner writes this file next to ``trace.zip`` only when a test fails::

    # Test info

    - Name: <test name>
    - Location: <file:line>

    # Error details

    ```
    <error message>
    ```

Its presence is authoritative: the context builder marks the run failed even
when the event streams alone look clean.
"""

from __future__ import annotations

import re
from pathlib import Path

from tracelens.core.contracts.context import ErrorContext

ERROR_CONTEXT_NAME = "error-context.md"

_NAME_RE = re.compile(r"- Name:\s*(.+)")
_LOCATION_RE = re.compile(r"- Location:\s*(.+)")
_ERROR_RE = re.compile(r"# Error details\s*```[^\n]*\n?([\s\S]*?)```")


def parse_error_context(content: str) -> ErrorContext | None:
    """Parse the document; ``None`` when the fenced error block is missing."""
    error_match = _ERROR_RE.search(content)
    if error_match is None:
        return None
    name_match = _NAME_RE.search(content)
    location_match = _LOCATION_RE.search(content)
    return ErrorContext(
        test_name=(name_match.group(1).strip() if name_match else "") or "Unknown test",
        location=(location_match.group(1).strip() if location_match else "") or "Unknown location",
        error_message=error_match.group(1).strip() or "Unknown error",
    )


def find_error_context(trace_dir: Path) -> Path | None:
    """Look in the trace directory, then in the test result folder above it."""
    for directory in (trace_dir, trace_dir.parent):
        candidate = directory / ERROR_CONTEXT_NAME
        if candidate.is_file():
            return candidate
    return None


def load_error_context(trace_dir: Path) -> ErrorContext | None:
    path = find_error_context(trace_dir)
    if path is None:
        return None
    return parse_error_context(path.read_text(encoding="utf-8", errors="replace"))


__all__ = ["ERROR_CONTEXT_NAME", "find_error_context", "load_error_context", "parse_error_context"]

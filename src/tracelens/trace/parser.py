"""
Event parser: JSONL trace files → typed :data:`RawEvent` records.

Trace files are written by the test runner while it may be crashing or
flushing, so the last line (or any line) can be truncated. Each line is
decoded on its own through a fallible step returning
``Result[RawEvent, ParseError]``:

- malformed JSON or an invalid payload of a known kind → warning on stderr,
  line skipped;
- a well-formed line of a kind we do not model (``resource-snapshot``...)
  → skipped quietly (debug log).

Parsing never aborts on a single bad line.

Layout
------
``test.trace`` holds runner events (stdout/stderr/error). Browser events are
spread over ``<n>-trace.trace`` shards, one per browser context; shards are
read in ascending numeric order and concatenated. The context builder
re-sorts everything by timestamp afterwards.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from tracelens.core.contracts.events import RAW_EVENT_ADAPTER, WIRE_TYPES, RawEvent
from tracelens.core.errors import ParseError
from tracelens.core.result import Result, err, ok
from tracelens.core.settings import get_logger

logger = get_logger("tracelens.trace.parser")

RUNNER_TRACE_NAME = "test.trace"
_SHARD_RE = re.compile(r"^(\d+)-trace\.trace$")
_SNIPPET = 100


@dataclass(frozen=True, slots=True)
class ParseOutcome:
    """Events decoded from one file plus every line that was skipped."""

    events: list[RawEvent] = field(default_factory=list)
    problems: list[ParseError] = field(default_factory=list)

    @property
    def warnings(self) -> list[ParseError]:
        return [p for p in self.problems if not p.quiet]


@dataclass(frozen=True, slots=True)
class ParsedTrace:
    """All events of one trace directory, split by origin."""

    runner_events: list[RawEvent] = field(default_factory=list)
    browser_events: list[RawEvent] = field(default_factory=list)
    problems: list[ParseError] = field(default_factory=list)


def decode_event(
    obj: Any,
    *,
    source: str = "",
    line_no: int = 0,
    snippet: str = "",
) -> Result[RawEvent, ParseError]:
    """Validate one decoded JSON value against the event union."""
    if not isinstance(obj, dict):
        return err(ParseError(source, line_no, "expected a JSON object", snippet))

    tag = obj.get("type")
    if not isinstance(tag, str) or tag not in WIRE_TYPES:
        return err(ParseError(source, line_no, f"unmodelled event type {tag!r}", snippet, quiet=True))

    try:
        return ok(RAW_EVENT_ADAPTER.validate_python(obj))
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in e["loc"]) for e in exc.errors())
        return err(ParseError(source, line_no, f"invalid {tag!r} event ({fields})", snippet))


def decode_line(line: str, *, source: str = "", line_no: int = 0) -> Result[RawEvent, ParseError]:
    """Decode one JSONL line into a typed event."""
    snippet = line[:_SNIPPET]
    try:
        obj = json.loads(line)
    except json.JSONDecodeError as exc:
        return err(ParseError(source, line_no, f"malformed JSON: {exc.msg}", snippet))
    return decode_event(obj, source=source, line_no=line_no, snippet=snippet)


def read_jsonl(path: Path) -> ParseOutcome:
    """Decode every non-blank line of ``path``; a missing file yields nothing."""
    if not path.is_file():
        return ParseOutcome()

    outcome = ParseOutcome()
    text = path.read_text(encoding="utf-8", errors="replace")
    for line_no, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        result = decode_line(line, source=path.name, line_no=line_no)
        if result.is_ok():
            outcome.events.append(result.unwrap())
            continue
        problem = result.unwrap_err()
        outcome.problems.append(problem)
        if problem.quiet:
            logger.debug("Skipping %s:%d: %s", problem.source, line_no, problem.reason)
        else:
            logger.warning(
                "Failed to parse %s:%d: %s (%s...)",
                problem.source,
                line_no,
                problem.reason,
                problem.snippet,
            )
    return outcome


def shard_files(trace_dir: Path) -> list[Path]:
    """Browser shards (``<n>-trace.trace``) in ascending numeric order."""
    shards: list[tuple[int, str, Path]] = []
    for entry in trace_dir.iterdir():
        match = _SHARD_RE.match(entry.name)
        if match and entry.is_file():
            shards.append((int(match.group(1)), entry.name, entry))
    return [path for _, _, path in sorted(shards)]


def load_trace_events(trace_dir: Path) -> ParsedTrace:
    """Parse ``test.trace`` and every browser shard in ``trace_dir``."""
    runner = read_jsonl(trace_dir / RUNNER_TRACE_NAME)
    parsed = ParsedTrace(runner_events=runner.events, problems=list(runner.problems))
    for shard in shard_files(trace_dir):
        outcome = read_jsonl(shard)
        parsed.browser_events.extend(outcome.events)
        parsed.problems.extend(outcome.problems)
    logger.debug(
        "Parsed %d runner and %d browser events from %s",
        len(parsed.runner_events),
        len(parsed.browser_events),
        trace_dir,
    )
    return parsed


__all__ = [
    "ParseOutcome",
    "ParsedTrace",
    "RUNNER_TRACE_NAME",
    "decode_event",
    "decode_line",
    "load_trace_events",
    "read_jsonl",
    "shard_files",
]

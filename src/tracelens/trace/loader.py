"""
Trace loader: locate a trace, extract archives into a cache, pick interactively.

Responsibilities
----------------
- **Discover**: list every ``<results>/<test>/trace.zip``, newest first,
  flagging archives older than the stale threshold.
- **Select**: when no path is given, hand the candidates to an injectable
  selector (a terminal prompt in the CLI, a stub in tests) and validate
  the answer.
- **Extract**: unzip an archive into a deterministic sibling directory and
  reuse it while it is newer than the archive.
- **Resolve**: turn an archive, a directory or nothing into a
  :class:`ResolvedTrace`.

Cache Policy
------------
The extraction cache is best-effort and unlocked. A fresh extraction is
written into a temporary sibling directory and renamed into place only once
complete, so a reader sees either the previous tree or the new one, never a
half-written one. Two concurrent invocations may both re-extract; the last
rename wins and the content is identical.
"""

from __future__ import annotations

import os
import shutil
import tempfile
import time
import zipfile
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from functools import cached_property
from pathlib import Path

from tracelens.core.errors import (
    InvalidArchiveError,
    InvalidPathError,
    NotFoundError,
    SelectionError,
)
from tracelens.core.settings import Settings, get_logger, load_settings

logger = get_logger("tracelens.trace.loader")

_CACHE_DIR_NAME = "unzipped"


@dataclass(frozen=True, slots=True)
class TraceCandidate:
    """A discoverable trace archive.

    Attributes
    ----------
    test_name : str
        Name of the per-test directory holding the archive.
    path : Path
        Absolute path to the archive.
    mtime : float
        Archive modification time (epoch seconds).
    age_seconds : float
        Age relative to the invocation clock.
    stale : bool
        True when older than the configured threshold.
    """

    test_name: str
    path: Path
    mtime: float
    age_seconds: float
    stale: bool

    @property
    def age_label(self) -> str:
        return format_age(self.age_seconds)


@dataclass(frozen=True, slots=True)
class ResolvedTrace:
    """Directory of raw trace files plus the archive it came from, if known."""

    trace_dir: Path
    archive: Path | None = None


# Receives the candidates (newest first) and returns the operator's raw answer.
TraceSelector = Callable[[Sequence[TraceCandidate]], str]


def format_age(seconds: float) -> str:
    """Render an age as ``"N seconds/minutes/hours ago"``.

    >>> format_age(61)
    '1 minute ago'
    """
    secs = int(max(seconds, 0))
    minutes, hours = secs // 60, secs // 3600
    if hours > 0:
        return f"{hours} hour{'' if hours == 1 else 's'} ago"
    if minutes > 0:
        return f"{minutes} minute{'' if minutes == 1 else 's'} ago"
    return f"{secs} second{'' if secs == 1 else 's'} ago"


def describe_archive(archive: Path, *, now: float, stale_after: float) -> TraceCandidate:
    """Return age and staleness information for one archive."""
    mtime = archive.stat().st_mtime
    age = now - mtime
    return TraceCandidate(
        test_name=archive.parent.name,
        path=archive,
        mtime=mtime,
        age_seconds=age,
        stale=age > stale_after,
    )


# --------------------------------------------------------------------------- #
# Discovery & selection
# --------------------------------------------------------------------------- #


def find_results_dir(start: Path, name: str) -> Path:
    """Return ``start/<name>`` or the nearest such directory in a parent.

    Raises
    ------
    NotFoundError
        If no ancestor of ``start`` contains a ``name`` directory.
    """
    for directory in (start, *start.parents):
        candidate = directory / name
        if candidate.is_dir():
            return candidate
    raise NotFoundError(
        f"Could not find {name} directory. Run from a directory with {name}/, "
        f"or a parent directory containing it."
    )


def discover_traces(
    results_dir: Path,
    *,
    archive_name: str,
    now: float,
    stale_after: float,
) -> list[TraceCandidate]:
    """List every ``<results_dir>/<test>/<archive_name>``, newest first."""
    if not results_dir.is_dir():
        return []
    found = [
        describe_archive(entry / archive_name, now=now, stale_after=stale_after)
        for entry in sorted(results_dir.iterdir())
        if (entry / archive_name).is_file()
    ]
    return sorted(found, key=lambda c: c.mtime, reverse=True)


def choose_trace(
    candidates: Sequence[TraceCandidate],
    selector: TraceSelector,
) -> TraceCandidate:
    """Ask ``selector`` for a 1-based choice and return that candidate.

    Raises
    ------
    NotFoundError
        If there is nothing to choose from.
    SelectionError
        If the answer is not a number between 1 and ``len(candidates)``.
    """
    if not candidates:
        raise NotFoundError("No trace archives found. Run an E2E test first.")
    answer = selector(candidates).strip()
    bounds = f"Enter a number between 1 and {len(candidates)}"
    try:
        choice = int(answer)
    except ValueError as exc:
        raise SelectionError(f"Invalid selection {answer!r}. {bounds}") from exc
    if not 1 <= choice <= len(candidates):
        raise SelectionError(f"Invalid selection {choice}. {bounds}")
    return candidates[choice - 1]


# --------------------------------------------------------------------------- #
# Extraction cache
# --------------------------------------------------------------------------- #


def cache_dir_for(archive: Path) -> Path:
    """Deterministic sibling directory an archive is extracted into."""
    if archive.stem == "trace":
        return archive.parent / _CACHE_DIR_NAME
    return archive.parent / f"{archive.stem}.{_CACHE_DIR_NAME}"


def extract_archive(archive: Path) -> Path:
    """Extract ``archive`` into its cache directory and return that directory.

    The cache is reused when its mtime is newer than the archive's; otherwise
    it is replaced by a complete fresh extraction.

    Raises
    ------
    InvalidArchiveError
        If the archive is not a readable zip file.
    """
    out = cache_dir_for(archive)
    archive_mtime = archive.stat().st_mtime
    if out.is_dir() and out.stat().st_mtime > archive_mtime:
        logger.debug("Cache hit for %s -> %s", archive, out)
        return out

    staging = Path(tempfile.mkdtemp(prefix=f".{out.name}-", dir=archive.parent))
    try:
        with zipfile.ZipFile(archive) as zf:
            zf.extractall(staging)
    except zipfile.BadZipFile as exc:
        shutil.rmtree(staging, ignore_errors=True)
        raise InvalidArchiveError(f"Cannot extract trace archive {archive}: {exc}") from exc
    except BaseException:
        shutil.rmtree(staging, ignore_errors=True)
        raise

    if out.exists():
        shutil.rmtree(out)
    try:
        os.replace(staging, out)
    except OSError:
        # Another invocation renamed its extraction into place first.
        shutil.rmtree(staging, ignore_errors=True)
        if not out.is_dir():
            raise
    stamp = max(time.time(), archive_mtime + 1.0)
    os.utime(out, (stamp, stamp))
    logger.debug("Extracted %s -> %s", archive, out)
    return out


# --------------------------------------------------------------------------- #
# Invocation & resolution
# --------------------------------------------------------------------------- #


@dataclass
class Invocation:
    """Per-command context threaded through loading and batch analysis.

    The results directory is looked up lazily, once per invocation.
    """

    settings: Settings = field(default_factory=load_settings)
    cwd: Path = field(default_factory=Path.cwd)
    selector: TraceSelector | None = None
    clock: Callable[[], float] = time.time

    @cached_property
    def results_dir(self) -> Path:
        return find_results_dir(self.cwd, self.settings.results_dir_name)

    def discover(self) -> list[TraceCandidate]:
        return discover_traces(
            self.results_dir,
            archive_name=self.settings.archive_name,
            now=self.clock(),
            stale_after=self.settings.stale_after_seconds,
        )

    def describe(self, archive: Path) -> TraceCandidate:
        return describe_archive(
            archive, now=self.clock(), stale_after=self.settings.stale_after_seconds
        )


def resolve_trace(path: Path | None, invocation: Invocation) -> ResolvedTrace:
    """Turn a user-supplied path (or none) into a directory of raw trace files.

    - ``None``: choose among discovered archives via ``invocation.selector``.
    - archive file: extracted through the cache.
    - directory: used directly; a sibling archive is reported as its source.

    Raises
    ------
    NotFoundError
        If the path does not exist.
    InvalidArchiveError
        If the path is a file that is not a zip archive.
    InvalidPathError
        If the path is neither a file nor a directory.
    SelectionError
        If interactive selection is needed but impossible or invalid.
    """
    if path is None:
        if invocation.selector is None:
            raise SelectionError("No trace path given and no interactive selector available.")
        path = choose_trace(invocation.discover(), invocation.selector).path

    target = path if path.is_absolute() else invocation.cwd / path
    if not target.exists():
        raise NotFoundError(f"Trace file not found: {target}")

    if target.is_dir():
        sibling = target.parent / invocation.settings.archive_name
        return ResolvedTrace(trace_dir=target, archive=sibling if sibling.is_file() else None)

    if target.is_file():
        if not zipfile.is_zipfile(target):
            raise InvalidArchiveError(f"Not a trace archive: {target}")
        return ResolvedTrace(trace_dir=extract_archive(target), archive=target)

    raise InvalidPathError(f"Invalid trace path: {target}")


__all__ = [
    "Invocation",
    "ResolvedTrace",
    "TraceCandidate",
    "TraceSelector",
    "cache_dir_for",
    "choose_trace",
    "describe_archive",
    "discover_traces",
    "extract_archive",
    "find_results_dir",
    "format_age",
    "resolve_trace",
]

"""Builders for synthetic trace files used across the test-suite.

Each ``*_event`` helper returns the raw dict a recorder would write on one
JSONL line; :func:`write_trace_dir` and :func:`write_archive` lay them out
the way the test runner does (``test.trace`` + ``<n>-trace.trace`` shards,
optionally packed into ``trace.zip`` with an ``error-context.md`` beside it).
"""

from __future__ import annotations

import json
import zipfile
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

Event = Mapping[str, Any]


def context_options_event(title: str = "login works", monotonic_time: float = 1000.0) -> Event:
    return {
        "type": "context-options",
        "version": 6,
        "browserName": "chromium",
        "monotonicTime": monotonic_time,
        "title": title,
        "options": {},
    }


def before_event(call_id: str, start_time: float, api_name: str, **params: Any) -> Event:
    return {
        "type": "before",
        "callId": call_id,
        "startTime": start_time,
        "apiName": api_name,
        "class": "Frame",
        "method": api_name.split(".")[-1],
        "params": params,
    }


def after_event(call_id: str, end_time: float, error: str | None = None) -> Event:
    event: dict[str, Any] = {"type": "after", "callId": call_id, "endTime": end_time}
    if error is not None:
        event["error"] = {"message": error, "name": "Error"}
    return event


def frame_event(sha1: str, timestamp: float) -> Event:
    return {
        "type": "screencast-frame",
        "pageId": "page@1",
        "sha1": sha1,
        "width": 1280,
        "height": 720,
        "timestamp": timestamp,
    }


def console_event(
    time: float, text: str, message_type: str = "log", url: str | None = None
) -> Event:
    event: dict[str, Any] = {
        "type": "console",
        "time": time,
        "messageType": message_type,
        "text": text,
    }
    if url is not None:
        event["location"] = {"url": url, "lineNumber": 12, "columnNumber": 4}
    return event


def page_error_event(time: float, message: str, stack: str = "Error: boom\n  at app.js:1") -> Event:
    return {
        "type": "event",
        "time": time,
        "class": "BrowserContext",
        "method": "pageError",
        "params": {"error": {"error": {"message": message, "stack": stack}}},
    }


def log_event(time: float, message: str, call_id: str = "call@1") -> Event:
    return {"type": "log", "time": time, "callId": call_id, "message": message}


def stdout_event(timestamp: float, text: str) -> Event:
    return {"type": "stdout", "timestamp": timestamp, "text": text}


def error_context_md(
    message: str, name: str = "login works", location: str = "tests/login.spec.ts:12"
) -> str:
    return (
        "# Test info\n\n"
        f"- Name: {name}\n"
        f"- Location: {location}\n\n"
        "# Error details\n\n"
        "```\n"
        f"{message}\n"
        "```\n"
    )


def jsonl(events: Iterable[Event]) -> str:
    return "".join(json.dumps(e) + "\n" for e in events)


def write_trace_dir(
    directory: Path,
    *,
    browser: Iterable[Event] = (),
    runner: Iterable[Event] = (),
    shard: str = "0-trace.trace",
) -> Path:
    """Write an extracted trace directory and return it."""
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "test.trace").write_text(jsonl(runner), encoding="utf-8")
    (directory / shard).write_text(jsonl(browser), encoding="utf-8")
    (directory / "resources").mkdir(exist_ok=True)
    return directory


def write_archive(
    test_dir: Path,
    *,
    browser: Iterable[Event] = (),
    runner: Iterable[Event] = (),
    error_context: str | None = None,
    name: str = "trace.zip",
) -> Path:
    """Write ``<test_dir>/trace.zip`` (and ``error-context.md``) and return the archive."""
    test_dir.mkdir(parents=True, exist_ok=True)
    archive = test_dir / name
    with zipfile.ZipFile(archive, "w") as zf:
        zf.writestr("test.trace", jsonl(runner))
        zf.writestr("0-trace.trace", jsonl(browser))
        zf.writestr("resources/.keep", "")
    if error_context is not None:
        (test_dir / "error-context.md").write_text(error_context, encoding="utf-8")
    return archive


def five_screenshots() -> list[Event]:
    return [frame_event(f"shot-{i}.jpeg", 1000.0 + i * 100) for i in range(5)]


__all__ = [
    "after_event",
    "before_event",
    "console_event",
    "context_options_event",
    "error_context_md",
    "five_screenshots",
    "frame_event",
    "jsonl",
    "log_event",
    "page_error_event",
    "stdout_event",
    "write_archive",
    "write_trace_dir",
]

"""JSON envelope shared by every command.

Success::

    {"command": "summary", "tracePath": "/.../unzipped", "results": {...}}

Failure::

    {"error": "Trace file not found: ..."}

Report models are serialized with their camelCase aliases; ``None`` fields
are omitted.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic_core import to_jsonable_python


def to_jsonable(results: Any) -> Any:
    """Convert report models (or lists/dicts of them) into plain JSON data."""
    return to_jsonable_python(results, by_alias=True, exclude_none=True)


def envelope(command: str, trace_path: Path | str, results: Any) -> dict[str, Any]:
    return {"command": command, "tracePath": str(trace_path), "results": to_jsonable(results)}


def render(payload: dict[str, Any]) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False)


def render_envelope(command: str, trace_path: Path | str, results: Any) -> str:
    return render(envelope(command, trace_path, results))


def render_error(message: str) -> str:
    return json.dumps({"error": message}, ensure_ascii=False)


__all__ = ["envelope", "render", "render_envelope", "render_error", "to_jsonable"]

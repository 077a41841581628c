"""Trace ingestion: locate and extract, parse JSONL, build the context."""

from __future__ import annotations

from .builder import build_context
from .error_context import load_error_context
from .loader import Invocation, ResolvedTrace, TraceCandidate, resolve_trace
from .parser import ParsedTrace, load_trace_events

__all__ = [
    "Invocation",
    "ParsedTrace",
    "ResolvedTrace",
    "TraceCandidate",
    "build_context",
    "load_error_context",
    "load_trace_events",
    "resolve_trace",
]

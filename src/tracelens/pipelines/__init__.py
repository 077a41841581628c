"""Pipelines package for tracelens.

Re-export the public entrypoints for convenience:
    from tracelens.pipelines import open_trace, diagnose_all
"""

from __future__ import annotations

from .inspection import BatchReport, TraceSession, diagnose_all, open_trace

__all__ = ["BatchReport", "TraceSession", "diagnose_all", "open_trace"]

"""tracelens: inspect and diagnose recorded browser-automation traces.

The package turns a recorded test trace (event shards plus screenshot
resources) into an immutable :class:`~tracelens.core.contracts.context.TraceContext`
and exposes read-only reports and a failure diagnosis over it.
"""

from __future__ import annotations

__all__ = ["__version__"]
__version__ = "0.1.0"

"""Core package initializer for tracelens.

Holds the settings loader, the Result container, the error taxonomy and the
pydantic contracts shared by the loader, builder, diagnostics and reports:
    from tracelens.core.settings import settings, load_settings, get_logger
"""

from __future__ import annotations

__all__ = ["__doc__"]

"""Read-only report projections and the JSON envelope."""

from __future__ import annotations

from . import projections
from .envelope import envelope, render_envelope, render_error

__all__ = ["envelope", "projections", "render_envelope", "render_error"]

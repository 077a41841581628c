"""Failure diagnosis over a built trace context."""

from __future__ import annotations

from .engine import diagnose, find_issues
from .signatures import SIGNATURES, Signature, match_signature

__all__ = ["SIGNATURES", "Signature", "diagnose", "find_issues", "match_signature"]

"""Typed, validated parameters for the report projections.

Each parametrized command gets one query model. The CLI builds it once from
raw option strings; any :class:`pydantic.ValidationError` is reported as a
query error before a projection ever runs.
"""

from __future__ import annotations

import re
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

class _Query(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class ScreenshotQuery(_Query):
    """Pick a screenshot by sorted index, or at the error time (``"error"``)."""

    at: Annotated[int, Field(ge=0)] | Literal["error"] = "error"
    context: int | None = Field(default=None, ge=0)

    @property
    def effective_context(self) -> int:
        """Explicit context, else 2 around the error and 0 around an index."""
        if self.context is not None:
            return self.context
        return 2 if self.at == "error" else 0


class ConsoleQuery(_Query):
    """Console filter; ``type`` is the browser's message type, matched verbatim."""

    type: str | None = Field(default=None, min_length=1)
    filter: str | None = None
    limit: int = Field(default=100, ge=1)

    @field_validator("filter")
    @classmethod
    def _must_compile(cls, v: str | None) -> str | None:
        if v is not None:
            try:
                re.compile(v)
            except re.error as exc:
                raise ValueError(f"Invalid regex {v!r}: {exc}") from exc
        return v

    def pattern(self) -> re.Pattern[str] | None:
        """Compiled case-insensitive filter, or ``None``."""
        return re.compile(self.filter, re.IGNORECASE) if self.filter is not None else None


class AroundQuery(_Query):
    """Everything within ``±window`` ms of ``time``."""

    time: float
    window: float = Field(default=500.0, ge=0)


class DiagnoseOptions(_Query):
    verbose: bool = False
    limit: int = Field(default=10, ge=1)


__all__ = ["AroundQuery", "ConsoleQuery", "DiagnoseOptions", "ScreenshotQuery"]

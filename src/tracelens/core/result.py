"""Typed success/failure container for fallible decoding steps.

Trace files are machine-written and frequently truncated, so turning a line
into an event is allowed to fail without aborting ingestion. The parser
returns ``Result[RawEvent, ParseError]`` per line and the caller decides
whether a failure is a warning or a quiet skip.

Only what the decode path needs is provided:

- ``Ok(value)`` / ``Err(error)`` variants and the ``ok`` / ``err`` constructors;
- ``is_ok`` / ``is_err`` checks;
- ``unwrap`` / ``unwrap_err`` accessors (raise on the wrong variant).

Example
-------
>>> from tracelens.core.result import ok, err, Result
>>> def parse_ms(x: str) -> Result[int, str]:
...     return ok(int(x)) if x.isdigit() else err("not a timestamp")
>>> parse_ms("1500").unwrap()
1500
>>> parse_ms("soon").is_err()
True
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")
E = TypeVar("E")


class Result(Generic[T, E]):
    """Either a decoded value (:class:`Ok`) or the reason it failed (:class:`Err`)."""

    def is_ok(self) -> bool:
        return isinstance(self, Ok)

    def is_err(self) -> bool:
        return isinstance(self, Err)

    def unwrap(self) -> T:
        """Value of an ``Ok``.

        Raises
        ------
        RuntimeError
            If called on an ``Err``.
        """
        if isinstance(self, Ok):
            return self.value
        raise RuntimeError(f"unwrap() called on {self!r}")

    def unwrap_err(self) -> E:
        """Error of an ``Err``; raises :class:`RuntimeError` on an ``Ok``."""
        if isinstance(self, Err):
            return self.error
        raise RuntimeError(f"unwrap_err() called on {self!r}")


@dataclass(frozen=True, slots=True)
class Ok(Result[T, E]):
    value: T


@dataclass(frozen=True, slots=True)
class Err(Result[T, E]):
    error: E


def ok(value: T) -> Result[T, E]:
    return Ok(value)


def err(error: E) -> Result[T, E]:
    return Err(error)


__all__ = ["Err", "Ok", "Result", "err", "ok"]

"""
Failure signature table and noise suppression list.

A signature is a ``(pattern, category, explanation, remedy)`` tuple. The table
is *ordered*: a signal is labelled by the first signature whose pattern
matches, so more specific patterns must come before broader ones.
"""

from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Signature:
    pattern: re.Pattern[str]
    category: str
    explanation: str
    remedy: str

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


def _sig(pattern: str, category: str, explanation: str, remedy: str) -> Signature:
    return Signature(re.compile(pattern, re.IGNORECASE), category, explanation, remedy)


SIGNATURES: tuple[Signature, ...] = (
    _sig(
        r"Timed out.*waiting for",
        "Timeout",
        "An assertion or wait timed out. The expected element/state did not appear in time.",
        "Check screenshots to see actual UI state. May indicate a backend error "
        "preventing the UI from updating.",
    ),
    _sig(
        r"element.*not found|locator.*not found",
        "Element Not Found",
        "The selector did not match any element in the DOM at the time of the action.",
        "Verify the selector is correct and the element exists. Check if a wait is needed.",
    ),
    _sig(
        r"navigation.*failed|net::ERR_",
        "Navigation Error",
        "Page navigation failed due to network or server error.",
        "Check if the URL is correct and the server is running. "
        "Look for network errors in console.",
    ),
    _sig(
        r"console\.error|Uncaught Error|Unhandled Promise",
        "Console Error",
        "JavaScript error logged to browser console.",
        "Check the error message and stack trace to identify the source of the error.",
    ),
    _sig(
        r"status of 4\d\d",
        "HTTP 4xx Error",
        "Client error response from server (400-499).",
        "Check the specific status code and request details.",
    ),
    _sig(
        r"status of 5\d\d",
        "HTTP 5xx Error",
        "Server error response (500-599). Backend crashed or unavailable.",
        "Check server logs for the actual error.",
    ),
    _sig(
        r"ECONNREFUSED|ETIMEDOUT",
        "Connection Error",
        "Failed to connect to a service (database, API, etc.).",
        "Verify all services are running and accessible.",
    ),
    _sig(
        r"strict mode violation|multiple elements",
        "Strict Mode Violation",
        "Selector matched multiple elements when exactly one was expected.",
        "Use a more specific selector to match only the intended element.",
    ),
    _sig(
        r"frame.*detached|frame.*navigated",
        "Frame Detached",
        "The frame was removed from the DOM or navigated while an action was in progress.",
        "Wait for frame to be stable before interacting, or handle frame lifecycle explicitly.",
    ),
    _sig(
        r"dialog.*not handled|unexpected dialog",
        "Unhandled Dialog",
        "A browser dialog (alert/confirm/prompt) appeared but was not handled.",
        'Add page.on("dialog") handler before triggering the action that shows the dialog.',
    ),
)

# Used for error-context documents that match no signature.
ASSERTION_FAILED = Signature(
    pattern=re.compile(r"(?!)"),
    category="Test Assertion Failed",
    explanation=(
        "An assertion (expect) timed out or failed. "
        "The expected element or state was not found."
    ),
    remedy=(
        "Check the screenshots to see the actual UI state. The element may not have "
        "appeared due to a backend error or timing issue."
    ),
)

CRITICAL_CATEGORIES: frozenset[str] = frozenset({"Test Assertion Failed", "HTTP 5xx Error"})

# Third-party telemetry noise; matched against text plus source location.
SUPPRESSIONS: tuple[re.Pattern[str], ...] = (
    re.compile(r"sentry", re.IGNORECASE),
    re.compile(r"ingest\..*sentry", re.IGNORECASE),
)


def match_signature(text: str, table: tuple[Signature, ...] = SIGNATURES) -> Signature | None:
    """Return the first signature in ``table`` matching ``text``."""
    return next((sig for sig in table if sig.matches(text)), None)


def is_suppressed(text: str, location: str | None = None) -> bool:
    combined = f"{text} {location or ''}"
    return any(pattern.search(combined) for pattern in SUPPRESSIONS)


def is_critical(category: str) -> bool:
    return category in CRITICAL_CATEGORIES


__all__ = [
    "ASSERTION_FAILED",
    "CRITICAL_CATEGORIES",
    "SIGNATURES",
    "SUPPRESSIONS",
    "Signature",
    "is_critical",
    "is_suppressed",
    "match_signature",
]

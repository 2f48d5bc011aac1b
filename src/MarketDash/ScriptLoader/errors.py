"""Error taxonomy for script loading.

Candidate-level failures raised by an environment are caught by the loader and
turned into ``LoadResult`` values; they never escape ``ScriptLoader`` calls.
"""

from __future__ import annotations

from typing import Optional

from .types import LoadOutcome


class ScriptLoadError(Exception):
    """Raised by an environment when a locator signals an explicit error."""

    outcome: LoadOutcome = "error"

    def __init__(self, locator: str, reason: str, *, status: Optional[int] = None) -> None:
        super().__init__(f"{reason}: {locator}")
        self.locator = locator
        self.reason = reason
        self.status = status


class CandidateNotFound(ScriptLoadError):
    """The candidate does not exist (HTTP 404/410 or missing local file)."""

    outcome: LoadOutcome = "not_found"


class CandidateUnreachable(ScriptLoadError):
    """The candidate could not be fetched (network, DNS, 5xx, empty body)."""

    outcome: LoadOutcome = "unreachable"


class LoaderConfigurationError(ValueError):
    """Raised when loader configuration is invalid."""

    pass


def actionable_message(library: str) -> str:
    """User-facing text for a library that could not be loaded from any source.

    Examples:
        >>> actionable_message("jsPDF")
        'jsPDF could not be loaded from any source. Check your network connection, then refresh and retry.'
    """
    return (
        f"{library} could not be loaded from any source. "
        "Check your network connection, then refresh and retry."
    )


def reason_for_status(status: int) -> str:
    """Reason code for a failed HTTP status."""
    if status in (404, 410):
        return f"http_{status}"
    if status == 429:
        return "rate_limited"
    if status >= 500:
        return "server_error"
    return f"http_{status}"


__all__ = [
    "CandidateNotFound",
    "CandidateUnreachable",
    "LoaderConfigurationError",
    "ScriptLoadError",
    "actionable_message",
    "reason_for_status",
]

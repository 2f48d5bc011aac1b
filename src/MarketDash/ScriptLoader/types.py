"""Core types for the resilient script loader.

This module defines the dataclasses shared by the registry, the loader and the
library catalog:

- LoadState: Lifecycle of a single locator in the registry
- LoadOutcome: Possible outcomes of a single load attempt
- LoadResult: Result of loading one locator
- FallbackResult: Aggregate result of walking a source list
- LibrarySpec: A third-party library, its expected global and its sources

All result types are frozen dataclasses so they can be shared between awaiting
callers without copying.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Optional, Tuple

# ============================================================================
# Lifecycle & Outcomes
# ============================================================================

LoadState = Literal["pending", "succeeded", "failed"]

LoadOutcome = Literal[
    "success",  # Environment signalled load complete
    "not_found",  # 404 / missing local file
    "unreachable",  # Network, DNS, 5xx or empty body
    "timeout",  # No signal within the configured bound
    "missing_symbol",  # Loaded, but the expected global never appeared
    "error",  # Unexpected exception from the environment
]

FallbackOutcome = Literal["success", "exhausted", "empty"]


# ============================================================================
# LoadResult: Result of one locator
# ============================================================================


@dataclass(frozen=True)
class LoadResult:
    """Result of a single load attempt.

    Attributes:
        locator: Local path or remote URL that was loaded
        outcome: LoadOutcome for this attempt
        reason: Short reason code (e.g., "loaded", "http_404", "timeout")
        elapsed_ms: Wall-clock time until the completion signal resolved
        status: HTTP status code if applicable
        meta: Additional metadata (size, sha256, error text)

    Example:
        ```python
        result = LoadResult(
            locator="https://cdn.jsdelivr.net/npm/chart.js@4.4.0/dist/chart.umd.min.js",
            outcome="success",
            reason="loaded",
            elapsed_ms=87,
            status=200,
        )
        ```
    """

    locator: str = field()
    outcome: LoadOutcome = field()
    reason: str = field()
    elapsed_ms: int = field(default=0)
    status: Optional[int] = field(default=None)
    meta: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate result integrity."""
        if self.elapsed_ms < 0:
            msg = f"elapsed_ms must be non-negative, got {self.elapsed_ms}"
            raise ValueError(msg)
        if self.outcome == "success" and self.status is not None and self.status >= 400:
            msg = f"outcome='success' cannot carry error status {self.status}"
            raise ValueError(msg)

    @property
    def is_success(self) -> bool:
        """Check if the locator loaded."""
        return self.outcome == "success"

    @property
    def is_timeout(self) -> bool:
        return self.outcome == "timeout"

    def with_outcome(self, outcome: LoadOutcome, reason: str) -> "LoadResult":
        """Return a copy of this result with a different outcome and reason."""
        return LoadResult(
            locator=self.locator,
            outcome=outcome,
            reason=reason,
            elapsed_ms=self.elapsed_ms,
            status=None if outcome == "success" else self.status,
            meta=dict(self.meta),
        )


# ============================================================================
# FallbackResult: Aggregate over a source list
# ============================================================================


@dataclass(frozen=True)
class FallbackResult:
    """Aggregate result of a sequential fallback traversal.

    Attributes:
        outcome: "success" if a candidate loaded, "exhausted" if every
            candidate failed, "empty" if no candidates were supplied
        locator: Winning candidate (None unless outcome is "success")
        attempts: Every LoadResult in the order the candidates were tried
    """

    outcome: FallbackOutcome = field()
    locator: Optional[str] = field(default=None)
    attempts: Tuple[LoadResult, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.outcome == "success" and self.locator is None:
            msg = "outcome='success' requires locator to be set"
            raise ValueError(msg)
        if self.outcome != "success" and self.locator is not None:
            msg = f"outcome={self.outcome!r} should not have a locator"
            raise ValueError(msg)

    @property
    def is_success(self) -> bool:
        return self.outcome == "success"

    @property
    def attempted_locators(self) -> Tuple[str, ...]:
        """Locators in the order they were attempted."""
        return tuple(attempt.locator for attempt in self.attempts)

    @property
    def elapsed_ms(self) -> int:
        return sum(attempt.elapsed_ms for attempt in self.attempts)


# ============================================================================
# LibrarySpec: A loadable third-party library
# ============================================================================


@dataclass(frozen=True)
class LibrarySpec:
    """A third-party browser library and where to find it.

    Sources are in fallback priority: local bundled copy first, then remote
    mirrors.

    Example:
        ```python
        spec = LibrarySpec(
            name="jspdf",
            symbol="jspdf",
            sources=("vendor/jspdf.umd.min.js", "https://unpkg.com/jspdf@2.5.1/dist/jspdf.umd.min.js"),
        )
        ```
    """

    name: str = field()
    symbol: str = field()
    sources: Tuple[str, ...] = field()

    def __post_init__(self) -> None:
        if not self.symbol:
            msg = f"library {self.name!r} needs a global symbol"
            raise ValueError(msg)
        if len(self.sources) == 0:
            msg = f"library {self.name!r} sources list cannot be empty"
            raise ValueError(msg)

    def with_sources(self, sources: Tuple[str, ...]) -> "LibrarySpec":
        return LibrarySpec(name=self.name, symbol=self.symbol, sources=tuple(sources))


__all__ = [
    "FallbackOutcome",
    "FallbackResult",
    "LibrarySpec",
    "LoadOutcome",
    "LoadResult",
    "LoadState",
]

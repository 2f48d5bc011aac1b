"""In-memory telemetry sink and text formatting for load attempts."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Dict, List

from .types import FallbackResult

logger = logging.getLogger(__name__)


class AttemptLog:
    """Telemetry sink that keeps every emitted event in order."""

    def __init__(self) -> None:
        self.events: List[Dict[str, Any]] = []

    def emit(self, event: Dict[str, Any]) -> None:
        self.events.append(dict(event))

    @property
    def locators(self) -> List[str]:
        return [event["locator"] for event in self.events]

    def by_outcome(self) -> Dict[str, int]:
        """Count events per outcome."""
        counts: Dict[str, int] = defaultdict(int)
        for event in self.events:
            counts[event.get("outcome", "unknown")] += 1
        return dict(counts)

    def clear(self) -> None:
        self.events.clear()


def format_attempts(name: str, result: FallbackResult) -> str:
    """Format a FallbackResult as a readable block.

    Args:
        name: Library name shown in the header
        result: Aggregate result for that library

    Returns:
        Formatted text
    """
    lines = [f"{name}: {result.outcome.upper()}"]
    for index, attempt in enumerate(result.attempts, 1):
        status = f" status={attempt.status}" if attempt.status is not None else ""
        lines.append(
            f"  {index}. {attempt.outcome:15} {attempt.elapsed_ms:6}ms  "
            f"{attempt.locator} ({attempt.reason}{status})"
        )
    if not result.attempts:
        lines.append("  (already present, no attempts)")
    return "\n".join(lines)


__all__ = ["AttemptLog", "format_attempts"]

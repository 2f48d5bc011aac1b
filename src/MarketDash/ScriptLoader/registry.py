"""Load registry: one entry per locator, owned by a loader instance."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from .types import LoadResult, LoadState


@dataclass
class LoadRequest:
    """Registry entry for a single locator.

    Attributes:
        locator: Local path or remote URL
        state: pending | succeeded | failed
        future: Completion signal for the in-flight attempt (None once settled)
        result: Most recent settled LoadResult
        attempts: Number of load attempts made for this locator
        injection: Environment call still running after its attempt timed out,
            or finished but not yet consumed by a retry
    """

    locator: str
    state: LoadState = "pending"
    future: Optional["asyncio.Future[LoadResult]"] = None
    result: Optional[LoadResult] = None
    attempts: int = 0
    injection: Optional["asyncio.Future[Any]"] = None

    @property
    def is_pending(self) -> bool:
        return self.state == "pending" and self.future is not None and not self.future.done()

    def settle(self, result: LoadResult) -> None:
        """Record the outcome of the in-flight attempt."""
        self.result = result
        self.state = "succeeded" if result.is_success else "failed"
        self.future = None


@dataclass
class LoadRegistry:
    """Mapping from locator to its LoadRequest.

    Entries are never removed: a locator that loaded once is never reloaded.
    The registry is plain mutable state; the loader only touches it between
    await points, so it needs no locking.
    """

    _entries: Dict[str, LoadRequest] = field(default_factory=dict)

    def get(self, locator: str) -> Optional[LoadRequest]:
        return self._entries.get(locator)

    def get_or_create(self, locator: str) -> LoadRequest:
        request = self._entries.get(locator)
        if request is None:
            request = LoadRequest(locator=locator)
            self._entries[locator] = request
        return request

    def pending(self) -> List[LoadRequest]:
        """Requests with an unresolved completion signal."""
        return [request for request in self._entries.values() if request.is_pending]

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        """Plain-dict view of the registry for logging and the CLI."""
        view: Dict[str, Dict[str, Any]] = {}
        for locator, request in self._entries.items():
            view[locator] = {
                "state": request.state,
                "attempts": request.attempts,
                "outcome": request.result.outcome if request.result else None,
                "reason": request.result.reason if request.result else None,
            }
        return view

    def __contains__(self, locator: object) -> bool:
        return locator in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LoadRequest]:
        return iter(list(self._entries.values()))


__all__ = ["LoadRegistry", "LoadRequest"]

# === NAVMAP v1 ===
# {
#   "module": "MarketDash.ScriptLoader.loader",
#   "purpose": "Resilient script loader with per-locator dedup and sequential fallback.",
#   "sections": [
#     {
#       "id": "scriptloader",
#       "name": "ScriptLoader",
#       "anchor": "class-scriptloader",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""
Resilient Script Loader

Loads third-party libraries into a ``ScriptEnvironment`` with:
- One in-flight attempt per locator (concurrent callers share the same future)
- Idempotent success (a loaded locator is never injected twice)
- Configurable handling of previously failed locators
- Per-attempt timeout; abandoned attempts are not cancelled, and a retry
  waits on the abandoned injection instead of starting another one
- Strictly sequential fallback across an ordered source list
- Capability probes injected by the caller instead of global-name lookups

Failures never escape as exceptions: every call resolves to a ``LoadResult``,
a ``FallbackResult`` or a boolean that the caller inspects.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import time
from typing import Any, Callable, Dict, Iterable, Optional, Set, Tuple

from .environment import ScriptEnvironment
from .errors import ScriptLoadError, actionable_message, reason_for_status
from .registry import LoadRegistry, LoadRequest
from .types import FallbackResult, LibrarySpec, LoadResult

LOGGER = logging.getLogger(__name__)

Probe = Callable[[], bool]

DEFAULT_TIMEOUT_S = 5.0


class ScriptLoader:
    """
    Loads scripts into an environment, trying candidate locations in order.

    Attributes:
        environment: ScriptEnvironment that receives injected scripts
        registry: LoadRegistry owned by this loader (or shared by the caller)
        timeout_s: Bound on how long a single locator is awaited (None disables)
        retry_failed: Re-attempt locators whose previous load failed
        telemetry: Optional sink with ``emit(event: dict)``
        logger: Logger instance
    """

    def __init__(
        self,
        environment: ScriptEnvironment,
        registry: Optional[LoadRegistry] = None,
        *,
        timeout_s: Optional[float] = DEFAULT_TIMEOUT_S,
        retry_failed: bool = True,
        telemetry: Optional[Any] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if timeout_s is not None and timeout_s <= 0:
            raise ValueError(f"timeout_s must be positive, got {timeout_s}")
        self.environment = environment
        self.registry = registry if registry is not None else LoadRegistry()
        self.timeout_s = timeout_s
        self.retry_failed = retry_failed
        self.telemetry = telemetry
        self.logger = logger or LOGGER
        self.library_results: Dict[str, FallbackResult] = {}
        self._tasks: Set["asyncio.Task[None]"] = set()

    # ------------------------------------------------------------------
    # load
    # ------------------------------------------------------------------

    def load(self, locator: str) -> "asyncio.Future[LoadResult]":
        """Load a single locator.

        Returns the completion signal for *locator*. A pending locator hands
        back its existing future. A loaded locator resolves immediately without
        touching the environment. A failed locator is re-attempted only when
        ``retry_failed`` is set, otherwise its recorded failure is returned.

        Must be called from inside a running event loop.
        """
        loop = asyncio.get_running_loop()
        request = self.registry.get_or_create(locator)

        if request.is_pending:
            self.logger.debug(f"Attaching to in-flight load of {locator}")
            assert request.future is not None
            return request.future

        if request.state == "succeeded" and request.result is not None:
            return self._resolved(loop, request.result)

        if request.state == "failed" and request.result is not None:
            if not self.retry_failed:
                self.logger.debug(f"Not retrying failed locator {locator} ({request.result.reason})")
                return self._resolved(loop, request.result)
            self.logger.debug(f"Retrying previously failed locator {locator}")

        future: "asyncio.Future[LoadResult]" = loop.create_future()
        request.state = "pending"
        request.future = future
        request.attempts += 1

        task = loop.create_task(self._attempt(request, future))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return future

    async def _attempt(self, request: LoadRequest, future: "asyncio.Future[LoadResult]") -> None:
        locator = request.locator
        started = time.monotonic()
        result: Optional[LoadResult] = None
        try:
            injection = request.injection
            resumed = injection is not None
            if injection is None:
                injection = asyncio.ensure_future(self.environment.inject(locator))
                request.injection = injection
            else:
                self.logger.debug(f"Waiting on earlier injection of {locator} instead of re-injecting")

            done, _ = await asyncio.wait({injection}, timeout=self.timeout_s)
            elapsed_ms = int((time.monotonic() - started) * 1000)

            if injection in done:
                request.injection = None
                result = self._classify(locator, injection, elapsed_ms)
            else:
                # Abandon, do not cancel: the injection stays on the request so a
                # retry waits on it instead of starting a second one.
                if not resumed:
                    injection.add_done_callback(functools.partial(self._late_result, locator))
                result = LoadResult(
                    locator=locator,
                    outcome="timeout",
                    reason="timeout",
                    elapsed_ms=elapsed_ms,
                    meta={"timeout_s": self.timeout_s},
                )
        except Exception as e:  # pylint: disable=broad-except
            self.logger.error(f"Loader failed while handling {locator}: {e!r}", exc_info=True)
            result = LoadResult(
                locator=locator,
                outcome="error",
                reason="loader_error",
                elapsed_ms=max(0, int((time.monotonic() - started) * 1000)),
                meta={"error": repr(e)},
            )
        finally:
            if result is None:
                result = LoadResult(locator=locator, outcome="error", reason="cancelled")
            request.settle(result)
            self._emit(result, attempt=request.attempts)
            if not future.done():
                future.set_result(result)

    def _classify(
        self, locator: str, injection: "asyncio.Future[Any]", elapsed_ms: int
    ) -> LoadResult:
        if injection.cancelled():
            return LoadResult(locator=locator, outcome="error", reason="cancelled", elapsed_ms=elapsed_ms)

        exc = injection.exception()
        if isinstance(exc, ScriptLoadError):
            return LoadResult(
                locator=locator,
                outcome=exc.outcome,
                reason=exc.reason,
                elapsed_ms=elapsed_ms,
                status=exc.status,
                meta={"error": str(exc)},
            )
        if exc is not None:
            self.logger.error(f"Environment raised while loading {locator}: {exc!r}", exc_info=exc)
            return LoadResult(
                locator=locator,
                outcome="error",
                reason="environment_error",
                elapsed_ms=elapsed_ms,
                meta={"error": repr(exc)},
            )

        script = injection.result()
        status = getattr(script, "status", None)
        if status is not None and status >= 400:
            return LoadResult(
                locator=locator,
                outcome="not_found" if status in (404, 410) else "unreachable",
                reason=reason_for_status(status),
                elapsed_ms=elapsed_ms,
                status=status,
            )

        meta: Dict[str, Any] = {}
        for key in ("sha256", "size", "origin"):
            value = getattr(script, key, None)
            if value is not None:
                meta[key] = value
        return LoadResult(
            locator=locator,
            outcome="success",
            reason="loaded",
            elapsed_ms=elapsed_ms,
            status=status,
            meta=meta,
        )

    def _late_result(self, locator: str, injection: "asyncio.Future[Any]") -> None:
        if injection.cancelled():
            return
        exc = injection.exception()
        outcome = "error" if exc is not None else "success"
        self.logger.debug(f"Late {outcome} for timed-out load of {locator}, kept for the next attempt")

    @staticmethod
    def _resolved(loop: asyncio.AbstractEventLoop, result: LoadResult) -> "asyncio.Future[LoadResult]":
        future: "asyncio.Future[LoadResult]" = loop.create_future()
        future.set_result(result)
        return future

    # ------------------------------------------------------------------
    # load_with_fallback
    # ------------------------------------------------------------------

    async def load_with_fallback(
        self,
        sources: Iterable[str],
        accept: Optional[Probe] = None,
    ) -> FallbackResult:
        """Try *sources* in order until one loads.

        Candidates are attempted strictly one after another. When *accept* is
        given, a candidate that loads but leaves ``accept()`` false is recorded
        as ``missing_symbol`` and the next candidate is tried.

        Args:
            sources: Locators in fallback priority (local copy first)
            accept: Optional capability check applied after each successful load

        Returns:
            FallbackResult with the winning locator and every attempt in order
        """
        candidates = list(sources)
        if not candidates:
            self.logger.warning("No candidate sources supplied, nothing to load")
            return FallbackResult(outcome="empty")

        attempts = []
        total = len(candidates)
        for index, locator in enumerate(candidates, 1):
            # shield: a cancelled caller must not cancel a future other callers share
            result = await asyncio.shield(self.load(locator))

            if result.is_success and accept is not None and not self._check(accept):
                result = result.with_outcome("missing_symbol", "symbol_not_defined")

            attempts.append(result)
            if result.is_success:
                self.logger.info(
                    f"Loaded {locator} (candidate {index}/{total}, elapsed={result.elapsed_ms}ms)"
                )
                return FallbackResult(outcome="success", locator=locator, attempts=tuple(attempts))

            self.logger.warning(
                f"Load failed from {locator} ({result.outcome}: {result.reason}), "
                f"{'trying next' if index < total else 'no candidates left'}"
            )

        self.logger.error(
            f"All {total} candidate(s) failed: "
            + ", ".join(f"{a.locator}={a.reason}" for a in attempts)
        )
        return FallbackResult(outcome="exhausted", attempts=tuple(attempts))

    # ------------------------------------------------------------------
    # ensure_loaded / ensure_library
    # ------------------------------------------------------------------

    async def ensure_loaded(self, probe: Probe, sources: Iterable[str]) -> bool:
        """Make sure the capability checked by *probe* is available.

        Resolves to True without any load attempt when ``probe()`` already
        holds; otherwise walks *sources* and reports whether ``probe()``
        holds afterwards.
        """
        available, _ = await self._ensure(probe, sources)
        return available

    async def ensure_library(
        self, library: LibrarySpec, sources: Optional[Iterable[str]] = None
    ) -> bool:
        """Ensure *library*'s global symbol is defined in the environment."""
        probe = functools.partial(self.environment.has_global, library.symbol)
        candidates = library.sources if sources is None else sources
        available, result = await self._ensure(probe, candidates)
        if result is not None:
            self.library_results[library.name] = result
        if available:
            self.logger.debug(f"{library.name} available (symbol {library.symbol})")
        else:
            self.logger.error(actionable_message(library.name))
        return available

    async def _ensure(
        self, probe: Probe, sources: Iterable[str]
    ) -> Tuple[bool, Optional[FallbackResult]]:
        if self._check(probe):
            self.logger.debug("Capability already present, skipping load")
            return True, None
        result = await self.load_with_fallback(sources, accept=probe)
        return self._check(probe), result

    def _check(self, probe: Probe) -> bool:
        try:
            return bool(probe())
        except Exception as e:  # pylint: disable=broad-except
            self.logger.warning(f"Capability probe raised: {e!r}")
            return False

    # ------------------------------------------------------------------
    # Telemetry
    # ------------------------------------------------------------------

    def _emit(self, result: LoadResult, *, attempt: int) -> None:
        if not self.telemetry:
            return

        try:
            event = {
                "event_type": "script_load_attempt",
                "locator": result.locator,
                "attempt": attempt,
                "outcome": result.outcome,
                "reason": result.reason,
                "elapsed_ms": result.elapsed_ms,
                "status": result.status,
                "meta": dict(result.meta),
            }
            self.telemetry.emit(event)
        except Exception as e:
            self.logger.warning(f"Telemetry emission failed: {e}")


__all__ = ["DEFAULT_TIMEOUT_S", "Probe", "ScriptLoader"]

# === NAVMAP v1 ===
# {
#   "module": "MarketDash.ScriptLoader.environment",
#   "purpose": "Execution environments that scripts are injected into.",
#   "sections": [
#     {
#       "id": "scriptenvironment",
#       "name": "ScriptEnvironment",
#       "anchor": "class-scriptenvironment",
#       "kind": "class"
#     },
#     {
#       "id": "injectedscript",
#       "name": "InjectedScript",
#       "anchor": "class-injectedscript",
#       "kind": "class"
#     },
#     {
#       "id": "bundleenvironment",
#       "name": "BundleEnvironment",
#       "anchor": "class-bundleenvironment",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Execution environments that scripts are injected into.

A dashboard page is assembled in Python and shipped as static HTML, so the
"environment" a library is loaded into is the set of bundles that end up
embedded in the page. ``BundleEnvironment`` resolves each locator (a path under
``base_dir`` or an ``http(s)`` URL), records the bundle in insertion order the
way a browser appends ``<script>`` tags to ``<head>``, and answers whether a
library's global symbol is now defined.

Errors are signalled by raising ``ScriptLoadError`` subclasses from
``inject``; the loader turns them into ``LoadResult`` values.
"""

from __future__ import annotations

import hashlib
import html
import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional, Protocol, Set, Union
from urllib.parse import urlsplit

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    before_sleep_log,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_random_exponential,
)

from .errors import CandidateNotFound, CandidateUnreachable, reason_for_status

LOGGER = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "MarketDash-ScriptLoader/1.0"
TRANSIENT_STATUSES = frozenset({429, 500, 502, 503, 504})


class ScriptEnvironment(Protocol):
    """Protocol describing what the loader needs from an execution environment."""

    async def inject(self, locator: str) -> "InjectedScript":
        """Insert *locator* into the environment, raising ``ScriptLoadError`` on failure."""

    def has_global(self, name: str) -> bool:
        """Return whether a top-level symbol called *name* is defined."""


@dataclass(frozen=True)
class InjectedScript:
    """A bundle that completed loading."""

    locator: str
    source: str
    sha256: str
    origin: str  # "local" | "remote"
    status: Optional[int] = None

    @property
    def size(self) -> int:
        return len(self.source.encode("utf-8"))

    @property
    def filename(self) -> str:
        path = urlsplit(self.locator).path if is_remote(self.locator) else self.locator
        return PurePosixPath(path).name or "bundle.js"


def is_remote(locator: str) -> bool:
    """Check whether *locator* is an http(s) URL rather than a local path."""
    return urlsplit(locator).scheme.lower() in ("http", "https")


@lru_cache(maxsize=128)
def _global_pattern(name: str) -> "re.Pattern[str]":
    """Patterns for the ways a bundle defines a top-level name.

    Covers ``var NAME=``/``function NAME``, UMD assignments such as
    ``(t||self).NAME=`` and ``globalThis["NAME"]=``.
    """
    escaped = re.escape(name)
    return re.compile(
        rf"(?:\b(?:var|let|const|function|class)\s+{escaped}\b)"
        rf"|(?:\.\s*{escaped}\s*=(?!=))"
        rf"|(?:\[\s*[\"']{escaped}[\"']\s*\]\s*=(?!=))"
    )


def _is_transient(response: httpx.Response) -> bool:
    return response.status_code in TRANSIENT_STATUSES


def _return_last_outcome(retry_state: RetryCallState) -> httpx.Response:
    # Hand the final response (or exception) back to the caller for classification.
    assert retry_state.outcome is not None
    return retry_state.outcome.result()


class BundleEnvironment:
    """Environment collecting script bundles for a generated dashboard page.

    Attributes:
        base_dir: Directory that local locators are resolved against
        retries: Extra attempts for transient HTTP failures (429/5xx, connect errors)
        user_agent: User-Agent header for remote fetches

    Example:
        ```python
        async with BundleEnvironment(base_dir=Path("site")) as env:
            await env.inject("vendor/jspdf.umd.min.js")
            env.has_global("jspdf")
        ```
    """

    def __init__(
        self,
        base_dir: Optional[Union[str, Path]] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        retries: int = 1,
        backoff_s: float = 0.25,
        backoff_max_s: float = 2.0,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        if retries < 0:
            raise ValueError(f"retries must be non-negative, got {retries}")
        self.base_dir = Path(base_dir) if base_dir is not None else Path.cwd()
        self.retries = retries
        self.backoff_s = backoff_s
        self.backoff_max_s = backoff_max_s
        self.user_agent = user_agent
        self._client = client
        self._owns_client = client is None
        self._scripts: Dict[str, InjectedScript] = {}
        self._declared: Set[str] = set()
        self.fetch_count = 0

    async def __aenter__(self) -> "BundleEnvironment":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"User-Agent": self.user_agent},
                follow_redirects=True,
            )
            self._owns_client = True
        return self._client

    # ------------------------------------------------------------------
    # ScriptEnvironment
    # ------------------------------------------------------------------

    async def inject(self, locator: str) -> InjectedScript:
        """Load *locator* and append it to the page.

        Injecting a locator that is already present returns the existing
        record without fetching again.
        """
        existing = self._scripts.get(locator)
        if existing is not None:
            return existing

        self.fetch_count += 1
        if is_remote(locator):
            script = await self._fetch_remote(locator)
        else:
            script = self._read_local(locator)

        script = self._scripts.setdefault(locator, script)
        LOGGER.debug(f"Injected {locator} ({script.size} bytes, origin={script.origin})")
        return script

    def has_global(self, name: str) -> bool:
        if name in self._declared:
            return True
        pattern = _global_pattern(name)
        return any(pattern.search(script.source) for script in self._scripts.values())

    def declare_global(self, name: str) -> None:
        """Mark *name* as already provided by another page component."""
        self._declared.add(name)

    # ------------------------------------------------------------------
    # Page output
    # ------------------------------------------------------------------

    @property
    def scripts(self) -> List[InjectedScript]:
        """Injected bundles in insertion order."""
        return list(self._scripts.values())

    def __contains__(self, locator: object) -> bool:
        return locator in self._scripts

    def render_tags(self, *, inline: bool = True) -> str:
        """Render ``<script>`` tags for every injected bundle."""
        tags = []
        for script in self._scripts.values():
            src = html.escape(script.locator, quote=True)
            if inline:
                body = script.source.replace("</script", "<\\/script")
                tags.append(f'<script data-src="{src}">\n{body}\n</script>')
            else:
                tags.append(f'<script src="{src}"></script>')
        return "\n".join(tags)

    def write_bundles(self, out_dir: Union[str, Path]) -> List[Path]:
        """Write injected bundles to *out_dir* so they can be served locally."""
        target = Path(out_dir)
        target.mkdir(parents=True, exist_ok=True)
        written: List[Path] = []
        for script in self._scripts.values():
            path = target / script.filename
            path.write_text(script.source, encoding="utf-8")
            written.append(path)
        return written

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _resolve_local(self, locator: str) -> Path:
        if locator.startswith("file://"):
            return Path(urlsplit(locator).path)
        path = Path(locator)
        return path if path.is_absolute() else self.base_dir / path

    def _read_local(self, locator: str) -> InjectedScript:
        path = self._resolve_local(locator)
        if not path.is_file():
            raise CandidateNotFound(locator, "missing_file")
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise CandidateUnreachable(locator, "read_error") from exc
        return self._build_script(locator, data, origin="local")

    async def _fetch_remote(self, locator: str) -> InjectedScript:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retries + 1),
            wait=wait_random_exponential(multiplier=self.backoff_s, max=self.backoff_max_s),
            retry=retry_if_exception_type(httpx.TransportError) | retry_if_result(_is_transient),
            retry_error_callback=_return_last_outcome,
            before_sleep=before_sleep_log(LOGGER, logging.DEBUG),
        )
        try:
            response = await retrying(self.client.get, locator)
        except httpx.HTTPError as exc:
            raise CandidateUnreachable(locator, "transport_error") from exc

        status = response.status_code
        if status in (404, 410):
            raise CandidateNotFound(locator, reason_for_status(status), status=status)
        if status >= 400:
            raise CandidateUnreachable(locator, reason_for_status(status), status=status)
        return self._build_script(locator, response.content, origin="remote", status=status)

    @staticmethod
    def _build_script(
        locator: str, data: bytes, *, origin: str, status: Optional[int] = None
    ) -> InjectedScript:
        if not data.strip():
            raise CandidateUnreachable(locator, "empty_body", status=status)
        return InjectedScript(
            locator=locator,
            source=data.decode("utf-8", errors="replace"),
            sha256=hashlib.sha256(data).hexdigest(),
            origin=origin,
            status=status,
        )


__all__ = [
    "BundleEnvironment",
    "DEFAULT_USER_AGENT",
    "InjectedScript",
    "ScriptEnvironment",
    "is_remote",
]

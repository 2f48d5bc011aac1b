# === NAVMAP v1 ===
# {
#   "module": "MarketDash.ScriptLoader.__init__",
#   "purpose": "Resilient script loading for dashboard pages.",
#   "sections": []
# }
# === /NAVMAP ===

"""
Resilient Script Loading

Gets third-party browser libraries into a dashboard page with:
- Ordered candidate sources (local bundled copy first, then CDN mirrors)
- Strictly sequential fallback, stopping at the first success
- One in-flight load per locator, shared by concurrent callers
- Per-candidate timeouts without cancelling the abandoned fetch
- Caller-supplied capability probes instead of global-name lookups

Public API:
  ScriptLoader - load / load_with_fallback / ensure_loaded / ensure_library
  LoadRegistry - Per-loader locator registry
  BundleEnvironment - Environment that collects bundles for a page
  LoadResult, FallbackResult, LibrarySpec - Result and catalog types
"""

from .environment import BundleEnvironment, InjectedScript, ScriptEnvironment
from .errors import (
    CandidateNotFound,
    CandidateUnreachable,
    LoaderConfigurationError,
    ScriptLoadError,
    actionable_message,
)
from .loader import ScriptLoader
from .registry import LoadRegistry, LoadRequest
from .types import FallbackResult, LibrarySpec, LoadOutcome, LoadResult, LoadState

__all__ = [
    "BundleEnvironment",
    "CandidateNotFound",
    "CandidateUnreachable",
    "FallbackResult",
    "InjectedScript",
    "LibrarySpec",
    "LoadOutcome",
    "LoadRegistry",
    "LoadRequest",
    "LoadResult",
    "LoadState",
    "LoaderConfigurationError",
    "ScriptEnvironment",
    "ScriptLoadError",
    "ScriptLoader",
    "actionable_message",
]

# === NAVMAP v1 ===
# {
#   "module": "MarketDash.ScriptLoader.config",
#   "purpose": "Loader settings with file/env/CLI precedence.",
#   "sections": [
#     {
#       "id": "loadersettings",
#       "name": "LoaderSettings",
#       "anchor": "class-loadersettings",
#       "kind": "class"
#     },
#     {
#       "id": "load-settings",
#       "name": "load_settings",
#       "anchor": "function-load-settings",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""
Loader settings with File/Env/CLI precedence

Implements three-level composition on top of the model defaults:
1. **File level** (YAML/JSON): base configuration
2. **Environment level**: MARKETDASH_LOADER_* variables override the file
3. **CLI level**: programmatic overrides win

Environment variable mapping:
  MARKETDASH_LOADER_TIMEOUT_S=3          →  timeout_s=3.0
  MARKETDASH_LOADER_RETRY_FAILED=false   →  retry_failed=False
  MARKETDASH_LOADER_RETRIES=2            →  retries=2
  MARKETDASH_LOADER_BASE_DIR=site        →  base_dir="site"
  MARKETDASH_LOADER_USER_AGENT=...       →  user_agent="..."
  MARKETDASH_LOADER_SOURCES__JSPDF='["vendor/jspdf.js"]'  →  libraries.jspdf=[...]
  MARKETDASH_DEBUG=true                  →  debug=True
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, ClassVar, Dict, List, Optional, Union

import yaml  # type: ignore[import-untyped]
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .environment import DEFAULT_USER_AGENT
from .errors import LoaderConfigurationError
from .loader import DEFAULT_TIMEOUT_S

_LOGGER = logging.getLogger(__name__)

ENV_PREFIX = "MARKETDASH_LOADER_"
SOURCES_PREFIX = f"{ENV_PREFIX}SOURCES__"
DEBUG_ENV = "MARKETDASH_DEBUG"

_TRUTHY = ("1", "true", "yes", "on")
_FALSY = ("0", "false", "no", "off")


class LoaderSettings(BaseModel):
    """Settings for the script loader and its bundle environment."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    timeout_s: float = Field(
        default=DEFAULT_TIMEOUT_S, description="Bound on how long one candidate is awaited"
    )
    retry_failed: bool = Field(
        default=True, description="Re-attempt locators whose previous load failed"
    )
    retries: int = Field(default=1, description="Extra attempts for transient HTTP failures")
    base_dir: Optional[str] = Field(
        default=None, description="Directory local locators resolve against (default: cwd)"
    )
    user_agent: str = Field(default=DEFAULT_USER_AGENT, description="User-Agent for CDN fetches")
    debug: bool = Field(default=False, description="Emit debug logs")
    libraries: Dict[str, List[str]] = Field(
        default_factory=dict, description="Per-library source list overrides"
    )

    @field_validator("timeout_s")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeout_s must be > 0")
        return v

    @field_validator("retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("retries must be >= 0")
        return v

    @field_validator("libraries")
    @classmethod
    def validate_libraries(cls, v: Dict[str, List[str]]) -> Dict[str, List[str]]:
        normalised = {}
        for name, sources in v.items():
            if not sources:
                raise ValueError(f"libraries.{name} cannot be empty")
            normalised[name.lower()] = list(sources)
        return normalised

    @property
    def base_path(self) -> Path:
        return Path(self.base_dir) if self.base_dir else Path.cwd()


# ============================================================================
# Helpers
# ============================================================================


def _read_file(path: Union[str, Path]) -> Dict[str, Any]:
    """Read a YAML or JSON settings file.

    Raises:
        LoaderConfigurationError: If the file is missing, unreadable or malformed
    """
    p = Path(path)
    if not p.exists():
        raise LoaderConfigurationError(f"Config file not found: {path}")

    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise LoaderConfigurationError(f"Cannot read config file {path}: {e}") from e

    suffix = p.suffix.lower()
    if suffix in (".yaml", ".yml"):
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise LoaderConfigurationError(f"Invalid YAML in {path}: {e}") from e
    elif suffix == ".json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise LoaderConfigurationError(f"Invalid JSON in {path}: {e}") from e
    else:
        raise LoaderConfigurationError(f"Unsupported file format: {suffix}. Use .yaml or .json")

    if not isinstance(data, dict):
        raise LoaderConfigurationError(f"Config file {path} must contain a mapping")
    # Allow the settings to live under a top-level "script_loader" key.
    section = data.get("script_loader", data)
    if not isinstance(section, dict):
        raise LoaderConfigurationError(f"'script_loader' section in {path} must be a mapping")
    return dict(section)


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise LoaderConfigurationError(f"Invalid boolean for {name}: {raw!r}")


def _parse_sources(name: str, raw: str) -> List[str]:
    """Accept a JSON list or a comma-separated string."""
    text = raw.strip()
    if text.startswith("["):
        try:
            value = json.loads(text)
        except json.JSONDecodeError as e:
            raise LoaderConfigurationError(f"Invalid JSON list for {name}: {e}") from e
        return [str(item) for item in value]
    return [item.strip() for item in text.split(",") if item.strip()]


def load_from_env(env: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Collect overrides from ``MARKETDASH_LOADER_*`` and ``MARKETDASH_DEBUG``."""
    source = os.environ if env is None else env
    config: Dict[str, Any] = {}

    for key, caster in (
        ("timeout_s", float),
        ("retries", int),
    ):
        env_key = f"{ENV_PREFIX}{key.upper()}"
        if env_key in source:
            try:
                config[key] = caster(source[env_key])
            except ValueError as e:
                raise LoaderConfigurationError(
                    f"Invalid value for {env_key}: {source[env_key]!r}"
                ) from e

    for key in ("base_dir", "user_agent"):
        env_key = f"{ENV_PREFIX}{key.upper()}"
        if env_key in source:
            config[key] = source[env_key]

    retry_key = f"{ENV_PREFIX}RETRY_FAILED"
    if retry_key in source:
        config["retry_failed"] = _parse_bool(retry_key, source[retry_key])

    if DEBUG_ENV in source:
        config["debug"] = _parse_bool(DEBUG_ENV, source[DEBUG_ENV])

    libraries = {}
    for env_key, raw in source.items():
        if env_key.startswith(SOURCES_PREFIX):
            name = env_key[len(SOURCES_PREFIX) :].lower()
            libraries[name] = _parse_sources(env_key, raw)
    if libraries:
        config["libraries"] = libraries

    if config:
        _LOGGER.debug(f"Loaded {len(config)} loader setting(s) from environment")
    return config


def _merge(base: Dict[str, Any], overlay: Mapping[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in overlay.items():
        if value is None:
            continue
        if key == "libraries":
            libraries = dict(merged.get("libraries") or {})
            libraries.update({name.lower(): list(srcs) for name, srcs in value.items()})
            merged["libraries"] = libraries
        else:
            merged[key] = value
    return merged


def load_settings(
    path: Optional[Union[str, Path]] = None,
    env: Optional[Mapping[str, str]] = None,
    cli_overrides: Optional[Mapping[str, Any]] = None,
) -> LoaderSettings:
    """Build LoaderSettings from file, environment and CLI overrides.

    Precedence (highest to lowest): CLI > environment > file > defaults.
    ``None`` values in *cli_overrides* are ignored so unset CLI options do not
    mask lower layers.

    Raises:
        LoaderConfigurationError: If any layer is invalid
    """
    merged: Dict[str, Any] = {}
    if path is not None:
        merged = _merge(merged, _read_file(path))
    merged = _merge(merged, load_from_env(env))
    if cli_overrides:
        merged = _merge(merged, cli_overrides)

    try:
        settings = LoaderSettings(**merged)
    except ValidationError as e:
        raise LoaderConfigurationError(f"Invalid loader settings: {e}") from e

    _LOGGER.debug(
        f"Loader settings: timeout_s={settings.timeout_s} retry_failed={settings.retry_failed} "
        f"retries={settings.retries} overrides={sorted(settings.libraries)}"
    )
    return settings


__all__ = [
    "DEBUG_ENV",
    "ENV_PREFIX",
    "LoaderSettings",
    "load_from_env",
    "load_settings",
]

# === NAVMAP v1 ===
# {
#   "module": "MarketDash.ScriptLoader.cli",
#   "purpose": "Operator CLI for fetching and embedding dashboard libraries.",
#   "sections": [
#     {
#       "id": "cmd-libraries",
#       "name": "cmd_libraries",
#       "anchor": "function-cmd-libraries",
#       "kind": "function"
#     },
#     {
#       "id": "cmd-fetch",
#       "name": "cmd_fetch",
#       "anchor": "function-cmd-fetch",
#       "kind": "function"
#     },
#     {
#       "id": "cmd-render",
#       "name": "cmd_render",
#       "anchor": "function-cmd-render",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""CLI for the dashboard script loader.

Commands:
  marketdash-scripts libraries
    → Show the library catalog with effective source lists

  marketdash-scripts fetch xlsx jspdf --out site/vendor
    → Load libraries through the fallback chain and write the bundles locally

  marketdash-scripts render chartjs
    → Print <script> tags ready to embed into a dashboard page
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Tuple

import typer

from .config import LoaderSettings, load_settings
from .environment import BundleEnvironment
from .errors import LoaderConfigurationError, actionable_message
from .libraries import get_library, library_names
from .loader import ScriptLoader
from .logging_utils import setup_logging
from .telemetry import AttemptLog, format_attempts

LOGGER = logging.getLogger(__name__)

app = typer.Typer(help="MarketDash dashboard script loader")


def _settings(
    config: Optional[str], timeout: Optional[float], base_dir: Optional[str]
) -> LoaderSettings:
    try:
        settings = load_settings(
            config, cli_overrides={"timeout_s": timeout, "base_dir": base_dir}
        )
    except LoaderConfigurationError as e:
        typer.secho(f"❌ {e}", fg="red", err=True)
        raise typer.Exit(code=2)
    setup_logging(debug=settings.debug)
    return settings


async def _ensure_all(
    settings: LoaderSettings, names: List[str]
) -> Tuple[BundleEnvironment, ScriptLoader, List[str]]:
    environment = BundleEnvironment(
        settings.base_path, retries=settings.retries, user_agent=settings.user_agent
    )
    loader = ScriptLoader(
        environment,
        timeout_s=settings.timeout_s,
        retry_failed=settings.retry_failed,
        telemetry=AttemptLog(),
    )
    failed = []
    try:
        for name in names:
            spec = get_library(name, settings.libraries)
            if not await loader.ensure_library(spec):
                failed.append(spec.name)
    finally:
        await environment.aclose()
    return environment, loader, failed


def _run(settings: LoaderSettings, names: List[str]) -> Tuple[BundleEnvironment, ScriptLoader, List[str]]:
    try:
        return asyncio.run(_ensure_all(settings, names))
    except LoaderConfigurationError as e:
        typer.secho(f"❌ {e}", fg="red", err=True)
        raise typer.Exit(code=2)


@app.command("libraries")
def cmd_libraries(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Config file (YAML/JSON)"),
) -> None:
    """Show the library catalog with effective source lists."""
    settings = _settings(config, None, None)
    for name in library_names():
        spec = get_library(name, settings.libraries)
        typer.echo(f"{spec.name} (global {spec.symbol})")
        for index, source in enumerate(spec.sources, 1):
            typer.echo(f"  {index}. {source}")


@app.command("fetch")
def cmd_fetch(
    names: List[str] = typer.Argument(..., help="Libraries to load (see `libraries`)"),
    out: Path = typer.Option(Path("vendor"), "--out", "-o", help="Directory for bundles"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Config file (YAML/JSON)"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Per-candidate timeout (s)"),
    base_dir: Optional[str] = typer.Option(None, "--base-dir", help="Root for local locators"),
) -> None:
    """Load libraries through the fallback chain and write the bundles to OUT."""
    settings = _settings(config, timeout, base_dir)
    environment, loader, failed = _run(settings, names)

    for name, result in loader.library_results.items():
        typer.echo(format_attempts(name, result))

    written = environment.write_bundles(out)
    for path in written:
        typer.echo(f"wrote {path}")

    if failed:
        for name in failed:
            typer.secho(f"❌ {actionable_message(name)}", fg="red", err=True)
        raise typer.Exit(code=1)


@app.command("render")
def cmd_render(
    names: List[str] = typer.Argument(..., help="Libraries to embed"),
    link: bool = typer.Option(False, "--link", help="Emit src= tags instead of inline bundles"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Config file (YAML/JSON)"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Per-candidate timeout (s)"),
    base_dir: Optional[str] = typer.Option(None, "--base-dir", help="Root for local locators"),
) -> None:
    """Print <script> tags for the requested libraries."""
    settings = _settings(config, timeout, base_dir)
    environment, _, failed = _run(settings, names)

    if failed:
        for name in failed:
            typer.secho(f"❌ {actionable_message(name)}", fg="red", err=True)
        raise typer.Exit(code=1)
    typer.echo(environment.render_tags(inline=not link))


def main() -> None:
    app()


if __name__ == "__main__":
    main()

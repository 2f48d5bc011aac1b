"""Catalog of the browser libraries used by the dashboard pages.

Each ``ensure_*`` helper is a thin wrapper over
``ScriptLoader.ensure_library`` so page components never deal with candidate
lists or retries.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Sequence

from .errors import LoaderConfigurationError, actionable_message
from .loader import ScriptLoader
from .types import LibrarySpec

logger = logging.getLogger(__name__)

XLSX = LibrarySpec(
    name="xlsx",
    symbol="XLSX",
    sources=(
        "https://cdn.jsdelivr.net/npm/xlsx@0.18.5/dist/xlsx.full.min.js",
        "https://unpkg.com/xlsx@0.18.5/dist/xlsx.full.min.js",
        "https://cdnjs.cloudflare.com/ajax/libs/xlsx/0.18.5/xlsx.full.min.js",
    ),
)

CHARTJS = LibrarySpec(
    name="chartjs",
    symbol="Chart",
    sources=(
        "https://cdn.jsdelivr.net/npm/chart.js@4.4.0/dist/chart.umd.min.js",
        "https://unpkg.com/chart.js@4.4.0/dist/chart.umd.min.js",
        "https://cdnjs.cloudflare.com/ajax/libs/Chart.js/4.4.0/chart.umd.min.js",
    ),
)

HTML2CANVAS = LibrarySpec(
    name="html2canvas",
    symbol="html2canvas",
    sources=(
        "vendor/html2canvas.min.js",
        "https://cdnjs.cloudflare.com/ajax/libs/html2canvas/1.4.1/html2canvas.min.js",
        "https://cdn.jsdelivr.net/npm/html2canvas@1.4.1/dist/html2canvas.min.js",
        "https://unpkg.com/html2canvas@1.4.1/dist/html2canvas.min.js",
    ),
)

JSPDF = LibrarySpec(
    name="jspdf",
    symbol="jspdf",
    sources=(
        "vendor/jspdf.umd.min.js",
        "https://cdnjs.cloudflare.com/ajax/libs/jspdf/2.5.1/jspdf.umd.min.js",
        "https://cdn.jsdelivr.net/npm/jspdf@2.5.1/dist/jspdf.umd.min.js",
        "https://unpkg.com/jspdf@2.5.1/dist/jspdf.umd.min.js",
    ),
)

LIBRARIES: Dict[str, LibrarySpec] = {spec.name: spec for spec in (XLSX, CHARTJS, HTML2CANVAS, JSPDF)}

PDF_LIBRARIES = (HTML2CANVAS, JSPDF)


def library_names() -> List[str]:
    return sorted(LIBRARIES)


def get_library(
    name: str, overrides: Optional[Mapping[str, Sequence[str]]] = None
) -> LibrarySpec:
    """Look up a library by name, applying any configured source overrides.

    Raises:
        LoaderConfigurationError: If the library is unknown or its override is empty
    """
    key = name.lower()
    spec = LIBRARIES.get(key)
    if spec is None:
        msg = f"Unknown library {name!r}; expected one of {library_names()}"
        raise LoaderConfigurationError(msg)
    if overrides and key in overrides:
        sources = tuple(overrides[key])
        if not sources:
            msg = f"Source override for {key!r} cannot be empty"
            raise LoaderConfigurationError(msg)
        spec = spec.with_sources(sources)
    return spec


async def ensure_xlsx(
    loader: ScriptLoader, overrides: Optional[Mapping[str, Sequence[str]]] = None
) -> bool:
    return await loader.ensure_library(get_library(XLSX.name, overrides))


async def ensure_chartjs(
    loader: ScriptLoader, overrides: Optional[Mapping[str, Sequence[str]]] = None
) -> bool:
    return await loader.ensure_library(get_library(CHARTJS.name, overrides))


async def ensure_pdf_libraries(
    loader: ScriptLoader, overrides: Optional[Mapping[str, Sequence[str]]] = None
) -> bool:
    """Load html2canvas, then jsPDF. True only if both ended up defined.

    *overrides* maps library names to replacement source lists, as in
    ``LoaderSettings.libraries``.
    """
    results = []
    for spec in PDF_LIBRARIES:
        results.append(await loader.ensure_library(get_library(spec.name, overrides)))
    if not all(results):
        logger.error(actionable_message("PDF export libraries"))
    return all(results)


__all__ = [
    "CHARTJS",
    "HTML2CANVAS",
    "JSPDF",
    "LIBRARIES",
    "PDF_LIBRARIES",
    "XLSX",
    "ensure_chartjs",
    "ensure_pdf_libraries",
    "ensure_xlsx",
    "get_library",
    "library_names",
]

"""Tests for the library catalog and ensure_* wrappers."""

import asyncio

import pytest

from MarketDash.ScriptLoader import libraries
from MarketDash.ScriptLoader.errors import LoaderConfigurationError, actionable_message
from MarketDash.ScriptLoader.loader import ScriptLoader


def test_catalog_contents():
    assert libraries.library_names() == ["chartjs", "html2canvas", "jspdf", "xlsx"]
    assert libraries.HTML2CANVAS.sources[0] == "vendor/html2canvas.min.js"
    assert libraries.JSPDF.sources[0] == "vendor/jspdf.umd.min.js"
    assert all(src.startswith("https://") for src in libraries.XLSX.sources)
    assert libraries.CHARTJS.symbol == "Chart"


def test_get_library_with_override():
    spec = libraries.get_library("JSPDF", {"jspdf": ["local/jspdf.js"]})
    assert spec.sources == ("local/jspdf.js",)
    assert spec.symbol == "jspdf"
    assert libraries.get_library("jspdf").sources == libraries.JSPDF.sources


def test_get_library_errors():
    with pytest.raises(LoaderConfigurationError, match="Unknown library"):
        libraries.get_library("d3")
    with pytest.raises(LoaderConfigurationError, match="cannot be empty"):
        libraries.get_library("xlsx", {"xlsx": []})


def test_ensure_xlsx_uses_catalog_sources(fake_env_factory):
    first, second, _ = libraries.XLSX.sources
    env = fake_env_factory({first: "down", second: "ok"}, defines={second: "XLSX"})

    async def scenario():
        loader = ScriptLoader(env)
        return await libraries.ensure_xlsx(loader), loader

    ok, loader = asyncio.run(scenario())
    assert ok is True
    assert env.calls == [first, second]
    assert loader.library_results["xlsx"].locator == second


def test_ensure_chartjs_already_present(fake_env_factory):
    env = fake_env_factory({})
    env.globals.add("Chart")

    async def scenario():
        return await libraries.ensure_chartjs(ScriptLoader(env))

    assert asyncio.run(scenario()) is True
    assert env.calls == []


def test_ensure_pdf_libraries_loads_both_in_order(fake_env_factory):
    local_canvas = libraries.HTML2CANVAS.sources[0]
    local_pdf = libraries.JSPDF.sources[0]
    env = fake_env_factory(
        {local_canvas: "ok", local_pdf: "ok"},
        defines={local_canvas: "html2canvas", local_pdf: "jspdf"},
    )

    async def scenario():
        return await libraries.ensure_pdf_libraries(ScriptLoader(env))

    assert asyncio.run(scenario()) is True
    assert env.calls == [local_canvas, local_pdf]


def test_ensure_pdf_libraries_reports_failure(fake_env_factory, caplog):
    local_canvas = libraries.HTML2CANVAS.sources[0]
    env = fake_env_factory({local_canvas: "ok"}, defines={local_canvas: "html2canvas"})

    async def scenario():
        return await libraries.ensure_pdf_libraries(ScriptLoader(env))

    with caplog.at_level("ERROR", logger="MarketDash"):
        assert asyncio.run(scenario()) is False

    messages = [r.getMessage() for r in caplog.records]
    assert actionable_message("jspdf") in messages
    assert actionable_message("PDF export libraries") in messages
    # every jsPDF candidate was tried once, in order
    assert env.calls[1:] == list(libraries.JSPDF.sources)


def test_ensure_wrappers_honour_source_overrides(fake_env_factory):
    overrides = {
        "xlsx": ["vendor/xlsx.full.min.js"],
        "jspdf": ["vendor/missing.js", "vendor/jspdf.js"],
    }
    local_canvas = libraries.HTML2CANVAS.sources[0]
    env = fake_env_factory(
        {"vendor/xlsx.full.min.js": "ok", local_canvas: "ok", "vendor/jspdf.js": "ok"},
        defines={
            "vendor/xlsx.full.min.js": "XLSX",
            local_canvas: "html2canvas",
            "vendor/jspdf.js": "jspdf",
        },
    )

    async def scenario():
        loader = ScriptLoader(env)
        xlsx_ok = await libraries.ensure_xlsx(loader, overrides)
        pdf_ok = await libraries.ensure_pdf_libraries(loader, overrides)
        return xlsx_ok, pdf_ok, loader

    xlsx_ok, pdf_ok, loader = asyncio.run(scenario())
    assert xlsx_ok is True and pdf_ok is True
    assert env.calls == ["vendor/xlsx.full.min.js", local_canvas, "vendor/missing.js", "vendor/jspdf.js"]
    assert loader.library_results["jspdf"].locator == "vendor/jspdf.js"


def test_ensure_library_with_explicit_empty_sources(fake_env_factory):
    env = fake_env_factory({})

    async def scenario():
        loader = ScriptLoader(env)
        return await loader.ensure_library(libraries.XLSX, sources=[]), loader

    ok, loader = asyncio.run(scenario())
    assert ok is False
    assert env.calls == []
    assert loader.library_results["xlsx"].outcome == "empty"

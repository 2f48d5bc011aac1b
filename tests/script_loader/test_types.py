"""Validation tests for ScriptLoader result types and the registry."""

import asyncio

import pytest

from MarketDash.ScriptLoader.registry import LoadRegistry
from MarketDash.ScriptLoader.types import FallbackResult, LibrarySpec, LoadResult


class TestLoadResult:
    """Test LoadResult dataclass."""

    def test_success_result(self):
        result = LoadResult(locator="a.js", outcome="success", reason="loaded", elapsed_ms=12, status=200)
        assert result.is_success
        assert not result.is_timeout

    def test_elapsed_ms_validation(self):
        with pytest.raises(ValueError, match="non-negative"):
            LoadResult(locator="a.js", outcome="error", reason="x", elapsed_ms=-1)

    def test_success_rejects_error_status(self):
        with pytest.raises(ValueError, match="cannot carry error status"):
            LoadResult(locator="a.js", outcome="success", reason="loaded", status=404)

    def test_with_outcome(self):
        result = LoadResult(locator="a.js", outcome="success", reason="loaded", elapsed_ms=5, status=200)
        rejected = result.with_outcome("missing_symbol", "symbol_not_defined")
        assert rejected.outcome == "missing_symbol"
        assert rejected.elapsed_ms == 5
        assert result.is_success


class TestFallbackResult:
    """Test FallbackResult dataclass."""

    def test_success_requires_locator(self):
        with pytest.raises(ValueError, match="requires locator"):
            FallbackResult(outcome="success")

    def test_failure_rejects_locator(self):
        with pytest.raises(ValueError, match="should not have a locator"):
            FallbackResult(outcome="exhausted", locator="a.js")

    def test_attempt_accounting(self):
        attempts = (
            LoadResult(locator="a.js", outcome="not_found", reason="http_404", elapsed_ms=3),
            LoadResult(locator="b.js", outcome="success", reason="loaded", elapsed_ms=7),
        )
        result = FallbackResult(outcome="success", locator="b.js", attempts=attempts)
        assert result.attempted_locators == ("a.js", "b.js")
        assert result.elapsed_ms == 10


class TestLibrarySpec:
    def test_requires_sources(self):
        with pytest.raises(ValueError, match="cannot be empty"):
            LibrarySpec(name="x", symbol="X", sources=())

    def test_requires_symbol(self):
        with pytest.raises(ValueError, match="global symbol"):
            LibrarySpec(name="x", symbol="", sources=("a.js",))


class TestLoadRegistry:
    """Test LoadRegistry bookkeeping."""

    def test_get_or_create_is_stable(self):
        registry = LoadRegistry()
        first = registry.get_or_create("a.js")
        assert registry.get_or_create("a.js") is first
        assert len(registry) == 1
        assert registry.get("missing.js") is None

    def test_settle_and_snapshot(self):
        registry = LoadRegistry()
        request = registry.get_or_create("a.js")
        request.attempts = 1
        request.settle(LoadResult(locator="a.js", outcome="timeout", reason="timeout", elapsed_ms=50))
        assert request.state == "failed"
        assert request.future is None
        assert registry.snapshot() == {
            "a.js": {"state": "failed", "attempts": 1, "outcome": "timeout", "reason": "timeout"}
        }

    def test_pending(self):
        async def scenario():
            registry = LoadRegistry()
            request = registry.get_or_create("a.js")
            request.future = asyncio.get_running_loop().create_future()
            pending = registry.pending()
            request.future.set_result(None)
            return pending, registry.pending()

        pending, after = asyncio.run(scenario())
        assert [r.locator for r in pending] == ["a.js"]
        assert after == []

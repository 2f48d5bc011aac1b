"""Shared fixtures for ScriptLoader tests."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Set

import pytest

from MarketDash.ScriptLoader.environment import InjectedScript
from MarketDash.ScriptLoader.errors import CandidateNotFound, CandidateUnreachable


class FakeEnvironment:
    """Scripted environment: each locator maps to a behaviour.

    Behaviours:
        "ok"       - loads and defines the symbol given in ``defines``
        "404"      - raises CandidateNotFound
        "down"     - raises CandidateUnreachable
        "hang"     - never completes until ``release`` is called
        "boom"     - raises an unexpected RuntimeError
        "soft404"  - completes but reports HTTP status 404
    """

    def __init__(self, behaviours: Dict[str, str], defines: Optional[Dict[str, str]] = None) -> None:
        self.behaviours = behaviours
        self.defines = defines or {}
        self.calls: List[str] = []
        self.injected: List[str] = []
        self.globals: Set[str] = set()
        self._gates: Dict[str, asyncio.Event] = {}

    def gate(self, locator: str) -> asyncio.Event:
        if locator not in self._gates:
            self._gates[locator] = asyncio.Event()
        return self._gates[locator]

    def release(self, locator: str) -> None:
        self.gate(locator).set()

    async def inject(self, locator: str) -> InjectedScript:
        self.calls.append(locator)
        behaviour = self.behaviours.get(locator, "404")
        if behaviour == "hang":
            await self.gate(locator).wait()
            behaviour = "ok"
        else:
            await asyncio.sleep(0)

        if behaviour == "404":
            raise CandidateNotFound(locator, "http_404", status=404)
        if behaviour == "down":
            raise CandidateUnreachable(locator, "server_error", status=503)
        if behaviour == "boom":
            raise RuntimeError("environment exploded")

        if behaviour == "soft404":
            return InjectedScript(
                locator=locator, source="Not Found", sha256="0" * 64, origin="remote", status=404
            )

        self.injected.append(locator)
        symbol = self.defines.get(locator)
        if symbol:
            self.globals.add(symbol)
        return InjectedScript(locator=locator, source="/* bundle */", sha256="0" * 64, origin="local")

    def has_global(self, name: str) -> bool:
        return name in self.globals


@pytest.fixture
def fake_env_factory():
    return FakeEnvironment


@pytest.fixture(autouse=True)
def _reset_marketdash_logger():
    yield
    logger = logging.getLogger("MarketDash")
    for handler in list(logger.handlers):
        if getattr(handler, "_marketdash_managed", False):
            logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)

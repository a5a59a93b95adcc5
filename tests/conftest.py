from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Tuple

import pytest

from compote.core.context import Context
from compote.core.provider import ProviderInitOptions, ProviderRegistry
from compote.core.syntax import SourceSpan
from compote.providers.navigate import navigate


class FakeProvider:
    """In-memory provider that records fetches and peak concurrency."""

    def __init__(self, data: Optional[Dict[str, Any]] = None, delay: float = 0.0, fail: bool = False):
        self.data = data or {}
        self.delay = delay
        self.fail = fail
        self.init_calls = 0
        self.fetches: List[Tuple[str, ...]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def init(self, ctx: Context, options: ProviderInitOptions) -> None:
        self.init_calls += 1

    async def fetch(self, ctx: Context, path: Tuple[str, ...]) -> Any:
        self.fetches.append(tuple(path))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.fail:
                raise RuntimeError("backend unavailable")
            return navigate(self.data, path)
        finally:
            self.in_flight -= 1


@pytest.fixture
def span() -> SourceSpan:
    return SourceSpan(filename="main.csl", start_line=3, start_col=7, end_line=3, end_col=20)


@pytest.fixture
def registry() -> ProviderRegistry:
    return ProviderRegistry()


@pytest.fixture
def ctx() -> Context:
    return Context()

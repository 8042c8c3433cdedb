"""
Pytest configuration for HighlightQ tests

Provides fixtures and helpers shared across all test files
"""

from __future__ import annotations

from collections.abc import Sequence

import pytest

from highlightq.classification.models import ProviderConfig, SentimentResult
from highlightq.classification.providers import LocalSentimentProvider
from highlightq.classification.runtime import ProviderRuntime
from highlightq.gateway.boundary import BoundaryGateway
from highlightq.observability import telemetry
from highlightq.storage.cache import CacheStore
from highlightq.storage.kv import MemoryKeyValueStore

ALLOWED_ORIGIN = "https://example.com/article"


class SpyProvider:
    """Local scoring plus a record of every classify() call."""

    name = "spy"

    def __init__(self, results: Sequence[SentimentResult] | None = None):
        self.initialized = True
        self.calls: list[list[str]] = []
        self._scorer = LocalSentimentProvider()
        self._results = list(results) if results is not None else None

    async def initialize(self) -> bool:
        return True

    async def classify(self, texts: Sequence[str]) -> list[SentimentResult]:
        self.calls.append(list(texts))
        if self._results is not None:
            return list(self._results)
        return [self._scorer.score(text) for text in texts]

    @property
    def sentences_seen(self) -> list[str]:
        return [text for call in self.calls for text in call]


class FakeClock:
    def __init__(self, now: int = 1_700_000_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now


@pytest.fixture(autouse=True)
def _reset_telemetry():
    telemetry.reset()
    yield
    telemetry.reset()


@pytest.fixture
def store():
    return MemoryKeyValueStore()


@pytest.fixture
def spy():
    return SpyProvider()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def runtime(store, spy):
    return ProviderRuntime(store, config=ProviderConfig(), provider_factory=lambda config: spy)


@pytest.fixture
def gateway(runtime):
    return BoundaryGateway(runtime)


@pytest.fixture
def cache(store, clock):
    return CacheStore(store, clock=clock)


@pytest.fixture
def make_spy():
    """SpyProvider class, for tests that need canned results."""
    return SpyProvider


@pytest.fixture
def allowed_origin():
    return ALLOWED_ORIGIN

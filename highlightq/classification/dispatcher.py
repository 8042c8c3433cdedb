"""
Cache-aware classification dispatch.

Pipeline for one batch of sentences:
    snapshot -> cache partition -> one gateway call for the misses
             -> merge at original positions -> cache successful results

Output always lines up index-for-index with the input, whatever mix of
cache hits and provider results produced it.
"""

from __future__ import annotations

from collections.abc import Sequence

from highlightq.classification.models import Sentence, SentimentResult
from highlightq.classification.runtime import ProviderRuntime
from highlightq.gateway.boundary import BoundaryGateway
from highlightq.observability.logging import get_logger
from highlightq.observability.telemetry import counter, time_block
from highlightq.storage.cache import CacheStore

logger = get_logger(__name__)


class ClassificationDispatcher:
    def __init__(
        self,
        runtime: ProviderRuntime,
        cache: CacheStore,
        gateway: BoundaryGateway,
        origin_context: str | None,
    ):
        self.runtime = runtime
        self.cache = cache
        self.gateway = gateway
        self.origin_context = origin_context

    async def resolve(self, sentences: Sequence[Sentence]) -> list[SentimentResult]:
        """
        One result per sentence, in input order.

        Sentences sharing a fingerprint are sent to the provider once and
        share the resulting instance.

        Raises:
            NotPermittedError: the page origin is restricted, checked before
                the cache so a warm cache never bypasses the boundary
        """
        if not sentences:
            return []
        self.gateway.check_origin(self.origin_context)

        snapshot = self.runtime.snapshot()
        config = snapshot.config
        fingerprints = [sentence.fingerprint for sentence in sentences]

        cached: dict[str, SentimentResult] = {}
        if config.cache_enabled:
            cached = await self.cache.lookup(fingerprints, ttl_ms=config.ttl_ms)

        # First occurrence of each uncached fingerprint, in input order
        miss_texts: dict[str, str] = {}
        for sentence in sentences:
            if sentence.fingerprint not in cached and sentence.fingerprint not in miss_texts:
                miss_texts[sentence.fingerprint] = sentence.text

        fresh: dict[str, SentimentResult] = {}
        if miss_texts:
            counter("dispatch.provider_calls")
            with time_block("dispatch.provider"):
                provider_results = await self.gateway.request_classification(
                    list(miss_texts.values()),
                    self.origin_context,
                    provider=snapshot.provider,
                )
            if len(provider_results) != len(miss_texts):
                logger.warning(
                    "Provider returned %d results for %d sentences, discarding batch",
                    len(provider_results),
                    len(miss_texts),
                )
                counter("dispatch.shape_mismatch")
                provider_results = [SentimentResult.neutral_error() for _ in miss_texts]
            fresh = dict(zip(miss_texts, provider_results))

            if config.cache_enabled:
                await self.cache.store(fresh)

        counter("dispatch.cache_hits", sum(1 for fp in fingerprints if fp in cached))
        counter("dispatch.errors", sum(1 for result in fresh.values() if result.error))
        return [cached[fp] if fp in cached else fresh[fp] for fp in fingerprints]

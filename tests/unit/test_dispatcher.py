"""Tests for cache-aware classification dispatch"""

import pytest

from highlightq.classification.dispatcher import ClassificationDispatcher
from highlightq.classification.models import (
    ProviderConfig,
    Sentence,
    SentimentLabel,
    SentimentResult,
)
from highlightq.classification.runtime import ProviderRuntime
from highlightq.classification.segmenter import fingerprint
from highlightq.gateway.boundary import BoundaryGateway, NotPermittedError
from highlightq.observability.telemetry import counter

TTL = 24 * 60 * 60 * 1000


def sentence(text):
    return Sentence(text=text, fingerprint=fingerprint(text))


@pytest.fixture
def dispatcher(runtime, cache, gateway, allowed_origin):
    return ClassificationDispatcher(runtime, cache, gateway, allowed_origin)


@pytest.mark.asyncio
async def test_second_resolve_is_served_from_cache(dispatcher, spy):
    batch = [sentence("What a great day."), sentence("That was awful.")]

    first = await dispatcher.resolve(batch)
    second = await dispatcher.resolve(batch)

    assert len(spy.calls) == 1
    assert first == second
    assert [r.label for r in second] == [SentimentLabel.POSITIVE, SentimentLabel.NEGATIVE]


@pytest.mark.asyncio
async def test_hits_and_misses_keep_input_order(dispatcher, cache, spy):
    a, b, c = sentence("Alpha is great."), sentence("Beta is awful."), sentence("Gamma has risk.")
    cached_a = SentimentResult(label=SentimentLabel.INFORMATIVE, score=0.6)
    cached_c = SentimentResult(label=SentimentLabel.NEUTRAL, score=0.1)
    await cache.store({a.fingerprint: cached_a, c.fingerprint: cached_c})

    results = await dispatcher.resolve([a, b, c])

    assert spy.calls == [["Beta is awful."]]
    assert results[0] == cached_a
    assert results[1].label is SentimentLabel.NEGATIVE
    assert results[2] == cached_c


@pytest.mark.asyncio
async def test_duplicate_fingerprints_are_sent_once(dispatcher, spy):
    twin = "Same sentence, great."
    results = await dispatcher.resolve([sentence(twin), sentence("Another one."), sentence(twin)])

    assert spy.calls == [[twin, "Another one."]]
    assert results[0] is results[2]


@pytest.mark.asyncio
async def test_error_results_are_returned_but_not_cached(store, cache, allowed_origin, make_spy):
    failing = make_spy(results=[SentimentResult.neutral_error()])
    runtime = ProviderRuntime(store, provider_factory=lambda config: failing)
    dispatcher = ClassificationDispatcher(runtime, cache, BoundaryGateway(runtime), allowed_origin)
    batch = [sentence("Flaky network here.")]

    first = await dispatcher.resolve(batch)
    second = await dispatcher.resolve(batch)

    assert first[0].error and second[0].error
    assert len(failing.calls) == 2


@pytest.mark.asyncio
async def test_wrong_length_results_become_errors(store, cache, allowed_origin, make_spy):
    short = make_spy(results=[SentimentResult(label=SentimentLabel.POSITIVE, score=0.9)])
    runtime = ProviderRuntime(store, provider_factory=lambda config: short)
    dispatcher = ClassificationDispatcher(runtime, cache, BoundaryGateway(runtime), allowed_origin)

    results = await dispatcher.resolve([sentence("First one."), sentence("Second one.")])

    assert all(r.error and r.label is SentimentLabel.NEUTRAL for r in results)
    assert counter("dispatch.shape_mismatch", 0) == 1
    assert await cache.lookup([fingerprint("First one.")], ttl_ms=TTL) == {}


@pytest.mark.asyncio
async def test_cache_disabled_skips_lookup_and_store(store, cache, spy, allowed_origin):
    runtime = ProviderRuntime(
        store, config=ProviderConfig(cache_enabled=False), provider_factory=lambda config: spy
    )
    dispatcher = ClassificationDispatcher(runtime, cache, BoundaryGateway(runtime), allowed_origin)
    batch = [sentence("Nothing cached here.")]

    await dispatcher.resolve(batch)
    await dispatcher.resolve(batch)

    assert len(spy.calls) == 2
    assert store.get_many([batch[0].fingerprint]) == {}


@pytest.mark.asyncio
async def test_restricted_origin_propagates_without_provider_call(runtime, cache, gateway, spy):
    dispatcher = ClassificationDispatcher(runtime, cache, gateway, "chrome://extensions")

    with pytest.raises(NotPermittedError):
        await dispatcher.resolve([sentence("Great stuff here.")])

    assert spy.calls == []


@pytest.mark.asyncio
async def test_restricted_origin_is_refused_even_when_cached(runtime, cache, gateway, spy, dispatcher):
    batch = [sentence("Great stuff here.")]
    await dispatcher.resolve(batch)
    restricted = ClassificationDispatcher(runtime, cache, gateway, "chrome://newtab")

    with pytest.raises(NotPermittedError):
        await restricted.resolve(batch)

    assert len(spy.calls) == 1


@pytest.mark.asyncio
async def test_empty_batch(dispatcher, spy):
    assert await dispatcher.resolve([]) == []
    assert spy.calls == []

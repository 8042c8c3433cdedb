"""Tests for the local and remote sentiment providers"""

import json

import httpx
import pytest

from highlightq.classification.models import ProviderConfig, SentimentLabel
from highlightq.classification.providers import (
    LocalSentimentProvider,
    RemoteSentimentProvider,
    build_provider,
)
from highlightq.infrastructure.circuit import CircuitBreaker
from highlightq.observability.telemetry import counter

ENDPOINT = "https://sentiment.example.com/v1"


class TestLocalProvider:
    @pytest.mark.parametrize(
        ("text", "label", "score"),
        [
            ("What a fantastic and happy day.", SentimentLabel.POSITIVE, 0.9),
            ("This was a terrible, awful experience.", SentimentLabel.NEGATIVE, -0.8),
            ("Caution: legal review pending.", SentimentLabel.RISK, 0.7),
            ("The report explains the details.", SentimentLabel.INFORMATIVE, 0.6),
            ("The sky is blue.", SentimentLabel.NEUTRAL, 0.1),
        ],
    )
    def test_keyword_table(self, text, label, score):
        result = LocalSentimentProvider().score(text)
        assert result.label is label
        assert result.score == score
        assert result.error is False

    def test_highest_hit_count_wins(self):
        # one Positive hit, two Informative hits
        result = LocalSentimentProvider().score("Great, please see the attached report.")
        assert result.label is SentimentLabel.INFORMATIVE

    def test_ties_prefer_risk_then_negative(self):
        provider = LocalSentimentProvider()
        assert provider.score("Great news, but a warning.").label is SentimentLabel.RISK
        assert provider.score("Great food, bad service.").label is SentimentLabel.NEGATIVE
        assert provider.score("Great report.").label is SentimentLabel.POSITIVE

    @pytest.mark.asyncio
    async def test_classify_preserves_order(self):
        results = await LocalSentimentProvider().classify(["Awful.", "Excellent!"])
        assert [r.label for r in results] == [SentimentLabel.NEGATIVE, SentimentLabel.POSITIVE]


def make_remote(handler, **kwargs):
    return RemoteSentimentProvider(
        endpoint=ENDPOINT,
        credential="sk-remote-test",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestRemoteProvider:
    @pytest.mark.asyncio
    async def test_probe_accepts_405(self):
        provider = make_remote(lambda request: httpx.Response(405))
        assert await provider.initialize() is True
        assert provider.initialized

    @pytest.mark.asyncio
    async def test_probe_failure_marks_attempted(self):
        provider = make_remote(lambda request: httpx.Response(500))
        assert await provider.initialize() is False
        assert provider.initialization_attempted
        assert not provider.initialized

    @pytest.mark.asyncio
    async def test_classify_posts_batch_with_bearer_token(self):
        seen = []

        def handler(request):
            seen.append(request)
            if request.method == "OPTIONS":
                return httpx.Response(204)
            body = json.loads(request.content)
            return httpx.Response(
                200,
                json={"results": [{"label": "positive", "score": 0.8}, {"risk": 0.9}][: len(body["sentences"])]},
            )

        provider = make_remote(handler)
        results = await provider.classify(["Nice work.", "Legal hold."])

        assert [r.label for r in results] == [SentimentLabel.POSITIVE, SentimentLabel.RISK]
        post = seen[-1]
        assert post.method == "POST"
        assert str(post.url) == f"{ENDPOINT}/classify"
        assert post.headers["Authorization"] == "Bearer sk-remote-test"
        assert json.loads(post.content) == {"sentences": ["Nice work.", "Legal hold."]}

    @pytest.mark.asyncio
    async def test_shape_mismatch_gives_error_for_every_item(self):
        def handler(request):
            if request.method == "OPTIONS":
                return httpx.Response(200)
            return httpx.Response(200, json={"results": [{"label": "Positive"}]})

        results = await make_remote(handler).classify(["One here.", "Two here."])

        assert len(results) == 2
        assert all(r.error and r.label is SentimentLabel.NEUTRAL for r in results)
        assert counter("provider.remote.error", 0) == 1

    @pytest.mark.asyncio
    async def test_http_error_status_gives_error_results(self):
        def handler(request):
            if request.method == "OPTIONS":
                return httpx.Response(200)
            return httpx.Response(503)

        results = await make_remote(handler).classify(["Only one."])
        assert results[0].error

    @pytest.mark.asyncio
    async def test_transport_error_gives_error_results(self):
        def handler(request):
            if request.method == "OPTIONS":
                return httpx.Response(200)
            raise httpx.ConnectError("connection refused", request=request)

        results = await make_remote(handler).classify(["Only one."])
        assert results[0].error

    @pytest.mark.asyncio
    async def test_failed_probe_is_not_retried_on_later_calls(self):
        probes = []

        def handler(request):
            probes.append(request.method)
            return httpx.Response(500)

        provider = make_remote(handler)
        first = await provider.classify(["First one."])
        second = await provider.classify(["Second one."])

        assert probes == ["OPTIONS"]
        assert first[0].error and second[0].error

    @pytest.mark.asyncio
    async def test_open_breaker_short_circuits(self):
        calls = []

        def handler(request):
            calls.append(request.method)
            if request.method == "OPTIONS":
                return httpx.Response(200)
            return httpx.Response(500)

        breaker = CircuitBreaker(stage="test.remote", fail_max=2, reset_timeout=60.0)
        provider = make_remote(handler, breaker=breaker)

        for _ in range(3):
            results = await provider.classify(["Anything here."])
            assert results[0].error

        assert calls.count("POST") == 2
        assert breaker.state == "open"
        assert counter("provider.remote.short_circuited", 0) == 1


class TestBuildProvider:
    def test_local_by_default(self):
        assert isinstance(build_provider(ProviderConfig()), LocalSentimentProvider)

    def test_remote_when_configured(self):
        config = ProviderConfig(mode="remote", endpoint=ENDPOINT, credential="sk-x")
        provider = build_provider(config)
        assert isinstance(provider, RemoteSentimentProvider)
        assert provider.endpoint == ENDPOINT

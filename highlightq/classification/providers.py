"""
Sentiment providers.

Two interchangeable implementations of the SentimentProvider protocol:

    LocalSentimentProvider  - keyword scoring, offline, always succeeds
    RemoteSentimentProvider - one HTTP call per batch to `<endpoint>/classify`

The runtime picks one from ProviderConfig (build_provider). A provider never
raises out of classify(): remote failures come back as Neutral results
flagged error=True for every sentence of the call.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol

import httpx

from highlightq.classification.models import ProviderConfig, SentimentLabel, SentimentResult
from highlightq.config import REMOTE_BREAKER_FAIL_MAX, REMOTE_BREAKER_RESET_SECONDS
from highlightq.infrastructure.circuit import AdapterError, CircuitBreaker
from highlightq.observability.logging import get_logger, register_secret
from highlightq.observability.telemetry import counter, log_event, time_block

logger = get_logger(__name__)


class SentimentProvider(Protocol):
    name: str
    initialized: bool

    async def initialize(self) -> bool: ...

    async def classify(self, texts: Sequence[str]) -> list[SentimentResult]: ...


# =============================================================================
# LOCAL
# =============================================================================

KEYWORD_TABLE: dict[SentimentLabel, tuple[str, ...]] = {
    SentimentLabel.POSITIVE: ("fantastic", "great", "excellent", "happy"),
    SentimentLabel.NEGATIVE: ("disappointing", "bad", "terrible", "awful"),
    SentimentLabel.RISK: ("warning", "caution", "legal", "risk"),
    SentimentLabel.INFORMATIVE: (
        "details",
        "report",
        "explains",
        "finding",
        "information",
        "attached",
    ),
}

LABEL_SCORES: dict[SentimentLabel, float] = {
    SentimentLabel.POSITIVE: 0.9,
    SentimentLabel.NEGATIVE: -0.8,
    SentimentLabel.RISK: 0.7,
    SentimentLabel.INFORMATIVE: 0.6,
    SentimentLabel.NEUTRAL: 0.1,
}

# Tie-break order when two categories match the same number of keywords
TIE_PRIORITY: tuple[SentimentLabel, ...] = (
    SentimentLabel.RISK,
    SentimentLabel.NEGATIVE,
    SentimentLabel.POSITIVE,
    SentimentLabel.INFORMATIVE,
)


class LocalSentimentProvider:
    """Deterministic keyword scorer. Default provider and remote fallback."""

    name = "local"

    def __init__(self) -> None:
        self.initialized = False

    async def initialize(self) -> bool:
        self.initialized = True
        logger.info("Local sentiment provider initialized")
        return True

    def score(self, text: str) -> SentimentResult:
        lowered = text.lower()
        hits = {
            label: sum(1 for keyword in keywords if keyword in lowered)
            for label, keywords in KEYWORD_TABLE.items()
        }
        best = max(TIE_PRIORITY, key=lambda label: hits[label])
        if hits[best] == 0:
            best = SentimentLabel.NEUTRAL
        return SentimentResult(label=best, score=LABEL_SCORES[best])

    async def classify(self, texts: Sequence[str]) -> list[SentimentResult]:
        if not self.initialized:
            await self.initialize()
        counter("provider.local.sentences", len(texts))
        return [self.score(text) for text in texts]


# =============================================================================
# REMOTE
# =============================================================================


class RemoteSentimentProvider:
    """
    HTTP provider speaking the batch contract:

        POST <endpoint>/classify  {"sentences": [...]}  ->  {"results": [...]}

    `initialization_attempted` is set before the probe runs so a failed
    probe is not repeated on every classify() call; a fresh instance (built
    on configuration update) is the explicit retry.
    """

    name = "remote"

    def __init__(
        self,
        endpoint: str,
        credential: str,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        breaker: CircuitBreaker | None = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self._credential = credential
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self.breaker = breaker or CircuitBreaker(
            stage="provider.remote",
            fail_max=REMOTE_BREAKER_FAIL_MAX,
            reset_timeout=REMOTE_BREAKER_RESET_SECONDS,
        )
        self.initialized = False
        self.initialization_attempted = False
        register_secret(credential)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self._transport,
            timeout=self.timeout_seconds,
            headers={"Authorization": f"Bearer {self._credential}"},
        )

    async def initialize(self) -> bool:
        """
        Probe the endpoint with a lightweight OPTIONS request.

        2xx, 204 and 405 (endpoint exists but does not answer OPTIONS) all
        count as reachable.

        Side Effects:
            - Sets initialization_attempted, then initialized on success
            - One network round-trip
        """
        self.initialization_attempted = True
        try:
            async with self._client() as client:
                response = await client.options(self.endpoint)
            if not response.is_success and response.status_code not in (204, 405):
                raise AdapterError(
                    f"Connectivity probe failed: {response.status_code}",
                    status_code=response.status_code,
                )
        except (httpx.HTTPError, AdapterError) as exc:
            logger.error("Failed to initialize remote sentiment provider: %s", exc)
            counter("provider.remote.init_failed")
            self.initialized = False
            return False

        self.initialized = True
        logger.info("Remote sentiment provider initialized: %s", self.endpoint)
        return True

    async def classify(self, texts: Sequence[str]) -> list[SentimentResult]:
        if not texts:
            return []
        if not self.initialized and not self.initialization_attempted:
            await self.initialize()
        if not self.initialized:
            logger.warning("Remote provider not initialized, returning error results")
            counter("provider.remote.not_initialized")
            return [SentimentResult.neutral_error() for _ in texts]
        if not self.breaker.allow_request():
            counter("provider.remote.short_circuited")
            return [SentimentResult.neutral_error() for _ in texts]

        try:
            with time_block("provider.remote.classify"):
                results = await self._fetch(list(texts))
        except (httpx.HTTPError, AdapterError, ValueError) as exc:
            self.breaker.record_failure()
            counter("provider.remote.error")
            log_event("provider.remote.error", error=str(exc), batch=len(texts))
            logger.warning("Remote sentiment analysis failed: %s", exc)
            return [SentimentResult.neutral_error() for _ in texts]

        self.breaker.record_success()
        counter("provider.remote.sentences", len(texts))
        return results

    async def _fetch(self, texts: list[str]) -> list[SentimentResult]:
        """
        One POST for the whole batch.

        Raises:
            AdapterError: non-2xx status
            ValueError: body is not JSON or `results` does not line up with
                the request (no partial results are ever returned)
        """
        async with self._client() as client:
            response = await client.post(f"{self.endpoint}/classify", json={"sentences": texts})

        if not response.is_success:
            raise AdapterError(
                f"API request failed: {response.status_code}", status_code=response.status_code
            )

        data: Any = response.json()
        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list) or len(results) != len(texts):
            raise ValueError("Unexpected API response structure")
        return [SentimentResult.from_payload(item) for item in results]


def build_provider(
    config: ProviderConfig, transport: httpx.AsyncBaseTransport | None = None
) -> SentimentProvider:
    """Provider for `config`; anything not fully remote gets the local scorer."""
    if config.mode == "remote" and config.endpoint and config.credential:
        return RemoteSentimentProvider(
            endpoint=config.endpoint,
            credential=config.credential,
            timeout_seconds=config.timeout_seconds,
            transport=transport,
        )
    return LocalSentimentProvider()

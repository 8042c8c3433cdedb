"""
Boundary between a page pipeline and the classification process.

BoundaryGateway.request_classification() is the only way page code reaches a
provider. It refuses restricted navigation targets (browser-internal pages,
extension stores) up front with NotPermittedError.
"""

from __future__ import annotations

from collections.abc import Sequence

from highlightq.classification.models import SentimentResult
from highlightq.classification.providers import SentimentProvider
from highlightq.classification.runtime import ProviderRuntime
from highlightq.config import RESTRICTED_URL_PATTERNS
from highlightq.observability.logging import get_logger
from highlightq.observability.telemetry import counter, log_event

logger = get_logger(__name__)


class GatewayError(RuntimeError):
    """Base class for failures surfaced by the gateway."""


class NotPermittedError(GatewayError):
    """The origin is a restricted target; nothing was attempted."""

    def __init__(self, origin_context: str | None):
        super().__init__(f"Classification is not permitted on {origin_context or '<unknown>'}")
        self.origin_context = origin_context


def is_restricted_origin(
    origin_context: str | None, patterns: Sequence[str] = RESTRICTED_URL_PATTERNS
) -> bool:
    """An unknown origin is treated as restricted."""
    if not origin_context:
        return True
    return any(
        origin_context.startswith(pattern) or pattern in origin_context for pattern in patterns
    )


class BoundaryGateway:
    def __init__(
        self,
        runtime: ProviderRuntime,
        restricted_patterns: Sequence[str] = RESTRICTED_URL_PATTERNS,
    ):
        self.runtime = runtime
        self.restricted_patterns = tuple(restricted_patterns)

    def check_origin(self, origin_context: str | None) -> None:
        """
        Raises:
            NotPermittedError: origin is missing or matches a restricted pattern
        """
        if is_restricted_origin(origin_context, self.restricted_patterns):
            counter("gateway.not_permitted")
            log_event("gateway.not_permitted", origin=origin_context)
            raise NotPermittedError(origin_context)

    async def request_classification(
        self,
        texts: Sequence[str],
        origin_context: str | None,
        provider: SentimentProvider | None = None,
    ) -> list[SentimentResult]:
        """
        Classify `texts` on behalf of a page at `origin_context`.

        Args:
            texts: Sentences to classify, in order
            origin_context: Navigation target of the requesting page
            provider: Provider captured by the caller's snapshot; defaults to
                the runtime's current one

        Raises:
            NotPermittedError: restricted origin (the provider is not called)
        """
        self.check_origin(origin_context)
        if not texts:
            return []
        active = provider if provider is not None else self.runtime.snapshot().provider
        counter("gateway.requests")
        return await active.classify(list(texts))

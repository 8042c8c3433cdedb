"""Batch classification endpoint.

Speaks the contract RemoteSentimentProvider expects from a remote endpoint:

    POST /classify  {"sentences": [...]}  ->  {"results": [...]}
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from highlightq.api.middleware.auth import require_api_key
from highlightq.api.models import ClassifyRequest, ClassifyResponse, SentimentPayload
from highlightq.api.state import ApiServices, get_services
from highlightq.observability.logging import get_logger
from highlightq.observability.telemetry import counter, time_block

router = APIRouter(tags=["classify"])
logger = get_logger(__name__)


@router.options("/")
@router.options("/classify")
async def probe() -> dict[str, bool]:
    """Connectivity probe answered for RemoteSentimentProvider.initialize()."""
    return {"ok": True}


@router.post("/classify", response_model=ClassifyResponse)
async def classify(
    request: ClassifyRequest,
    services: ApiServices = Depends(get_services),
    authenticated: bool = Depends(require_api_key),  # noqa: ARG001
) -> ClassifyResponse:
    """
    Classify a batch with the active provider.

    Results line up index-for-index with `sentences`. Provider failures come
    back as Neutral results with error=true rather than an HTTP error.
    """
    snapshot = services.runtime.snapshot()
    counter("api.classify.sentences", len(request.sentences))
    with time_block("api.classify"):
        results = await snapshot.provider.classify(request.sentences)
    return ClassifyResponse(
        results=[SentimentPayload(**result.to_payload()) for result in results],
        provider=snapshot.provider.name,
    )

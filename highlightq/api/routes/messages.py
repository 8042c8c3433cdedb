"""Message protocol over HTTP: POST /api/messages"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from highlightq.api.middleware.auth import require_api_key
from highlightq.api.models import MessageEnvelope
from highlightq.api.state import ApiServices, get_services
from highlightq.gateway.messages import Sender

router = APIRouter(prefix="/api", tags=["messages"])


@router.post("/messages")
async def post_message(
    envelope: MessageEnvelope,
    services: ApiServices = Depends(get_services),
    authenticated: bool = Depends(require_api_key),  # noqa: ARG001
) -> dict[str, Any]:
    sender = Sender(tab_id=envelope.tab_id, origin_context=envelope.origin_context)
    return await services.router.handle(envelope.message, sender)

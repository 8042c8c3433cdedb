"""
Background message protocol.

Pages and the settings surface talk to the classification side through
typed requests, discriminated on `type`:

    classifySelection   {text, tabId, originContext?}
    highlightColor      {tabId, color, text?, originContext?}
    updateConfig        {config}
    readyNotification   {}        (alias: contentScriptReady)
    highlightResult     {result}
    toggleHighlighting  {enabled, tabId?}

MessageRouter.submit() returns a future that resolves exactly once with a
JSON-ready reply. Malformed requests never reach a handler: they get an
already-resolved future carrying {"success": False, "error": ...}.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Annotated, Any, Literal, Protocol, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from highlightq.classification.models import ConfigurationError, SentimentLabel
from highlightq.classification.runtime import ProviderRuntime
from highlightq.gateway.boundary import BoundaryGateway, NotPermittedError
from highlightq.observability.logging import get_logger
from highlightq.observability.telemetry import counter, log_event

logger = get_logger(__name__)

RESTRICTED_MESSAGE = "Cannot highlight on this page (restricted URL)"

# Context-menu colour presets for manual highlights
HIGHLIGHT_COLORS: dict[str, str] = {
    "yellow": "#ffeb3b",
    "green": "#22c55e",
    "red": "#ef4444",
    "orange": "#f97316",
}


# =============================================================================
# REQUEST MODELS
# =============================================================================


class _Message(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ClassifySelectionRequest(_Message):
    type: Literal["classifySelection"]
    text: str = Field(min_length=1)
    tab_id: int = Field(alias="tabId")
    origin_context: str | None = Field(default=None, alias="originContext")


class HighlightColorRequest(_Message):
    type: Literal["highlightColor"]
    tab_id: int = Field(alias="tabId")
    color: str = Field(min_length=1)
    text: str | None = None
    origin_context: str | None = Field(default=None, alias="originContext")


class UpdateConfigRequest(_Message):
    type: Literal["updateConfig"]
    config: dict[str, Any]


class ReadyNotification(_Message):
    type: Literal["readyNotification", "contentScriptReady"]


class HighlightResultNotice(_Message):
    type: Literal["highlightResult"]
    result: dict[str, Any] | None = None


class ToggleHighlightingRequest(_Message):
    type: Literal["toggleHighlighting"]
    enabled: bool
    tab_id: int | None = Field(default=None, alias="tabId")


Request = Annotated[
    Union[
        ClassifySelectionRequest,
        HighlightColorRequest,
        UpdateConfigRequest,
        ReadyNotification,
        HighlightResultNotice,
        ToggleHighlightingRequest,
    ],
    Field(discriminator="type"),
]

_REQUEST_ADAPTER: TypeAdapter[Request] = TypeAdapter(Request)


def parse_request(message: Any) -> Request:
    """
    Raises:
        ValidationError: unknown `type`, missing fields or wrong types
    """
    return _REQUEST_ADAPTER.validate_python(message)


def describe_validation_error(exc: ValidationError) -> str:
    """Field names only, never the rejected values."""
    fields = sorted({".".join(str(part) for part in err["loc"]) or "message" for err in exc.errors()})
    return f"Invalid message: {', '.join(fields)}"


# =============================================================================
# ROUTER
# =============================================================================


@dataclass(frozen=True)
class Sender:
    """Who sent a message: the page's tab and where it is navigated."""

    tab_id: int | None = None
    origin_context: str | None = None


class HighlightTarget(Protocol):
    """What the router needs from a registered page (PageSession fits)."""

    def highlight_selection(
        self,
        text: str | None = None,
        label: SentimentLabel | None = None,
        color: str | None = None,
    ) -> dict[str, Any]: ...

    async def set_highlighting(self, enabled: bool) -> dict[str, Any]: ...


class MessageRouter:
    def __init__(self, gateway: BoundaryGateway, runtime: ProviderRuntime):
        self.gateway = gateway
        self.runtime = runtime
        self._pages: dict[int, HighlightTarget] = {}
        self.ready_tabs: set[int] = set()

    def register_page(self, tab_id: int, page: HighlightTarget) -> None:
        self._pages[tab_id] = page

    def unregister_page(self, tab_id: int) -> None:
        self._pages.pop(tab_id, None)
        self.ready_tabs.discard(tab_id)

    def submit(self, message: Any, sender: Sender | None = None) -> asyncio.Future:
        """
        Route one message. Must be called from the running event loop.

        Returns:
            Future resolving to the reply dict
        """
        loop = asyncio.get_running_loop()
        try:
            request = parse_request(message)
        except ValidationError as exc:
            counter("messages.invalid")
            logger.warning("Rejected message: %s", describe_validation_error(exc))
            rejected = loop.create_future()
            rejected.set_result({"success": False, "error": describe_validation_error(exc)})
            return rejected

        counter(f"messages.{request.type}")
        return loop.create_task(self._dispatch(request, sender or Sender()))

    async def handle(self, message: Any, sender: Sender | None = None) -> dict[str, Any]:
        return await self.submit(message, sender)

    async def _dispatch(self, request: Request, sender: Sender) -> dict[str, Any]:
        if isinstance(request, ClassifySelectionRequest):
            return await self._classify_selection(request, sender)
        if isinstance(request, HighlightColorRequest):
            return self._highlight_color(request, sender)
        if isinstance(request, UpdateConfigRequest):
            return await self._update_config(request)
        if isinstance(request, ToggleHighlightingRequest):
            return await self._toggle(request)
        if isinstance(request, ReadyNotification):
            if sender.tab_id is not None:
                self.ready_tabs.add(sender.tab_id)
            logger.info("Page reported ready in tab %s", sender.tab_id)
            return {"received": True}
        log_event("messages.highlight_result", tab=sender.tab_id, result=request.result)
        return {"received": True}

    async def _classify_selection(
        self, request: ClassifySelectionRequest, sender: Sender
    ) -> dict[str, Any]:
        origin = request.origin_context or sender.origin_context
        try:
            results = await self.gateway.request_classification([request.text], origin)
        except NotPermittedError:
            return {
                "sentiment": SentimentLabel.NEUTRAL.value,
                "highlighted": False,
                "restricted": True,
                "error": RESTRICTED_MESSAGE,
            }

        result = results[0]
        reply: dict[str, Any] = {
            "sentiment": result.label.value,
            "score": result.score,
            "highlighted": False,
            "error": "Classification failed" if result.error else None,
        }
        page = self._pages.get(request.tab_id)
        if page is None:
            reply["error"] = f"No page registered for tab {request.tab_id}"
            return reply

        outcome = page.highlight_selection(text=request.text, label=result.label)
        reply["highlighted"] = bool(outcome.get("success"))
        reply["method"] = outcome.get("method")
        if outcome.get("error"):
            reply["error"] = outcome["error"]
        return reply

    def _highlight_color(self, request: HighlightColorRequest, sender: Sender) -> dict[str, Any]:
        try:
            self.gateway.check_origin(request.origin_context or sender.origin_context)
        except NotPermittedError:
            return {"success": False, "restricted": True, "error": RESTRICTED_MESSAGE}

        page = self._pages.get(request.tab_id)
        if page is None:
            return {"success": False, "error": f"No page registered for tab {request.tab_id}"}
        color = HIGHLIGHT_COLORS.get(request.color, request.color)
        return page.highlight_selection(text=request.text, color=color)

    async def _update_config(self, request: UpdateConfigRequest) -> dict[str, Any]:
        try:
            await self.runtime.update_config(request.config)
        except ConfigurationError as exc:
            logger.error("Config update error: %s", exc)
            return {"success": False, "error": str(exc)}
        return {"success": True}

    async def _toggle(self, request: ToggleHighlightingRequest) -> dict[str, Any]:
        if request.tab_id is not None:
            page = self._pages.get(request.tab_id)
            if page is None:
                return {"success": False, "error": f"No page registered for tab {request.tab_id}"}
            targets = [page]
        else:
            targets = list(self._pages.values())

        for page in targets:
            await page.set_highlighting(request.enabled)
        return {"success": True, "pages": len(targets)}

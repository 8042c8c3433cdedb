"""Tests for the background message protocol"""

import asyncio

import pytest

from highlightq.classification.models import SentimentLabel
from highlightq.gateway.messages import MessageRouter, Sender, parse_request


class FakePage:
    def __init__(self, outcome=None):
        self.highlights = []
        self.toggles = []
        self._outcome = outcome or {"success": True, "method": "direct"}

    def highlight_selection(self, text=None, label=None, color=None):
        self.highlights.append((text, label, color))
        return dict(self._outcome)

    async def set_highlighting(self, enabled):
        self.toggles.append(enabled)
        return {"success": True}


@pytest.fixture
def router(gateway, runtime):
    return MessageRouter(gateway, runtime)


def test_parse_accepts_ready_alias():
    assert parse_request({"type": "contentScriptReady"}).type == "contentScriptReady"
    assert parse_request({"type": "readyNotification"}).type == "readyNotification"


@pytest.mark.asyncio
async def test_malformed_message_resolves_immediately(router):
    future = router.submit({"type": "classifySelection", "text": "hi"})

    assert future.done()
    reply = future.result()
    assert reply["success"] is False
    assert "tabId" in reply["error"]


@pytest.mark.asyncio
async def test_unknown_type_is_rejected(router):
    reply = await router.submit({"type": "launchRockets"})
    assert reply["success"] is False


@pytest.mark.asyncio
async def test_classify_selection_highlights_on_registered_page(router, spy, allowed_origin):
    page = FakePage()
    router.register_page(7, page)

    reply = await router.submit(
        {"type": "classifySelection", "text": "This is terrible news.", "tabId": 7},
        Sender(tab_id=7, origin_context=allowed_origin),
    )

    assert reply["sentiment"] == "Negative"
    assert reply["highlighted"] is True
    assert reply["method"] == "direct"
    assert reply["error"] is None
    assert page.highlights == [("This is terrible news.", SentimentLabel.NEGATIVE, None)]
    assert spy.calls == [["This is terrible news."]]


@pytest.mark.asyncio
async def test_classify_selection_on_restricted_origin(router, spy):
    page = FakePage()
    router.register_page(3, page)

    reply = await router.submit(
        {
            "type": "classifySelection",
            "text": "Great stuff.",
            "tabId": 3,
            "originContext": "chrome://settings",
        }
    )

    assert reply == {
        "sentiment": "Neutral",
        "highlighted": False,
        "restricted": True,
        "error": "Cannot highlight on this page (restricted URL)",
    }
    assert spy.calls == []
    assert page.highlights == []


@pytest.mark.asyncio
async def test_classify_selection_without_page(router, allowed_origin):
    reply = await router.submit(
        {"type": "classifySelection", "text": "Great stuff.", "tabId": 99, "originContext": allowed_origin}
    )
    assert reply["sentiment"] == "Positive"
    assert reply["highlighted"] is False
    assert "99" in reply["error"]


@pytest.mark.asyncio
async def test_highlight_color_uses_preset(router, allowed_origin):
    page = FakePage()
    router.register_page(1, page)

    reply = await router.submit(
        {"type": "highlightColor", "tabId": 1, "color": "yellow"},
        Sender(tab_id=1, origin_context=allowed_origin),
    )

    assert reply["success"] is True
    assert page.highlights == [(None, None, "#ffeb3b")]


@pytest.mark.asyncio
async def test_update_config(router, runtime):
    ok = await router.submit({"type": "updateConfig", "config": {"cacheEnabled": False}})
    bad = await router.submit({"type": "updateConfig", "config": {"mode": "remote"}})

    assert ok == {"success": True}
    assert bad["success"] is False
    assert runtime.config.cache_enabled is False
    assert runtime.config.mode == "local"


@pytest.mark.asyncio
async def test_ready_notification_records_tab(router):
    reply = await router.submit({"type": "contentScriptReady"}, Sender(tab_id=12))
    assert reply == {"received": True}
    assert 12 in router.ready_tabs


@pytest.mark.asyncio
async def test_highlight_result_is_acknowledged(router):
    reply = await router.submit({"type": "highlightResult", "result": {"success": True}})
    assert reply == {"received": True}


@pytest.mark.asyncio
async def test_toggle_applies_to_every_page(router):
    pages = [FakePage(), FakePage()]
    for tab_id, page in enumerate(pages):
        router.register_page(tab_id, page)

    reply = await router.submit({"type": "toggleHighlighting", "enabled": False})

    assert reply == {"success": True, "pages": 2}
    assert [page.toggles for page in pages] == [[False], [False]]


@pytest.mark.asyncio
async def test_each_request_resolves_once(router, allowed_origin):
    futures = [
        router.submit({"type": "classifySelection", "text": f"Line {i} is great.", "tabId": i},
                      Sender(origin_context=allowed_origin))
        for i in range(4)
    ]
    replies = await asyncio.gather(*futures)

    assert [r["sentiment"] for r in replies] == ["Positive"] * 4

#!/usr/bin/env python3
"""Tests for the optional web search pre-step."""

import httpx

from aether_chat.clients import SearchClient
from conftest import DONE, FakeGateway, content_frame


def _search_client(handler) -> SearchClient:
    return SearchClient("https://search.test/api", transport=httpx.MockTransport(handler))


async def test_search_context_sent_after_system_prompt(make_controller, store, settings):
    settings.web_search = True
    settings.system_prompt = "Be brief."
    search = _search_client(
        lambda request: httpx.Response(200, json={"context": "It is sunny.", "results": []})
    )
    gateway = FakeGateway([content_frame("Sunny today"), DONE])
    controller = make_controller(gateway, search_client=search)

    try:
        result = await controller.send_message("weather?")
    finally:
        await search.close()

    messages = gateway.requests[0]["messages"]
    assert messages[0] == {"role": "system", "content": "Be brief."}
    assert messages[1]["role"] == "system"
    assert "It is sunny." in messages[1]["content"]
    assert messages[-1] == {"role": "user", "content": "weather?"}

    assert result.content == "Sunny today"
    assert store.search_results.context == "It is sunny."
    assert store.is_searching is False


async def test_search_failure_does_not_block_turn(make_controller, store, settings):
    settings.web_search = True
    search = _search_client(lambda request: httpx.Response(503, text="down"))
    gateway = FakeGateway([content_frame("Answer"), DONE])
    controller = make_controller(gateway, search_client=search)

    try:
        result = await controller.send_message("weather?")
    finally:
        await search.close()

    assert result.content == "Answer"
    assert gateway.requests[0]["messages"] == [{"role": "user", "content": "weather?"}]
    assert store.search_results is None
    assert store.is_searching is False


async def test_search_skipped_when_disabled(make_controller, store):
    calls = []
    search = _search_client(lambda request: calls.append(request) or httpx.Response(200, json={"context": ""}))
    controller = make_controller(FakeGateway([content_frame("ok"), DONE]), search_client=search)

    try:
        await controller.send_message("hi")
    finally:
        await search.close()

    assert calls == []

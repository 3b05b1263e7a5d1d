"""Shared fixtures: SSE frame builders and a fake gateway over httpx.MockTransport."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Callable, Iterable
from typing import Any

import httpx
import pytest

from aether_chat.chat import StreamController
from aether_chat.clients import LLMClient
from aether_chat.config import Configuration
from aether_chat.store import ChatSettings, InMemoryChatStore


def sse(obj: dict[str, Any] | str) -> bytes:
    """Encode one ``data:`` frame."""
    data = obj if isinstance(obj, str) else json.dumps(obj)
    return f"data: {data}\n\n".encode()


def delta_chunk(
    delta: dict[str, Any] | None = None,
    finish_reason: str | None = None,
    usage: dict[str, Any] | None = None,
) -> dict[str, Any]:
    chunk: dict[str, Any] = {
        "id": "chatcmpl-1",
        "object": "chat.completion.chunk",
        "created": 1,
        "model": "m1",
        "choices": [{"index": 0, "delta": delta or {}, "finish_reason": finish_reason}],
    }
    if usage is not None:
        chunk["usage"] = usage
    return chunk


def content_frame(text: str) -> bytes:
    return sse(delta_chunk({"content": text}))


def tool_frame(*fragments: dict[str, Any]) -> bytes:
    return sse(delta_chunk({"tool_calls": list(fragments)}))


DONE = b"data: [DONE]\n\n"


class FakeGateway:
    """Records requests and replays a scripted SSE body."""

    def __init__(
        self,
        body: Iterable[bytes] | Callable[[], AsyncIterator[bytes]] = (),
        status_code: int = 200,
    ) -> None:
        self.body = body
        self.status_code = status_code
        self.requests: list[dict[str, Any]] = []

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))

        if self.status_code >= 400:
            return httpx.Response(self.status_code, text=str(b"".join(self.body), "utf-8"))

        if callable(self.body):
            stream = self.body()
        else:
            chunks = list(self.body)

            async def replay() -> AsyncIterator[bytes]:
                for chunk in chunks:
                    yield chunk

            stream = replay()

        return httpx.Response(
            self.status_code,
            headers={"content-type": "text/event-stream"},
            content=stream,
        )

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def configuration(monkeypatch: pytest.MonkeyPatch) -> Configuration:
    monkeypatch.setenv("LITELLM_API_KEY", "sk-test")
    monkeypatch.delenv("AETHER_CHAT_CONFIG", raising=False)
    return Configuration()


@pytest.fixture
def settings() -> ChatSettings:
    return ChatSettings(model="m1", system_prompt="")


@pytest.fixture
def store() -> InMemoryChatStore:
    return InMemoryChatStore(active_model="m1")


@pytest.fixture
async def make_controller(configuration: Configuration, store: InMemoryChatStore, settings: ChatSettings):
    """Build controllers wired to a ``FakeGateway``; their clients are closed afterwards."""
    clients: list[LLMClient] = []

    def factory(gateway: FakeGateway, **kwargs: Any) -> StreamController:
        client = LLMClient(configuration, transport=gateway.transport)
        clients.append(client)
        return StreamController(client, store, settings, user_id="user-1", **kwargs)

    yield factory

    for client in clients:
        await client.close()

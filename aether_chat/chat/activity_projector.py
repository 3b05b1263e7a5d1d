"""
Activity Projector

Mirrors turn state changes into the capped activity timeline: one request
status row, at most one reasoning row, and one row per tool call.
"""

from __future__ import annotations

import logging
from typing import Any

from aether_chat.store.models import (
    ActivityEvent,
    ActivitySource,
    ActivityType,
    ToolCallRecord,
    new_id,
)
from aether_chat.store.repository import ChatStateRepository

logger = logging.getLogger(__name__)

# Evaluated top to bottom; the first group with a matching keyword wins.
SOURCE_KEYWORDS: tuple[tuple[tuple[str, ...], ActivitySource], ...] = (
    (("fabric",), "mcpfabric"),
    (("mcp",), "mcp"),
    (("terminal", "shell", "bash", "command", "computer"), "terminal"),
    (("browser", "web", "navigate"), "browser"),
    (("file", "artifact", "write"), "file"),
)

DEFAULT_SOURCE: ActivitySource = "tool"

_TYPE_BY_SOURCE: dict[str, ActivityType] = {
    "terminal": "terminal",
    "browser": "browser",
    "file": "file",
}


def infer_activity_source(tool_name: str) -> ActivitySource:
    """
    Classify a tool by case-insensitive keyword match on its name.

    Substrings count, so ``search_web`` matches the ``web`` keyword and is a
    browser tool.
    """
    lowered = tool_name.lower()
    for keywords, source in SOURCE_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return source
    return DEFAULT_SOURCE


def activity_type_for_source(source: str) -> ActivityType:
    return _TYPE_BY_SOURCE.get(source, "tool_call")


class ActivityProjector:
    """Writes one turn's activity rows through the state repository."""

    def __init__(self, store: ChatStateRepository, message_id: str) -> None:
        self.store = store
        self.message_id = message_id
        self.request_event_id: str | None = None
        self.thinking_event_id: str | None = None
        self._tool_event_ids: dict[str, str] = {}
        self._stopped = False

    def stop(self) -> None:
        """No further projection for this turn."""
        self._stopped = True

    def request_started(self, model: str, payload: dict[str, Any] | None = None) -> str:
        event = ActivityEvent(
            type="status",
            source="model",
            status="running",
            title="Completion request started",
            description=f"model={model}",
            message_id=self.message_id,
            payload=payload,
        )
        self.request_event_id = event.id
        self.store.add_activity_event(event)
        return event.id

    def reasoning_updated(self, reasoning: str) -> None:
        if self._stopped or not reasoning:
            return

        if self.thinking_event_id is None:
            event = ActivityEvent(
                type="thinking",
                source="model",
                status="running",
                title="Reasoning stream",
                details=reasoning,
                message_id=self.message_id,
            )
            self.thinking_event_id = event.id
            self.store.add_activity_event(event)
        else:
            self.store.update_activity_event(self.thinking_event_id, details=reasoning)

    def tool_call_updated(self, tool_call: ToolCallRecord) -> str | None:
        if self._stopped:
            return None

        event_id = self._tool_event_ids.get(tool_call.id)
        if event_id is None:
            event = ActivityEvent(
                type=activity_type_for_source(tool_call.source),
                source=tool_call.source,
                status="running",
                title=tool_call.display_name,
                arguments=tool_call.arguments,
                message_id=self.message_id,
                tool_call_id=tool_call.id,
            )
            self._tool_event_ids[tool_call.id] = event.id
            self.store.add_activity_event(event)
            return event.id

        self.store.update_activity_event(
            event_id,
            title=tool_call.display_name,
            arguments=tool_call.arguments,
            status="running",
        )
        return event_id

    def tool_call_completed(self, tool_call: ToolCallRecord) -> str | None:
        event_id = self._tool_event_ids.get(tool_call.id)
        if event_id is None or self._stopped:
            return event_id
        self.store.update_activity_event(event_id, status="success", details="Completed")
        return event_id

    def stream_completed(self, model: str, latency_ms: int) -> None:
        if self._stopped:
            return
        if self.thinking_event_id is not None:
            self.store.update_activity_event(self.thinking_event_id, status="success")
        if self.request_event_id is not None:
            self.store.update_activity_event(
                self.request_event_id,
                status="success",
                description=f"model={model}, latency={latency_ms}ms",
            )

    def stream_failed(self, description: str) -> None:
        if self.request_event_id is not None:
            self.store.update_activity_event(
                self.request_event_id, status="error", description=description
            )


def generation_stopped_event() -> ActivityEvent:
    """The ``info`` row recorded when the user stops a generation."""
    return ActivityEvent(
        id=new_id(),
        type="status",
        source="system",
        status="info",
        title="Generation stopped",
        description="Stream aborted by user",
    )

#!/usr/bin/env python3
"""
Presentation State Models

Pydantic models for the externally-owned chat state: messages, the activity
timeline, file artifacts, streaming state and session usage.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

# ---------- Type definitions ----------

Role = Literal["user", "assistant", "system"]

ActivityStatus = Literal["queued", "running", "success", "error", "info"]

ActivitySource = Literal[
    "system", "model", "tool", "mcp", "mcpfabric", "terminal", "browser", "file"
]

ActivityType = Literal[
    "status", "thinking", "tool_call", "tool_result", "terminal", "browser", "file"
]


def new_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(UTC)


def utc_now_iso() -> str:
    return utc_now().isoformat()


# ---------- Message models ----------


class ThinkingBlock(BaseModel):
    id: str
    content: str
    created_at: str


class ToolCallRecord(BaseModel):
    """One tool invocation assembled from streamed fragments."""

    id: str
    name: str = ""
    arguments: str = ""
    status: ActivityStatus = "running"
    source: ActivitySource = "tool"
    started_at: str = Field(default_factory=utc_now_iso)
    completed_at: str | None = None

    @property
    def display_name(self) -> str:
        return self.name or "tool"


class TokenCounter(BaseModel):
    input: int = 0
    output: int = 0


class MessageMetadata(BaseModel):
    model: str
    tokens: TokenCounter = Field(default_factory=TokenCounter)
    latency: int = 0
    finish_reason: str = "streaming"
    timestamp: str = Field(default_factory=utc_now_iso)
    app_id: str | None = None
    user_id: str | None = None
    thinking: list[ThinkingBlock] | None = None
    tool_calls: list[ToolCallRecord] | None = None
    raw_usage: dict[str, Any] | None = None


class Message(BaseModel):
    id: str = Field(default_factory=new_id)
    role: Role
    content: str = ""
    metadata: MessageMetadata | None = None
    created_at: datetime = Field(default_factory=utc_now)


# ---------- Activity timeline ----------


class ActivityEvent(BaseModel):
    """One operator-visible row in the activity timeline."""

    id: str = Field(default_factory=new_id)
    type: ActivityType
    source: ActivitySource
    status: ActivityStatus
    title: str
    description: str | None = None
    arguments: str | None = None
    details: str | None = None
    timestamp: str = Field(default_factory=utc_now_iso)
    message_id: str | None = None
    tool_call_id: str | None = None
    payload: dict[str, Any] | None = None


# ---------- Files ----------


class FileArtifact(BaseModel):
    """Metadata for an uploaded or tool-generated file."""

    id: str = Field(default_factory=new_id)
    name: str
    size: int = 0
    kind: Literal["uploaded", "generated"]
    mime_type: str | None = None
    created_at: str = Field(default_factory=utc_now_iso)
    path: str | None = None
    source_event_id: str | None = None


# ---------- Session state ----------


class StreamingState(BaseModel):
    is_streaming: bool = False
    current_chunk: str = ""
    model: str = ""
    message_id: str | None = None


class UsageSnapshot(BaseModel):
    """Running token usage for the session."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    spend: float = 0.0
    requests: int = 0
    window_start: str | None = None
    window_end: str | None = None
    raw: dict[str, Any] | None = None


class ChatSettings(BaseModel):
    model: str
    temperature: float = 0.7
    max_tokens: int = 4096
    system_prompt: str = "You are a helpful AI assistant."
    web_search: bool = False


class SearchResult(BaseModel):
    title: str
    url: str
    content: str


class SearchResults(BaseModel):
    context: str
    answer: str | None = None
    results: list[SearchResult] = Field(default_factory=list)

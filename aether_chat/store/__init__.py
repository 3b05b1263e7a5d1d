#!/usr/bin/env python3
"""
Chat State Module

Externally-owned presentation state that the stream core writes into.
"""

from __future__ import annotations

from .memory_store import InMemoryChatStore
from .models import (
    ActivityEvent,
    ChatSettings,
    FileArtifact,
    Message,
    MessageMetadata,
    StreamingState,
    ToolCallRecord,
    UsageSnapshot,
)
from .repository import ChatStateRepository

__all__ = [
    "ActivityEvent",
    "ChatSettings",
    "ChatStateRepository",
    "FileArtifact",
    "InMemoryChatStore",
    "Message",
    "MessageMetadata",
    "StreamingState",
    "ToolCallRecord",
    "UsageSnapshot",
]

#!/usr/bin/env python3
"""
Chat State Repository Interface

The stream controller never owns presentation state. It is handed an object
implementing this protocol and only appends or updates through it.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from .models import (
    ActivityEvent,
    FileArtifact,
    Message,
    SearchResults,
    StreamingState,
    UsageSnapshot,
)


@runtime_checkable
class ChatStateRepository(Protocol):
    """Protocol defining the state operations available to the stream core."""

    @property
    def active_model(self) -> str | None: ...

    @property
    def session_id(self) -> str: ...

    # Messages
    def add_message(self, message: Message) -> None: ...

    def update_message(self, message_id: str, **updates: Any) -> Message | None: ...

    def get_message(self, message_id: str) -> Message | None: ...

    def list_messages(self) -> list[Message]: ...

    # Activity timeline
    def add_activity_event(self, event: ActivityEvent) -> None: ...

    def update_activity_event(self, event_id: str, **updates: Any) -> ActivityEvent | None: ...

    def list_activity_events(self) -> list[ActivityEvent]: ...

    # Files
    def add_generated_file(self, artifact: FileArtifact) -> None: ...

    def list_generated_files(self) -> list[FileArtifact]: ...

    # Session state
    def set_streaming_state(self, **updates: Any) -> StreamingState: ...

    def get_usage(self) -> UsageSnapshot: ...

    def set_usage(self, usage: UsageSnapshot) -> None: ...

    def set_is_searching(self, is_searching: bool) -> None: ...

    def set_search_results(self, results: SearchResults | None) -> None: ...

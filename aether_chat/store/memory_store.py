#!/usr/bin/env python3
"""
In-Memory Chat State Store

Process-lifetime storage for one conversation's presentation state.

PURPOSE: Backing store for the stream controller and the console front end
FEATURES: Capped FIFO activity timeline, observer callbacks on every mutation
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from .models import (
    ActivityEvent,
    FileArtifact,
    Message,
    SearchResults,
    StreamingState,
    UsageSnapshot,
    new_id,
)
from .repository import ChatStateRepository

logger = logging.getLogger(__name__)

DEFAULT_ACTIVITY_LIMIT = 300

StoreListener = Callable[[str, Any], None]


class InMemoryChatStore(ChatStateRepository):
    """Session-only state; data is lost when the process exits."""

    def __init__(
        self,
        active_model: str | None = None,
        activity_limit: int = DEFAULT_ACTIVITY_LIMIT,
        session_id: str | None = None,
    ):
        if activity_limit < 1:
            raise ValueError("activity_limit must be at least 1")

        self._active_model = active_model
        self._activity_limit = activity_limit
        self._session_id = session_id or new_id()

        self._messages: list[Message] = []
        self._activity_events: list[ActivityEvent] = []
        self._generated_files: list[FileArtifact] = []
        self._streaming_state = StreamingState()
        self._usage = UsageSnapshot()
        self._search_results: SearchResults | None = None
        self._is_searching = False

        self._listeners: list[StoreListener] = []

    # ---------- Observers ----------

    def subscribe(self, callback: StoreListener) -> None:
        """Register ``callback(kind, payload)`` for every mutation."""
        if callback not in self._listeners:
            self._listeners.append(callback)

    def unsubscribe(self, callback: StoreListener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify(self, kind: str, payload: Any) -> None:
        for callback in self._listeners:
            try:
                callback(kind, payload)
            except Exception as e:
                logger.error(f"Error in store listener for {kind}: {e}")

    # ---------- Session ----------

    @property
    def active_model(self) -> str | None:
        return self._active_model

    def set_active_model(self, model_id: str | None) -> None:
        self._active_model = model_id
        self._notify("active_model", model_id)

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def activity_limit(self) -> int:
        return self._activity_limit

    # ---------- Messages ----------

    def add_message(self, message: Message) -> None:
        self._messages.append(message)
        self._notify("message_added", message)

    def update_message(self, message_id: str, **updates: Any) -> Message | None:
        for index, message in enumerate(self._messages):
            if message.id == message_id:
                updated = message.model_copy(update=updates)
                self._messages[index] = updated
                self._notify("message_updated", updated)
                return updated
        logger.debug("update_message: unknown message id %s", message_id)
        return None

    def get_message(self, message_id: str) -> Message | None:
        return next((m for m in self._messages if m.id == message_id), None)

    def list_messages(self) -> list[Message]:
        return list(self._messages)

    # ---------- Activity timeline ----------

    def add_activity_event(self, event: ActivityEvent) -> None:
        self._activity_events.append(event)
        overflow = len(self._activity_events) - self._activity_limit
        if overflow > 0:
            # Oldest entries go first
            del self._activity_events[:overflow]
        self._notify("activity_added", event)

    def update_activity_event(self, event_id: str, **updates: Any) -> ActivityEvent | None:
        for index, event in enumerate(self._activity_events):
            if event.id == event_id:
                updated = event.model_copy(update=updates)
                self._activity_events[index] = updated
                self._notify("activity_updated", updated)
                return updated
        # Already evicted, or never ours
        return None

    def get_activity_event(self, event_id: str) -> ActivityEvent | None:
        return next((e for e in self._activity_events if e.id == event_id), None)

    def list_activity_events(self) -> list[ActivityEvent]:
        return list(self._activity_events)

    # ---------- Files ----------

    def add_generated_file(self, artifact: FileArtifact) -> None:
        self._generated_files.insert(0, artifact)
        self._notify("generated_file_added", artifact)

    def list_generated_files(self) -> list[FileArtifact]:
        return list(self._generated_files)

    # ---------- Streaming / usage / search ----------

    @property
    def streaming_state(self) -> StreamingState:
        return self._streaming_state

    def set_streaming_state(self, **updates: Any) -> StreamingState:
        self._streaming_state = self._streaming_state.model_copy(update=updates)
        self._notify("streaming_state", self._streaming_state)
        return self._streaming_state

    def get_usage(self) -> UsageSnapshot:
        return self._usage

    def set_usage(self, usage: UsageSnapshot) -> None:
        self._usage = usage
        self._notify("usage", usage)

    @property
    def is_searching(self) -> bool:
        return self._is_searching

    def set_is_searching(self, is_searching: bool) -> None:
        self._is_searching = is_searching
        self._notify("is_searching", is_searching)

    @property
    def search_results(self) -> SearchResults | None:
        return self._search_results

    def set_search_results(self, results: SearchResults | None) -> None:
        self._search_results = results
        self._notify("search_results", results)

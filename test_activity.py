#!/usr/bin/env python3
"""
Tests for the activity timeline: source inference, projector rows, and the
store's capped FIFO eviction.
"""

import pytest

from aether_chat.chat import ActivityProjector, infer_activity_source
from aether_chat.chat.activity_projector import activity_type_for_source, generation_stopped_event
from aether_chat.store import ActivityEvent, InMemoryChatStore, ToolCallRecord


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("fabric_mcp_query", "mcpfabric"),
        ("MCP_lookup", "mcp"),
        ("run_shell", "terminal"),
        ("computer_use", "terminal"),
        ("navigate_to", "browser"),
        ("search_web", "browser"),
        ("write_file", "file"),
        ("save_artifact", "file"),
        # terminal group is checked before file
        ("write_command", "terminal"),
        ("calculator", "tool"),
        ("", "tool"),
    ],
)
def test_infer_activity_source(name, expected):
    assert infer_activity_source(name) == expected


def test_activity_type_for_source():
    assert activity_type_for_source("terminal") == "terminal"
    assert activity_type_for_source("browser") == "browser"
    assert activity_type_for_source("file") == "file"
    assert activity_type_for_source("mcp") == "tool_call"
    assert activity_type_for_source("tool") == "tool_call"


def _event(title: str) -> ActivityEvent:
    return ActivityEvent(type="status", source="system", status="info", title=title)


def test_timeline_evicts_oldest_first():
    store = InMemoryChatStore(activity_limit=3)
    for i in range(5):
        store.add_activity_event(_event(f"e{i}"))

    assert [e.title for e in store.list_activity_events()] == ["e2", "e3", "e4"]


def test_default_timeline_cap_is_300():
    store = InMemoryChatStore()
    for i in range(305):
        store.add_activity_event(_event(f"e{i}"))

    events = store.list_activity_events()
    assert len(events) == 300
    assert events[0].title == "e5"
    assert events[-1].title == "e304"


def test_update_of_evicted_event_is_ignored():
    store = InMemoryChatStore(activity_limit=1)
    first = _event("first")
    store.add_activity_event(first)
    store.add_activity_event(_event("second"))

    assert store.update_activity_event(first.id, status="success") is None
    assert [e.title for e in store.list_activity_events()] == ["second"]


def test_invalid_activity_limit():
    with pytest.raises(ValueError):
        InMemoryChatStore(activity_limit=0)


def test_single_thinking_event_per_turn():
    store = InMemoryChatStore()
    projector = ActivityProjector(store, "m1")
    projector.reasoning_updated("Let ")
    projector.reasoning_updated("Let me")
    projector.reasoning_updated("Let me think")

    thinking = [e for e in store.list_activity_events() if e.type == "thinking"]
    assert len(thinking) == 1
    assert thinking[0].details == "Let me think"
    assert thinking[0].status == "running"
    assert thinking[0].message_id == "m1"


def test_tool_call_row_created_then_updated_in_place():
    store = InMemoryChatStore()
    projector = ActivityProjector(store, "m1")
    call = ToolCallRecord(id="c1", name="", arguments="{", source="tool")

    event_id = projector.tool_call_updated(call)
    row = store.get_activity_event(event_id)
    assert row.title == "tool"
    assert row.type == "tool_call"
    assert row.tool_call_id == "c1"

    call.name = "calculator"
    call.arguments = '{"x": 1}'
    assert projector.tool_call_updated(call) == event_id

    row = store.get_activity_event(event_id)
    assert row.title == "calculator"
    assert row.arguments == '{"x": 1}'
    assert len(store.list_activity_events()) == 1

    projector.tool_call_completed(call)
    row = store.get_activity_event(event_id)
    assert row.status == "success"
    assert row.details == "Completed"


def test_request_row_lifecycle():
    store = InMemoryChatStore()
    projector = ActivityProjector(store, "m1")
    event_id = projector.request_started("m1", payload={"request_id": "r1"})

    row = store.get_activity_event(event_id)
    assert row.type == "status"
    assert row.source == "model"
    assert row.status == "running"
    assert row.payload == {"request_id": "r1"}

    projector.stream_completed("m1", 42)
    row = store.get_activity_event(event_id)
    assert row.status == "success"
    assert row.description == "model=m1, latency=42ms"


def test_stopped_projector_writes_nothing_more():
    store = InMemoryChatStore()
    projector = ActivityProjector(store, "m1")
    projector.request_started("m1")
    projector.stop()

    projector.reasoning_updated("late reasoning")
    projector.tool_call_updated(ToolCallRecord(id="c1", name="x"))

    assert [e.type for e in store.list_activity_events()] == ["status"]


def test_generation_stopped_event():
    event = generation_stopped_event()
    assert event.status == "info"
    assert event.source == "system"
    assert event.title == "Generation stopped"
    assert event.description == "Stream aborted by user"


def test_store_listeners_notified_and_errors_contained():
    store = InMemoryChatStore()
    seen = []

    def broken(kind, payload):
        raise RuntimeError("listener bug")

    store.subscribe(broken)
    store.subscribe(lambda kind, payload: seen.append(kind))
    store.add_activity_event(_event("x"))
    store.set_streaming_state(is_streaming=True)

    assert seen == ["activity_added", "streaming_state"]

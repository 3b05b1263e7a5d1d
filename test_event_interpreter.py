#!/usr/bin/env python3
"""
Tests for payload interpretation: reasoning field priority, tool fragments,
usage, and tolerance of malformed frames.
"""

import json
import logging

import pytest

from aether_chat.chat import interpret_payload
from aether_chat.chat.event_interpreter import parse_chunk
from aether_chat.exceptions import FrameParseError
from conftest import delta_chunk


def _payload(delta=None, finish_reason=None, usage=None) -> str:
    return json.dumps(delta_chunk(delta, finish_reason, usage))


def test_content_delta():
    update = interpret_payload(_payload({"content": "Hi"}))
    assert update is not None
    assert update.content == "Hi"
    assert update.reasoning is None
    assert update.tool_calls == []


def test_reasoning_field_priority():
    update = interpret_payload(
        _payload({"reasoning_content": "A", "reasoning": "B", "thinking": "C"})
    )
    assert update.reasoning == "A"

    assert interpret_payload(_payload({"reasoning": "B", "thinking": "C"})).reasoning == "B"
    assert interpret_payload(_payload({"thinking": "C"})).reasoning == "C"


def test_empty_reasoning_falls_through_to_next_field():
    update = interpret_payload(_payload({"reasoning_content": "", "thinking": "C"}))
    assert update.reasoning == "C"


def test_tool_call_fragments_passed_through():
    update = interpret_payload(
        _payload(
            {
                "tool_calls": [
                    {"index": 0, "id": "c1", "function": {"name": "search_web", "arguments": '{"q":'}}
                ]
            }
        )
    )
    assert len(update.tool_calls) == 1
    fragment = update.tool_calls[0]
    assert fragment.id == "c1"
    assert fragment.function.name == "search_web"
    assert fragment.function.arguments == '{"q":'


def test_finish_reason_and_usage():
    update = interpret_payload(
        _payload({}, finish_reason="stop", usage={"prompt_tokens": 5, "completion_tokens": 2})
    )
    assert update.finish_reason == "stop"
    assert update.usage.prompt_tokens == 5
    assert update.usage.completion_tokens == 2


def test_usage_on_chunk_without_choices():
    update = interpret_payload(
        json.dumps({"choices": [], "usage": {"prompt_tokens": 3.6, "completion_tokens": None}})
    )
    assert update is not None
    assert update.content is None
    assert update.usage.prompt_tokens == 4
    assert update.usage.completion_tokens == 0


def test_missing_delta_is_no_update():
    update = interpret_payload(json.dumps({"choices": [{"index": 0}]}))
    assert update is not None
    assert update.is_empty()


def test_malformed_payload_is_discarded(caplog):
    with caplog.at_level(logging.ERROR, logger="aether_chat.chat.event_interpreter"):
        assert interpret_payload("{not json") is None
    assert "Failed to parse SSE event" in caplog.text


@pytest.mark.parametrize("payload", ["[1, 2]", '"text"', '{"choices": "nope"}'])
def test_parse_chunk_rejects_wrong_shapes(payload):
    with pytest.raises(FrameParseError) as exc_info:
        parse_chunk(payload)
    assert exc_info.value.payload == payload


def test_unexpected_envelope_types_keep_frame():
    chunk = delta_chunk({"content": "Hi"})
    chunk["created"] = 1.5
    chunk["id"] = 42
    update = interpret_payload(json.dumps(chunk))
    assert update is not None
    assert update.content == "Hi"

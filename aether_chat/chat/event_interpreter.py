"""
Stream Event Interpreter

Parses one SSE payload into a ``StreamUpdate``. A malformed frame is logged
and dropped; it never ends the stream.
"""

from __future__ import annotations

import json
import logging
from typing import Any, cast

from pydantic import ValidationError

from aether_chat.exceptions import FrameParseError

from .logging_utils import should_log_feature
from .models import StreamingChunk, StreamingDelta, StreamUpdate

logger = logging.getLogger(__name__)

# Provider field names for reasoning text, in priority order
REASONING_FIELDS = ("reasoning_content", "reasoning", "thinking")

_PAYLOAD_LOG_LIMIT = 200


def extract_reasoning(delta: StreamingDelta) -> str | None:
    """First non-empty reasoning field wins for a given event."""
    for field in REASONING_FIELDS:
        value = getattr(delta, field, None)
        if value:
            return value
    return None


def parse_chunk(payload: str) -> StreamingChunk:
    """
    Strictly parse one payload.

    Raises:
        FrameParseError: If the payload is not JSON or not a chunk object.
    """
    try:
        data: Any = json.loads(payload)
    except json.JSONDecodeError as e:
        raise FrameParseError(f"Invalid JSON in stream chunk: {e}", payload) from e

    if not isinstance(data, dict):
        raise FrameParseError("Stream chunk is not a JSON object", payload)

    try:
        return StreamingChunk.model_validate(cast(dict[str, Any], data))
    except ValidationError as e:
        raise FrameParseError(f"Unexpected stream chunk shape: {e}", payload) from e


def interpret_payload(payload: str) -> StreamUpdate | None:
    """
    Interpret one payload, returning ``None`` for a discarded frame.

    Only the first choice is read; usage may arrive on a chunk whose
    ``choices`` list is empty.
    """
    try:
        chunk = parse_chunk(payload)
    except FrameParseError as e:
        snippet = e.payload[:_PAYLOAD_LOG_LIMIT]
        logger.error("Failed to parse SSE event: %s | payload=%r", e, snippet)
        return None

    update = StreamUpdate(usage=chunk.usage)

    if chunk.choices:
        choice = chunk.choices[0]
        delta = choice.delta or StreamingDelta()
        if delta.content:
            update.content = delta.content
        update.reasoning = extract_reasoning(delta)
        if delta.tool_calls:
            update.tool_calls = list(delta.tool_calls)
        if choice.finish_reason:
            update.finish_reason = choice.finish_reason

    if should_log_feature("stream", "frames"):
        logger.info("← Gateway: frame %s", update.to_log_dict())

    return update

"""Derive generated-file records from finished tool calls."""

from __future__ import annotations

import json
import logging
import mimetypes
from typing import Any, cast

from aether_chat.store.models import FileArtifact, ToolCallRecord

logger = logging.getLogger(__name__)

FILE_TOOL_KEYWORDS = ("file", "artifact", "write", "save")
NAME_FIELDS = ("name", "filename")
PATH_FIELDS = ("path", "file_path", "output_path")


def parse_arguments(raw: str) -> dict[str, Any] | None:
    """Parse tool arguments; anything but a JSON object counts as absent."""
    if not raw or not raw.strip():
        return None
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, dict):
        return None
    return cast(dict[str, Any], parsed)


def _first_string(args: dict[str, Any], fields: tuple[str, ...]) -> str | None:
    for field in fields:
        value = args.get(field)
        if isinstance(value, str) and value:
            return value
    return None


def extract_generated_artifact(
    tool_call: ToolCallRecord, source_event_id: str
) -> FileArtifact | None:
    """
    Return a ``generated`` artifact when the tool looks file-producing and a
    display name can be derived from its arguments, else ``None``.

    The record reflects intent read from arguments, not a verified write.
    """
    lowered = tool_call.name.lower()
    if not any(keyword in lowered for keyword in FILE_TOOL_KEYWORDS):
        return None

    args = parse_arguments(tool_call.arguments) or {}
    path = _first_string(args, PATH_FIELDS)
    name = _first_string(args, NAME_FIELDS)
    if name is None and path is not None:
        name = path.split("/")[-1] or None

    if not name:
        logger.debug("Tool %s looks file-producing but has no file name", tool_call.name)
        return None

    return FileArtifact(
        name=name,
        size=0,
        kind="generated",
        mime_type=mimetypes.guess_type(name)[0],
        path=path,
        source_event_id=source_event_id,
    )

"""
Approximate token accounting.

Roughly four characters per token; good enough for a context budget gauge.
"""

from __future__ import annotations

import json
import math
from collections.abc import Iterable

from pydantic import BaseModel

from aether_chat.store.models import ChatSettings, Message

CHARS_PER_TOKEN = 4
MAX_RESERVED_OUTPUT = 1024
DEFAULT_CONTEXT_WINDOW = 4096


class ContextBudget(BaseModel):
    input: int
    output: int
    total: int
    remaining: int


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def _message_text(message: Message) -> str:
    if isinstance(message.content, str):
        return message.content
    return json.dumps(message.content)


def calculate_context_budget(
    messages: Iterable[Message],
    settings: ChatSettings,
    context_window: int | None = None,
) -> ContextBudget:
    """
    Estimate how much of the context window the conversation uses.

    The window falls back to ``settings.max_tokens`` and then to 4096. Output
    reserve is ``min(1024, floor(window * 0.3))``.
    """
    max_tokens = context_window or settings.max_tokens or DEFAULT_CONTEXT_WINDOW

    input_tokens = sum(estimate_tokens(_message_text(m)) for m in messages)
    input_tokens += estimate_tokens(settings.system_prompt)

    output_tokens = min(MAX_RESERVED_OUTPUT, math.floor(max_tokens * 0.3))
    total = input_tokens + output_tokens

    return ContextBudget(
        input=input_tokens,
        output=output_tokens,
        total=total,
        remaining=max_tokens - total,
    )

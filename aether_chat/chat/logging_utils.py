"""
Chat Stream Logging Utilities

Shared logging functionality with feature control.
"""

from __future__ import annotations

import logging
import time
from typing import Any

logger = logging.getLogger(__name__)


def should_log_feature(module: str, feature: str) -> bool:
    """
    Check if a specific logging feature should be enabled.

    Feature flags are stored on the logging module by
    ``aether_chat.main._configure_advanced_logging``.
    """
    if hasattr(logging, "_module_features"):
        module_features = getattr(logging, "_module_features", {}).get(module, {})
        return module_features.get(feature, False)
    return False


def log_llm_reply(
    reply: dict[str, Any], context: str, chat_conf: dict[str, Any]
) -> None:
    """
    Log a finished assistant reply with configuration-based truncation.

    Args:
        reply: Dict with ``content``, ``thinking``, ``tool_calls`` and ``model``
        context: Descriptive context for the log entry
        chat_conf: Chat logging settings (``llm_reply`` truncation length)
    """
    if not should_log_feature("stream", "llm_replies"):
        return

    content = reply.get("content", "")
    thinking = reply.get("thinking", "")
    tool_calls = reply.get("tool_calls") or []

    truncate_length = chat_conf.get("llm_reply", 500)
    if content and len(content) > truncate_length:
        content = content[:truncate_length] + "..."
    if thinking and len(thinking) > truncate_length:
        thinking = thinking[:truncate_length] + "..."

    log_parts = [f"LLM Reply ({context}):"]

    # Reasoning first for thinking models
    if thinking:
        log_parts.append(f"Thinking: {thinking}")

    if content:
        log_parts.append(f"Content: {content}")

    if tool_calls:
        log_parts.append(f"Tool calls: {len(tool_calls)}")
        for i, call in enumerate(tool_calls):
            log_parts.append(f"  [{i}] {call.get('name') or 'tool'}")

    log_parts.append(f"Model: {reply.get('model', 'unknown')}")

    logger.info(" | ".join(log_parts))


def log_directional_flow(
    direction: str, component: str, message: str, *args: Any
) -> None:
    """
    Log directional flow messages with consistent arrow formatting.

    Args:
        direction: Either "→" (outgoing) or "←" (incoming/completed)
        component: Component name (e.g., "Gateway", "Store", "Search")
        message: Message template with optional format placeholders
        *args: Arguments for message formatting
    """
    formatted_msg = message % args if args else message
    logger.info(f"{direction} {component}: {formatted_msg}")


def log_error_with_context(context: str, error: Exception) -> None:
    """Log errors with consistent formatting across the application."""
    logger.error(f"Error {context}: {error}")


def log_llm_request_start(request_id: str, app_id: str, model: str) -> float:
    """Log the start of a completion request and return start time."""
    start_time = time.monotonic()
    logger.info(f"🚀 LLM request started: request_id={request_id}, app_id={app_id}, model={model}")
    return start_time


def log_llm_request_complete(request_id: str, start_time: float, outcome: str = "completed") -> None:
    """Log the end of a completion request with timing."""
    elapsed_ms = (time.monotonic() - start_time) * 1000
    status = {"completed": "✅", "cancelled": "⏹️"}.get(outcome, "❌")
    logger.info(f"{status} LLM request {outcome}: request_id={request_id}, elapsed={elapsed_ms:.2f}ms")

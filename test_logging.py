#!/usr/bin/env python3
"""
Test logging feature flags and the reply logger.
"""

import logging

import pytest

from aether_chat.chat.logging_utils import log_llm_reply, should_log_feature
from aether_chat.config import Configuration
from aether_chat.main import _configure_advanced_logging


@pytest.fixture(autouse=True)
def _reset_features():
    saved = getattr(logging, "_module_features", None)
    yield
    if saved is None:
        if hasattr(logging, "_module_features"):
            del logging._module_features
    else:
        logging._module_features = saved


def test_logging_config_sets_levels_and_features():
    """Module levels land on parent loggers and features become queryable."""
    _configure_advanced_logging(
        {
            "level": "WARNING",
            "modules": {
                "stream": {"level": "DEBUG", "enable_features": {"llm_replies": True}},
                "store": {"level": "ERROR"},
            },
        }
    )

    assert logging.getLogger("aether_chat.chat").level == logging.DEBUG
    assert logging.getLogger("aether_chat.store").level == logging.ERROR
    assert should_log_feature("stream", "llm_replies") is True
    assert should_log_feature("stream", "frames") is False
    assert should_log_feature("gateway", "http_requests") is False


def test_packaged_logging_config_applies(monkeypatch):
    monkeypatch.delenv("AETHER_CHAT_CONFIG", raising=False)
    _configure_advanced_logging(Configuration().get_logging_config())

    assert should_log_feature("gateway", "http_requests") is True
    assert should_log_feature("stream", "llm_replies") is False


def test_llm_reply_logged_and_truncated(caplog):
    _configure_advanced_logging({"modules": {"stream": {"enable_features": {"llm_replies": True}}}})

    with caplog.at_level(logging.INFO, logger="aether_chat.chat.logging_utils"):
        log_llm_reply(
            {
                "content": "x" * 50,
                "thinking": "pondering",
                "tool_calls": [{"name": "search_web"}],
                "model": "m1",
            },
            "Streaming final response",
            {"llm_reply": 10},
        )

    assert "LLM Reply (Streaming final response)" in caplog.text
    assert "Content: " + "x" * 10 + "..." in caplog.text
    assert "Thinking: pondering" in caplog.text
    assert "[0] search_web" in caplog.text
    assert "Model: m1" in caplog.text


def test_llm_reply_silent_when_feature_disabled(caplog):
    _configure_advanced_logging({"modules": {"stream": {"enable_features": {}}}})

    with caplog.at_level(logging.INFO, logger="aether_chat.chat.logging_utils"):
        log_llm_reply({"content": "hello", "model": "m1"}, "ctx", {})

    assert "LLM Reply" not in caplog.text

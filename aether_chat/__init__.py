"""Streaming chat-completion consumer for an OpenAI-compatible gateway."""

__version__ = "0.1.0"

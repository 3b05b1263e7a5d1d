"""Exception hierarchy for the chat stream backend."""

from __future__ import annotations


class AetherChatError(Exception):
    """Base exception for all aether-chat errors."""


class NoModelSelectedError(AetherChatError):
    """Raised locally when a message is submitted without an active model."""

    def __init__(self, message: str = "No model selected") -> None:
        super().__init__(message)


class GatewayStatusError(AetherChatError):
    """Non-2xx response from the completion gateway."""

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"HTTP {status_code}: {body}")
        self.status_code = status_code
        self.body = body


class GatewayStreamError(AetherChatError):
    """The gateway stream could not be opened or read."""


class FrameParseError(AetherChatError):
    """A single server-sent event payload could not be parsed."""

    def __init__(self, message: str, payload: str) -> None:
        super().__init__(message)
        self.payload = payload


class GenerationCancelled(AetherChatError):
    """The in-flight generation was stopped by the user."""

    def __init__(self, message: str = "Generation stopped") -> None:
        super().__init__(message)

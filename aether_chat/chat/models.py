"""
Gateway Wire Models

Request and streaming-chunk shapes exchanged with the OpenAI-compatible
completion gateway. Strongly typed with Pydantic; unknown fields are kept
so provider-specific additions pass through untouched.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ==============================================================================
# REQUEST MODELS
# ==============================================================================


class ApiMessage(BaseModel):
    """Role/content pair sent to the gateway."""

    role: str
    content: str


class RequestMetadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    app_id: str | None = None
    session_id: str | None = None


class ChatCompletionRequest(BaseModel):
    """Chat completion request payload."""

    model: str
    messages: list[ApiMessage]
    temperature: float | None = None
    max_tokens: int | None = None
    stream: bool = True
    user: str | None = None
    metadata: RequestMetadata | None = None

    # Allow additional provider-specific parameters
    model_config = ConfigDict(extra="allow")


# ==============================================================================
# STREAMING MODELS
# ==============================================================================


class FunctionCallDelta(BaseModel):
    """Partial function call data in streaming response."""

    name: str | None = None
    arguments: str | None = None


class ToolCallDelta(BaseModel):
    """Partial tool call data in streaming response."""

    index: int | None = None
    id: str | None = None
    type: str | None = None
    function: FunctionCallDelta | None = None


class StreamingDelta(BaseModel):
    """Delta content in streaming response."""

    model_config = ConfigDict(extra="allow")

    role: str | None = None
    content: str | None = None
    tool_calls: list[ToolCallDelta] | None = None

    # Reasoning fields, in the order providers are checked
    reasoning_content: str | None = None
    reasoning: str | None = None
    thinking: str | None = None


class StreamingChoice(BaseModel):
    """Single choice in streaming response."""

    index: int = 0
    delta: StreamingDelta | None = None
    finish_reason: str | None = None


class TokenUsage(BaseModel):
    """Token usage information."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @field_validator("prompt_tokens", "completion_tokens", "total_tokens", mode="before")
    @classmethod
    def round_counts(cls, v: Any) -> Any:
        """Some gateways report fractional or null counts."""
        if v is None:
            return 0
        if isinstance(v, float):
            return round(v)
        return v


class StreamingChunk(BaseModel):
    """Single chunk in streaming response."""

    model_config = ConfigDict(extra="allow")

    # Envelope fields are never read; their types must not sink a frame
    id: Any = None
    object: Any = None
    created: Any = None
    model: Any = None
    choices: list[StreamingChoice] = Field(default_factory=list)
    usage: TokenUsage | None = None


class StreamUpdate(BaseModel):
    """
    What one decoded event changes in the turn.

    ``None`` / empty means "no update this event", never "reset".
    """

    content: str | None = None
    reasoning: str | None = None
    tool_calls: list[ToolCallDelta] = Field(default_factory=list)
    finish_reason: str | None = None
    usage: TokenUsage | None = None

    def is_empty(self) -> bool:
        return not (
            self.content
            or self.reasoning
            or self.tool_calls
            or self.finish_reason
            or self.usage
        )

    def to_log_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True, exclude_defaults=True)

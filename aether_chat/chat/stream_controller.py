"""
Stream Controller

Drives one assistant turn per submitted message:

    idle → requesting → streaming → finalizing → completed | failed | cancelled

The controller writes only through the injected ``ChatStateRepository``.
One controller serves one conversation; callers must not submit while a
turn is active.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from aether_chat.exceptions import GenerationCancelled, NoModelSelectedError
from aether_chat.store.models import (
    ChatSettings,
    Message,
    MessageMetadata,
    ThinkingBlock,
    TokenCounter,
    new_id,
    utc_now_iso,
)
from aether_chat.store.repository import ChatStateRepository

from .activity_projector import ActivityProjector, generation_stopped_event
from .artifact_extractor import extract_generated_artifact
from .cancellation import CancellationScope
from .event_interpreter import interpret_payload
from .logging_utils import (
    log_directional_flow,
    log_error_with_context,
    log_llm_reply,
    log_llm_request_complete,
    log_llm_request_start,
)
from .models import ApiMessage, ChatCompletionRequest, RequestMetadata, StreamUpdate
from .sse_decoder import iter_sse_payloads
from .turn_accumulator import TurnAccumulator

if TYPE_CHECKING:
    from aether_chat.clients import LLMClient, SearchClient

logger = logging.getLogger(__name__)


class TurnPhase(StrEnum):
    IDLE = "idle"
    REQUESTING = "requesting"
    STREAMING = "streaming"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class _TurnContext:
    """Per-turn collaborators shared by the controller's helpers."""

    def __init__(self, model: str, message_id: str, projector: ActivityProjector) -> None:
        self.model = model
        self.message_id = message_id
        self.projector = projector
        self.accumulator = TurnAccumulator(message_id)
        self.request_id = new_id()
        self.thinking_block_id = new_id()
        self.started_at = time.monotonic()
        self.started_at_iso = utc_now_iso()


class StreamController:
    """
    Orchestrates request, decode, interpret and accumulate for each turn,
    projecting activity rows and generated files as it goes.
    """

    def __init__(
        self,
        llm_client: LLMClient,
        store: ChatStateRepository,
        settings: ChatSettings,
        *,
        user_id: str = "anonymous",
        search_client: SearchClient | None = None,
        on_error: Callable[[Exception], None] | None = None,
        on_complete: Callable[[Message], None] | None = None,
        chat_logging_conf: dict[str, Any] | None = None,
    ) -> None:
        self.llm_client = llm_client
        self.store = store
        self.settings = settings
        self.user_id = user_id
        self.search_client = search_client
        self.on_error = on_error
        self.on_complete = on_complete
        self.chat_logging_conf = chat_logging_conf or {}

        self._phase = TurnPhase.IDLE
        self._is_loading = False
        self._scope: CancellationScope | None = None
        self._projector: ActivityProjector | None = None

    @property
    def is_loading(self) -> bool:
        """True while a turn is in flight."""
        return self._is_loading

    @property
    def phase(self) -> TurnPhase:
        return self._phase

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def stop_generation(self) -> None:
        """Abort the in-flight turn; already streamed text is kept."""
        if self._scope is not None:
            self._scope.cancel()
            self._scope = None
        if self._projector is not None:
            self._projector.stop()

        self.store.add_activity_event(generation_stopped_event())
        self.store.set_streaming_state(is_streaming=False)
        self._is_loading = False

    async def send_message(self, content: str) -> Message | None:
        """
        Submit a user message and stream the assistant reply.

        Returns the finalized assistant message, or ``None`` when the turn
        failed, was cancelled, or never started.
        """
        model = self.store.active_model
        if not model:
            self._report_error(NoModelSelectedError())
            return None

        self._is_loading = True
        self._phase = TurnPhase.REQUESTING
        history = self.store.list_messages()

        self.store.add_message(Message(role="user", content=content))
        placeholder = Message(role="assistant", content="")
        self.store.add_message(placeholder)
        self.store.set_streaming_state(
            is_streaming=True,
            current_chunk="",
            model=model,
            message_id=placeholder.id,
        )

        projector = ActivityProjector(self.store, placeholder.id)
        turn = _TurnContext(model, placeholder.id, projector)
        projector.request_started(
            model,
            payload={
                "request_id": turn.request_id,
                "user": self.user_id,
                "app_id": self.llm_client.app_id,
                "session_id": self.store.session_id,
            },
        )

        scope = CancellationScope()
        self._scope = scope
        self._projector = projector
        log_start = log_llm_request_start(turn.request_id, self.llm_client.app_id, model)

        try:
            api_messages = self._build_api_messages(history, content)
            if self.settings.web_search and self.search_client is not None:
                await self._run_web_search(content, api_messages, scope)

            request = self._build_request(model, api_messages)
            async with self.llm_client.stream_chat(request, scope) as response:
                self._phase = TurnPhase.STREAMING
                async for payload in iter_sse_payloads(response.aiter_bytes(), scope):
                    update = interpret_payload(payload)
                    if update is not None and not update.is_empty():
                        self._apply_update(turn, update)

            # A stop that lands between the last chunk and here still wins
            scope.raise_if_cancelled()
            self._phase = TurnPhase.FINALIZING
            final_message = self._finalize(turn)
            self._phase = TurnPhase.COMPLETED
            log_llm_request_complete(turn.request_id, log_start)
            return final_message

        except GenerationCancelled:
            self._phase = TurnPhase.CANCELLED
            turn.accumulator.close()
            logger.info("Stream aborted by user")
            log_llm_request_complete(turn.request_id, log_start, outcome="cancelled")
            return None

        except Exception as e:
            self._phase = TurnPhase.FAILED
            turn.accumulator.close()
            self._fail(turn, e)
            log_llm_request_complete(turn.request_id, log_start, outcome="failed")
            return None

        finally:
            if self._scope is scope:
                self._scope = None
            if self._projector is projector:
                self._projector = None
            self.store.set_streaming_state(is_streaming=False)
            self._is_loading = False

    # ------------------------------------------------------------------
    # Request building
    # ------------------------------------------------------------------

    def _build_api_messages(self, history: list[Message], content: str) -> list[ApiMessage]:
        messages: list[ApiMessage] = []
        if self.settings.system_prompt:
            messages.append(ApiMessage(role="system", content=self.settings.system_prompt))
        messages.extend(ApiMessage(role=m.role, content=m.content) for m in history)
        messages.append(ApiMessage(role="user", content=content))
        return messages

    def _build_request(self, model: str, api_messages: list[ApiMessage]) -> ChatCompletionRequest:
        return ChatCompletionRequest(
            model=model,
            messages=api_messages,
            temperature=self.settings.temperature,
            max_tokens=self.settings.max_tokens,
            stream=True,
            user=self.user_id,
            metadata=RequestMetadata(
                app_id=self.llm_client.app_id,
                session_id=self.store.session_id,
            ),
        )

    async def _run_web_search(
        self, query: str, api_messages: list[ApiMessage], scope: CancellationScope
    ) -> None:
        """Prepend search context; any search failure is logged and ignored."""
        assert self.search_client is not None
        self.store.set_is_searching(True)
        try:
            results = await scope.guard(self.search_client.search(query))
            self.store.set_search_results(results)
            # Keep the configured system prompt first
            insert_at = 1 if api_messages and api_messages[0].role == "system" else 0
            api_messages.insert(
                insert_at,
                ApiMessage(
                    role="system",
                    content=(
                        f'Search results for "{query}":\n{results.context}\n\n'
                        "Use the above search results if relevant."
                    ),
                ),
            )
        except GenerationCancelled:
            raise
        except Exception as e:
            log_error_with_context("during web search", e)
        finally:
            self.store.set_is_searching(False)

    # ------------------------------------------------------------------
    # Streaming updates
    # ------------------------------------------------------------------

    def _apply_update(self, turn: _TurnContext, update: StreamUpdate) -> None:
        accumulator = turn.accumulator

        if update.content:
            text = accumulator.append_text(update.content)
            self.store.set_streaming_state(current_chunk=text)
            self.store.update_message(turn.message_id, content=text)

        if update.reasoning:
            reasoning = accumulator.append_reasoning(update.reasoning)
            turn.projector.reasoning_updated(reasoning)
            self._upsert_metadata(
                turn,
                thinking=[
                    ThinkingBlock(
                        id=turn.thinking_block_id,
                        content=reasoning,
                        created_at=turn.started_at_iso,
                    )
                ],
            )

        if update.tool_calls:
            for position, fragment in enumerate(update.tool_calls):
                result = accumulator.apply_tool_fragment(fragment, position)
                turn.projector.tool_call_updated(result.tool_call)
            self._upsert_metadata(
                turn, tool_calls=[tc.model_copy() for tc in accumulator.tool_calls]
            )

        if update.finish_reason:
            accumulator.record_finish(update.finish_reason)

        if update.usage is not None:
            accumulator.record_usage(update.usage)

    def _upsert_metadata(self, turn: _TurnContext, **partial: Any) -> None:
        current = self.store.get_message(turn.message_id)
        existing = current.metadata if current is not None else None
        base = existing or MessageMetadata(
            model=turn.model,
            app_id=self.llm_client.app_id,
            user_id=self.user_id,
        )
        self.store.update_message(turn.message_id, metadata=base.model_copy(update=partial))

    # ------------------------------------------------------------------
    # Terminal transitions
    # ------------------------------------------------------------------

    def _finalize(self, turn: _TurnContext) -> Message | None:
        accumulator = turn.accumulator
        projector = turn.projector
        completed_at = utc_now_iso()
        tool_calls = accumulator.finalize()

        for tool_call in tool_calls:
            event_id = projector.tool_call_completed(tool_call)
            if event_id is None:
                continue
            artifact = extract_generated_artifact(tool_call, event_id)
            if artifact is not None:
                log_directional_flow("→", "Store", "generated file %s", artifact.name)
                self.store.add_generated_file(artifact)

        latency_ms = int((time.monotonic() - turn.started_at) * 1000)
        projector.stream_completed(turn.model, latency_ms)

        usage = accumulator.usage
        tokens = TokenCounter(
            input=usage.prompt_tokens if usage else 0,
            output=usage.completion_tokens if usage else 0,
        )
        metadata = MessageMetadata(
            model=turn.model,
            tokens=tokens,
            latency=latency_ms,
            finish_reason=accumulator.final_finish_reason,
            timestamp=completed_at,
            app_id=self.llm_client.app_id,
            user_id=self.user_id,
            thinking=(
                [
                    ThinkingBlock(
                        id=turn.thinking_block_id,
                        content=accumulator.reasoning,
                        created_at=turn.started_at_iso,
                    )
                ]
                if accumulator.reasoning
                else None
            ),
            tool_calls=tool_calls or None,
            raw_usage=usage.model_dump() if usage else None,
        )

        # Single write replacing the placeholder
        final_message = self.store.update_message(
            turn.message_id, content=accumulator.text, metadata=metadata
        )

        self._add_session_usage(tokens, completed_at)

        log_llm_reply(
            {
                "content": accumulator.text,
                "thinking": accumulator.reasoning,
                "tool_calls": [tc.model_dump() for tc in tool_calls],
                "model": turn.model,
            },
            "Streaming final response",
            self.chat_logging_conf,
        )
        logger.info(
            "← Gateway: stream completed, finish_reason=%s, latency=%dms",
            metadata.finish_reason,
            latency_ms,
        )

        if final_message is not None and self.on_complete is not None:
            # The turn is already final; a failing callback must not reopen it
            try:
                self.on_complete(final_message)
            except Exception as e:
                logger.error(f"Error in on_complete callback: {e}")
        return final_message

    def _add_session_usage(self, tokens: TokenCounter, completed_at: str) -> None:
        existing = self.store.get_usage()
        self.store.set_usage(
            existing.model_copy(
                update={
                    "prompt_tokens": existing.prompt_tokens + tokens.input,
                    "completion_tokens": existing.completion_tokens + tokens.output,
                    "total_tokens": existing.total_tokens + tokens.input + tokens.output,
                    "requests": existing.requests + 1,
                    "window_end": completed_at,
                }
            )
        )

    def _fail(self, turn: _TurnContext, error: Exception) -> None:
        message = str(error) or type(error).__name__
        logger.error(f"Streaming error: {message}")
        self._report_error(error)

        current = self.store.get_message(turn.message_id)
        current_content = current.content if current is not None else ""
        self.store.update_message(
            turn.message_id, content=f"{current_content}\n\n[Error: {message}]"
        )
        turn.projector.stream_failed(message)

    def _report_error(self, error: Exception) -> None:
        if isinstance(error, NoModelSelectedError):
            logger.warning(f"Message not sent: {error}")
        if self.on_error is not None:
            try:
                self.on_error(error)
            except Exception as e:
                logger.error(f"Error in on_error callback: {e}")

"""
Turn Accumulator

Owns the mutable state of the in-flight assistant turn: visible text,
reasoning text, and tool calls assembled from streamed fragments.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from aether_chat.store.models import ToolCallRecord, utc_now_iso

from .activity_projector import infer_activity_source
from .models import TokenUsage, ToolCallDelta

logger = logging.getLogger(__name__)

DEFAULT_FINISH_REASON = "stop"


@dataclass
class ToolFragmentResult:
    """Outcome of applying one fragment: the call and whether it is new."""

    tool_call: ToolCallRecord
    created: bool


class TurnAccumulator:
    """
    State of one assistant turn.

    Tool calls are kept in first-seen order keyed by id. Argument text is a
    strict append of fragments in arrival order.
    """

    def __init__(self, turn_id: str) -> None:
        self.turn_id = turn_id
        self.text = ""
        self.reasoning = ""
        self.finish_reason: str | None = None
        self.usage: TokenUsage | None = None
        self._tool_calls: dict[str, ToolCallRecord] = {}
        # gateway ``index`` -> tool call id, for fragments that omit the id
        self._ids_by_index: dict[int, str] = {}
        self._finalized = False

    @property
    def tool_calls(self) -> list[ToolCallRecord]:
        return list(self._tool_calls.values())

    @property
    def finalized(self) -> bool:
        return self._finalized

    def get_tool_call(self, call_id: str) -> ToolCallRecord | None:
        return self._tool_calls.get(call_id)

    def append_text(self, delta: str) -> str:
        """Append visible text and return the full concatenation."""
        self._check_open()
        self.text += delta
        return self.text

    def append_reasoning(self, delta: str) -> str:
        """Append reasoning text and return the full reasoning buffer."""
        self._check_open()
        self.reasoning += delta
        return self.reasoning

    def _resolve_tool_call_id(self, fragment: ToolCallDelta, position: int) -> str:
        if fragment.id:
            if fragment.index is not None:
                self._ids_by_index.setdefault(fragment.index, fragment.id)
            return fragment.id

        index = fragment.index if fragment.index is not None else position
        known = self._ids_by_index.get(index)
        if known is not None:
            return known
        return f"{self.turn_id}-tool-{index}"

    def apply_tool_fragment(self, fragment: ToolCallDelta, position: int = 0) -> ToolFragmentResult:
        """
        Apply one tool-call fragment.

        Args:
            fragment: The fragment as received from the gateway
            position: The fragment's position within its event's array, used
                for the synthetic id when the gateway omits both id and index
        """
        self._check_open()
        call_id = self._resolve_tool_call_id(fragment, position)
        function = fragment.function
        name = function.name if function and function.name else ""
        arguments = function.arguments if function and function.arguments else ""

        tool_call = self._tool_calls.get(call_id)
        created = tool_call is None
        if tool_call is None:
            tool_call = ToolCallRecord(
                id=call_id,
                name=name,
                status="running",
                source=infer_activity_source(name or "tool"),
                started_at=utc_now_iso(),
            )
            self._tool_calls[call_id] = tool_call
            if fragment.index is not None:
                self._ids_by_index.setdefault(fragment.index, call_id)
        elif name and not tool_call.name:
            # First non-empty name wins
            tool_call.name = name
            tool_call.source = infer_activity_source(name)

        tool_call.arguments += arguments
        return ToolFragmentResult(tool_call=tool_call, created=created)

    def record_finish(self, reason: str) -> None:
        self._check_open()
        self.finish_reason = reason

    def record_usage(self, usage: TokenUsage) -> None:
        # Last write wins: later usage supersedes interim reports
        self._check_open()
        self.usage = usage

    def finalize(self) -> list[ToolCallRecord]:
        """Mark every tool call successful and freeze the turn."""
        self._check_open()
        completed_at = utc_now_iso()
        for tool_call in self._tool_calls.values():
            tool_call.status = "success"
            tool_call.completed_at = completed_at
        self._finalized = True
        return self.tool_calls

    def close(self) -> None:
        """Freeze the turn without completing its tool calls."""
        self._finalized = True

    @property
    def final_finish_reason(self) -> str:
        return self.finish_reason or DEFAULT_FINISH_REASON

    def _check_open(self) -> None:
        if self._finalized:
            raise RuntimeError(f"Turn {self.turn_id} is already finalized")

"""
Chat Stream Module

Incremental consumer for streamed chat completions: frame decoding, event
interpretation, turn accumulation, activity projection and artifacts.
"""

from .activity_projector import ActivityProjector, infer_activity_source
from .artifact_extractor import extract_generated_artifact
from .cancellation import CancellationScope
from .event_interpreter import interpret_payload
from .sse_decoder import SSEFrameDecoder, iter_sse_payloads
from .stream_controller import StreamController, TurnPhase
from .token_count import calculate_context_budget, estimate_tokens
from .turn_accumulator import TurnAccumulator

__all__ = [
    "ActivityProjector",
    "CancellationScope",
    "SSEFrameDecoder",
    "StreamController",
    "TurnAccumulator",
    "TurnPhase",
    "calculate_context_budget",
    "estimate_tokens",
    "extract_generated_artifact",
    "infer_activity_source",
    "interpret_payload",
    "iter_sse_payloads",
]

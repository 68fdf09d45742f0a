"""Assistant package exposing the public interface for phone search."""

from __future__ import annotations

from .errors import (
    AdversarialRejection,
    AssistantError,
    InvalidConditionError,
    PlanGenerationError,
    QueryExecutionError,
    SynthesisStreamError,
)
from .executor import BatchResult, PlanOutcome, QueryExecutor
from .factory import get_phone_assistant, get_planner_model, get_synthesis_model
from .llm import AgentCompletionModel, CompletionModel
from .pipeline import PhoneAssistant
from .planner import QueryPlanner, decode_plan_reply, fallback_plan
from .schemas import (
    ConversationMessage,
    ExtractedSignal,
    PhoneRecord,
    QueryBatch,
    QueryCondition,
    QueryOperator,
    QueryPlan,
    ResponseMode,
)
from .signals import detect_comparison, extract_signals, is_vague
from .streaming import ResponseStream, StreamStatus, TurnReport
from .synthesizer import Synthesizer

__all__ = [
    "AdversarialRejection",
    "AgentCompletionModel",
    "AssistantError",
    "BatchResult",
    "CompletionModel",
    "ConversationMessage",
    "ExtractedSignal",
    "InvalidConditionError",
    "PhoneAssistant",
    "PhoneRecord",
    "PlanGenerationError",
    "PlanOutcome",
    "QueryBatch",
    "QueryCondition",
    "QueryExecutionError",
    "QueryExecutor",
    "QueryOperator",
    "QueryPlan",
    "QueryPlanner",
    "ResponseMode",
    "ResponseStream",
    "StreamStatus",
    "Synthesizer",
    "SynthesisStreamError",
    "TurnReport",
    "decode_plan_reply",
    "detect_comparison",
    "extract_signals",
    "fallback_plan",
    "get_phone_assistant",
    "get_planner_model",
    "get_synthesis_model",
    "is_vague",
]

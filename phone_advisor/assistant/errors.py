"""Error taxonomy for the query-planning and synthesis pipeline."""

from __future__ import annotations


class AssistantError(Exception):
    """Base class for every error raised by the assistant pipeline."""


class PlanGenerationError(AssistantError):
    """The model call failed or its reply could not be decoded into plans."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class InvalidConditionError(AssistantError, ValueError):
    """A query condition names an unknown field or an unsupported operator."""


class QueryExecutionError(AssistantError):
    """A single plan could not be executed against the catalogue."""

    def __init__(self, plan_description: str, reason: str) -> None:
        super().__init__(f"{plan_description}: {reason}")
        self.plan_description = plan_description
        self.reason = reason


class SynthesisStreamError(AssistantError):
    """The streaming completion failed, stalled, or produced no text."""


class AdversarialRejection(AssistantError):
    """Short-circuit signal for prompts that must not reach retrieval.

    Not a failure: the carried ``message`` is the reply shown to the user.
    """

    def __init__(self, message: str, *, source: str) -> None:
        super().__init__(message)
        self.message = message
        self.source = source


__all__ = [
    "AdversarialRejection",
    "AssistantError",
    "InvalidConditionError",
    "PlanGenerationError",
    "QueryExecutionError",
    "SynthesisStreamError",
]

"""Query plan generation: one model call, strict decoding, and a signal fallback."""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import logfire
from pydantic import BaseModel, Field, ValidationError
from tenacity import AsyncRetrying, stop_after_attempt, wait_fixed

from ..config import settings
from .context import trim_history
from .errors import PlanGenerationError
from .llm import CompletionModel
from .logging import _ensure_logfire
from .prompts import PLANNER_PROMPT
from .schemas import (
    MAX_PLANS,
    ConversationMessage,
    ExtractedSignal,
    QueryBatch,
    QueryCondition,
    QueryOperator,
    QueryPlan,
)


_CODE_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


class _RawPlan(BaseModel):
    description: str = ""
    conditions: List[Dict[str, Any]] = Field(default_factory=list)


class PlanningReply(BaseModel):
    """Shape the planner prompt asks the model to return."""

    is_phone_query: bool = Field(..., description="False when the request is not about phones.")
    is_adversarial: bool = Field(False, description="True for manipulation attempts.")
    plans: List[_RawPlan] = Field(default_factory=list)


@dataclass(frozen=True, slots=True)
class PlanDecodeSuccess:
    batch: QueryBatch
    dropped_plans: int = 0


@dataclass(frozen=True, slots=True)
class PlanDecodeFailure:
    reason: str
    raw: str


PlanDecodeResult = Union[PlanDecodeSuccess, PlanDecodeFailure]


def strip_code_fences(text: str) -> str:
    match = _CODE_FENCE.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def _json_object(text: str) -> str:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return text
    return text[start : end + 1]


def decode_plan_reply(raw: str) -> PlanDecodeResult:
    """Decode a planner completion without trusting its structure.

    Plans are clamped to ``MAX_PLANS`` before validation. Plans that fail
    validation are dropped individually; the reply only fails when nothing
    usable is left for an on-topic query.
    """

    if not raw or not raw.strip():
        return PlanDecodeFailure(reason="empty reply", raw=raw or "")

    payload = _json_object(strip_code_fences(raw))
    try:
        reply = PlanningReply.model_validate_json(payload)
    except ValidationError as exc:
        return PlanDecodeFailure(
            reason=f"reply does not match the plan schema ({exc.error_count()} errors)", raw=raw
        )

    plans: List[QueryPlan] = []
    dropped = 0
    for raw_plan in reply.plans[:MAX_PLANS]:
        try:
            plans.append(QueryPlan.model_validate(raw_plan.model_dump()))
        except ValidationError:
            dropped += 1

    try:
        batch = QueryBatch(
            plans=plans,
            is_adversarial=reply.is_adversarial,
            is_off_topic=not reply.is_phone_query,
        )
    except ValidationError:
        return PlanDecodeFailure(reason="reply contains no usable plans", raw=raw)

    return PlanDecodeSuccess(batch=batch, dropped_plans=dropped)


class QueryPlanner:
    """Turns a user turn into a validated ``QueryBatch`` with one model call."""

    def __init__(
        self,
        model: CompletionModel,
        *,
        timeout_seconds: float | None = None,
        attempts: int | None = None,
        retry_wait_seconds: float = 0.25,
    ) -> None:
        self._model = model
        self._timeout = timeout_seconds or settings.planner_timeout_seconds
        self._attempts = attempts or settings.planner_attempts
        self._retry_wait = retry_wait_seconds

    def build_prompt(self, user_text: str, history_digest: str) -> str:
        return (
            f"{PLANNER_PROMPT}\n\n"
            f"## CONVERSATION CONTEXT\n{history_digest}\n\n"
            f"## LATEST USER MESSAGE\n{user_text}"
        )

    async def _complete(self, prompt: str) -> str:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._attempts),
            wait=wait_fixed(self._retry_wait),
            reraise=True,
        ):
            with attempt:
                return await asyncio.wait_for(self._model.complete(prompt), timeout=self._timeout)
        raise PlanGenerationError("planner retries exhausted")

    async def generate_plans(
        self,
        user_text: str,
        history: Optional[Sequence[ConversationMessage]] = None,
        *,
        history_digest: Optional[str] = None,
    ) -> QueryBatch:
        """Ask the model for up to three plans plus topicality flags.

        Raises ``PlanGenerationError`` when the call fails, times out, or the
        reply cannot be decoded.
        """

        _ensure_logfire()
        digest = history_digest if history_digest is not None else trim_history(history or [])
        prompt = self.build_prompt(user_text, digest)

        with logfire.span("phone_advisor.plan", attempts=self._attempts):
            try:
                raw = await self._complete(prompt)
            except asyncio.TimeoutError as exc:
                logfire.warning("phone_advisor.plan.timeout", timeout_seconds=self._timeout)
                raise PlanGenerationError("planner call timed out") from exc
            except PlanGenerationError:
                raise
            except Exception as exc:
                logfire.exception("phone_advisor.plan.call_failed")
                raise PlanGenerationError(f"planner call failed: {type(exc).__name__}") from exc

            decoded = decode_plan_reply(raw)
            if isinstance(decoded, PlanDecodeFailure):
                logfire.warning("phone_advisor.plan.decode_failed", reason=decoded.reason)
                raise PlanGenerationError(decoded.reason)

            batch = decoded.batch
            logfire.info(
                "phone_advisor.plan.decoded",
                plans=len(batch.plans),
                dropped_plans=decoded.dropped_plans,
                is_adversarial=batch.is_adversarial,
                is_off_topic=batch.is_off_topic,
            )
            return batch


def _fallback_condition(signal: ExtractedSignal) -> Optional[QueryCondition]:
    if signal.field == "price" and signal.operator == "<=":
        return QueryCondition(field="price", operator=QueryOperator.LESS_OR_EQUAL, value=signal.value)
    if signal.field == "rating" and signal.operator == ">=":
        return QueryCondition(field="rating", operator=QueryOperator.GREATER_OR_EQUAL, value=signal.value)
    if signal.field in {"brand", "os", "ram", "storage"}:
        return QueryCondition(field=signal.field, operator=QueryOperator.ILIKE, value=f"%{signal.value}%")
    return None


def fallback_plan(signals: Iterable[ExtractedSignal]) -> Optional[QueryBatch]:
    """Build a single plan from extracted signals when the planner is unavailable.

    Price keeps the tightest bound and rating the highest floor. Text signals of
    the same field are alternatives, so only the first one in sorted order is
    used. Returns ``None`` when no signal maps to a condition.
    """

    by_field: Dict[str, ExtractedSignal] = {}
    for signal in sorted(signals, key=str):
        current = by_field.get(signal.field)
        if current is None:
            by_field[signal.field] = signal
        elif signal.field == "price" and signal.value < current.value:
            by_field[signal.field] = signal
        elif signal.field == "rating" and signal.value > current.value:
            by_field[signal.field] = signal

    conditions = [
        condition
        for condition in (_fallback_condition(signal) for signal in by_field.values())
        if condition is not None
    ]
    if not conditions:
        return None

    plan = QueryPlan(
        description="Search built from the request's explicit preferences",
        conditions=conditions,
    )
    return QueryBatch(plans=[plan])


__all__ = [
    "PlanDecodeFailure",
    "PlanDecodeResult",
    "PlanDecodeSuccess",
    "PlanningReply",
    "QueryPlanner",
    "decode_plan_reply",
    "fallback_plan",
    "strip_code_fences",
]

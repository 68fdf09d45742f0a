"""Tests for plan decoding, model retries, and the signal fallback plan."""

from __future__ import annotations

import asyncio
import json
import os
from typing import List

import pytest

os.environ.setdefault("POSTGRES_USER", "postgres")
os.environ.setdefault("POSTGRES_PASSWORD", "postgres")
os.environ.setdefault("POSTGRES_HOST", "localhost")
os.environ.setdefault("POSTGRES_PORT", "5432")
os.environ.setdefault("POSTGRES_DB", "phones")

import phone_advisor.assistant.planner as planner_module
from phone_advisor.assistant.errors import PlanGenerationError
from phone_advisor.assistant.planner import (
    PlanDecodeFailure,
    PlanDecodeSuccess,
    QueryPlanner,
    decode_plan_reply,
    fallback_plan,
)
from phone_advisor.assistant.schemas import (
    ConversationMessage,
    ExtractedSignal,
    QueryCondition,
    QueryOperator,
)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def _silence_logfire(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(planner_module, "_ensure_logfire", lambda: None)


def _plan(description: str, *conditions: dict) -> dict:
    return {"description": description, "conditions": list(conditions)}


def _reply(*plans: dict, is_phone_query: bool = True, is_adversarial: bool = False) -> str:
    return json.dumps(
        {"is_phone_query": is_phone_query, "is_adversarial": is_adversarial, "plans": list(plans)}
    )


class _ScriptedModel:
    """Completion model returning queued replies or raising queued errors."""

    def __init__(self, *replies) -> None:
        self._replies = list(replies)
        self.prompts: List[str] = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        reply = self._replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply

    async def stream(self, prompt: str):  # pragma: no cover - planner never streams
        raise AssertionError("planner must not stream")
        yield ""


class _SlowModel:
    def __init__(self) -> None:
        self.calls = 0

    async def complete(self, prompt: str) -> str:
        self.calls += 1
        await asyncio.sleep(5)
        return _reply()


def test_decode_strips_code_fences() -> None:
    raw = "```json\n" + _reply(
        _plan("Samsung under 25k", {"field": "brand", "operator": "ilike", "value": "%Samsung%"},
              {"field": "price", "operator": "lte", "value": "25,000"})
    ) + "\n```"

    decoded = decode_plan_reply(raw)

    assert isinstance(decoded, PlanDecodeSuccess)
    (plan,) = decoded.batch.plans
    assert plan.conditions[1] == QueryCondition(field="price", operator="lte", value=25000)


def test_decode_clamps_to_three_plans() -> None:
    plans = [
        _plan(f"plan {index}", {"field": "rating", "operator": "gte", "value": 4})
        for index in range(5)
    ]

    decoded = decode_plan_reply(_reply(*plans))

    assert isinstance(decoded, PlanDecodeSuccess)
    assert [plan.description for plan in decoded.batch.plans] == ["plan 0", "plan 1", "plan 2"]


def test_decode_drops_degenerate_and_invalid_plans() -> None:
    decoded = decode_plan_reply(
        _reply(
            _plan("empty"),
            _plan("bad operator", {"field": "price", "operator": "ilike", "value": "cheap"}),
            _plan("ok", {"field": "colors", "operator": "ilike", "value": "%Blue%"}),
        )
    )

    assert isinstance(decoded, PlanDecodeSuccess)
    assert decoded.dropped_plans == 2
    (plan,) = decoded.batch.plans
    assert plan.conditions[0].field == "colours"
    assert plan.conditions[0].operator is QueryOperator.OVERLAPS
    assert plan.conditions[0].value == ["Blue"]


@pytest.mark.parametrize(
    "raw",
    ["", "Sorry, I cannot help with that.", '{"plans": "nope"}', _reply(_plan("empty"))],
)
def test_decode_reports_failures_without_raising(raw: str) -> None:
    assert isinstance(decode_plan_reply(raw), PlanDecodeFailure)


def test_flagged_replies_may_have_no_plans() -> None:
    adversarial = decode_plan_reply(_reply(is_adversarial=True))
    off_topic = decode_plan_reply(_reply(is_phone_query=False))

    assert isinstance(adversarial, PlanDecodeSuccess) and adversarial.batch.is_adversarial
    assert isinstance(off_topic, PlanDecodeSuccess) and off_topic.batch.is_off_topic


@pytest.mark.anyio
async def test_generate_plans_embeds_history_and_retries() -> None:
    model = _ScriptedModel(
        RuntimeError("upstream 500"),
        _reply(_plan("Pixels", {"field": "brand", "operator": "ilike", "value": "Google"})),
    )
    planner = QueryPlanner(model, timeout_seconds=1, attempts=2, retry_wait_seconds=0)
    history = [ConversationMessage(id="1", role="user", content="I loved my old Nexus")]

    batch = await planner.generate_plans("pixel suggestions?", history)

    assert len(model.prompts) == 2
    assert "I loved my old Nexus" in model.prompts[0]
    assert batch.plans[0].description == "Pixels"


@pytest.mark.anyio
async def test_generate_plans_raises_on_undecodable_reply() -> None:
    planner = QueryPlanner(_ScriptedModel("not json at all"), timeout_seconds=1, attempts=1)

    with pytest.raises(PlanGenerationError) as excinfo:
        await planner.generate_plans("phones?")

    assert "schema" in excinfo.value.reason


@pytest.mark.anyio
async def test_generate_plans_times_out() -> None:
    model = _SlowModel()
    planner = QueryPlanner(model, timeout_seconds=0.05, attempts=2, retry_wait_seconds=0)

    with pytest.raises(PlanGenerationError, match="timed out"):
        await planner.generate_plans("phones?")

    assert model.calls == 2


def test_fallback_plan_maps_supported_signals() -> None:
    signals = frozenset(
        {
            ExtractedSignal(field="brand", operator="=", value="Samsung"),
            ExtractedSignal(field="price", operator="<=", value=30000),
            ExtractedSignal(field="price", operator="<=", value=25000),
            ExtractedSignal(field="battery", operator=">=", value="5000mAh"),
        }
    )

    batch = fallback_plan(signals)

    assert batch is not None
    (plan,) = batch.plans
    assert set(plan.conditions) == {
        QueryCondition(field="brand", operator="ilike", value="%Samsung%"),
        QueryCondition(field="price", operator="lte", value=25000),
    }


def test_fallback_plan_is_none_without_mappable_signals() -> None:
    assert fallback_plan(frozenset()) is None
    assert fallback_plan({ExtractedSignal(field="camera_main", operator=">=", value="50MP")}) is None

"""Factories for the model-backed assistant components."""

from __future__ import annotations

import os
from functools import lru_cache

from pydantic_ai import Agent, InstrumentationSettings
from pydantic_ai.models.openai import OpenAIChatModel, OpenAIChatModelSettings
from pydantic_ai.providers.openai import OpenAIProvider

from ..config import settings
from ..db import AsyncSessionLocal
from .executor import QueryExecutor
from .llm import AgentCompletionModel
from .logging import _ensure_logfire
from .pipeline import PhoneAssistant
from .planner import QueryPlanner
from .synthesizer import Synthesizer


def _chat_model(model_name: str, temperature: float) -> OpenAIChatModel:
    return OpenAIChatModel(
        model_name,
        provider=OpenAIProvider(
            base_url=os.getenv("OPENAI_BASE_URL"), api_key=os.getenv("OPENAI_API_KEY")
        ),
        settings=OpenAIChatModelSettings(temperature=temperature),
    )


@lru_cache(maxsize=1)
def get_planner_model() -> AgentCompletionModel:
    """Return the cached low-temperature model used for query planning."""

    _ensure_logfire()
    model_name = os.getenv("OPENAI_PLANNER_MODEL", os.getenv("OPENAI_MODEL", "gpt-4o-mini"))
    agent: Agent[None, str] = Agent(
        model=_chat_model(model_name, temperature=0),
        output_type=str,
        instrument=InstrumentationSettings(),
        name="phone-query-planner",
    )
    return AgentCompletionModel(agent)


@lru_cache(maxsize=1)
def get_synthesis_model() -> AgentCompletionModel:
    """Return the cached model that writes the streamed replies."""

    _ensure_logfire()
    model_name = os.getenv("OPENAI_MODEL", "gpt-4.1")
    agent: Agent[None, str] = Agent(
        model=_chat_model(model_name, temperature=0.3),
        output_type=str,
        instrument=InstrumentationSettings(),
        name="phone-advisor",
    )
    return AgentCompletionModel(agent)


@lru_cache(maxsize=1)
def get_phone_assistant() -> PhoneAssistant:
    """Return the process-wide assistant wired to the catalogue database."""

    return PhoneAssistant(
        planner=QueryPlanner(
            get_planner_model(),
            timeout_seconds=settings.planner_timeout_seconds,
            attempts=settings.planner_attempts,
        ),
        executor=QueryExecutor(AsyncSessionLocal, timeout_seconds=settings.query_timeout_seconds),
        synthesizer=Synthesizer(
            get_synthesis_model(), idle_timeout_seconds=settings.stream_idle_timeout_seconds
        ),
    )


__all__ = ["get_phone_assistant", "get_planner_model", "get_synthesis_model"]

"""Completion-model seam used by the planner and the synthesizer."""

from __future__ import annotations

from typing import AsyncIterator, Protocol

from pydantic_ai import Agent


class CompletionModel(Protocol):
    """Text-in, text-out language model."""

    async def complete(self, prompt: str) -> str:
        """Return the full completion for ``prompt``."""

    def stream(self, prompt: str) -> AsyncIterator[str]:
        """Yield completion text incrementally."""


class AgentCompletionModel:
    """Adapts a plain-text pydantic-ai agent to ``CompletionModel``."""

    def __init__(self, agent: Agent[None, str]) -> None:
        self._agent = agent

    @property
    def name(self) -> str | None:
        return self._agent.name

    async def complete(self, prompt: str) -> str:
        result = await self._agent.run(prompt)
        return result.output

    async def stream(self, prompt: str) -> AsyncIterator[str]:
        async with self._agent.run_stream(prompt) as result:
            async for delta in result.stream_text(delta=True):
                if delta:
                    yield delta


__all__ = ["AgentCompletionModel", "CompletionModel"]

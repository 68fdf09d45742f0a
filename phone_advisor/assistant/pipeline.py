"""End-to-end handling of one user turn."""

from __future__ import annotations

from contextlib import aclosing
from typing import AsyncIterator, List, Optional, Sequence

import logfire

from .context import reconcile_messages, trim_history
from .errors import AdversarialRejection, PlanGenerationError
from .executor import QueryExecutor
from .guard import ensure_benign
from .logging import _ensure_logfire
from .planner import QueryPlanner, fallback_plan
from .prompts import REPHRASE_PROMPT, STREAM_FALLBACK
from .schemas import ConversationMessage, ResponseMode
from .signals import detect_comparison, extract_signals
from .streaming import ResponseStream, TurnReport
from .synthesizer import Synthesizer


class PhoneAssistant:
    """Coordinates guard, planning, retrieval, and synthesis for a turn."""

    def __init__(
        self,
        *,
        planner: QueryPlanner,
        executor: QueryExecutor,
        synthesizer: Synthesizer,
    ) -> None:
        self._planner = planner
        self._executor = executor
        self._synthesizer = synthesizer

    def handle_user_query(
        self, text: str, history: Optional[Sequence[ConversationMessage]] = None
    ) -> ResponseStream:
        """Return a lazy reply stream. Nothing runs until it is iterated."""

        report = TurnReport()
        source = self._run(text, list(history or []), report)
        return ResponseStream(source, fallback_text=STREAM_FALLBACK, report=report)

    async def _run(
        self, text: str, history: List[ConversationMessage], report: TurnReport
    ) -> AsyncIterator[str]:
        _ensure_logfire()
        messages = reconcile_messages(history)
        digest = trim_history(messages)
        logfire.info("phone_advisor.turn.start", history_messages=len(messages))

        try:
            ensure_benign(text)
        except AdversarialRejection as rejection:
            report.mode = ResponseMode.ADVERSARIAL
            logfire.info("phone_advisor.turn.rejected", source=rejection.source)
            yield rejection.message
            return

        signals = extract_signals(text, messages)
        report.signals = signals

        try:
            batch = await self._planner.generate_plans(text, messages, history_digest=digest)
        except PlanGenerationError as exc:
            report.plan_error = exc.reason
            batch = fallback_plan(signals)
            if batch is None:
                logfire.warning("phone_advisor.turn.unplannable", reason=exc.reason)
                yield REPHRASE_PROMPT
                return
            report.used_fallback_plan = True
            logfire.warning("phone_advisor.turn.fallback_plan", reason=exc.reason)

        reply = self._synthesizer.reply(
            text,
            batch,
            signals,
            retrieve=self._executor.execute_detailed,
            history_digest=digest,
            comparison=detect_comparison(text),
            report=report,
        )
        async with aclosing(reply) as chunks:
            async for chunk in chunks:
                yield chunk


__all__ = ["PhoneAssistant"]

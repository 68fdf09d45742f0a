"""Grounded reply synthesis over the retrieved phones."""

from __future__ import annotations

import asyncio
from contextlib import aclosing
from typing import AsyncIterator, Awaitable, Callable, Iterable, List, Sequence

import logfire

from ..config import settings
from .errors import AssistantError, SynthesisStreamError
from .executor import BatchResult
from .llm import CompletionModel
from .logging import _ensure_logfire
from .prompts import (
    ADVERSARIAL_REDIRECT,
    COMPARISON_INSTRUCTIONS,
    MODE_INSTRUCTIONS,
    OFF_TOPIC_PROMPT,
    STREAM_FALLBACK,
    SYNTHESIS_SYSTEM_PROMPT,
)
from .schemas import ExtractedSignal, PhoneRecord, QueryBatch, ResponseMode
from .signals import VAGUE_SIGNAL_COUNT, describe_signals
from .streaming import ResponseStream, TurnReport


COMPARISON_LIMIT = 3

NO_PHONES_FOUND = "No phones in the catalogue matched this request."


def select_mode(batch: QueryBatch | None, signals: Iterable[ExtractedSignal]) -> ResponseMode:
    """Pick how the reply is produced. Flags from the planner take priority."""

    if batch is not None and batch.is_adversarial:
        return ResponseMode.ADVERSARIAL
    if batch is not None and batch.is_off_topic:
        return ResponseMode.OFF_TOPIC

    count = len(set(signals))
    if count == 0:
        return ResponseMode.OPEN_ENDED
    if count == VAGUE_SIGNAL_COUNT:
        return ResponseMode.VAGUE
    return ResponseMode.SPECIFIC


def _format_value(value: object) -> str:
    if value is None:
        return "N/A"
    if isinstance(value, list):
        return ", ".join(str(item) for item in value) if value else "N/A"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    text = str(value).strip()
    return text or "N/A"


def format_catalogue(records: Sequence[PhoneRecord]) -> str:
    """Render every field of every record, labelled, for the prompt."""

    if not records:
        return NO_PHONES_FOUND

    blocks = []
    for position, record in enumerate(records, start=1):
        lines = [f"### Phone {position}: {record.display_name}"]
        for name in PhoneRecord.model_fields:
            lines.append(f"- {name}: {_format_value(getattr(record, name))}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def select_comparison_records(result: BatchResult, limit: int = COMPARISON_LIMIT) -> List[PhoneRecord]:
    """Take records round-robin across plans so every named phone gets a slot."""

    selected: List[PhoneRecord] = []
    seen: set[tuple[str, str, float]] = set()
    queues = [list(outcome.records) for outcome in result.outcomes]
    position = 0
    while len(selected) < limit and any(position < len(queue) for queue in queues):
        for queue in queues:
            if position >= len(queue) or len(selected) >= limit:
                continue
            record = queue[position]
            if record.natural_key in seen:
                continue
            seen.add(record.natural_key)
            selected.append(record)
        position += 1
    return selected


class Synthesizer:
    """Builds the reply prompt and streams the model's answer."""

    def __init__(self, model: CompletionModel, *, idle_timeout_seconds: float | None = None) -> None:
        self._model = model
        self._idle_timeout = idle_timeout_seconds or settings.stream_idle_timeout_seconds

    def build_prompt(
        self,
        *,
        user_text: str,
        records: Sequence[PhoneRecord],
        mode: ResponseMode,
        signals: Iterable[ExtractedSignal],
        history_digest: str,
        comparison: bool = False,
    ) -> str:
        signal_list = describe_signals(signals)
        analysis = [
            f"- Response mode: {mode.value}",
            f"- Extracted preferences: {', '.join(signal_list) if signal_list else 'none'}",
            f"- Phones retrieved: {len(records)}",
        ]
        instructions = [MODE_INSTRUCTIONS.get(mode, MODE_INSTRUCTIONS[ResponseMode.SPECIFIC])]
        if comparison:
            instructions.append(COMPARISON_INSTRUCTIONS)

        sections = [
            SYNTHESIS_SYSTEM_PROMPT,
            f"## AVAILABLE PHONES\n{format_catalogue(records)}",
            f"## USER QUERY\n{user_text}",
            "## QUERY ANALYSIS\n" + "\n".join(analysis),
            f"## CONVERSATION CONTEXT\n{history_digest}",
            "## INSTRUCTIONS FOR THIS REPLY\n" + "\n\n".join(instructions),
        ]
        return "\n\n".join(sections)

    async def chunks(self, prompt: str) -> AsyncIterator[str]:
        """Yield non-empty completion fragments.

        Raises ``SynthesisStreamError`` when the model fails, stays silent for
        longer than the idle timeout, or finishes without any text.
        """

        _ensure_logfire()
        emitted = 0
        async with aclosing(self._model.stream(prompt)) as stream:
            while True:
                try:
                    async with asyncio.timeout(self._idle_timeout):
                        chunk = await stream.__anext__()
                except StopAsyncIteration:
                    break
                except TimeoutError as exc:
                    logfire.warning("phone_advisor.synthesize.stalled", timeout_seconds=self._idle_timeout)
                    raise SynthesisStreamError("The model stream stalled.") from exc
                except AssistantError:
                    raise
                except Exception as exc:
                    logfire.exception("phone_advisor.synthesize.model_failed")
                    raise SynthesisStreamError(f"The model stream failed: {type(exc).__name__}") from exc

                if chunk:
                    emitted += 1
                    yield chunk

        if emitted == 0:
            raise SynthesisStreamError("The model stream produced no text.")
        logfire.info("phone_advisor.synthesize.completed", chunks=emitted)

    async def reply(
        self,
        user_text: str,
        batch: QueryBatch,
        signals: Iterable[ExtractedSignal],
        *,
        retrieve: Callable[[QueryBatch], Awaitable[BatchResult]],
        history_digest: str,
        comparison: bool = False,
        report: TurnReport | None = None,
    ) -> AsyncIterator[str]:
        """Stream the reply to one turn, recording decisions on ``report``.

        ``retrieve`` runs only when the batch is answerable. Adversarial and
        off-topic batches get fixed text without touching the store or the model.
        """

        _ensure_logfire()
        report = report if report is not None else TurnReport()
        signal_set = frozenset(signals)
        mode = select_mode(batch, signal_set)
        report.mode = mode
        report.signals = signal_set
        report.batch = batch
        if mode is ResponseMode.ADVERSARIAL:
            logfire.info("phone_advisor.synthesize.flagged", mode=mode.value)
            yield ADVERSARIAL_REDIRECT
            return
        if mode is ResponseMode.OFF_TOPIC:
            logfire.info("phone_advisor.synthesize.flagged", mode=mode.value)
            yield OFF_TOPIC_PROMPT
            return

        result = await retrieve(batch)
        records = select_comparison_records(result) if comparison else list(result.records)
        report.comparison = comparison
        report.records = records
        logfire.info(
            "phone_advisor.synthesize.grounded",
            mode=mode.value,
            signals=len(signal_set),
            records=len(records),
            comparison=comparison,
        )

        prompt = self.build_prompt(
            user_text=user_text,
            records=records,
            mode=mode,
            signals=signal_set,
            history_digest=history_digest,
            comparison=comparison,
        )
        async with aclosing(self.chunks(prompt)) as chunks:
            async for chunk in chunks:
                yield chunk

    def synthesize(
        self,
        user_text: str,
        result: BatchResult,
        batch: QueryBatch,
        signals: Iterable[ExtractedSignal],
        *,
        history_digest: str,
        comparison: bool = False,
    ) -> ResponseStream:
        """Return a lazy stream for the reply to one turn over an executed batch."""

        async def retrieved(_: QueryBatch) -> BatchResult:
            return result

        report = TurnReport()
        source = self.reply(
            user_text,
            batch,
            signals,
            retrieve=retrieved,
            history_digest=history_digest,
            comparison=comparison,
            report=report,
        )
        return ResponseStream(source, fallback_text=STREAM_FALLBACK, report=report)


__all__ = [
    "COMPARISON_LIMIT",
    "NO_PHONES_FOUND",
    "Synthesizer",
    "format_catalogue",
    "select_comparison_records",
    "select_mode",
]

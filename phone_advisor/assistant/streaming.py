"""Reply stream handed to callers of the assistant."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncIterator, FrozenSet, List, Optional

import logfire

from .errors import AssistantError, SynthesisStreamError
from .schemas import ExtractedSignal, PhoneRecord, QueryBatch, ResponseMode


class StreamStatus(str, Enum):
    PENDING = "pending"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


_TERMINAL = frozenset({StreamStatus.COMPLETED, StreamStatus.FAILED, StreamStatus.CANCELLED})


@dataclass(slots=True)
class TurnReport:
    """What the pipeline decided while producing a reply."""

    mode: Optional[ResponseMode] = None
    signals: FrozenSet[ExtractedSignal] = frozenset()
    batch: Optional[QueryBatch] = None
    records: List[PhoneRecord] = field(default_factory=list)
    comparison: bool = False
    used_fallback_plan: bool = False
    plan_error: Optional[str] = None


async def _single(text: str) -> AsyncIterator[str]:
    yield text


class ResponseStream:
    """Single-use async iterator over reply fragments.

    Failures never escape iteration. When the source raises or ends without
    producing text, one fallback fragment is yielded and the cause is kept on
    ``error`` with ``status`` set to ``FAILED``. Cancellation of the consuming
    task propagates and leaves the stream ``CANCELLED``. ``aclose`` releases
    the source and also marks an unfinished stream ``CANCELLED``.
    """

    def __init__(
        self,
        source: AsyncIterator[str],
        *,
        fallback_text: str,
        report: TurnReport | None = None,
    ) -> None:
        self._source = source
        self._fallback_text = fallback_text
        self.report = report or TurnReport()
        self._status = StreamStatus.PENDING
        self._error: AssistantError | None = None
        self._emitted = 0
        self._started = False

    @classmethod
    def from_text(cls, text: str, *, mode: ResponseMode | None = None) -> "ResponseStream":
        return cls(_single(text), fallback_text=text, report=TurnReport(mode=mode))

    @property
    def status(self) -> StreamStatus:
        return self._status

    @property
    def error(self) -> AssistantError | None:
        return self._error

    @property
    def mode(self) -> ResponseMode | None:
        return self.report.mode

    @property
    def records(self) -> List[PhoneRecord]:
        return self.report.records

    def __aiter__(self) -> "ResponseStream":
        if self._started:
            raise RuntimeError("ResponseStream can only be iterated once.")
        self._started = True
        return self

    async def __anext__(self) -> str:
        if self._status in _TERMINAL:
            raise StopAsyncIteration
        self._status = StreamStatus.STREAMING

        while True:
            try:
                chunk = await self._source.__anext__()
            except StopAsyncIteration:
                if self._emitted == 0:
                    return await self._fail(
                        SynthesisStreamError("The reply stream ended without producing text.")
                    )
                self._status = StreamStatus.COMPLETED
                raise
            except asyncio.CancelledError:
                self._status = StreamStatus.CANCELLED
                raise
            except AssistantError as exc:
                return await self._fail(exc)
            except Exception as exc:
                error = SynthesisStreamError(f"The reply stream failed: {type(exc).__name__}")
                error.__cause__ = exc
                return await self._fail(error)

            if chunk:
                self._emitted += 1
                return chunk

    async def _fail(self, error: AssistantError) -> str:
        self._status = StreamStatus.FAILED
        self._error = error
        logfire.warning(
            "phone_advisor.stream.failed",
            error=str(error),
            emitted_chunks=self._emitted,
        )
        await self._close_source()
        return self._fallback_text

    async def _close_source(self) -> None:
        aclose = getattr(self._source, "aclose", None)
        if aclose is not None:
            await aclose()

    async def aclose(self) -> None:
        if self._status not in _TERMINAL:
            self._status = StreamStatus.CANCELLED
        await self._close_source()

    async def collect(self) -> str:
        """Drain the stream and return the full reply text."""

        return "".join([chunk async for chunk in self])


__all__ = ["ResponseStream", "StreamStatus", "TurnReport"]

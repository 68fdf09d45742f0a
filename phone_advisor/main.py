"""Main FastAPI application for the phone advisor."""

import logging
from typing import AsyncIterator, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from .assistant import ConversationMessage, PhoneRecord, ResponseStream, StreamStatus, get_phone_assistant


class ChatRequest(BaseModel):
    """Payload sent to the chat endpoints."""

    message: str
    history: List[ConversationMessage] = Field(default_factory=list)


class ChatReply(BaseModel):
    """Buffered reply returned by `/chat/reply`."""

    message: str
    mode: Optional[str] = None
    status: StreamStatus
    phones: List[PhoneRecord] = Field(default_factory=list)


app = FastAPI(title="Phone Advisor API", version="0.1.0")


logger = logging.getLogger(__name__)


def _open_stream(request: ChatRequest) -> ResponseStream:
    if not request.message.strip():
        raise HTTPException(status_code=400, detail="Message must not be empty.")
    return get_phone_assistant().handle_user_query(request.message, request.history)


def _log_outcome(stream: ResponseStream) -> None:
    if stream.status is StreamStatus.FAILED:
        logger.warning("Chat reply fell back to the apology message: %s", stream.error)
    elif stream.status is StreamStatus.CANCELLED:
        logger.info("Chat reply cancelled by the client")


@app.post("/chat")
async def chat_endpoint(request: ChatRequest) -> StreamingResponse:
    """Stream the assistant's reply as plain text."""

    stream = _open_stream(request)

    async def _body() -> AsyncIterator[str]:
        try:
            async for chunk in stream:
                yield chunk
        finally:
            await stream.aclose()
            _log_outcome(stream)

    return StreamingResponse(
        _body(),
        media_type="text/plain; charset=utf-8",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@app.post("/chat/reply", response_model=ChatReply)
async def chat_reply_endpoint(request: ChatRequest) -> ChatReply:
    """Return the whole reply at once together with the turn outcome."""

    stream = _open_stream(request)
    try:
        message = await stream.collect()
    finally:
        await stream.aclose()
        _log_outcome(stream)

    return ChatReply(
        message=message,
        mode=stream.mode.value if stream.mode else None,
        status=stream.status,
        phones=stream.records,
    )


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}

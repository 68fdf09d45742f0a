"""Tests for the HTTP chat endpoints."""

from __future__ import annotations

import os
from typing import List

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("POSTGRES_USER", "postgres")
os.environ.setdefault("POSTGRES_PASSWORD", "postgres")
os.environ.setdefault("POSTGRES_HOST", "localhost")
os.environ.setdefault("POSTGRES_PORT", "5432")
os.environ.setdefault("POSTGRES_DB", "phones")

import phone_advisor.main as app_main
from phone_advisor.assistant import ConversationMessage, PhoneRecord, ResponseMode, ResponseStream
from phone_advisor.assistant.prompts import STREAM_FALLBACK
from phone_advisor.assistant.streaming import TurnReport
from phone_advisor.main import app


class _StubAssistant:
    """Records calls and replays a fixed list of chunks."""

    def __init__(self, chunks: List[str], *, fail: bool = False) -> None:
        self._chunks = chunks
        self._fail = fail
        self.calls: List[tuple] = []

    def handle_user_query(self, text: str, history=None) -> ResponseStream:
        self.calls.append((text, list(history or [])))

        async def source():
            for chunk in self._chunks:
                yield chunk
            if self._fail:
                raise RuntimeError("model connection dropped")

        report = TurnReport(
            mode=ResponseMode.SPECIFIC,
            records=[PhoneRecord(id=1, brand="Samsung", model="Galaxy A55", price=24999)],
        )
        return ResponseStream(source(), fallback_text=STREAM_FALLBACK, report=report)


def test_chat_streams_plain_text(monkeypatch: pytest.MonkeyPatch) -> None:
    assistant = _StubAssistant(["The Galaxy A55 ", "fits your budget."])
    monkeypatch.setattr(app_main, "get_phone_assistant", lambda: assistant)

    client = TestClient(app)
    response = client.post(
        "/chat",
        json={
            "message": "Samsung under 25k",
            "history": [{"id": "1", "role": "user", "content": "hi", "timestamp": 1700000000}],
        },
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert response.text == "The Galaxy A55 fits your budget."
    text, history = assistant.calls[0]
    assert text == "Samsung under 25k"
    assert history == [ConversationMessage(id="1", role="user", content="hi", timestamp=1700000000)]


def test_chat_stream_failure_ends_with_fallback(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(app_main, "get_phone_assistant", lambda: _StubAssistant(["Partial"], fail=True))

    client = TestClient(app)
    response = client.post("/chat", json={"message": "phones"})

    assert response.status_code == 200
    assert response.text == "Partial" + STREAM_FALLBACK
    assert "model connection dropped" not in response.text


def test_chat_rejects_blank_message(monkeypatch: pytest.MonkeyPatch) -> None:
    assistant = _StubAssistant(["unused"])
    monkeypatch.setattr(app_main, "get_phone_assistant", lambda: assistant)

    client = TestClient(app)
    response = client.post("/chat", json={"message": "   "})

    assert response.status_code == 400
    assert assistant.calls == []


def test_chat_reply_reports_outcome(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(app_main, "get_phone_assistant", lambda: _StubAssistant(["Galaxy A55"]))

    client = TestClient(app)
    response = client.post("/chat/reply", json={"message": "Samsung under 25k"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["message"] == "Galaxy A55"
    assert payload["mode"] == "specific"
    assert payload["status"] == "completed"
    assert [phone["model"] for phone in payload["phones"]] == ["Galaxy A55"]


def test_health() -> None:
    client = TestClient(app)

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}

"""Conversation history ordering, reconciliation, and condensing."""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from pydantic import BaseModel, Field

from .schemas import ConversationMessage


HISTORY_WINDOW = 10
SUMMARY_USER_EXCERPTS = 5
SUMMARY_ASSISTANT_EXCERPTS = 3
EXCERPT_LIMIT = 200

NO_HISTORY = "No previous conversation context."

_ROLE_LABELS = {"user": "User", "assistant": "Assistant"}


def order_messages(messages: Iterable[ConversationMessage]) -> List[ConversationMessage]:
    """Return messages in conversation order.

    Timestamps decide the order when every message has one; otherwise the
    message identifiers are compared lexically. Identifiers also break ties
    between equal timestamps, so the result does not depend on input order.
    """

    items = list(messages)
    if items and all(message.timestamp is not None for message in items):
        return sorted(items, key=lambda message: (message.timestamp, message.id))
    return sorted(items, key=lambda message: message.id)


def reconcile_messages(*batches: Iterable[ConversationMessage]) -> List[ConversationMessage]:
    """Merge message batches, keeping one entry per id and the latest copy of each."""

    merged: dict[str, ConversationMessage] = {}
    for batch in batches:
        for message in batch:
            merged[message.id] = message
    return order_messages(merged.values())


def _excerpt(content: str) -> str:
    text = " ".join(content.split())
    if len(text) <= EXCERPT_LIMIT:
        return text
    return text[:EXCERPT_LIMIT].rstrip() + "..."


class HistoryDigest(BaseModel):
    """Condensed view of a conversation handed to the models."""

    summary: Optional[str] = Field(None, description="Summary block for older messages.")
    recent: List[ConversationMessage] = Field(default_factory=list)
    older_count: int = 0

    def render(self) -> str:
        if not self.recent and not self.summary:
            return NO_HISTORY
        transcript = "\n\n".join(
            f"{_ROLE_LABELS[message.role]}: {message.content}" for message in self.recent
        )
        if self.summary is None:
            return transcript
        return f"{self.summary}\n\n## Recent Conversation:\n{transcript}"


def _summarise(older: Sequence[ConversationMessage]) -> str:
    user_excerpts = [
        _excerpt(message.content) for message in older if message.role == "user"
    ][:SUMMARY_USER_EXCERPTS]
    assistant_excerpts = [
        _excerpt(message.content) for message in older if message.role == "assistant"
    ][:SUMMARY_ASSISTANT_EXCERPTS]

    lines = ["## Previous Conversation Summary:"]
    lines.append(f"**Previous User Queries**: {' | '.join(user_excerpts) or 'None'}")
    lines.append(f"**Previous Topics Discussed**: {' | '.join(assistant_excerpts) or 'None'}")
    lines.append(f"**Total Previous Messages**: {len(older)} messages")
    return "\n".join(lines)


def condense_history(messages: Iterable[ConversationMessage]) -> HistoryDigest:
    """Keep the most recent window verbatim and summarise everything older."""

    ordered = order_messages(messages)
    if len(ordered) <= HISTORY_WINDOW:
        return HistoryDigest(recent=ordered)

    older = ordered[:-HISTORY_WINDOW]
    return HistoryDigest(
        summary=_summarise(older),
        recent=ordered[-HISTORY_WINDOW:],
        older_count=len(older),
    )


def trim_history(messages: Iterable[ConversationMessage]) -> str:
    return condense_history(messages).render()


__all__ = [
    "EXCERPT_LIMIT",
    "HISTORY_WINDOW",
    "HistoryDigest",
    "NO_HISTORY",
    "condense_history",
    "order_messages",
    "reconcile_messages",
    "trim_history",
]

"""Deterministic intent signals mined from user text.

The number of distinct signals decides whether a request is vague: exactly one
signal means the user gave a single preference and the reply should pair
best-effort results with a clarifying question. Two or more signals mean the
request is specific enough to answer directly. Nothing in this module performs
I/O, so the classification is reproducible for a given conversation.
"""

from __future__ import annotations

import re
from typing import Iterable, Iterator, Sequence

from .schemas import ConversationMessage, ExtractedSignal


VAGUE_SIGNAL_COUNT = 1

_MIN_PLAUSIBLE_PRICE = 1_000

_BRAND_ALIASES: dict[str, str] = {
    "samsung": "Samsung",
    "apple": "Apple",
    "iphone": "Apple",
    "oneplus": "OnePlus",
    "one plus": "OnePlus",
    "xiaomi": "Xiaomi",
    "redmi": "Xiaomi",
    "poco": "Xiaomi",
    "realme": "Realme",
    "oppo": "Oppo",
    "vivo": "Vivo",
    "google": "Google",
    "pixel": "Google",
    "motorola": "Motorola",
    "nokia": "Nokia",
    "nothing phone": "Nothing",
    "iqoo": "iQOO",
    "infinix": "Infinix",
    "tecno": "Tecno",
}

_BRAND_PATTERN = re.compile(
    r"\b("
    + "|".join(r"\s*".join(re.escape(part) for part in alias.split()) for alias in _BRAND_ALIASES)
    + r")s?\b",
    re.IGNORECASE,
)
_BRAND_LOOKUP = {alias.replace(" ", ""): brand for alias, brand in _BRAND_ALIASES.items()}

_PRICE_PATTERN = re.compile(
    r"\b(?:under|below|less\s+than|max(?:imum)?|budget(?:\s+(?:of|is))?|up\s*to|within)\s*"
    r"(?:of\s*)?(?:₹|rs\.?|inr|rupees?)?\s*"
    r"(?P<amount>\d+(?:,\d+)*(?:\.\d+)?)\s*"
    r"(?P<unit>k|thousand|lakhs?|lacs?)?\b"
    r"(?!\s*(?:gb|tb|mp|mah|inch|inches|hz|w\b))",
    re.IGNORECASE,
)
_UNIT_MULTIPLIERS = {"k": 1_000, "thousand": 1_000, "lakh": 100_000, "lac": 100_000}

_RAM_PATTERN = re.compile(
    r"(\d+)\s*(?:gb|gigabytes?)\s*(?:of\s+)?(?:ram|memory)\b", re.IGNORECASE
)
_STORAGE_PATTERN = re.compile(
    r"(\d+)\s*(gb|tb|gigabytes?|terabytes?)\s*(?:of\s+)?(?:storage|rom|internal)\b",
    re.IGNORECASE,
)
_CAMERA_PATTERN = re.compile(
    r"(\d+)\s*(?:mp|megapixels?)\s*(?:camera|cam|rear|back|main|primary)\b",
    re.IGNORECASE,
)
_BATTERY_PATTERN = re.compile(r"(\d+)\s*(?:mah|milliampere)", re.IGNORECASE)
_DISPLAY_PATTERN = re.compile(
    r"(\d+(?:\.\d+)?)\s*-?\s*inch(?:es)?\b|(\d+\.\d+)\s*\"", re.IGNORECASE
)
_ANDROID_PATTERN = re.compile(r"\bandroid\b", re.IGNORECASE)
_IOS_PATTERN = re.compile(r"\bios\b", re.IGNORECASE)
_RATING_PATTERN = re.compile(
    r"\b(?:rating|rated)\s*(?:of\s+)?(?:above|over|more\s+than|at\s*least|>=?)?\s*(\d(?:\.\d+)?)\b",
    re.IGNORECASE,
)

_COMPARISON_PATTERN = re.compile(
    r"\b(?:compare|comparison|versus|vs\b\.?|difference\s+between|which\s+is\s+better"
    r"|better\s+than|pros\s+and\s+cons)",
    re.IGNORECASE,
)


def _number(raw: str) -> float:
    return float(raw.replace(",", ""))


def _price_signals(text: str) -> Iterator[ExtractedSignal]:
    for match in _PRICE_PATTERN.finditer(text):
        amount = _number(match.group("amount"))
        unit = (match.group("unit") or "").lower().rstrip("s")
        amount *= _UNIT_MULTIPLIERS.get(unit, 1)
        price = int(amount)
        if price >= _MIN_PLAUSIBLE_PRICE:
            yield ExtractedSignal(field="price", operator="<=", value=price)


def _brand_signals(text: str) -> Iterator[ExtractedSignal]:
    for brand in brands_in(text):
        yield ExtractedSignal(field="brand", operator="=", value=brand)


def _spec_signals(text: str) -> Iterator[ExtractedSignal]:
    for match in _RAM_PATTERN.finditer(text):
        yield ExtractedSignal(field="ram", operator="=", value=f"{int(match.group(1))}GB")

    for match in _STORAGE_PATTERN.finditer(text):
        unit = "TB" if match.group(2).lower().startswith("t") else "GB"
        yield ExtractedSignal(field="storage", operator="=", value=f"{int(match.group(1))}{unit}")

    for match in _CAMERA_PATTERN.finditer(text):
        yield ExtractedSignal(field="camera_main", operator=">=", value=f"{int(match.group(1))}MP")

    for match in _BATTERY_PATTERN.finditer(text):
        yield ExtractedSignal(field="battery", operator=">=", value=f"{int(match.group(1))}mAh")

    for match in _DISPLAY_PATTERN.finditer(text):
        size = match.group(1) or match.group(2)
        yield ExtractedSignal(field="display_size", operator="=", value=f'{size}"')


def _os_signals(text: str) -> Iterator[ExtractedSignal]:
    if _ANDROID_PATTERN.search(text):
        yield ExtractedSignal(field="os", operator="=", value="Android")
    if _IOS_PATTERN.search(text):
        yield ExtractedSignal(field="os", operator="=", value="iOS")


def _rating_signals(text: str) -> Iterator[ExtractedSignal]:
    for match in _RATING_PATTERN.finditer(text):
        rating = float(match.group(1))
        if 0 < rating <= 5:
            yield ExtractedSignal(field="rating", operator=">=", value=rating)


_RULES = (_price_signals, _brand_signals, _spec_signals, _os_signals, _rating_signals)


def brands_in(text: str) -> list[str]:
    """Return the canonical brands mentioned in ``text`` in first-seen order."""

    seen: list[str] = []
    for match in _BRAND_PATTERN.finditer(text or ""):
        brand = _BRAND_LOOKUP[re.sub(r"\s+", "", match.group(1).lower())]
        if brand not in seen:
            seen.append(brand)
    return seen


def _user_texts(text: str, history: Sequence[ConversationMessage] | None) -> Iterable[str]:
    for message in history or ():
        if message.role == "user" and message.content:
            yield message.content
    if text:
        yield text


def extract_signals(
    text: str, history: Sequence[ConversationMessage] | None = None
) -> frozenset[ExtractedSignal]:
    """Collect the distinct structured signals in the user's side of the conversation."""

    signals: set[ExtractedSignal] = set()
    for segment in _user_texts(text, history):
        for rule in _RULES:
            signals.update(rule(segment))
    return frozenset(signals)


def is_vague(signals: Iterable[ExtractedSignal]) -> bool:
    """A request is vague when it carries exactly one structured signal."""

    return len(set(signals)) == VAGUE_SIGNAL_COUNT


def detect_comparison(text: str) -> bool:
    """Return True for explicit comparison wording or two or more named brands."""

    if not text:
        return False
    if _COMPARISON_PATTERN.search(text):
        return True
    return len(brands_in(text)) >= 2


def describe_signals(signals: Iterable[ExtractedSignal]) -> list[str]:
    """Render signals in a stable order for prompts and logs."""

    return sorted(str(signal) for signal in signals)


__all__ = [
    "VAGUE_SIGNAL_COUNT",
    "brands_in",
    "describe_signals",
    "detect_comparison",
    "extract_signals",
    "is_vague",
]

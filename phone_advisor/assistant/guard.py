"""Heuristic screening for prompt-injection attempts.

The planner also classifies adversarial input, but obvious attempts are caught
here before any model call so they never reach retrieval.
"""

from __future__ import annotations

import re
from typing import Pattern, Sequence, Tuple

import logfire

from .errors import AdversarialRejection
from .prompts import ADVERSARIAL_REDIRECT


_INJECTION_PATTERNS: Sequence[Tuple[str, Pattern[str]]] = (
    (
        "override_instructions",
        re.compile(
            r"\b(?:ignore|disregard|forget|override)\s+(?:all\s+|any\s+|the\s+|your\s+)*"
            r"(?:previous|prior|above|earlier|preceding|system)?\s*(?:instructions|prompts?|rules|directions|guidelines)\b",
            re.IGNORECASE,
        ),
    ),
    (
        "prompt_extraction",
        re.compile(
            r"\b(?:reveal|show|print|display|repeat|leak|dump|output|tell\s+me)\b.{0,40}"
            r"\b(?:system\s+prompt|(?:initial|hidden|internal|original)\s+(?:prompt|instructions)|your\s+(?:prompt|instructions))\b",
            re.IGNORECASE,
        ),
    ),
    (
        "jailbreak",
        re.compile(r"\b(?:jailbreak|dan\s+mode|developer\s+mode|do\s+anything\s+now)\b", re.IGNORECASE),
    ),
    (
        "role_override",
        re.compile(
            r"\b(?:you\s+are\s+no\s+longer|pretend\s+(?:to\s+be|you\s+are)|act\s+as\s+(?:an?\s+)?(?:unrestricted|unfiltered))\b",
            re.IGNORECASE,
        ),
    ),
    (
        "credential_request",
        re.compile(
            r"\b(?:api[\s_-]?keys?|secret\s+keys?|access\s+tokens?|environment\s+variables?)\b",
            re.IGNORECASE,
        ),
    ),
)


def detect_prompt_injection(text: str) -> str | None:
    """Return the name of the first matching injection rule, if any."""

    if not text:
        return None
    for name, pattern in _INJECTION_PATTERNS:
        if pattern.search(text):
            return name
    return None


def ensure_benign(text: str) -> None:
    """Raise ``AdversarialRejection`` when ``text`` looks like an injection attempt."""

    rule = detect_prompt_injection(text)
    if rule is None:
        return
    logfire.info("phone_advisor.guard.rejected", rule=rule)
    raise AdversarialRejection(ADVERSARIAL_REDIRECT, source=f"heuristic:{rule}")


__all__ = ["detect_prompt_injection", "ensure_benign"]

"""Translation of model-suggested series regexes into ILIKE wildcards.

Planner replies may target a product family with a regular expression such as
``Galaxy S[0-9]+``. The catalogue query uses case-insensitive LIKE matching, so
each pattern is mapped to a wildcard through an ordered rule table. The first
rule whose key matches wins. Unknown patterns fall back to replacing regex
metacharacters with ``%``; that fallback over-matches and is intentionally
lossy.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Pattern, Sequence

from .errors import InvalidConditionError


@dataclass(frozen=True, slots=True)
class SeriesRule:
    """Maps a family key to the wildcard used for it."""

    family: str
    key: Pattern[str]
    wildcard: str


def _rule(family: str, key: str, wildcard: str) -> SeriesRule:
    return SeriesRule(family=family, key=re.compile(key), wildcard=wildcard)


# Keys run against the canonical form produced by ``_canonical``, where every
# digit class collapses to ``#``.
SERIES_RULES: Sequence[SeriesRule] = (
    _rule("Samsung Galaxy S", r"(?<![A-Za-z])S#", "%S%"),
    _rule("Samsung Galaxy A", r"(?<![A-Za-z])A#", "%A%"),
    _rule("Samsung Galaxy M", r"(?<![A-Za-z])M#", "%M%"),
    _rule("Samsung Galaxy F", r"(?<![A-Za-z])F#", "%F%"),
    _rule("Galaxy Note", r"Note", "%Note%"),
    _rule("Samsung Galaxy Z", r"(?<![A-Za-z])Z#", "%Z%"),
    _rule("iPhone Pro", r"(?i:iphone).*Pro", "%Pro%"),
    _rule("iPhone Plus", r"(?i:iphone).*Plus", "%Plus%"),
    _rule("iPhone Max", r"(?i:iphone).*Max", "%Max%"),
    _rule("iPhone SE", r"(?i:iphone).*SE", "%SE%"),
    _rule("iPhone Mini", r"(?i:iphone).*(?i:mini)", "%Mini%"),
    _rule("OnePlus Nord", r"Nord", "%Nord%"),
    _rule("OnePlus Ace", r"Ace\b", "%Ace%"),
    _rule("OnePlus CE", r"(?<![A-Za-z])CE(?![a-z])", "%CE%"),
    _rule("Redmi K", r"(?i:redmi).*(?<![A-Za-z])K", "%K%"),
    _rule("Redmi A", r"(?i:redmi).*(?<![A-Za-z])A", "%A%"),
    _rule("POCO X", r"(?i:poco).*X", "%X%"),
    _rule("POCO F", r"(?i:poco).*F", "%F%"),
    _rule("POCO M", r"(?i:poco).*M", "%M%"),
    _rule("Mi Max", r"(?<![A-Za-z])Mi\b.*Max", "%Max%"),
    _rule("Oppo Reno", r"Reno", "%Reno%"),
    _rule("Oppo Find", r"Find", "%Find%"),
    _rule("Oppo K", r"(?<![A-Za-z])K#", "%K%"),
    _rule("Vivo V", r"(?<![A-Za-z])V#", "%V%"),
    _rule("Vivo X", r"(?<![A-Za-z])X#", "%X%"),
    _rule("Vivo Y", r"(?<![A-Za-z])Y#", "%Y%"),
    _rule("Vivo T", r"(?<![A-Za-z])T#", "%T%"),
    _rule("Realme GT", r"GT", "%GT%"),
    _rule("Realme Narzo", r"Narzo", "%Narzo%"),
    _rule("Realme C", r"(?<![A-Za-z])C#", "%C%"),
    _rule("Realme Number", r"Number", "%Number%"),
    _rule("Pixel Pro", r"(?i:pixel).*Pro", "%Pro%"),
    _rule("Pixel a", r"(?i:pixel).*(?<![A-Za-z])a(?![A-Za-z])", "%a%"),
    _rule("Motorola Edge", r"Edge", "%Edge%"),
    _rule("Motorola G", r"(?<![A-Za-z])G#", "%G%"),
    _rule("Motorola E", r"(?<![A-Za-z])E#", "%E%"),
    _rule("Nothing Phone", r"(?i:nothing).*Phone", "%Phone%"),
    _rule("iQOO Z", r"(?i:iqoo).*Z", "%Z%"),
    _rule("iQOO Neo", r"(?i:iqoo).*Neo", "%Neo%"),
    _rule("iQOO Pro", r"(?i:iqoo).*Pro", "%Pro%"),
    _rule("Infinix Hot", r"(?i:infinix).*Hot", "%Hot%"),
    _rule("Infinix Zero", r"(?i:infinix).*Zero", "%Zero%"),
    _rule("Tecno Spark", r"(?i:tecno).*Spark", "%Spark%"),
    _rule("Tecno Camon", r"(?i:tecno).*Camon", "%Camon%"),
    _rule("Tecno Phantom", r"(?i:tecno).*Phantom", "%Phantom%"),
    _rule("Lava Agni", r"(?i:lava).*Agni", "%Agni%"),
    _rule("Lava Blaze", r"(?i:lava).*Blaze", "%Blaze%"),
    _rule("Any Pro", r"Pro", "%Pro%"),
    _rule("Any Plus", r"Plus", "%Plus%"),
    _rule("Any Max", r"Max", "%Max%"),
    _rule("Any Mini", r"Mini", "%Mini%"),
    _rule("Any SE", r"SE", "%SE%"),
    _rule("Any Ultra", r"Ultra", "%Ultra%"),
    _rule("Any Lite", r"Lite", "%Lite%"),
    _rule("Any Neo", r"Neo", "%Neo%"),
)

_DIGIT_CLASS = re.compile(r"\[(?:0-9|\\d)\]|\\d")
_DIGIT_QUANTIFIER = re.compile(r"#(?:[+*?]|\{\d+(?:,\d*)?\})")
_ESCAPE_CLASS = re.compile(r"\\[dDwWsSbB]")
_CHARACTER_SET = re.compile(r"\[[^\]]*\]")
_REPEAT_COUNT = re.compile(r"\{\d+(?:,\d*)?\}")
_METACHARACTERS = re.compile(r"[.*+?^${}()|\[\]\\]")
_WILDCARD_RUN = re.compile(r"%+")


def _canonical(pattern: str) -> str:
    collapsed = _DIGIT_CLASS.sub("#", pattern)
    return _DIGIT_QUANTIFIER.sub("#", collapsed)


def match_series_rule(pattern: str) -> SeriesRule | None:
    """Return the first rule whose key matches ``pattern``."""

    canonical = _canonical(pattern)
    for rule in SERIES_RULES:
        if rule.key.search(canonical):
            return rule
    return None


def _strip_metacharacters(pattern: str) -> str:
    stripped = _ESCAPE_CLASS.sub("%", pattern)
    stripped = _CHARACTER_SET.sub("%", stripped)
    stripped = _REPEAT_COUNT.sub("", stripped)
    stripped = _METACHARACTERS.sub("%", stripped)
    stripped = re.sub(r"\s+", "%", stripped.strip())
    return _WILDCARD_RUN.sub("%", f"%{stripped}%")


def translate_series_pattern(pattern: str) -> str:
    """Convert a series regex into an ILIKE wildcard.

    Raises ``InvalidConditionError`` when the pattern carries no literal text,
    since the resulting wildcard would match every row.
    """

    rule = match_series_rule(pattern)
    if rule is not None:
        return rule.wildcard

    wildcard = _strip_metacharacters(pattern)
    if not wildcard.strip("%"):
        raise InvalidConditionError(f"Pattern '{pattern}' has no literal text to match.")
    return wildcard


__all__ = ["SERIES_RULES", "SeriesRule", "match_series_rule", "translate_series_pattern"]

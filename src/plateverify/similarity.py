from __future__ import annotations

import re
from collections.abc import Iterable

from rapidfuzz.distance import Levenshtein

from .models import ColorValue

COLOR_GROUPS: dict[str, frozenset[str]] = {
    "white": frozenset({"white", "silver", "offwhite", "cream", "ivory"}),
    "black": frozenset({"black"}),
    "grey": frozenset({"grey", "gray", "ash", "charcoal"}),
    "blue": frozenset({"blue", "navy", "skyblue", "darkblue", "lightblue"}),
    "red": frozenset({"red", "maroon", "crimson"}),
    "green": frozenset({"green", "olive", "darkgreen", "lightgreen"}),
    "yellow": frozenset({"yellow", "gold", "mustard"}),
    "brown": frozenset({"brown", "beige", "tan"}),
    "orange": frozenset({"orange"}),
    "purple": frozenset({"purple", "violet", "lavender"}),
    "pink": frozenset({"pink", "rose", "peach"}),
}

MODIFIER_WORDS = frozenset({"dark", "light", "metallic", "matte", "pearl", "shiny", "bright", "and"})

_COLOR_SPLIT_RE = re.compile(r"[,/& ]+")
_BUCKET_BY_TOKEN = {token: bucket for bucket, tokens in COLOR_GROUPS.items() for token in tokens}


def normalize(text: object) -> str:
    if text is None:
        return ""
    return str(text).strip().lower()


def edit_distance_ratio(a: str | None, b: str | None) -> float:
    left = normalize(a)
    right = normalize(b)
    longest = max(len(left), len(right))
    if longest == 0:
        return 0.0
    distance = Levenshtein.distance(left, right)
    return (longest - distance) / longest


def contains_as_word(needle: str | None, haystack: str | None) -> bool:
    word = normalize(needle)
    if not word:
        return False
    pattern = re.compile(rf"\b{re.escape(word)}\b", re.IGNORECASE)
    return pattern.search(normalize(haystack)) is not None


def fuzzy_score(a: str | None, b: str | None) -> float:
    """Similarity of two free-text labels on a 0-100 scale.

    A label that appears as a whole word inside the other one ("i10" in
    "Hyundai i10") scores 100; everything else falls back to the
    Levenshtein ratio.
    """
    left = normalize(a)
    right = normalize(b)
    if not left or not right:
        return 0.0
    if contains_as_word(left, right) or contains_as_word(right, left):
        return 100.0
    return round(100 * edit_distance_ratio(left, right), 2)


def color_tokens(value: ColorValue | None) -> set[str]:
    if value is None:
        return set()
    if isinstance(value, (list, tuple)):
        raw: Iterable[str] = (normalize(item) for item in value)
    else:
        raw = _COLOR_SPLIT_RE.split(normalize(value))
    return {token for token in raw if token and token not in MODIFIER_WORDS}


def color_bucket(token: str) -> str:
    return _BUCKET_BY_TOKEN.get(token, token)


def color_match_score(ai_color: ColorValue | None, registry_color: ColorValue | None) -> float:
    ai_buckets = {color_bucket(t) for t in color_tokens(ai_color)}
    registry_buckets = {color_bucket(t) for t in color_tokens(registry_color)}
    if not ai_buckets or not registry_buckets:
        return 0.0
    shared = ai_buckets & registry_buckets
    return round(100 * len(shared) / max(len(ai_buckets), len(registry_buckets)), 2)

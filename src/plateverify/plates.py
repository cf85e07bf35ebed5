from __future__ import annotations

import re
from collections.abc import Iterable
from functools import lru_cache

PLATE_FORMATS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("standard", re.compile(r"^[A-Z]{2}\d{2}[A-Z]{2,3}\d{4}$")),
    ("single_letter_series", re.compile(r"^[A-Z]{2}\d{2}[A-Z]\d{4}$")),
    ("legacy_three_letter", re.compile(r"^[A-Z]{3}\d{4}$")),
    ("legacy_short", re.compile(r"^[A-Z]{2}\d{4}$")),
)

_NON_ALNUM_RE = re.compile(r"[^A-Z0-9]")


def clean_plate_text(text: object) -> str:
    if text is None:
        return ""
    return _NON_ALNUM_RE.sub("", str(text).upper())


def validate_plate_format(text: str | None) -> tuple[bool, str | None]:
    cleaned = clean_plate_text(text)
    if not cleaned:
        return False, None
    for name, pattern in PLATE_FORMATS:
        if pattern.fullmatch(cleaned):
            return True, name
    return False, None


@lru_cache(maxsize=32)
def compile_region_patterns(prefixes: tuple[str, ...]) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(f"^{prefix}") for prefix in prefixes)


def matches_region(text: str | None, prefixes: Iterable[str]) -> bool:
    cleaned = clean_plate_text(text)
    if not cleaned:
        return False
    return any(pattern.match(cleaned) for pattern in compile_region_patterns(tuple(prefixes)))

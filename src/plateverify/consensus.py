from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from .models import (
    SOURCE_CONSENSUS,
    SOURCE_FALLBACK,
    STRATEGIES,
    STRATEGY_GENERAL,
    ConsensusGroup,
    OCRCandidate,
    ResolvedPlate,
)
from .plates import clean_plate_text, validate_plate_format

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ConsensusOutcome:
    plate: ResolvedPlate | None
    groups: list[ConsensusGroup] = field(default_factory=list)
    accepted: bool = False
    reason: str = ""


def make_candidate(text: object, confidence: object, strategy: str | None = None) -> OCRCandidate:
    raw = "" if text is None else str(text)
    label = (strategy or STRATEGY_GENERAL).strip().lower()
    if label not in STRATEGIES:
        logger.warning("Unknown OCR strategy %r, treating it as %r.", strategy, STRATEGY_GENERAL)
        label = STRATEGY_GENERAL
    try:
        value = float(confidence)
    except (TypeError, ValueError):
        value = 0.0
    return OCRCandidate(
        raw_text=raw,
        normalized_text=clean_plate_text(raw),
        strategy=label,
        confidence=min(max(value, 0.0), 1.0),
    )


def candidates_from_payload(items: Iterable[dict[str, Any]] | None) -> list[OCRCandidate]:
    out: list[OCRCandidate] = []
    for item in items or []:
        candidate = make_candidate(item.get("text"), item.get("confidence"), item.get("strategy"))
        if not candidate.normalized_text:
            continue
        out.append(candidate)
    return out


def group_candidates(candidates: Sequence[OCRCandidate]) -> list[ConsensusGroup]:
    buckets: dict[str, list[OCRCandidate]] = {}
    for candidate in candidates:
        buckets.setdefault(candidate.normalized_text, []).append(candidate)

    total = len(candidates)
    return [ConsensusGroup(text=text, candidates=tuple(members), total_candidates=total) for text, members in buckets.items()]


def _pick_group(groups: list[ConsensusGroup]) -> ConsensusGroup:
    # max() keeps the first maximal element, so ties fall back to first-seen order.
    return max(groups, key=lambda g: (g.consensus_score, g.max_confidence))


def resolve_consensus(candidates: Sequence[OCRCandidate], min_consensus_score: float = 0.4) -> ConsensusOutcome:
    if not candidates:
        return ConsensusOutcome(plate=None, reason="No OCR candidates to resolve.")

    groups = group_candidates(candidates)
    best = _pick_group(groups)
    format_valid, format_name = validate_plate_format(best.text)
    accepted = best.consensus_score >= min_consensus_score

    plate = ResolvedPlate(
        text=best.text,
        confidence=best.average_confidence,
        consensus_count=best.count,
        total_attempts=len(candidates),
        format_valid=format_valid,
        format_name=format_name,
        source=SOURCE_CONSENSUS,
        below_threshold=not accepted,
    )

    logger.info(
        "Consensus picked %s (%d/%d attempts, avg confidence %.2f, score %.2f, format valid: %s)",
        best.text,
        best.count,
        len(candidates),
        best.average_confidence,
        best.consensus_score,
        format_valid,
    )

    if accepted:
        reason = f"Best result from {best.count} of {len(candidates)} attempts."
    else:
        reason = f"Consensus score {best.consensus_score:.2f} is below the acceptance threshold {min_consensus_score:.2f}."
    return ConsensusOutcome(plate=plate, groups=groups, accepted=accepted, reason=reason)


def resolve_fallback(candidates: Sequence[OCRCandidate], confidence_factor: float = 0.8) -> ResolvedPlate | None:
    if not candidates:
        return None
    best = max(candidates, key=lambda c: c.confidence)
    format_valid, format_name = validate_plate_format(best.normalized_text)
    return ResolvedPlate(
        text=best.normalized_text,
        confidence=best.confidence * confidence_factor,
        consensus_count=1,
        total_attempts=len(candidates),
        format_valid=format_valid,
        format_name=format_name,
        source=SOURCE_FALLBACK,
    )

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import replace

from .config import Settings
from .consensus import ConsensusOutcome
from .models import (
    FAILURE_NO_PLATE,
    FAILURE_TRANSIENT,
    SOURCE_CONSENSUS,
    SOURCE_DETECTOR,
    SOURCE_FALLBACK,
    STRATEGY_DETECTOR,
    ArbitrationResult,
    DetectorReading,
    OCRCandidate,
    ResolvedPlate,
)
from .plates import clean_plate_text, matches_region, validate_plate_format

logger = logging.getLogger(__name__)


def detector_reading_from_candidates(candidates: Sequence[OCRCandidate], settings: Settings) -> DetectorReading | None:
    detected = [c for c in candidates if c.strategy == STRATEGY_DETECTOR and c.normalized_text]
    if not detected:
        return None

    ranked = sorted(
        detected,
        key=lambda c: (matches_region(c.normalized_text, settings.region_prefixes), c.confidence),
        reverse=True,
    )
    best = ranked[0]
    regional = matches_region(best.normalized_text, settings.region_prefixes)
    return DetectorReading(
        success=True,
        plate_text=best.normalized_text,
        original_text=best.raw_text,
        confidence=best.confidence,
        region=settings.region_name if regional else "Other",
        candidates=[{"text": c.normalized_text, "original": c.raw_text, "score": c.confidence} for c in ranked[:5]],
    )


def _detector_plate(reading: DetectorReading, settings: Settings) -> ResolvedPlate:
    text = clean_plate_text(reading.plate_text)
    regional = matches_region(text, settings.region_prefixes)
    cap = settings.detector_region_cap if regional else settings.detector_default_cap
    format_valid, format_name = validate_plate_format(text)
    return ResolvedPlate(
        text=text,
        confidence=min(cap, reading.confidence),
        consensus_count=1,
        total_attempts=max(1, len(reading.candidates)),
        format_valid=format_valid,
        format_name=format_name,
        source=SOURCE_DETECTOR,
        region=settings.region_name if regional else reading.region,
    )


def arbitrate(
    detector: DetectorReading | None,
    consensus: ConsensusOutcome,
    fallback: ResolvedPlate | None = None,
    settings: Settings | None = None,
) -> ArbitrationResult:
    """Pick the plate reading that feeds the registry lookup.

    Order: a successful specialized detector reading, an accepted consensus,
    the fallback reading, then a weak consensus that stays flagged as
    below threshold. No plate at all is a normal outcome; it is reported as
    ``transient`` only when the detector failed for service reasons.
    """
    cfg = settings or Settings()

    if detector is not None and detector.success and clean_plate_text(detector.plate_text):
        plate = _detector_plate(detector, cfg)
        logger.info("Using specialized detector plate %s (confidence %.2f).", plate.text, plate.confidence)
        return ArbitrationResult(plate=plate, source=SOURCE_DETECTOR, reason="Specialized text detection succeeded.")

    if consensus.plate is not None and consensus.accepted:
        return ArbitrationResult(plate=consensus.plate, source=SOURCE_CONSENSUS, reason=consensus.reason)

    if fallback is not None:
        logger.info("Primary OCR insufficient, using fallback plate %s.", fallback.text)
        return ArbitrationResult(
            plate=fallback,
            source=SOURCE_FALLBACK,
            reason="Fallback strategy used after weak or missing consensus.",
        )

    if consensus.plate is not None:
        weak = consensus.plate if consensus.plate.below_threshold else replace(consensus.plate, below_threshold=True)
        return ArbitrationResult(plate=weak, source=SOURCE_CONSENSUS, reason=consensus.reason)

    if detector is not None and detector.transient:
        return ArbitrationResult(
            plate=None,
            source=None,
            failure=FAILURE_TRANSIENT,
            reason=f"Plate detection unavailable: {detector.error}",
        )

    details = [consensus.reason]
    if detector is not None and detector.error:
        details.append(f"Detector: {detector.error}.")
    return ArbitrationResult(
        plate=None,
        source=None,
        failure=FAILURE_NO_PLATE,
        reason=" ".join(d for d in details if d) or "No readable license plate found.",
    )

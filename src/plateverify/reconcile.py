from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any

from .arbitration import arbitrate, detector_reading_from_candidates
from .config import Settings, load_settings
from .consensus import candidates_from_payload, resolve_consensus, resolve_fallback
from .detection import OCRBackend, build_ocr_backend, detect_plate
from .input_loader import load_photo
from .models import (
    CONSENSUS_STRATEGIES,
    FAILURE_TRANSIENT,
    SOURCE_FALLBACK,
    STATUS_FAILED,
    STATUS_LOW_CONFIDENCE,
    STATUS_NOT_ATTEMPTED,
    STATUS_NOT_FOUND,
    STATUS_VERIFIED,
    STRATEGY_DETECTOR,
    STRATEGY_FALLBACK,
    DetectorReading,
    OCRCandidate,
    ReconciliationResult,
    RegistryRecord,
    VehicleAttributes,
)
from .registry import SOURCE_STATIC, RegistryClient, RegistryPort
from .verification import compare_record, not_found_result, verify_vehicle

logger = logging.getLogger(__name__)

_REASONS = {
    STATUS_VERIFIED: "Vehicle attributes match the registry record.",
    STATUS_LOW_CONFIDENCE: "Vehicle attributes did not clear the match thresholds.",
    STATUS_NOT_FOUND: "No registry record for the resolved plate.",
}


def dedupe_findings(items: Iterable[object] | None) -> list[str]:
    """Drop repeated categorical findings, keeping first-seen order."""
    seen: set[str] = set()
    out: list[str] = []
    for item in items or []:
        label = str(item).strip()
        key = label.casefold()
        if not label or key in seen:
            continue
        seen.add(key)
        out.append(label)
    return out


def _split_candidates(
    candidates: Sequence[OCRCandidate],
) -> tuple[list[OCRCandidate], list[OCRCandidate], list[OCRCandidate]]:
    primary = [c for c in candidates if c.strategy in CONSENSUS_STRATEGIES]
    fallback = [c for c in candidates if c.strategy == STRATEGY_FALLBACK]
    detected = [c for c in candidates if c.strategy == STRATEGY_DETECTOR]
    return primary, fallback, detected


def reconcile(
    candidates: Sequence[OCRCandidate],
    attributes: VehicleAttributes | dict[str, Any] | None,
    registry: RegistryPort | Sequence[RegistryRecord],
    detector: DetectorReading | None = None,
    violation_types: Iterable[object] | None = None,
    settings: Settings | None = None,
) -> ReconciliationResult:
    """Resolve the plate of one photograph and check it against the registry.

    ``registry`` is either a lookup service (anything with ``lookup(plate)``)
    or a full registry table. The call always returns a terminal result; it
    never raises for data-quality problems or collaborator failures.
    """
    cfg = settings or load_settings()
    findings = dedupe_findings(violation_types)
    attrs = attributes if isinstance(attributes, VehicleAttributes) else VehicleAttributes.from_payload(attributes)
    warnings: list[str] = []

    primary, fallback_pool, detected = _split_candidates(candidates)
    if detector is None:
        detector = detector_reading_from_candidates(detected, cfg)

    consensus = resolve_consensus(primary, cfg.min_consensus_score)
    fallback = None
    if not consensus.accepted:
        fallback = resolve_fallback(fallback_pool, cfg.fallback_confidence_factor)

    arbitration = arbitrate(detector, consensus, fallback, cfg)
    if arbitration.plate is None:
        logger.info("No plate resolved: %s", arbitration.reason)
        return ReconciliationResult(
            status=STATUS_NOT_ATTEMPTED,
            reason=arbitration.reason,
            retryable=arbitration.failure == FAILURE_TRANSIENT,
            violation_types=findings,
            warnings=warnings,
        )

    plate = arbitration.plate
    if plate.below_threshold:
        warnings.append("Plate consensus is below the acceptance threshold; manual review required.")
    if plate.source == SOURCE_FALLBACK:
        warnings.append("Plate was read by the fallback strategy.")
    if not plate.format_valid:
        warnings.append(f"Plate {plate.text} does not match a known plate format.")

    try:
        if hasattr(registry, "lookup"):
            lookup = registry.lookup(plate.text)
            registry_source = lookup.source
            if lookup.error:
                warnings.append(f"Registry: {lookup.error}")
            if lookup.found and lookup.record is not None:
                verification = compare_record(attrs, lookup.record)
            else:
                verification = not_found_result(plate.text, attrs)
        else:
            registry_source = SOURCE_STATIC
            verification = verify_vehicle(plate.text, attrs, list(registry))
    except Exception as exc:  # noqa: BLE001 - callers always get an inspectable outcome
        logger.exception("Reconciliation failed for plate %s", plate.text)
        return ReconciliationResult(
            status=STATUS_FAILED,
            reason=f"Reconciliation failed: {exc}",
            plate=plate,
            retryable=True,
            violation_types=findings,
            warnings=warnings,
        )

    status = verification.status
    reason = _REASONS[status]
    if status == STATUS_VERIFIED and plate.below_threshold:
        status = STATUS_LOW_CONFIDENCE
        reason = "Attributes match, but the plate reading is a weak consensus."

    logger.info("Reconciled %s via %s: %s (overall %.2f)", plate.text, plate.source, status, verification.overall_score)
    return ReconciliationResult(
        status=status,
        reason=reason,
        plate=plate,
        verification=verification,
        registry_source=registry_source,
        violation_types=findings,
        warnings=warnings,
    )


def process_image(
    analysis: dict[str, Any],
    file_path: str | None = None,
    settings: Settings | None = None,
    registry: RegistryPort | Sequence[RegistryRecord] | None = None,
    backend: OCRBackend | None = None,
    use_detector: bool = True,
) -> ReconciliationResult:
    cfg = settings or load_settings()
    warnings: list[str] = []

    detector: DetectorReading | None = None
    if use_detector and file_path:
        try:
            image = load_photo(file_path, max_file_size_mb=cfg.max_file_size_mb)
            backend = backend or build_ocr_backend(cfg)
        except (OSError, ValueError, RuntimeError) as exc:
            logger.warning("Specialized text detection skipped for %s: %s", file_path, exc)
            warnings.append(f"Specialized text detection skipped: {exc}")
        else:
            detector = detect_plate(backend, image, cfg)

    result = reconcile(
        candidates=candidates_from_payload(analysis.get("candidates")),
        attributes=analysis.get("vehicle") or analysis.get("attributes"),
        registry=registry if registry is not None else RegistryClient(cfg),
        detector=detector,
        violation_types=analysis.get("violation_types"),
        settings=cfg,
    )
    result.warnings[:0] = warnings
    return result

from __future__ import annotations

import logging
from collections.abc import Iterable

from .models import (
    STATUS_LOW_CONFIDENCE,
    STATUS_NOT_FOUND,
    STATUS_VERIFIED,
    FieldDetail,
    RegistryRecord,
    VehicleAttributes,
    VerificationResult,
)
from .plates import clean_plate_text
from .similarity import color_match_score, fuzzy_score, normalize

logger = logging.getLogger(__name__)

MAKE_THRESHOLD = 80.0
MODEL_THRESHOLD = 80.0
COLOR_DISPLAY_THRESHOLD = 60.0

_UNKNOWN_VALUES = {"", "unknown"}


def _registration_key(value: object) -> str:
    return clean_plate_text(value)


def find_record(plate_text: str, registry_table: Iterable[RegistryRecord]) -> RegistryRecord | None:
    key = _registration_key(plate_text)
    if not key:
        return None
    for record in registry_table:
        if _registration_key(record.registration_number) == key:
            return record
    return None


def is_unknown(value: object) -> bool:
    return normalize(value) in _UNKNOWN_VALUES


def not_found_result(plate_text: str, attributes: VehicleAttributes) -> VerificationResult:
    return VerificationResult(
        registration_number=plate_text,
        status=STATUS_NOT_FOUND,
        matches=False,
        field_scores={"make": 0.0, "model": 0.0, "color": 0.0},
        overall_score=0.0,
        field_details={
            "make": FieldDetail(registry_value=None, ai_value=attributes.make, field_match=False),
            "model": FieldDetail(registry_value=None, ai_value=attributes.model, field_match=False),
            "color": FieldDetail(registry_value=None, ai_value=attributes.color, field_match=False),
        },
    )


def verify_vehicle(
    plate_text: str,
    attributes: VehicleAttributes,
    registry_table: Iterable[RegistryRecord],
) -> VerificationResult:
    record = find_record(plate_text, registry_table)
    if record is None:
        logger.info("No registry record for plate %s.", plate_text)
        return not_found_result(plate_text, attributes)
    return compare_record(attributes, record)


def compare_record(attributes: VehicleAttributes, record: RegistryRecord) -> VerificationResult:
    make_score = fuzzy_score(attributes.make, record.make)
    model_score = fuzzy_score(attributes.model, record.model)
    color_score = color_match_score(attributes.color, record.colour)
    overall = round((make_score + model_score + color_score) / 3, 2)

    model_unknown = is_unknown(attributes.model)
    make_match = make_score >= MAKE_THRESHOLD
    model_match = model_score >= MODEL_THRESHOLD or model_unknown
    # Color is reported but never gates the verdict.
    matches = make_match and model_match

    logger.debug(
        "Registry comparison for %s: make %.2f, model %.2f, color %.2f",
        record.registration_number,
        make_score,
        model_score,
        color_score,
    )

    return VerificationResult(
        registration_number=record.registration_number,
        status=STATUS_VERIFIED if matches else STATUS_LOW_CONFIDENCE,
        matches=matches,
        field_scores={"make": make_score, "model": model_score, "color": color_score},
        overall_score=overall,
        field_details={
            "make": FieldDetail(registry_value=record.make, ai_value=attributes.make, field_match=make_match),
            "model": FieldDetail(registry_value=record.model, ai_value=attributes.model, field_match=model_match),
            "color": FieldDetail(
                registry_value=record.colour,
                ai_value=attributes.color,
                field_match=color_score >= COLOR_DISPLAY_THRESHOLD,
            ),
        },
    )

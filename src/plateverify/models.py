from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Union

STRATEGY_GENERAL = "general"
STRATEGY_FOCUSED = "focused"
STRATEGY_FORMAT_SPECIFIC = "format-specific"
STRATEGY_FALLBACK = "fallback"
STRATEGY_DETECTOR = "specialized-detector"

STRATEGIES = (
    STRATEGY_GENERAL,
    STRATEGY_FOCUSED,
    STRATEGY_FORMAT_SPECIFIC,
    STRATEGY_FALLBACK,
    STRATEGY_DETECTOR,
)
CONSENSUS_STRATEGIES = (STRATEGY_GENERAL, STRATEGY_FOCUSED, STRATEGY_FORMAT_SPECIFIC)

STATUS_NOT_ATTEMPTED = "NOT_ATTEMPTED"
STATUS_NOT_FOUND = "NOT_FOUND"
STATUS_VERIFIED = "VERIFIED"
STATUS_LOW_CONFIDENCE = "LOW_CONFIDENCE"
STATUS_FAILED = "FAILED"

SOURCE_CONSENSUS = "consensus"
SOURCE_FALLBACK = "fallback"
SOURCE_DETECTOR = STRATEGY_DETECTOR

FAILURE_NO_PLATE = "no_plate"
FAILURE_TRANSIENT = "transient"

ColorValue = Union[str, list[str]]


@dataclass(slots=True)
class OCRLine:
    text: str
    confidence: float
    bbox: list[tuple[float, float]] = field(default_factory=list)


@dataclass(slots=True)
class OCRResult:
    lines: list[OCRLine]
    image_height: int
    mean_confidence: float


@dataclass(frozen=True, slots=True)
class OCRCandidate:
    raw_text: str
    normalized_text: str
    strategy: str
    confidence: float


@dataclass(frozen=True, slots=True)
class ConsensusGroup:
    text: str
    candidates: tuple[OCRCandidate, ...]
    total_candidates: int

    @property
    def count(self) -> int:
        return len(self.candidates)

    @property
    def average_confidence(self) -> float:
        return sum(c.confidence for c in self.candidates) / self.count

    @property
    def max_confidence(self) -> float:
        return max(c.confidence for c in self.candidates)

    @property
    def consensus_score(self) -> float:
        return (self.count / self.total_candidates) * self.average_confidence


@dataclass(frozen=True, slots=True)
class ResolvedPlate:
    text: str
    confidence: float
    consensus_count: int
    total_attempts: int
    format_valid: bool
    format_name: str | None = None
    source: str = SOURCE_CONSENSUS
    below_threshold: bool = False
    region: str | None = None


@dataclass(frozen=True, slots=True)
class VehicleAttributes:
    make: str
    model: str
    color: ColorValue

    @classmethod
    def from_payload(cls, payload: dict[str, Any] | None) -> "VehicleAttributes":
        payload = payload or {}
        color = payload.get("color") or "Unknown"
        if isinstance(color, (list, tuple)):
            color = [str(c) for c in color][:2]
        return cls(
            make=str(payload.get("make") or "Unknown"),
            model=str(payload.get("model") or "Unknown"),
            color=color,
        )


@dataclass(frozen=True, slots=True)
class RegistryRecord:
    registration_number: str
    make: str
    model: str
    colour: str
    owner_name: str | None = None
    vehicle_class: str | None = None
    rc_status: str = "ACTIVE"
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class FieldDetail:
    registry_value: str | None
    ai_value: ColorValue | None
    field_match: bool


@dataclass(frozen=True, slots=True)
class VerificationResult:
    registration_number: str
    status: str
    matches: bool
    field_scores: dict[str, float]
    overall_score: float
    field_details: dict[str, FieldDetail]


@dataclass(frozen=True, slots=True)
class DetectorReading:
    success: bool
    plate_text: str | None = None
    original_text: str | None = None
    confidence: float = 0.0
    region: str | None = None
    candidates: list[dict[str, Any]] = field(default_factory=list)
    error: str | None = None
    transient: bool = False


@dataclass(frozen=True, slots=True)
class ArbitrationResult:
    plate: ResolvedPlate | None
    source: str | None
    failure: str | None = None
    reason: str = ""


@dataclass(frozen=True, slots=True)
class RegistryLookup:
    found: bool
    record: RegistryRecord | None
    source: str
    error: str | None = None


@dataclass(slots=True)
class ReconciliationResult:
    status: str
    reason: str
    plate: ResolvedPlate | None = None
    verification: VerificationResult | None = None
    registry_source: str | None = None
    retryable: bool = False
    violation_types: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

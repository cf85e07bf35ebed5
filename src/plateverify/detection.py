from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass

import numpy as np

from .config import Settings
from .models import DetectorReading, OCRLine, OCRResult
from .plates import clean_plate_text, matches_region, validate_plate_format

logger = logging.getLogger(__name__)

_CLEAN_CHARS_RE = re.compile(r"^[A-Z0-9\s]*$")
_IDEAL_PLATE_LENGTH = 10


def _mean_conf(lines: list[OCRLine]) -> float:
    if not lines:
        return 0.0
    return float(sum(line.confidence for line in lines) / len(lines))


@dataclass(slots=True)
class OCRBackend:
    name: str

    def run(self, image_bgr: np.ndarray) -> OCRResult:  # pragma: no cover - interface method
        raise NotImplementedError


class PaddleBackend(OCRBackend):
    def __init__(self, lang: str) -> None:
        super().__init__(name="paddle")

        # oneDNN fused conv ops crash on some CPU wheel combos.
        os.environ.setdefault("FLAGS_use_mkldnn", "0")
        os.environ.setdefault("OMP_NUM_THREADS", "1")

        try:
            from paddleocr import PaddleOCR
        except ImportError as exc:
            raise RuntimeError("PaddleOCR is not installed. Use extra: [ocr-paddle]") from exc

        base = {"use_angle_cls": False, "lang": lang}
        last_exc: Exception | None = None
        self._reader = None
        for kwargs in ({**base, "show_log": False}, base):
            try:
                self._reader = PaddleOCR(**kwargs)
                break
            except Exception as exc:  # noqa: BLE001 - version-specific PaddleOCR kwargs
                last_exc = exc
                msg = str(exc).lower()
                if "unknown argument" in msg or "unexpected keyword" in msg:
                    continue
                raise

        if self._reader is None:
            assert last_exc is not None
            raise last_exc

    def run(self, image_bgr: np.ndarray) -> OCRResult:
        raw = self._reader.ocr(image_bgr)
        lines: list[OCRLine] = []

        for block in raw or []:
            if not block:
                continue
            for item in block:
                try:
                    bbox, payload = item
                    text, conf = payload
                except (TypeError, ValueError):
                    continue
                if not text:
                    continue
                bbox_pairs = [(float(x), float(y)) for x, y in bbox]
                lines.append(OCRLine(text=str(text).strip(), confidence=float(conf), bbox=bbox_pairs))

        return OCRResult(lines=lines, image_height=int(image_bgr.shape[0]), mean_confidence=_mean_conf(lines))


class EasyBackend(OCRBackend):
    def __init__(self, langs: tuple[str, ...], gpu: bool = False) -> None:
        super().__init__(name="easyocr")
        try:
            import easyocr
        except ImportError as exc:
            raise RuntimeError("EasyOCR is not installed. Use extra: [ocr-easy]") from exc
        self._reader = easyocr.Reader(list(langs), gpu=gpu, verbose=False)

    def run(self, image_bgr: np.ndarray) -> OCRResult:
        raw = self._reader.readtext(image_bgr, detail=1, paragraph=False)
        lines: list[OCRLine] = []

        for item in raw or []:
            try:
                bbox, text, conf = item
            except (TypeError, ValueError):
                continue
            if not text:
                continue
            bbox_pairs = [(float(x), float(y)) for x, y in bbox]
            lines.append(OCRLine(text=str(text).strip(), confidence=float(conf), bbox=bbox_pairs))

        return OCRResult(lines=lines, image_height=int(image_bgr.shape[0]), mean_confidence=_mean_conf(lines))


def build_ocr_backend(settings: Settings) -> OCRBackend:
    preferred = settings.ocr_engine.lower()
    if preferred not in {"auto", "paddle", "easy"}:
        raise ValueError(f"Unsupported OCR_ENGINE value: {settings.ocr_engine}")

    order = ["paddle", "easy"] if preferred == "auto" else [preferred]
    errors: list[str] = []

    for engine in order:
        try:
            if engine == "paddle":
                return PaddleBackend(lang=settings.paddle_lang)
            return EasyBackend(langs=settings.easyocr_langs, gpu=settings.easyocr_gpu)
        except Exception as exc:  # noqa: BLE001 - backend fallback logic
            errors.append(f"{engine}: {exc}")

    raise RuntimeError("Could not initialize OCR backend. " + " | ".join(errors))


def score_plate_line(line: OCRLine, image_height: int) -> float:
    """Heuristic 0-100 plausibility that a detected text line is a plate.

    Weights: detector confidence up to 40, closeness to a ten character
    plate up to 20, lower half of the frame 20, known plate grammar 30,
    clean character set 10.
    """
    score = line.confidence * 40
    cleaned = clean_plate_text(line.text)
    score += max(0, 20 - abs(len(cleaned) - _IDEAL_PLATE_LENGTH) * 2)

    if line.bbox and image_height > 0:
        avg_y = sum(y for _, y in line.bbox) / len(line.bbox)
        if avg_y / image_height > 0.5:
            score += 20

    format_valid, _ = validate_plate_format(cleaned)
    if format_valid and len(cleaned) >= 6:
        score += 30

    if _CLEAN_CHARS_RE.fullmatch(line.text):
        score += 10

    return min(100.0, score)


def read_plate(ocr: OCRResult, settings: Settings) -> DetectorReading:
    lines = [line for line in ocr.lines if 4 <= len(line.text.strip()) <= 15]
    if not lines:
        return DetectorReading(success=False, error="No license plate candidates found")

    scored = sorted(
        ((line, score_plate_line(line, ocr.image_height)) for line in lines),
        key=lambda item: item[1],
        reverse=True,
    )
    alternatives = [
        {"text": clean_plate_text(line.text), "original": line.text, "score": score} for line, score in scored[:5]
    ]

    regional = [(line, score) for line, score in scored if matches_region(line.text, settings.region_prefixes)]
    if regional:
        line, score = regional[0]
        region = settings.region_name
    else:
        line, score = scored[0]
        region = "Other"
        if score < settings.detector_min_score:
            logger.info("Detector best guess %r scored %.1f, below %.1f.", line.text, score, settings.detector_min_score)
            return DetectorReading(
                success=False,
                original_text=line.text,
                confidence=score / 100,
                candidates=alternatives,
                error="No reliable license plate detected",
            )

    return DetectorReading(
        success=True,
        plate_text=clean_plate_text(line.text),
        original_text=line.text,
        confidence=score / 100,
        region=region,
        candidates=alternatives,
    )


def detect_plate(backend: OCRBackend, image_bgr: np.ndarray, settings: Settings) -> DetectorReading:
    try:
        ocr = backend.run(image_bgr)
    except Exception as exc:  # noqa: BLE001 - detector outages must not abort reconciliation
        logger.warning("Text detection with %s failed: %s", backend.name, exc)
        return DetectorReading(success=False, error=str(exc), transient=True)
    if not ocr.lines:
        return DetectorReading(success=False, error="No text detected in image")
    return read_plate(ocr, settings)

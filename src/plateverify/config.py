from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: str) -> tuple[str, ...]:
    raw = os.getenv(name, default)
    return tuple(x.strip() for x in raw.split(",") if x.strip())


@dataclass(slots=True)
class Settings:
    min_consensus_score: float = 0.4
    fallback_confidence_factor: float = 0.8
    detector_region_cap: float = 0.95
    detector_default_cap: float = 0.85
    detector_min_score: float = 30.0
    region_prefixes: tuple[str, ...] = ("TS", "AP3[1-9]", "AP[0-4][0-9]")
    region_name: str = "Telangana"
    registry_base_url: str = "https://echallan.tspolice.gov.in/TSeChallanRST"
    registry_vendor_code: str | None = None
    registry_vendor_key: str | None = None
    registry_timeout: float = 15.0
    registry_token_ttl_minutes: int = 55
    registry_use_sample_fallback: bool = True
    ocr_engine: str = "auto"
    paddle_lang: str = "en"
    easyocr_langs: tuple[str, ...] = ("en",)
    easyocr_gpu: bool = False
    max_file_size_mb: int = 10
    log_level: str = "INFO"

    @property
    def registry_configured(self) -> bool:
        return bool(self.registry_vendor_code and self.registry_vendor_key)


def load_settings() -> Settings:
    return Settings(
        min_consensus_score=float(os.getenv("MIN_CONSENSUS_SCORE", "0.4")),
        fallback_confidence_factor=float(os.getenv("FALLBACK_CONFIDENCE_FACTOR", "0.8")),
        detector_region_cap=float(os.getenv("DETECTOR_REGION_CAP", "0.95")),
        detector_default_cap=float(os.getenv("DETECTOR_DEFAULT_CAP", "0.85")),
        detector_min_score=float(os.getenv("DETECTOR_MIN_SCORE", "30")),
        region_prefixes=_env_list("REGION_PREFIXES", "TS,AP3[1-9],AP[0-4][0-9]"),
        region_name=os.getenv("REGION_NAME", "Telangana").strip(),
        registry_base_url=os.getenv(
            "REGISTRY_BASE_URL", "https://echallan.tspolice.gov.in/TSeChallanRST"
        ).rstrip("/"),
        registry_vendor_code=os.getenv("REGISTRY_VENDOR_CODE") or None,
        registry_vendor_key=os.getenv("REGISTRY_VENDOR_KEY") or None,
        registry_timeout=float(os.getenv("REGISTRY_TIMEOUT", "15")),
        registry_token_ttl_minutes=int(os.getenv("REGISTRY_TOKEN_TTL_MINUTES", "55")),
        registry_use_sample_fallback=_env_bool("REGISTRY_USE_SAMPLE_FALLBACK", True),
        ocr_engine=os.getenv("OCR_ENGINE", "auto").strip().lower(),
        paddle_lang=os.getenv("PADDLE_LANG", "en").strip().lower(),
        easyocr_langs=_env_list("EASYOCR_LANGS", "en") or ("en",),
        easyocr_gpu=_env_bool("EASYOCR_GPU", False),
        max_file_size_mb=int(os.getenv("MAX_FILE_SIZE_MB", "10")),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
    )

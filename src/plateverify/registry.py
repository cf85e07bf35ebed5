"""Vehicle registry collaborator.

Wraps the government registration lookup service (bearer token auth, JSON
over POST) and a small in-memory sample table used when the service is not
configured or unreachable.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from typing import Any, Protocol

import requests

from .config import Settings
from .models import RegistryLookup, RegistryRecord
from .plates import clean_plate_text

logger = logging.getLogger(__name__)

SOURCE_API = "registry api"
SOURCE_SAMPLE = "sample data"
SOURCE_STATIC = "static table"

SAMPLE_ROWS: tuple[dict[str, str], ...] = (
    {
        "Registration Number": "TS21J5859",
        "Make": "HERO",
        "Model": "SPLENDOR PLUS",
        "Colour": "BLACK",
        "Owner": "RAJESH KUMAR",
    },
    {
        "Registration Number": "TS07EA1234",
        "Make": "MARUTI SUZUKI",
        "Model": "ALTO",
        "Colour": "WHITE",
        "Owner": "PRIYA SHARMA",
    },
    {
        "Registration Number": "TS08FA5678",
        "Make": "HYUNDAI",
        "Model": "I10",
        "Colour": "RED",
        "Owner": "AMIT SINGH",
    },
)

COLOR_CODES = {
    "BHG": "BEIGE",
    "BLK": "BLACK",
    "BLU": "BLUE",
    "BRN": "BROWN",
    "GRN": "GREEN",
    "GRY": "GREY",
    "RED": "RED",
    "WHT": "WHITE",
    "YLW": "YELLOW",
    "SLV": "SILVER",
    "GLD": "GOLD",
    "ORG": "ORANGE",
    "PNK": "PINK",
    "VLT": "VIOLET",
    "MAR": "MAROON",
    "CRM": "CREAM",
    "METALLIC SILVER": "SILVER",
    "PEARL WHITE": "WHITE",
    "JET BLACK": "BLACK",
}

_RC_STATUS = {
    "ACTIVE": "ACTIVE",
    "VALID": "ACTIVE",
    "SUSPENDED": "SUSPENDED",
    "BLOCKED": "SUSPENDED",
    "CANCELLED": "CANCELLED",
    "INVALID": "CANCELLED",
}


class RegistryError(RuntimeError):
    pass


class RegistryPort(Protocol):
    def lookup(self, plate_text: str) -> RegistryLookup:
        ...


def records_from_rows(rows: Iterable[dict[str, Any]]) -> list[RegistryRecord]:
    return [
        RegistryRecord(
            registration_number=str(row["Registration Number"]),
            make=str(row["Make"]),
            model=str(row["Model"]),
            colour=str(row["Colour"]),
            owner_name=row.get("Owner"),
        )
        for row in rows
    ]


SAMPLE_REGISTRY: tuple[RegistryRecord, ...] = tuple(records_from_rows(SAMPLE_ROWS))


def normalize_registry_colour(raw: object) -> str:
    if not raw:
        return "UNKNOWN"
    value = str(raw).strip().upper()
    if value in COLOR_CODES:
        return COLOR_CODES[value]
    if len(value) <= 3:
        logger.warning("Unknown registry colour code %r.", value)
        return f"UNKNOWN ({value})"
    return value


def map_rc_status(raw: object) -> str:
    return _RC_STATUS.get(str(raw or "").strip().upper(), "ACTIVE")


def _first(payload: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = payload.get(key)
        if value:
            return value
    return None


def record_from_api_payload(payload: dict[str, Any]) -> RegistryRecord:
    registration = _first(payload, "regnNo", "registrationNumber", "regNo", "vehicleNumber")
    if not registration:
        raise RegistryError("Registry response has no registration number.")

    extra = {
        "owner_address": _first(payload, "ownerAddress", "address"),
        "fuel_type": _first(payload, "fuelType", "fuel"),
        "engine_number": _first(payload, "engineNumber", "engineNo"),
        "chassis_number": _first(payload, "chassisNumber", "chassisNo"),
        "registration_date": _first(payload, "registrationDate", "regDate"),
        "fitness_valid_upto": _first(payload, "fitnessValidUpto", "fitnessUpto"),
        "insurance_valid_upto": _first(payload, "insuranceValidUpto", "insuranceUpto"),
        "state": payload.get("state"),
        "rto": _first(payload, "rto", "rtoCode", "rtaOffice"),
    }
    return RegistryRecord(
        registration_number=str(registration),
        make=str(_first(payload, "maker", "make", "manufacturer") or ""),
        model=str(_first(payload, "model", "modelName") or ""),
        colour=normalize_registry_colour(_first(payload, "color", "colour")),
        owner_name=_first(payload, "ownerName", "owner"),
        vehicle_class=_first(payload, "vehicleClass", "class", "vehicleType"),
        rc_status=map_rc_status(_first(payload, "rcStatus", "status") or "ACTIVE"),
        extra={k: v for k, v in extra.items() if v is not None},
    )


class TokenCache:
    """Holds one bearer token until ``valid_until`` on the injected clock."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._token: str | None = None
        self.valid_until = 0.0

    def get(self) -> str | None:
        if self._token and self._clock() < self.valid_until:
            return self._token
        return None

    def store(self, token: str) -> str:
        self._token = token
        self.valid_until = self._clock() + self.ttl_seconds
        return token

    def invalidate(self) -> None:
        self._token = None
        self.valid_until = 0.0


class StaticRegistry:
    def __init__(self, records: Iterable[RegistryRecord], source: str = SOURCE_STATIC) -> None:
        self.records = tuple(records)
        self.source = source

    def lookup(self, plate_text: str) -> RegistryLookup:
        key = clean_plate_text(plate_text)
        for record in self.records:
            if clean_plate_text(record.registration_number) == key:
                return RegistryLookup(found=True, record=record, source=self.source)
        return RegistryLookup(found=False, record=None, source=self.source)


class RegistryClient:
    def __init__(
        self,
        settings: Settings,
        token_cache: TokenCache | None = None,
        session: requests.Session | None = None,
        sample: StaticRegistry | None = None,
    ) -> None:
        self.settings = settings
        self.token_cache = token_cache or TokenCache(ttl_seconds=settings.registry_token_ttl_minutes * 60)
        self.session = session or requests.Session()
        self.sample = sample or StaticRegistry(SAMPLE_REGISTRY, source=SOURCE_SAMPLE)

    def _post(self, path: str, body: dict[str, Any], token: str | None = None) -> dict[str, Any]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        response = self.session.post(
            f"{self.settings.registry_base_url}{path}",
            json=body,
            headers=headers,
            timeout=self.settings.registry_timeout,
        )
        response.raise_for_status()
        return response.json()

    def auth_token(self) -> str:
        cached = self.token_cache.get()
        if cached:
            return cached

        logger.info("Requesting a new registry auth token.")
        data = self._post(
            "/IDDetails/getAuthorization",
            {"vendorCode": self.settings.registry_vendor_code, "vendorKey": self.settings.registry_vendor_key},
        )
        if data.get("responseCode") == "0" and data.get("responseDesc"):
            return self.token_cache.store(str(data["responseDesc"]))
        raise RegistryError(f"Authentication failed: {data.get('responseDesc') or data.get('responseMsg') or 'Unknown error'}")

    def fetch(self, plate_text: str) -> RegistryLookup:
        body = {
            "vendorCode": self.settings.registry_vendor_code,
            "userID": "TG1",
            "idCode": "1",
            "idDetails": plate_text.upper(),
        }
        try:
            data = self._post("/IDDetails/getIDInfo", body, token=self.auth_token())
        except requests.HTTPError as exc:
            if exc.response is None or exc.response.status_code != 401:
                raise
            logger.info("Registry rejected the cached token, re-authenticating.")
            self.token_cache.invalidate()
            data = self._post("/IDDetails/getIDInfo", body, token=self.auth_token())
        if data.get("responseCode") == "0" and data.get("responseDesc") == "Success" and data.get("data"):
            return RegistryLookup(found=True, record=record_from_api_payload(data["data"]), source=SOURCE_API)
        logger.info("Registry has no record for %s: %s", plate_text, data.get("responseDesc"))
        return RegistryLookup(found=False, record=None, source=SOURCE_API, error=data.get("responseDesc"))

    def _from_sample(self, plate_text: str, error: str) -> RegistryLookup:
        result = self.sample.lookup(plate_text)
        return RegistryLookup(found=result.found, record=result.record, source=result.source, error=error)

    def lookup(self, plate_text: str) -> RegistryLookup:
        if not self.settings.registry_configured:
            if not self.settings.registry_use_sample_fallback:
                return RegistryLookup(
                    found=False, record=None, source=SOURCE_API, error="Registry credentials not configured"
                )
            logger.warning("Registry credentials not configured, using sample data.")
            return self._from_sample(plate_text, "Registry credentials not configured")

        try:
            return self.fetch(plate_text)
        except (requests.RequestException, RegistryError, ValueError) as exc:
            if not self.settings.registry_use_sample_fallback:
                raise
            logger.warning("Registry lookup failed (%s), falling back to sample data.", exc)
            return self._from_sample(plate_text, str(exc))

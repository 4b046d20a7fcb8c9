from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Mapping
from urllib.parse import urlsplit

from app.services.university_records import UniversityFields

REQUIRED_FIELDS = ("name", "country", "city", "address", "description", "coordinates")

# Form field names accepted in place of the canonical ones
FIELD_ALIASES = {
    "cords": "coordinates",
    "contactEmail": "contact_email",
    "contactPhone": "contact_phone",
}

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s.]+$")
_PHONE_RE = re.compile(r"^[0-9+\-(). ]{7,20}$")


@dataclass(frozen=True, slots=True)
class MissingField:
    field: str

    @property
    def message(self) -> str:
        return f"{self.field} is required"


@dataclass(frozen=True, slots=True)
class InvalidFormat:
    field: str

    @property
    def message(self) -> str:
        return f"{self.field} has an invalid format"


ValidationResult = UniversityFields | MissingField | InvalidFormat


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    cleaned = str(value).strip()
    return cleaned or None


def _canonical(payload: Mapping[str, Any]) -> dict[str, Any]:
    data = dict(payload)
    for alias, canonical in FIELD_ALIASES.items():
        if alias in data and _clean(data.get(canonical)) is None:
            data[canonical] = data[alias]
    return data


def is_valid_email(value: str) -> bool:
    return bool(_EMAIL_RE.match(value))


def is_valid_website(value: str) -> bool:
    parts = urlsplit(value)
    return parts.scheme in {"http", "https"} and bool(parts.netloc) and " " not in value


def is_valid_phone(value: str) -> bool:
    if not _PHONE_RE.match(value):
        return False
    return sum(ch.isdigit() for ch in value) >= 7


def validate_university_payload(payload: Mapping[str, Any]) -> ValidationResult:
    """Check required and formatted fields of an incoming payload.

    Pure: returns the trimmed ``UniversityFields`` on success, otherwise the
    first ``MissingField`` (in ``REQUIRED_FIELDS`` order) or ``InvalidFormat``.
    """
    data = _canonical(payload)

    required: dict[str, str] = {}
    for name in REQUIRED_FIELDS:
        value = _clean(data.get(name))
        if value is None:
            return MissingField(name)
        required[name] = value

    website = _clean(data.get("website"))
    if website is not None and not is_valid_website(website):
        return InvalidFormat("website")

    contact_email = _clean(data.get("contact_email"))
    if contact_email is not None and not is_valid_email(contact_email):
        return InvalidFormat("contact_email")

    contact_phone = _clean(data.get("contact_phone"))
    if contact_phone is not None and not is_valid_phone(contact_phone):
        return InvalidFormat("contact_phone")

    return UniversityFields(
        **required,
        website=website,
        contact_email=contact_email,
        contact_phone=contact_phone,
    )

"""Validation and normalization of untrusted incident submissions."""

import math
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Tuple

from gombesafe.core.errors import FieldError, ValidationError
from gombesafe.schemas.enums import IncidentStatus, IncidentType, Severity

MAX_LOCATION_LENGTH = 255
MAX_DESCRIPTION_LENGTH = 2000
MAX_IDEMPOTENCY_KEY_LENGTH = 128

# Accepted spellings for each field; the first one is the name reported in errors
FIELD_ALIASES = {
    "type": ("type", "incident_type"),
    "location": ("location",),
    "latitude": ("latitude", "lat"),
    "longitude": ("longitude", "lng", "lon"),
    "severity": ("severity",),
    "status": ("status",),
    "description": ("description",),
    "isAnonymous": ("isAnonymous", "is_anonymous"),
    "photoRef": ("photoRef", "photo_ref", "photo"),
    "idempotencyKey": ("idempotencyKey", "idempotency_key"),
}

_MISSING = object()


@dataclass(frozen=True)
class IncidentDraft:
    """A report that passed validation but has no identity yet."""

    type: IncidentType
    location: str
    latitude: float
    longitude: float
    severity: Severity = Severity.MEDIUM
    status: IncidentStatus = IncidentStatus.ACTIVE
    description: Optional[str] = None
    is_anonymous: bool = True
    photo_ref: Optional[str] = None


def pick(raw: Mapping[str, Any], field: str) -> Any:
    """Return the first present alias of ``field`` or a sentinel."""
    for alias in FIELD_ALIASES[field]:
        if alias in raw:
            return raw[alias]
    return _MISSING


def normalize_enum_token(value: str) -> str:
    return value.strip().lower().replace("-", "_").replace(" ", "_")


def _coordinate(
    raw: Mapping[str, Any], field: str, bound: float, errors: List[FieldError]
) -> Optional[float]:
    value = pick(raw, field)
    if value is _MISSING or value is None:
        errors.append(FieldError(field, "is required"))
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        errors.append(FieldError(field, "must be a number"))
        return None
    value = float(value)
    if math.isnan(value) or value < -bound or value > bound:
        errors.append(FieldError(field, f"must be within [-{bound:g}, {bound:g}]"))
        return None
    return value


def _enum_field(raw, field, enum_cls, default, errors):
    value = pick(raw, field)
    if value is _MISSING or value is None:
        if default is None:
            errors.append(FieldError(field, "is required"))
        return default
    if not isinstance(value, str):
        errors.append(FieldError(field, "must be a string"))
        return None
    token = normalize_enum_token(value)
    try:
        return enum_cls(token)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        errors.append(FieldError(field, f"must be one of: {allowed}"))
        return None


def _optional_text(raw, field, max_length, errors) -> Optional[str]:
    value = pick(raw, field)
    if value is _MISSING or value is None:
        return None
    if not isinstance(value, str):
        errors.append(FieldError(field, "must be a string"))
        return None
    value = value.strip()
    if len(value) > max_length:
        errors.append(FieldError(field, f"must be at most {max_length} characters"))
        return None
    return value or None


def validate_idempotency_key(key: Any) -> List[FieldError]:
    if key is None or key is _MISSING:
        return [FieldError("idempotencyKey", "is required")]
    if not isinstance(key, str) or not key.strip():
        return [FieldError("idempotencyKey", "must be a non-empty string")]
    if len(key.strip()) > MAX_IDEMPOTENCY_KEY_LENGTH:
        return [
            FieldError(
                "idempotencyKey",
                f"must be at most {MAX_IDEMPOTENCY_KEY_LENGTH} characters",
            )
        ]
    return []


def collect_report_errors(raw: Any) -> Tuple[Optional[IncidentDraft], List[FieldError]]:
    """
    Validate a raw submission.

    Every constraint is checked independently so that all violations are
    reported together. Coordinates are never clamped: an out-of-range value
    is an error.

    Returns:
        (draft, errors) where draft is None whenever errors is non-empty
    """
    if not isinstance(raw, Mapping):
        return None, [FieldError("body", "must be a JSON object")]

    errors: List[FieldError] = []

    incident_type = _enum_field(raw, "type", IncidentType, None, errors)

    location = pick(raw, "location")
    if location is _MISSING or location is None:
        errors.append(FieldError("location", "is required"))
        location = None
    elif not isinstance(location, str) or not location.strip():
        errors.append(FieldError("location", "must be a non-empty string"))
        location = None
    elif len(location.strip()) > MAX_LOCATION_LENGTH:
        errors.append(
            FieldError("location", f"must be at most {MAX_LOCATION_LENGTH} characters")
        )
        location = None
    else:
        location = location.strip()

    latitude = _coordinate(raw, "latitude", 90.0, errors)
    longitude = _coordinate(raw, "longitude", 180.0, errors)
    severity = _enum_field(raw, "severity", Severity, Severity.MEDIUM, errors)
    status = _enum_field(raw, "status", IncidentStatus, IncidentStatus.ACTIVE, errors)
    description = _optional_text(raw, "description", MAX_DESCRIPTION_LENGTH, errors)
    photo_ref = _optional_text(raw, "photoRef", MAX_LOCATION_LENGTH, errors)

    is_anonymous = pick(raw, "isAnonymous")
    if is_anonymous is _MISSING or is_anonymous is None:
        is_anonymous = True
    elif isinstance(is_anonymous, bool):
        pass
    elif isinstance(is_anonymous, int) and is_anonymous in (0, 1):
        # The dashboard stores this flag as an integer column
        is_anonymous = bool(is_anonymous)
    else:
        errors.append(FieldError("isAnonymous", "must be a boolean"))

    if errors:
        return None, errors

    return (
        IncidentDraft(
            type=incident_type,
            location=location,
            latitude=latitude,
            longitude=longitude,
            severity=severity,
            status=status,
            description=description,
            is_anonymous=is_anonymous,
            photo_ref=photo_ref,
        ),
        [],
    )


def validate_report(raw: Any, idempotency_key: Any = _MISSING) -> IncidentDraft:
    """
    Validate a raw submission and its idempotency key together.

    Raises:
        ValidationError: listing every violated field
    """
    draft, errors = collect_report_errors(raw)
    if idempotency_key is not _MISSING:
        errors = errors + validate_idempotency_key(idempotency_key)
    if errors:
        raise ValidationError(errors, message="Invalid incident data")
    return draft

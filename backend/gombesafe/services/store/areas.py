"""Validation for security-area provisioning and updates."""

import math
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Mapping

from gombesafe.core.errors import FieldError, ValidationError
from gombesafe.schemas.enums import RiskLevel
from gombesafe.services.store.records import SecurityArea

AREA_FIELD_ALIASES = {
    "name": ("name",),
    "description": ("description",),
    "riskLevel": ("riskLevel", "risk_level"),
    "latitude": ("latitude", "lat"),
    "longitude": ("longitude", "lng", "lon"),
    "radiusMeters": ("radiusMeters", "radius_meters", "radius"),
}
READ_ONLY_FIELDS = ("id", "incidentCount", "incident_count", "lastUpdated", "last_updated")


def _collect(raw: Mapping[str, Any]) -> Dict[str, Any]:
    found = {}
    for field, aliases in AREA_FIELD_ALIASES.items():
        for alias in aliases:
            if alias in raw:
                found[field] = raw[alias]
                break
    return found


def _number(value: Any) -> bool:
    return not isinstance(value, bool) and isinstance(value, (int, float)) and not math.isnan(value)


def _check_fields(values: Dict[str, Any], errors: List[FieldError]) -> Dict[str, Any]:
    clean = {}
    if "name" in values:
        name = values["name"]
        if not isinstance(name, str) or not name.strip():
            errors.append(FieldError("name", "must be a non-empty string"))
        else:
            clean["name"] = name.strip()
    if "description" in values:
        description = values["description"]
        if description is not None and not isinstance(description, str):
            errors.append(FieldError("description", "must be a string"))
        else:
            clean["description"] = description.strip() if description else None
    if "riskLevel" in values:
        level = values["riskLevel"]
        try:
            clean["risk_level"] = RiskLevel(str(level).strip().lower())
        except ValueError:
            allowed = ", ".join(member.value for member in RiskLevel)
            errors.append(FieldError("riskLevel", f"must be one of: {allowed}"))
    for field, bound in (("latitude", 90.0), ("longitude", 180.0)):
        if field in values:
            value = values[field]
            if not _number(value) or not -bound <= value <= bound:
                errors.append(FieldError(field, f"must be within [-{bound:g}, {bound:g}]"))
            else:
                clean[field] = float(value)
    if "radiusMeters" in values:
        radius = values["radiusMeters"]
        if not _number(radius) or radius <= 0 or math.isinf(radius):
            errors.append(FieldError("radiusMeters", "must be greater than 0"))
        else:
            clean["radius_meters"] = float(radius)
    return clean


def build_area(raw: Any, area_id: str, now: datetime) -> SecurityArea:
    """
    Validate a provisioning request.

    Raises:
        ValidationError: listing every violated field
    """
    if not isinstance(raw, Mapping):
        raise ValidationError.single("body", "must be a JSON object")
    values = _collect(raw)
    errors: List[FieldError] = []
    for required in ("name", "riskLevel", "latitude", "longitude"):
        if values.get(required) is None:
            errors.append(FieldError(required, "is required"))
            values.pop(required, None)
    values.setdefault("radiusMeters", 1000)
    clean = _check_fields(values, errors)
    if errors:
        raise ValidationError(errors, message="Invalid security area data")
    return SecurityArea(
        id=area_id,
        name=clean["name"],
        description=clean.get("description"),
        risk_level=clean["risk_level"],
        latitude=clean["latitude"],
        longitude=clean["longitude"],
        radius_meters=clean["radius_meters"],
        last_updated=now,
    )


def apply_area_updates(area: SecurityArea, raw: Any, now: datetime) -> SecurityArea:
    """
    Apply a partial update. Every accepted update, including a risk level
    set to its current value, refreshes ``last_updated``.

    Raises:
        ValidationError: listing every violated field
    """
    if not isinstance(raw, Mapping):
        raise ValidationError.single("body", "must be a JSON object")
    errors = [FieldError(f, "is read-only") for f in READ_ONLY_FIELDS if f in raw]
    clean = _check_fields(_collect(raw), errors)
    if errors:
        raise ValidationError(errors, message="Invalid security area data")
    return replace(area, last_updated=now, **clean)

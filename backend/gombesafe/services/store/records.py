"""Canonical records owned by the incident store."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Optional

from gombesafe.schemas.enums import IncidentStatus, IncidentType, RiskLevel, Severity


@dataclass(frozen=True)
class IncidentRecord:
    """A validated, deduplicated incident report."""

    id: str
    idempotency_key: str
    type: IncidentType
    location: str
    latitude: float
    longitude: float
    severity: Severity
    status: IncidentStatus
    reported_at: datetime
    description: Optional[str] = None
    is_anonymous: bool = True
    photo_ref: Optional[str] = None

    def with_status(self, status: IncidentStatus) -> "IncidentRecord":
        return replace(self, status=status)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "idempotency_key": self.idempotency_key,
            "type": self.type.value,
            "location": self.location,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "severity": self.severity.value,
            "status": self.status.value,
            "reported_at": self.reported_at.isoformat(),
            "description": self.description,
            "is_anonymous": self.is_anonymous,
            "photo_ref": self.photo_ref,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IncidentRecord":
        return cls(
            id=data["id"],
            idempotency_key=data["idempotency_key"],
            type=IncidentType(data["type"]),
            location=data["location"],
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            severity=Severity(data["severity"]),
            status=IncidentStatus(data["status"]),
            reported_at=datetime.fromisoformat(data["reported_at"]),
            description=data.get("description"),
            is_anonymous=bool(data.get("is_anonymous", True)),
            photo_ref=data.get("photo_ref"),
        )


@dataclass(frozen=True)
class SecurityArea:
    """A named zone with a centroid and radius used to group incidents."""

    id: str
    name: str
    risk_level: RiskLevel
    latitude: float
    longitude: float
    radius_meters: float
    last_updated: datetime
    description: Optional[str] = None
    # Derived from the aggregation engine, filled in on read
    incident_count: int = field(default=0, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "risk_level": self.risk_level.value,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "radius_meters": self.radius_meters,
            "last_updated": self.last_updated.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SecurityArea":
        return cls(
            id=data["id"],
            name=data["name"],
            description=data.get("description"),
            risk_level=RiskLevel(data["risk_level"]),
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            radius_meters=float(data["radius_meters"]),
            last_updated=datetime.fromisoformat(data["last_updated"]),
        )

    def geometry_differs(self, other: "SecurityArea") -> bool:
        return (
            self.latitude != other.latitude
            or self.longitude != other.longitude
            or self.radius_meters != other.radius_meters
        )

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Optional

from gombesafe.schemas.enums import IncidentStatus, IncidentType, Severity
from gombesafe.services.store.records import IncidentRecord


class IncidentBase(BaseModel):
    type: IncidentType
    location: str = Field(..., min_length=1, max_length=255)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    severity: Severity = Severity.MEDIUM
    description: Optional[str] = Field(None, max_length=2000)
    is_anonymous: bool = True
    photo_ref: Optional[str] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class IncidentRead(IncidentBase):
    id: str
    idempotency_key: str
    status: IncidentStatus
    reported_at: datetime

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True

    @classmethod
    def from_record(cls, record: IncidentRecord) -> "IncidentRead":
        return cls(
            id=record.id,
            idempotency_key=record.idempotency_key,
            type=record.type,
            location=record.location,
            latitude=record.latitude,
            longitude=record.longitude,
            severity=record.severity,
            status=record.status,
            reported_at=record.reported_at,
            description=record.description,
            is_anonymous=record.is_anonymous,
            photo_ref=record.photo_ref,
        )

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Optional

from gombesafe.schemas.enums import RiskLevel
from gombesafe.services.store.records import SecurityArea


class SecurityAreaBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = None
    risk_level: RiskLevel
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    radius_meters: float = Field(1000, gt=0)

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class SecurityAreaRead(SecurityAreaBase):
    id: str
    incident_count: int = 0
    last_updated: datetime

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True

    @classmethod
    def from_area(cls, area: SecurityArea) -> "SecurityAreaRead":
        return cls(
            id=area.id,
            name=area.name,
            description=area.description,
            risk_level=area.risk_level,
            latitude=area.latitude,
            longitude=area.longitude,
            radius_meters=area.radius_meters,
            incident_count=area.incident_count,
            last_updated=area.last_updated,
        )

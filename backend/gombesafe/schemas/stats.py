from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from typing import Any, Dict

from gombesafe.services.aggregation.engine import WindowStats


class WindowStatsRead(BaseModel):
    hours: int
    total: int
    active: int
    resolved: int
    by_type: Dict[str, int]
    by_severity: Dict[str, int]
    by_area: Dict[str, int]
    type_share: Dict[str, float]

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    @classmethod
    def from_stats(cls, stats: WindowStats) -> "WindowStatsRead":
        return cls(**stats.to_dict())


class SummaryRead(BaseModel):
    total_incidents: int
    active_incidents: int
    resolved_incidents: int
    recent_incidents: int
    weekly_incidents: int
    safe_zones: int
    high_risk_areas: int
    active_share: float

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    @classmethod
    def from_summary(cls, summary: Dict[str, Any]) -> "SummaryRead":
        return cls(**summary)


class RebuildRead(BaseModel):
    incidents: int
    security_areas: int
    generation: int

    class Config:
        alias_generator = to_camel
        populate_by_name = True

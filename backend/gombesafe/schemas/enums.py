from enum import Enum


class IncidentType(str, Enum):
    TERRORISM = "terrorism"
    BANDITRY = "banditry"
    CATTLE_RUSTLING = "cattle_rustling"
    KALARE_GANGS = "kalare_gangs"
    KIDNAPPING = "kidnapping"
    ARMED_ROBBERY = "armed_robbery"
    SUSPICIOUS_ACTIVITY = "suspicious_activity"
    THEFT = "theft"
    ROAD_ACCIDENT = "road_accident"
    TRAFFIC_INCIDENT = "traffic_incident"
    GANG_ACTIVITY = "gang_activity"
    PUBLIC_DISTURBANCE = "public_disturbance"
    COMMUNITY_ALERT = "community_alert"
    OTHER = "other"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class IncidentStatus(str, Enum):
    ACTIVE = "active"
    RESOLVED = "resolved"


class RiskLevel(str, Enum):
    SAFE = "safe"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

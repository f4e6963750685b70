from sqlalchemy import Column, String, Integer, Text, TIMESTAMP
from sqlalchemy.sql import func

from gombesafe.db.base import Base


class IncidentEvent(Base):
    """Append-only log of store events; replaying it rebuilds the store."""

    __tablename__ = "incident_event"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    event_type = Column(String(32), nullable=False, index=True)
    idempotency_key = Column(String(128), nullable=True, unique=True)
    incident_id = Column(String(36), nullable=True, index=True)
    area_id = Column(String(36), nullable=True, index=True)
    payload = Column(Text, nullable=False)
    recorded_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)

from sqlalchemy import Column, String, Integer, Text, Float

from gombesafe.db.base import Base


class SyncActionRow(Base):
    """A queued offline mutation awaiting replay."""

    __tablename__ = "sync_action"

    queued_id = Column(String(36), primary_key=True)
    sequence = Column(Integer, nullable=False, index=True)
    kind = Column(String(32), nullable=False)
    idempotency_key = Column(String(128), nullable=False, unique=True)
    depends_on = Column(String(128), nullable=True)
    payload = Column(Text, nullable=False)
    state = Column(String(16), nullable=False, index=True)
    attempts = Column(Integer, nullable=False, default=0)
    next_attempt_at = Column(Float, nullable=True)
    last_error = Column(Text, nullable=True)
    result = Column(Text, nullable=True)

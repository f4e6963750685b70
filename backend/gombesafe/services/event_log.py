"""Durable append-only event log backed by SQLAlchemy."""

import json
import logging
from typing import List

from sqlalchemy import func
from sqlalchemy.orm import sessionmaker

from gombesafe.models.incident_event import IncidentEvent
from gombesafe.schemas.enums import IncidentStatus
from gombesafe.services.store.events import (
    AreaProvisioned,
    AreaUpdated,
    IncidentCreated,
    StatusChanged,
    StoreEvent,
)
from gombesafe.services.store.records import IncidentRecord, SecurityArea

logger = logging.getLogger(__name__)


def encode_event(event: StoreEvent) -> IncidentEvent:
    if isinstance(event, IncidentCreated):
        return IncidentEvent(
            event_type=event.event_type,
            idempotency_key=event.record.idempotency_key,
            incident_id=event.record.id,
            payload=json.dumps(event.record.to_dict()),
        )
    if isinstance(event, StatusChanged):
        return IncidentEvent(
            event_type=event.event_type,
            incident_id=event.record.id,
            payload=json.dumps(
                {
                    "record": event.record.to_dict(),
                    "previous_status": event.previous_status.value,
                }
            ),
        )
    if isinstance(event, AreaProvisioned):
        return IncidentEvent(
            event_type=event.event_type,
            area_id=event.area.id,
            payload=json.dumps(event.area.to_dict()),
        )
    if isinstance(event, AreaUpdated):
        return IncidentEvent(
            event_type=event.event_type,
            area_id=event.area.id,
            payload=json.dumps(
                {"area": event.area.to_dict(), "previous": event.previous.to_dict()}
            ),
        )
    raise TypeError(f"Unsupported event: {event!r}")


def decode_event(row: IncidentEvent) -> StoreEvent:
    payload = json.loads(row.payload)
    if row.event_type == IncidentCreated.event_type:
        return IncidentCreated(record=IncidentRecord.from_dict(payload))
    if row.event_type == StatusChanged.event_type:
        return StatusChanged(
            record=IncidentRecord.from_dict(payload["record"]),
            previous_status=IncidentStatus(payload["previous_status"]),
        )
    if row.event_type == AreaProvisioned.event_type:
        return AreaProvisioned(area=SecurityArea.from_dict(payload))
    if row.event_type == AreaUpdated.event_type:
        return AreaUpdated(
            area=SecurityArea.from_dict(payload["area"]),
            previous=SecurityArea.from_dict(payload["previous"]),
        )
    raise ValueError(f"Unknown event type in log: {row.event_type}")


class EventLog:
    """
    Appends every store event in commit order.

    Subscribed first on the store's event bus: if the append fails the
    mutation is rolled back before any derived index has seen it.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def append(self, event: StoreEvent):
        db = self.session_factory()
        try:
            db.add(encode_event(event))
            db.commit()
        except Exception:
            db.rollback()
            logger.error(f"Failed to append {event.event_type} to event log", exc_info=True)
            raise
        finally:
            db.close()

    def load(self) -> List[StoreEvent]:
        db = self.session_factory()
        try:
            rows = db.query(IncidentEvent).order_by(IncidentEvent.seq.asc()).all()
            return [decode_event(row) for row in rows]
        finally:
            db.close()

    def count(self) -> int:
        db = self.session_factory()
        try:
            return db.query(func.count(IncidentEvent.seq)).scalar() or 0
        finally:
            db.close()

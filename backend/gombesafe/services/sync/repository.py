"""SQLAlchemy persistence for the offline sync queue."""

import json
import logging
from typing import List

from sqlalchemy.orm import sessionmaker

from gombesafe.models.sync_action import SyncActionRow
from gombesafe.services.sync.actions import ActionKind, QueuedAction, SyncState

logger = logging.getLogger(__name__)


def _to_row(action: QueuedAction) -> SyncActionRow:
    return SyncActionRow(
        queued_id=action.queued_id,
        sequence=action.sequence,
        kind=action.kind.value,
        idempotency_key=action.idempotency_key,
        depends_on=action.depends_on,
        payload=json.dumps(action.payload),
        state=action.state.value,
        attempts=action.attempts,
        next_attempt_at=action.next_attempt_at,
        last_error=action.last_error,
        result=json.dumps(action.result) if action.result is not None else None,
    )


def _from_row(row: SyncActionRow) -> QueuedAction:
    return QueuedAction(
        queued_id=row.queued_id,
        sequence=row.sequence,
        kind=ActionKind(row.kind),
        idempotency_key=row.idempotency_key,
        depends_on=row.depends_on,
        payload=json.loads(row.payload),
        state=SyncState(row.state),
        attempts=row.attempts,
        next_attempt_at=row.next_attempt_at,
        last_error=row.last_error,
        result=json.loads(row.result) if row.result else None,
    )


class SyncQueueRepository:
    """Stores every queued action so a restart resumes where it left off."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def save(self, action: QueuedAction):
        db = self.session_factory()
        try:
            db.merge(_to_row(action))
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def delete(self, queued_id: str):
        db = self.session_factory()
        try:
            db.query(SyncActionRow).filter(SyncActionRow.queued_id == queued_id).delete()
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def load_all(self) -> List[QueuedAction]:
        db = self.session_factory()
        try:
            rows = db.query(SyncActionRow).order_by(SyncActionRow.sequence.asc()).all()
            return [_from_row(row) for row in rows]
        finally:
            db.close()

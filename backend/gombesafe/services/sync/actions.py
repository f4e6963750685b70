from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from gombesafe.core.errors import DeadLetteredError


class SyncState(str, Enum):
    QUEUED = "queued"
    SUBMITTING = "submitting"
    ACKNOWLEDGED = "acknowledged"
    FAILED = "failed"
    DEAD_LETTERED = "dead_lettered"


class ActionKind(str, Enum):
    CREATE_INCIDENT = "create_incident"
    UPDATE_STATUS = "update_status"


@dataclass
class SyncAction:
    """A mutation recorded while offline, before it is queued."""

    kind: ActionKind
    payload: Dict[str, Any]
    idempotency_key: Optional[str] = None
    # Idempotency key of the create_incident action this one needs first
    depends_on: Optional[str] = None


@dataclass
class QueuedAction:
    queued_id: str
    sequence: int
    kind: ActionKind
    idempotency_key: str
    payload: Dict[str, Any]
    depends_on: Optional[str] = None
    state: SyncState = SyncState.QUEUED
    attempts: int = 0
    next_attempt_at: Optional[float] = None
    last_error: Optional[str] = None
    result: Optional[Dict[str, Any]] = field(default=None, repr=False)

    @property
    def retryable(self) -> bool:
        return self.state in (SyncState.QUEUED, SyncState.FAILED)

    @property
    def incident_id(self) -> Optional[str]:
        if self.result:
            return self.result.get("id")
        return self.payload.get("incidentId")

    def as_error(self) -> DeadLetteredError:
        return DeadLetteredError(self.queued_id, self.last_error or "unknown")

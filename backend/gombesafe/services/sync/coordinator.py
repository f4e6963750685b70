"""Offline queue replay with idempotent retries and dead-lettering."""

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from gombesafe.core.errors import (
    FieldError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from gombesafe.services.sync.actions import ActionKind, QueuedAction, SyncAction, SyncState
from gombesafe.services.sync.repository import SyncQueueRepository
from gombesafe.services.sync.transport import (
    RejectedSyncError,
    SyncTransport,
    TransientSyncError,
)

logger = logging.getLogger(__name__)


@dataclass
class ReplayReport:
    acknowledged: List[QueuedAction] = field(default_factory=list)
    failed: List[QueuedAction] = field(default_factory=list)
    deferred: List[QueuedAction] = field(default_factory=list)
    dead_lettered: List[QueuedAction] = field(default_factory=list)

    def summary(self) -> Dict[str, int]:
        return {
            "acknowledged": len(self.acknowledged),
            "failed": len(self.failed),
            "deferred": len(self.deferred),
            "dead_lettered": len(self.dead_lettered),
        }


class SyncCoordinator:
    """
    Replays mutations queued while offline, in enqueue order.

    Each action moves queued -> submitting -> acknowledged | failed. A failed
    action is retried on later replays after exponential backoff, always
    with the idempotency key it was queued with; after ``max_attempts`` it is
    dead-lettered and kept for manual resolution. A status update that
    depends on a queued creation waits until that creation is acknowledged.
    """

    def __init__(
        self,
        transport: SyncTransport,
        repository: Optional[SyncQueueRepository] = None,
        max_attempts: int = 5,
        backoff_base_seconds: float = 2.0,
        backoff_max_seconds: float = 300.0,
        clock: Optional[Callable[[], float]] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.transport = transport
        self.repository = repository
        self.max_attempts = max_attempts
        self.backoff_base_seconds = backoff_base_seconds
        self.backoff_max_seconds = backoff_max_seconds
        self.clock = clock or time.time
        self._lock = threading.RLock()
        self._actions: Dict[str, QueuedAction] = {}
        self._by_key: Dict[str, QueuedAction] = {}
        self._sequence = 0

        if self.repository is not None:
            self._load()

    def _load(self):
        for action in self.repository.load_all():
            if action.state == SyncState.SUBMITTING:
                # Interrupted mid-replay: outcome unknown, resend with the same key
                action.state = SyncState.QUEUED
                self.repository.save(action)
            self._actions[action.queued_id] = action
            self._by_key[action.idempotency_key] = action
            self._sequence = max(self._sequence, action.sequence)
        if self._actions:
            logger.info(f"Loaded {len(self._actions)} queued sync actions")

    def _persist(self, action: QueuedAction):
        if self.repository is not None:
            self.repository.save(action)

    # Queue management

    def enqueue(self, action: SyncAction) -> str:
        """
        Queue an action and return its queued id.

        Enqueuing an idempotency key that is already queued returns the
        existing queued id.

        Raises:
            ValidationError: if the action is malformed or depends on an
                unknown creation
        """
        kind = ActionKind(action.kind)
        with self._lock:
            key = action.idempotency_key or str(uuid.uuid4())
            existing = self._by_key.get(key)
            if existing is not None:
                return existing.queued_id

            payload = dict(action.payload or {})
            if kind == ActionKind.UPDATE_STATUS:
                self._check_status_action(payload, action.depends_on)

            self._sequence += 1
            queued = QueuedAction(
                queued_id=str(uuid.uuid4()),
                sequence=self._sequence,
                kind=kind,
                idempotency_key=key,
                payload=payload,
                depends_on=action.depends_on,
            )
            self._actions[queued.queued_id] = queued
            self._by_key[key] = queued
            self._persist(queued)
            logger.info(f"Queued {kind.value} action {queued.queued_id} (key {key})")
            return queued.queued_id

    def _check_status_action(self, payload: Dict, depends_on: Optional[str]):
        errors = []
        if not isinstance(payload.get("status"), str) or not payload["status"].strip():
            errors.append(FieldError("status", "is required"))
        if depends_on is None:
            if not payload.get("incidentId"):
                errors.append(FieldError("incidentId", "is required without dependsOn"))
        else:
            prerequisite = self._by_key.get(depends_on)
            if prerequisite is None or prerequisite.kind != ActionKind.CREATE_INCIDENT:
                errors.append(FieldError("dependsOn", "must reference a queued incident creation"))
        if errors:
            raise ValidationError(errors, message="Invalid sync action")

    def enqueue_report(self, report: Dict, idempotency_key: Optional[str] = None) -> str:
        return self.enqueue(
            SyncAction(ActionKind.CREATE_INCIDENT, report, idempotency_key=idempotency_key)
        )

    def enqueue_status_update(
        self,
        status: str,
        incident_id: Optional[str] = None,
        depends_on: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> str:
        payload = {"status": status}
        if incident_id:
            payload["incidentId"] = incident_id
        return self.enqueue(
            SyncAction(
                ActionKind.UPDATE_STATUS,
                payload,
                idempotency_key=idempotency_key,
                depends_on=depends_on,
            )
        )

    def get(self, queued_id: str) -> QueuedAction:
        with self._lock:
            action = self._actions.get(queued_id)
            if action is None:
                raise NotFoundError("SyncAction", queued_id)
            return action

    def actions(self) -> List[QueuedAction]:
        with self._lock:
            return sorted(self._actions.values(), key=lambda a: a.sequence)

    def pending(self) -> List[QueuedAction]:
        return [a for a in self.actions() if a.retryable]

    def dead_letters(self) -> List[QueuedAction]:
        return [a for a in self.actions() if a.state == SyncState.DEAD_LETTERED]

    def requeue(self, queued_id: str) -> QueuedAction:
        """Give a dead-lettered action a fresh set of attempts (same key)."""
        with self._lock:
            action = self.get(queued_id)
            if action.state != SyncState.DEAD_LETTERED:
                raise InvalidTransitionError(action.state.value, SyncState.QUEUED.value)
            action.state = SyncState.QUEUED
            action.attempts = 0
            action.next_attempt_at = None
            self._persist(action)
            logger.info(f"Dead-lettered action {queued_id} requeued")
            return action

    def discard(self, queued_id: str):
        """Drop a dead-lettered or acknowledged action from the queue."""
        with self._lock:
            action = self.get(queued_id)
            if action.state not in (SyncState.DEAD_LETTERED, SyncState.ACKNOWLEDGED):
                raise InvalidTransitionError(action.state.value, "discarded")
            dependents = [
                a for a in self._actions.values()
                if a.depends_on == action.idempotency_key and a.retryable
            ]
            if dependents:
                raise InvalidTransitionError(action.state.value, "discarded with pending dependents")
            del self._actions[queued_id]
            self._by_key.pop(action.idempotency_key, None)
            if self.repository is not None:
                self.repository.delete(queued_id)

    # Replay

    def backoff_seconds(self, attempts: int) -> float:
        return min(self.backoff_base_seconds * 2 ** (attempts - 1), self.backoff_max_seconds)

    def replay(self, now: Optional[float] = None) -> ReplayReport:
        """
        Attempt every due action once, in enqueue order.

        Returns:
            ReplayReport listing what was acknowledged, failed (will retry),
            deferred (waiting on a prerequisite or backoff) and dead-lettered
        """
        report = ReplayReport()
        with self._lock:
            now = self.clock() if now is None else now
            # Targets with an earlier update still outstanding
            blocked = set()
            for action in sorted(self._actions.values(), key=lambda a: a.sequence):
                if not action.retryable:
                    continue
                target = self._target_of(action)
                if target is not None and target in blocked:
                    logger.debug(
                        f"Deferring {action.queued_id}: an earlier update for {target} is pending"
                    )
                    report.deferred.append(action)
                    continue
                if action.next_attempt_at is not None and action.next_attempt_at > now:
                    report.deferred.append(action)
                    if target is not None:
                        blocked.add(target)
                    continue

                incident_id = None
                if action.kind == ActionKind.UPDATE_STATUS:
                    incident_id = self._resolve_target(action, report)
                    if incident_id is None:
                        if action.retryable:
                            blocked.add(target)
                        continue

                self._attempt(action, incident_id, now, report)
                if target is not None and action.retryable:
                    blocked.add(target)

        if report.acknowledged or report.failed or report.dead_lettered:
            logger.info(f"Sync replay finished: {report.summary()}")
        return report

    def _target_of(self, action: QueuedAction) -> Optional[str]:
        """The incident a status update applies to, or None for creations."""
        if action.kind != ActionKind.UPDATE_STATUS:
            return None
        if action.depends_on is None:
            return action.payload.get("incidentId")
        prerequisite = self._by_key.get(action.depends_on)
        if prerequisite is not None and prerequisite.state == SyncState.ACKNOWLEDGED:
            return prerequisite.incident_id
        return f"creation {action.depends_on}"

    def _resolve_target(self, action: QueuedAction, report: ReplayReport) -> Optional[str]:
        if action.depends_on is None:
            return action.payload.get("incidentId")

        prerequisite = self._by_key.get(action.depends_on)
        if prerequisite is None or prerequisite.state == SyncState.DEAD_LETTERED:
            self._dead_letter(action, f"prerequisite {action.depends_on} was dead-lettered", report)
            return None
        if prerequisite.state != SyncState.ACKNOWLEDGED:
            logger.debug(
                f"Deferring {action.queued_id}: waiting for creation {action.depends_on}"
            )
            report.deferred.append(action)
            return None
        return prerequisite.incident_id

    def _attempt(
        self,
        action: QueuedAction,
        incident_id: Optional[str],
        now: float,
        report: ReplayReport,
    ):
        action.state = SyncState.SUBMITTING
        self._persist(action)
        try:
            if action.kind == ActionKind.CREATE_INCIDENT:
                result = self.transport.create_incident(action.payload, action.idempotency_key)
            else:
                result = self.transport.update_status(incident_id, action.payload["status"])
        except TransientSyncError as e:
            self._record_failure(action, str(e), now, report)
            return
        except RejectedSyncError as e:
            self._dead_letter(action, f"rejected: {str(e)}", report)
            return
        except Exception as e:
            logger.error(
                f"Unexpected error replaying sync action {action.queued_id}: {str(e)}",
                exc_info=True,
            )
            self._record_failure(action, f"unexpected error: {str(e)}", now, report)
            return

        action.state = SyncState.ACKNOWLEDGED
        action.result = result
        action.last_error = None
        action.next_attempt_at = None
        self._persist(action)
        report.acknowledged.append(action)
        logger.info(f"Sync action {action.queued_id} acknowledged (incident {action.incident_id})")

    def _record_failure(self, action: QueuedAction, error: str, now: float, report: ReplayReport):
        action.attempts += 1
        action.last_error = error
        if action.attempts >= self.max_attempts:
            self._dead_letter(action, f"gave up after {action.attempts} attempts: {error}", report)
            return
        delay = self.backoff_seconds(action.attempts)
        action.state = SyncState.FAILED
        action.next_attempt_at = now + delay
        self._persist(action)
        report.failed.append(action)
        logger.warning(
            f"Sync action {action.queued_id} failed (attempt {action.attempts}/"
            f"{self.max_attempts}), retrying in {delay:.0f}s: {error}"
        )

    def _dead_letter(self, action: QueuedAction, reason: str, report: ReplayReport):
        action.state = SyncState.DEAD_LETTERED
        action.last_error = reason
        action.next_attempt_at = None
        self._persist(action)
        report.dead_lettered.append(action)
        logger.error(f"Sync action {action.queued_id} dead-lettered: {reason}")

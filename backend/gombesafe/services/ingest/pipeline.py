"""Ingest pipeline: validated, deduplicated, canonical incident records."""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, Optional

from gombesafe.core.errors import InvalidTransitionError, NotFoundError, ValidationError
from gombesafe.schemas.enums import IncidentStatus
from gombesafe.services.ingest.validation import normalize_enum_token, validate_report
from gombesafe.services.store.events import EventBus, IncidentCreated, StatusChanged
from gombesafe.services.store.records import IncidentRecord

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class IngestResult:
    """Outcome of a submission. ``created`` is False for a suppressed duplicate."""

    record: IncidentRecord
    created: bool

    @property
    def duplicate(self) -> bool:
        return not self.created


@dataclass(frozen=True)
class StatusChangeResult:
    record: IncidentRecord
    changed: bool


class IngestPipeline:
    """
    Turns untrusted submissions into canonical IncidentRecords.

    The pipeline holds the incident records and the idempotency ledger
    (idempotency key -> record id). It is not thread-safe on its own; the
    owning IncidentStore serializes every call through its write lock.
    """

    def __init__(
        self,
        bus: EventBus,
        clock: Optional[Callable[[], datetime]] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        self.bus = bus
        self.clock = clock or utc_now
        self.id_factory = id_factory or (lambda: str(uuid.uuid4()))
        self._records: Dict[str, IncidentRecord] = {}
        self._ids_by_key: Dict[str, str] = {}
        self._last_reported_at: Optional[datetime] = None

    def submit(self, raw: Any, idempotency_key: Any) -> IngestResult:
        """
        Validate and ingest a report with at-most-once semantics.

        Args:
            raw: Untrusted report mapping
            idempotency_key: Client-generated key, reused across retries

        Returns:
            IngestResult carrying the new record, or the original record
            when the key was already ingested

        Raises:
            ValidationError: listing every violated field
        """
        try:
            draft = validate_report(raw, idempotency_key)
        except ValidationError as e:
            logger.info(f"Rejected incident submission: {', '.join(e.fields)}")
            raise
        key = idempotency_key.strip()

        existing_id = self._ids_by_key.get(key)
        if existing_id is not None:
            existing = self._records[existing_id]
            logger.info(
                f"Duplicate submission suppressed for key {key} (incident {existing.id})"
            )
            return IngestResult(record=existing, created=False)

        record = IncidentRecord(
            id=self.id_factory(),
            idempotency_key=key,
            type=draft.type,
            location=draft.location,
            latitude=draft.latitude,
            longitude=draft.longitude,
            severity=draft.severity,
            status=draft.status,
            reported_at=self._next_timestamp(),
            description=draft.description,
            is_anonymous=draft.is_anonymous,
            photo_ref=draft.photo_ref,
        )
        self._store(record)
        try:
            self.bus.publish(IncidentCreated(record=record))
        except Exception:
            self._unstore(record)
            raise
        logger.info(
            f"Incident {record.id} created: {record.type.value} at {record.location} "
            f"({record.latitude}, {record.longitude})"
        )
        return IngestResult(record=record, created=True)

    def update_status(self, incident_id: str, new_status: Any) -> StatusChangeResult:
        """
        Move an incident between active and resolved.

        Setting the status it already has is a no-op, not an error.

        Raises:
            InvalidTransitionError: for any status other than active/resolved
            NotFoundError: if the incident does not exist
        """
        status = self._parse_status(incident_id, new_status)

        current = self._records.get(incident_id)
        if current is None:
            raise NotFoundError("Incident", incident_id)

        if current.status == status:
            return StatusChangeResult(record=current, changed=False)

        updated = current.with_status(status)
        self._records[incident_id] = updated
        try:
            self.bus.publish(StatusChanged(record=updated, previous_status=current.status))
        except Exception:
            self._records[incident_id] = current
            raise
        logger.info(
            f"Incident {incident_id} status {current.status.value} -> {status.value}"
        )
        return StatusChangeResult(record=updated, changed=True)

    def _parse_status(self, incident_id: str, new_status: Any) -> IncidentStatus:
        current = self._records.get(incident_id)
        current_value = current.status.value if current else None
        if not isinstance(new_status, str):
            raise InvalidTransitionError(current_value, repr(new_status))
        try:
            return IncidentStatus(normalize_enum_token(new_status))
        except ValueError:
            raise InvalidTransitionError(current_value, new_status)

    def restore(self, record: IncidentRecord):
        """Re-insert a record read back from the event log without publishing."""
        self._store(record)

    def restore_status(self, record: IncidentRecord):
        if record.id not in self._records:
            raise NotFoundError("Incident", record.id)
        self._records[record.id] = record

    def _store(self, record: IncidentRecord):
        self._records[record.id] = record
        self._ids_by_key[record.idempotency_key] = record.id
        if self._last_reported_at is None or record.reported_at > self._last_reported_at:
            self._last_reported_at = record.reported_at

    def _unstore(self, record: IncidentRecord):
        self._records.pop(record.id, None)
        self._ids_by_key.pop(record.idempotency_key, None)

    def _next_timestamp(self) -> datetime:
        now = self.clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        # reportedAt never goes backwards relative to insertion order
        if self._last_reported_at is not None and now < self._last_reported_at:
            return self._last_reported_at
        return now

    def get(self, incident_id: str) -> Optional[IncidentRecord]:
        return self._records.get(incident_id)

    def get_by_key(self, idempotency_key: str) -> Optional[IncidentRecord]:
        incident_id = self._ids_by_key.get(idempotency_key)
        return self._records.get(incident_id) if incident_id else None

    def iter_records(self) -> Iterable[IncidentRecord]:
        return self._records.values()

    def __len__(self) -> int:
        return len(self._records)

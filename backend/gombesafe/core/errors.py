"""Typed errors raised by the incident store and its components."""

from dataclasses import dataclass
from typing import Dict, List, Optional


class IncidentStoreError(Exception):
    """Base class for all store errors."""


@dataclass(frozen=True)
class FieldError:
    """A single violated constraint on an input field."""

    field: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "message": self.message}


class ValidationError(IncidentStoreError):
    """Bad input. Carries every violated field, not only the first one."""

    def __init__(self, errors: List[FieldError], message: str = "Invalid input"):
        self.errors = list(errors)
        self.message = message
        fields = ", ".join(e.field for e in self.errors)
        super().__init__(f"{message}: {fields}" if fields else message)

    @property
    def fields(self) -> List[str]:
        return [e.field for e in self.errors]

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationError":
        return cls([FieldError(field, message)])

    def to_dict(self) -> Dict:
        return {"message": self.message, "errors": [e.to_dict() for e in self.errors]}


class NotFoundError(IncidentStoreError):
    """A referenced record does not exist."""

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} with id {record_id} not found")


class InvalidTransitionError(IncidentStoreError):
    """A status or state-machine change that is not permitted."""

    def __init__(self, current: Optional[str], requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot transition from {current!r} to {requested!r}")


class DeadLetteredError(IncidentStoreError):
    """A queued sync action exhausted its retries or was permanently rejected."""

    def __init__(self, queued_id: str, reason: str):
        self.queued_id = queued_id
        self.reason = reason
        super().__init__(f"Sync action {queued_id} dead-lettered: {reason}")


class RebuildCancelled(IncidentStoreError):
    """A rebuild of the derived indexes was cancelled by its caller."""

"""In-memory incident store and its write path."""

from gombesafe.services.store.incident_store import IncidentStore

__all__ = ["IncidentStore"]

"""Transports used by the sync coordinator to reach the incident store."""

import logging
from typing import Any, Dict, Optional

import requests

from gombesafe.core.errors import InvalidTransitionError, NotFoundError, ValidationError
from gombesafe.services.store.incident_store import IncidentStore

logger = logging.getLogger(__name__)


class TransientSyncError(Exception):
    """The store could not be reached or failed temporarily; retry later."""


class RejectedSyncError(Exception):
    """The store refused the action; retrying the same action cannot succeed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class SyncTransport:
    """Interface: both calls return the incident as a mapping carrying ``id``."""

    def create_incident(self, payload: Dict[str, Any], idempotency_key: str) -> Dict[str, Any]:
        raise NotImplementedError

    def update_status(self, incident_id: str, status: str) -> Dict[str, Any]:
        raise NotImplementedError


class LocalTransport(SyncTransport):
    """Calls an in-process IncidentStore directly."""

    def __init__(self, store: IncidentStore):
        self.store = store

    def create_incident(self, payload: Dict[str, Any], idempotency_key: str) -> Dict[str, Any]:
        try:
            return self.store.submit(payload, idempotency_key).record.to_dict()
        except ValidationError as e:
            raise RejectedSyncError(str(e), status_code=400) from e

    def update_status(self, incident_id: str, status: str) -> Dict[str, Any]:
        try:
            return self.store.update_status(incident_id, status).record.to_dict()
        except NotFoundError as e:
            raise RejectedSyncError(str(e), status_code=404) from e
        except InvalidTransitionError as e:
            raise RejectedSyncError(str(e), status_code=409) from e


class HttpTransport(SyncTransport):
    """Talks to a running server's HTTP API."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Args:
            base_url: API root, e.g. ``http://localhost:8000/api``
            timeout: Request timeout in seconds
            session: Optional requests session (creates new if not provided)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        # No adapter-level retries: the coordinator owns retry and backoff
        self.session = session or requests.Session()

    def _send(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            # Connection errors and timeouts included
            raise TransientSyncError(f"{method} {url} failed: {str(e)}") from e

        if response.status_code == 429 or response.status_code >= 500:
            raise TransientSyncError(f"{method} {url} returned {response.status_code}")
        if response.status_code >= 400:
            raise RejectedSyncError(
                f"{method} {url} returned {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            # The server may have applied it; the resend carries the same key
            raise TransientSyncError(
                f"{method} {url} returned an unreadable body: {str(e)}"
            ) from e

    def create_incident(self, payload: Dict[str, Any], idempotency_key: str) -> Dict[str, Any]:
        body = dict(payload)
        body["idempotencyKey"] = idempotency_key
        return self._send(
            "POST",
            "/incidents",
            json=body,
            headers={"Idempotency-Key": idempotency_key},
        )

    def update_status(self, incident_id: str, status: str) -> Dict[str, Any]:
        return self._send("PATCH", f"/incidents/{incident_id}/status", json={"status": status})

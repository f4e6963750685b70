import pytest
import requests

from gombesafe.services.sync import HttpTransport, RejectedSyncError, TransientSyncError


class StubResponse:
    def __init__(self, status_code, body=None):
        self.status_code = status_code
        self._body = body or {}
        self.text = str(self._body)

    def json(self):
        return self._body


class StubSession:
    def __init__(self, outcome):
        self.outcome = outcome
        self.requests = []

    def request(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def test_create_sends_key_in_body_and_header():
    session = StubSession(StubResponse(201, {"id": "inc-1"}))
    transport = HttpTransport("http://server/api/", session=session)

    result = transport.create_incident({"type": "theft"}, "offline-1")

    assert result == {"id": "inc-1"}
    method, url, kwargs = session.requests[0]
    assert (method, url) == ("POST", "http://server/api/incidents")
    assert kwargs["json"]["idempotencyKey"] == "offline-1"
    assert kwargs["headers"] == {"Idempotency-Key": "offline-1"}


def test_status_update_path():
    session = StubSession(StubResponse(200, {"id": "inc-1", "status": "resolved"}))
    transport = HttpTransport("http://server/api", session=session)

    transport.update_status("inc-1", "resolved")

    method, url, kwargs = session.requests[0]
    assert (method, url) == ("PATCH", "http://server/api/incidents/inc-1/status")
    assert kwargs["json"] == {"status": "resolved"}


@pytest.mark.parametrize(
    "outcome",
    [
        requests.ConnectionError("refused"),
        requests.Timeout("slow"),
        StubResponse(503),
        StubResponse(429),
    ],
)
def test_transient_failures(outcome):
    transport = HttpTransport("http://server/api", session=StubSession(outcome))
    with pytest.raises(TransientSyncError):
        transport.create_incident({}, "k")


@pytest.mark.parametrize("status_code", [400, 404, 409])
def test_client_errors_are_rejections(status_code):
    transport = HttpTransport("http://server/api", session=StubSession(StubResponse(status_code)))
    with pytest.raises(RejectedSyncError) as exc_info:
        transport.update_status("inc-1", "resolved")
    assert exc_info.value.status_code == status_code


class HtmlResponse(StubResponse):
    def json(self):
        raise requests.JSONDecodeError("Expecting value", "<html>", 0)


def test_unreadable_success_body_is_transient():
    transport = HttpTransport("http://server/api", session=StubSession(HtmlResponse(200)))
    with pytest.raises(TransientSyncError):
        transport.create_incident({}, "k")

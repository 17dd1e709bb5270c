"""
Tests for the Google Calendar adapter with HTTP calls replaced by fakes.
"""

from typing import Any, Dict, List

import pendulum
import pytest
import requests
from google.auth.exceptions import RefreshError, TransportError

from barberbook.adapters import google_authenticator, google_calendar_client
from barberbook.adapters.google_authenticator import GoogleAuthenticator
from barberbook.adapters.google_calendar_client import GoogleCalendarClient
from barberbook.domain.exceptions import AuthenticationError, CalendarAPIError

TZ = "Europe/Madrid"


def _at(value: str):
    return pendulum.parse(value, tz=TZ)


class FakeResponse:
    """Small stand-in for requests.Response."""

    def __init__(self, status_code: int = 200, payload: Any = None):
        self.status_code = status_code
        self._payload = payload
        self.text = "" if payload is None else str(payload)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON")
        return self._payload


class StubAuthenticator:
    def get_access_token(self, force_refresh: bool = False) -> str:
        return "token-123"


class RecordingTransport:
    """Serves queued responses and records each call."""

    def __init__(self, responses: List[FakeResponse]):
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    def __call__(self, url, headers=None, timeout=None, params=None, json=None, data=None):
        self.calls.append(
            {
                "url": url,
                "headers": headers,
                "timeout": timeout,
                "params": dict(params or {}),
                "json": json,
                "data": data,
            }
        )
        return self.responses.pop(0)


def _client() -> GoogleCalendarClient:
    return GoogleCalendarClient(authenticator=StubAuthenticator(), timezone=TZ, timeout=5)


class TestListBusy:
    """Tests for reading busy intervals."""

    def test_follows_pagination(self, monkeypatch):
        transport = RecordingTransport([
            FakeResponse(payload={
                "items": [{
                    "id": "e1",
                    "status": "confirmed",
                    "start": {"dateTime": "2024-11-25T10:00:00+01:00"},
                    "end": {"dateTime": "2024-11-25T10:30:00+01:00"},
                }],
                "nextPageToken": "page-2",
            }),
            FakeResponse(payload={
                "items": [{
                    "id": "e2",
                    "start": {"dateTime": "2024-11-25T16:00:00+01:00"},
                    "end": {"dateTime": "2024-11-25T17:00:00+01:00"},
                }],
            }),
        ])
        monkeypatch.setattr(google_calendar_client.requests, "get", transport)

        busy = _client().list_busy("luis@example.com", _at("2024-11-25 00:00"), _at("2024-11-26 00:00"))

        assert [interval.start for interval in busy] == [_at("2024-11-25 10:00"), _at("2024-11-25 16:00")]
        assert len(transport.calls) == 2
        assert "pageToken" not in transport.calls[0]["params"]
        assert transport.calls[1]["params"]["pageToken"] == "page-2"

    def test_request_parameters(self, monkeypatch):
        transport = RecordingTransport([FakeResponse(payload={"items": []})])
        monkeypatch.setattr(google_calendar_client.requests, "get", transport)

        _client().list_busy("luis@example.com", _at("2024-11-25 00:00"), _at("2024-11-26 00:00"))

        call = transport.calls[0]
        assert call["url"].endswith("/calendars/luis%40example.com/events")
        assert call["headers"]["Authorization"] == "Bearer token-123"
        assert call["timeout"] == 5
        assert call["params"]["singleEvents"] == "true"
        assert call["params"]["orderBy"] == "startTime"
        assert call["params"]["timeMin"] == "2024-11-24T23:00:00Z"
        assert call["params"]["timeMax"] == "2024-11-25T23:00:00Z"

    def test_skips_cancelled_events(self, monkeypatch):
        transport = RecordingTransport([FakeResponse(payload={"items": [
            {
                "id": "cancelled",
                "status": "cancelled",
                "start": {"dateTime": "2024-11-25T09:00:00+01:00"},
                "end": {"dateTime": "2024-11-25T09:30:00+01:00"},
            },
            {
                "id": "ok",
                "summary": "Appointment: Jordi",
                "start": {"dateTime": "2024-11-25T12:00:00+01:00"},
                "end": {"dateTime": "2024-11-25T12:30:00+01:00"},
            },
        ]})])
        monkeypatch.setattr(google_calendar_client.requests, "get", transport)

        busy = _client().list_busy("cal", _at("2024-11-25 00:00"), _at("2024-11-26 00:00"))

        assert len(busy) == 1
        assert busy[0].summary == "Appointment: Jordi"

    def test_unparsable_event_fails_the_read(self, monkeypatch):
        """An event we cannot read must not leave its time looking free."""
        transport = RecordingTransport([FakeResponse(payload={"items": [
            {"id": "broken", "start": {"dateTime": "not a date"}, "end": {}},
            {
                "id": "ok",
                "start": {"dateTime": "2024-11-25T12:00:00+01:00"},
                "end": {"dateTime": "2024-11-25T12:30:00+01:00"},
            },
        ]})])
        monkeypatch.setattr(google_calendar_client.requests, "get", transport)

        with pytest.raises(CalendarAPIError, match="broken"):
            _client().list_busy("cal", _at("2024-11-25 00:00"), _at("2024-11-26 00:00"))

    def test_event_without_end_fails_the_read(self, monkeypatch):
        transport = RecordingTransport([FakeResponse(payload={"items": [
            {"id": "half", "start": {"dateTime": "2024-11-25T12:00:00+01:00"}},
        ]})])
        monkeypatch.setattr(google_calendar_client.requests, "get", transport)

        with pytest.raises(CalendarAPIError, match="half"):
            _client().list_busy("cal", _at("2024-11-25 00:00"), _at("2024-11-26 00:00"))

    def test_all_day_event_blocks_whole_days(self, monkeypatch):
        """The exclusive end date becomes midnight at the start of that day."""
        transport = RecordingTransport([FakeResponse(payload={"items": [
            {"id": "holiday", "start": {"date": "2024-11-25"}, "end": {"date": "2024-11-27"}},
        ]})])
        monkeypatch.setattr(google_calendar_client.requests, "get", transport)

        busy = _client().list_busy("cal", _at("2024-11-25 00:00"), _at("2024-11-26 00:00"))

        assert busy[0].start == _at("2024-11-25 00:00")
        assert busy[0].end == _at("2024-11-27 00:00")

    def test_error_status_raises(self, monkeypatch):
        transport = RecordingTransport([
            FakeResponse(status_code=404, payload={"error": {"code": 404, "message": "Not Found"}})
        ])
        monkeypatch.setattr(google_calendar_client.requests, "get", transport)

        with pytest.raises(CalendarAPIError, match="Not Found") as exc_info:
            _client().list_busy("cal", _at("2024-11-25 00:00"), _at("2024-11-26 00:00"))

        assert exc_info.value.status_code == 404

    def test_transport_error_raises(self, monkeypatch):
        def failing_get(*args, **kwargs):
            raise requests.exceptions.Timeout("timed out")

        monkeypatch.setattr(google_calendar_client.requests, "get", failing_get)

        with pytest.raises(CalendarAPIError, match="timed out"):
            _client().list_busy("cal", _at("2024-11-25 00:00"), _at("2024-11-26 00:00"))

    def test_unexpected_shape_raises(self, monkeypatch):
        transport = RecordingTransport([FakeResponse(payload={"items": "nope"})])
        monkeypatch.setattr(google_calendar_client.requests, "get", transport)

        with pytest.raises(CalendarAPIError):
            _client().list_busy("cal", _at("2024-11-25 00:00"), _at("2024-11-26 00:00"))


class TestInsertEvent:
    """Tests for event creation."""

    def test_insert_returns_event_id(self, monkeypatch):
        transport = RecordingTransport([FakeResponse(payload={"id": "evt-1"})])
        monkeypatch.setattr(google_calendar_client.requests, "post", transport)

        event_id = _client().insert_event(
            "cal",
            title="Appointment: Jordi",
            description="Service: barba",
            start=_at("2024-11-25 10:00"),
            end=_at("2024-11-25 10:30"),
        )

        assert event_id == "evt-1"
        call = transport.calls[0]
        assert call["params"] == {"sendUpdates": "none"}
        assert call["json"]["summary"] == "Appointment: Jordi"
        assert call["json"]["start"] == {"dateTime": "2024-11-25T10:00:00+01:00", "timeZone": TZ}
        assert call["json"]["end"] == {"dateTime": "2024-11-25T10:30:00+01:00", "timeZone": TZ}

    def test_insert_failure_is_reported(self, monkeypatch):
        transport = RecordingTransport([
            FakeResponse(status_code=429, payload={"error": {"message": "Rate Limit Exceeded"}})
        ])
        monkeypatch.setattr(google_calendar_client.requests, "post", transport)

        with pytest.raises(CalendarAPIError, match="Rate Limit"):
            _client().insert_event("cal", "t", "d", _at("2024-11-25 10:00"), _at("2024-11-25 10:30"))

    def test_missing_event_id_raises(self, monkeypatch):
        transport = RecordingTransport([FakeResponse(payload={})])
        monkeypatch.setattr(google_calendar_client.requests, "post", transport)

        with pytest.raises(CalendarAPIError):
            _client().insert_event("cal", "t", "d", _at("2024-11-25 10:00"), _at("2024-11-25 10:30"))


class FakeRefresh:
    """Replaces Credentials.refresh, handing out queued tokens or raising."""

    def __init__(self, tokens: List[str] = (), error: Exception = None):
        self.tokens = list(tokens)
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    def __call__(self, credentials, request):
        self.calls.append(
            {
                "refresh_token": credentials.refresh_token,
                "token_uri": credentials.token_uri,
                "timeout": getattr(request, "_timeout", None),
            }
        )
        if self.error is not None:
            raise self.error
        credentials.token = self.tokens.pop(0)
        credentials.expiry = None

    def as_method(self):
        def refresh(credentials, request):
            self(credentials, request)
        return refresh


class TestGoogleAuthenticator:
    """Tests for the refresh token exchange."""

    def _authenticator(self) -> GoogleAuthenticator:
        return GoogleAuthenticator(
            client_id="client", client_secret="secret", refresh_token="refresh", timeout=5
        )

    def test_token_is_cached(self, monkeypatch):
        refresh = FakeRefresh(tokens=["abc"])
        monkeypatch.setattr(google_authenticator.Credentials, "refresh", refresh.as_method())
        authenticator = self._authenticator()

        assert authenticator.get_access_token() == "abc"
        assert authenticator.get_access_token() == "abc"
        assert len(refresh.calls) == 1
        assert refresh.calls[0]["refresh_token"] == "refresh"
        assert refresh.calls[0]["token_uri"] == GoogleAuthenticator.TOKEN_ENDPOINT
        assert refresh.calls[0]["timeout"] == 5

    def test_force_refresh_requests_new_token(self, monkeypatch):
        refresh = FakeRefresh(tokens=["abc", "def"])
        monkeypatch.setattr(google_authenticator.Credentials, "refresh", refresh.as_method())
        authenticator = self._authenticator()

        authenticator.get_access_token()

        assert authenticator.get_access_token(force_refresh=True) == "def"
        assert len(refresh.calls) == 2

    def test_clear_cache_exchanges_again(self, monkeypatch):
        refresh = FakeRefresh(tokens=["abc", "def"])
        monkeypatch.setattr(google_authenticator.Credentials, "refresh", refresh.as_method())
        authenticator = self._authenticator()

        authenticator.get_access_token()
        authenticator.clear_cache()

        assert authenticator.get_access_token() == "def"

    def test_rejected_refresh_token_raises(self, monkeypatch):
        refresh = FakeRefresh(error=RefreshError("invalid_grant: Token has been expired or revoked."))
        monkeypatch.setattr(google_authenticator.Credentials, "refresh", refresh.as_method())

        with pytest.raises(AuthenticationError, match="expired or revoked"):
            self._authenticator().get_access_token()

    def test_transport_failure_raises(self, monkeypatch):
        refresh = FakeRefresh(error=TransportError("connection reset"))
        monkeypatch.setattr(google_authenticator.Credentials, "refresh", refresh.as_method())

        with pytest.raises(AuthenticationError, match="connection reset"):
            self._authenticator().get_access_token()

    def test_missing_credentials_raise_without_request(self, monkeypatch):
        refresh = FakeRefresh()
        monkeypatch.setattr(google_authenticator.Credentials, "refresh", refresh.as_method())

        with pytest.raises(AuthenticationError):
            GoogleAuthenticator(client_id="", client_secret="", refresh_token="").get_access_token()

        assert refresh.calls == []

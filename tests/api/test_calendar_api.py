"""Integration tests for the Google Calendar integration endpoints."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from voicenote_engine.main import app
from voicenote_engine.core.config import Settings, get_settings
from voicenote_engine.core.dependencies import get_calendar_client, get_db
from voicenote_engine.database import crud
from voicenote_engine.features.oauth_state import sign_state, verify_state
from voicenote_engine.interfaces.calendar_interface import (
    CalendarAPIError,
    CalendarInterface,
    OAuthTokens,
)

PREFIX = "/api/v1/integrations/google-calendar"
HEADERS = {"X-User-Id": "u1"}
RESULT_REDIRECT = "http://app.test/profile"
STATE_SECRET = "state-signing-secret-for-tests-0123456789"

@pytest.fixture
def db():
    connection = crud.connect(":memory:")
    crud.create_tables(connection)
    yield connection
    connection.close()

@pytest.fixture
def mock_calendar_client():
    return MagicMock(spec=CalendarInterface)

@pytest.fixture
def client(db, mock_calendar_client):
    settings = Settings(
        GOOGLE_OAUTH_RESULT_REDIRECT=RESULT_REDIRECT,
        OAUTH_STATE_SECRET=STATE_SECRET,
        user_timezone="Europe/Berlin",
        _env_file=None,
    )
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_calendar_client] = lambda: mock_calendar_client
    yield TestClient(app)
    app.dependency_overrides.clear()

def _signed(user_id, secret=STATE_SECRET, ttl_seconds=600, now=None):
    return sign_state(user_id, secret, ttl_seconds, now=now)

def test_connect_returns_auth_url_with_signed_user_state(client, mock_calendar_client):
    mock_calendar_client.authorization_url.return_value = "https://accounts.google.com/o/oauth2/auth?state=signed"

    response = client.get(f"{PREFIX}/connect", headers=HEADERS)

    assert response.status_code == 200
    assert response.json() == {"authUrl": "https://accounts.google.com/o/oauth2/auth?state=signed"}
    state = mock_calendar_client.authorization_url.call_args.kwargs["state"]
    assert state != "u1"
    assert verify_state(state, STATE_SECRET) == "u1"

def test_connect_failure_returns_500(client, mock_calendar_client):
    mock_calendar_client.authorization_url.side_effect = ValueError("client id missing")

    response = client.get(f"{PREFIX}/connect", headers=HEADERS)

    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to generate authorization URL"

def test_connect_requires_user(client):
    assert client.get(f"{PREFIX}/connect").status_code == 401

def test_callback_success_stores_tokens(client, db, mock_calendar_client):
    mock_calendar_client.exchange_code.return_value = OAuthTokens(
        access_token="at", refresh_token="rt", expiry_epoch_millis=1_700_000_000_000
    )

    response = client.get("/auth/google/callback", params={"code": "abc", "state": _signed("u1")}, follow_redirects=False)

    assert response.status_code == 303
    assert response.headers["location"] == f"{RESULT_REDIRECT}?success=google_calendar_connected"
    mock_calendar_client.exchange_code.assert_called_once_with("abc")
    credential = crud.get_calendar_credential(db, "u1")
    assert credential.connected is True
    assert credential.access_token == "at"
    assert credential.refresh_token == "rt"

def test_callback_provider_error(client, mock_calendar_client):
    response = client.get("/auth/google/callback", params={"error": "access_denied"}, follow_redirects=False)

    assert response.status_code == 303
    assert response.headers["location"] == f"{RESULT_REDIRECT}?error=google_calendar_connection_failed"
    mock_calendar_client.exchange_code.assert_not_called()

def test_callback_missing_parameters(client, mock_calendar_client):
    response = client.get("/auth/google/callback", params={"code": "abc"}, follow_redirects=False)

    assert response.headers["location"] == f"{RESULT_REDIRECT}?error=missing_oauth_parameters"
    mock_calendar_client.exchange_code.assert_not_called()

@pytest.mark.parametrize("state", [
    "u1",
    _signed("u1", secret="some-other-secret-that-is-long-enough-0123"),
    _signed("u1", now=datetime(2024, 5, 1, tzinfo=timezone.utc)),
])
def test_callback_rejects_unsigned_forged_or_expired_state(client, db, mock_calendar_client, state):
    response = client.get("/auth/google/callback", params={"code": "abc", "state": state}, follow_redirects=False)

    assert response.status_code == 303
    assert response.headers["location"] == f"{RESULT_REDIRECT}?error=google_calendar_connection_failed"
    mock_calendar_client.exchange_code.assert_not_called()
    assert crud.get_calendar_credential(db, "u1") is None

def test_callback_exchange_failure(client, db, mock_calendar_client):
    mock_calendar_client.exchange_code.side_effect = CalendarAPIError("invalid_grant", 400)

    response = client.get("/auth/google/callback", params={"code": "abc", "state": _signed("u1")}, follow_redirects=False)

    assert response.headers["location"] == f"{RESULT_REDIRECT}?error=google_calendar_connection_failed"
    assert crud.get_calendar_credential(db, "u1") is None

def test_status_and_disconnect(client, db):
    assert client.get(f"{PREFIX}/status", headers=HEADERS).json()["connected"] is False

    crud.save_calendar_credential(db, "u1", "at", "rt", 1_700_000_000_000)
    status = client.get(f"{PREFIX}/status", headers=HEADERS).json()
    assert status["connected"] is True
    assert status["expiry_epoch_millis"] == 1_700_000_000_000

    response = client.post(f"{PREFIX}/disconnect", headers=HEADERS)
    assert response.status_code == 200
    assert response.json() == {"success": True}

    assert client.get(f"{PREFIX}/status", headers=HEADERS).json()["connected"] is False
    credential = crud.get_calendar_credential(db, "u1")
    assert credential.access_token is None
    assert credential.refresh_token is None

def test_create_event_success(client, db, mock_calendar_client):
    crud.save_calendar_credential(db, "u1", "at", "rt", 1_700_000_000_000)
    mock_calendar_client.create_event.return_value = {"id": "evt_1", "htmlLink": "https://calendar.google.com/evt_1"}

    response = client.post(
        f"{PREFIX}/create-event",
        json={
            "summary": "Dentist",
            "startDateTime": "2024-05-02T15:00:00Z",
            "endDateTime": "2024-05-02T16:00:00Z",
        },
        headers=HEADERS,
    )

    assert response.status_code == 200
    event = response.json()["event"]
    assert event["id"] == "evt_1"
    assert event["htmlLink"] == "https://calendar.google.com/evt_1"
    assert event["start"]["timeZone"] == "Europe/Berlin"
    access_token, request = mock_calendar_client.create_event.call_args.args
    assert access_token == "at"
    assert request.summary == "Dentist"
    assert request.time_zone == "Europe/Berlin"

@pytest.mark.parametrize("payload", [
    {"startDateTime": "2024-05-02T15:00:00Z", "endDateTime": "2024-05-02T16:00:00Z"},
    {"summary": "Dentist", "endDateTime": "2024-05-02T16:00:00Z"},
    {"summary": "Dentist", "startDateTime": "not a date", "endDateTime": "2024-05-02T16:00:00Z"},
])
def test_create_event_missing_fields(client, payload, mock_calendar_client):
    response = client.post(f"{PREFIX}/create-event", json=payload, headers=HEADERS)

    assert response.status_code == 400
    assert response.json()["detail"] == "Missing required fields: summary, startDateTime, endDateTime"
    mock_calendar_client.create_event.assert_not_called()

def test_create_event_not_connected(client):
    response = client.post(
        f"{PREFIX}/create-event",
        json={"summary": "Dentist", "startDateTime": "2024-05-02T15:00:00Z", "endDateTime": "2024-05-02T16:00:00Z"},
        headers=HEADERS,
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Google Calendar not connected"

def test_create_event_api_failure(client, db, mock_calendar_client):
    crud.save_calendar_credential(db, "u1", "at", None, None)
    mock_calendar_client.create_event.side_effect = CalendarAPIError("backend error", 500)

    response = client.post(
        f"{PREFIX}/create-event",
        json={"summary": "Dentist", "startDateTime": "2024-05-02T15:00:00Z", "endDateTime": "2024-05-02T16:00:00Z"},
        headers=HEADERS,
    )

    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to create calendar event"

"""Unit tests for the Google Calendar client."""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from google.auth.exceptions import RefreshError
from googleapiclient.errors import HttpError

from voicenote_engine.core.config import Settings
from voicenote_engine.features.extraction_models import CalendarEventRequest
from voicenote_engine.features.google_calendar import (
    EVENT_REMINDERS,
    GoogleCalendarClient,
    build_event_body,
)
from voicenote_engine.interfaces.calendar_interface import CalendarAPIError, CalendarAuthError

@pytest.fixture
def settings():
    return Settings(
        GOOGLE_CLIENT_ID="client-id",
        GOOGLE_CLIENT_SECRET="client-secret",
        GOOGLE_OAUTH_REDIRECT_URI="http://localhost:8000/auth/google/callback",
        _env_file=None,
    )

@pytest.fixture
def client(settings):
    return GoogleCalendarClient(settings)

@pytest.fixture
def event_request():
    return CalendarEventRequest(
        summary="Dentist",
        description="Cleaning",
        start_time=datetime(2024, 8, 1, 10, tzinfo=timezone.utc),
        end_time=datetime(2024, 8, 1, 11, tzinfo=timezone.utc),
        time_zone="America/New_York",
    )

@pytest.fixture
def mock_google_build_service():
    """Fixture to mock googleapiclient.discovery.build."""
    with patch('voicenote_engine.features.google_calendar.build') as mock_build:
        yield mock_build

def _http_error(status_code):
    resp = MagicMock()
    resp.status = status_code
    resp.reason = "error"
    return HttpError(resp=resp, content=b'{"error": "x"}')

def test_build_event_body(event_request):
    body = build_event_body(event_request)
    assert body == {
        'summary': 'Dentist',
        'description': 'Cleaning',
        'start': {'dateTime': '2024-08-01T10:00:00+00:00', 'timeZone': 'America/New_York'},
        'end': {'dateTime': '2024-08-01T11:00:00+00:00', 'timeZone': 'America/New_York'},
        'reminders': EVENT_REMINDERS,
    }

def test_build_event_body_omits_missing_description(event_request):
    event_request.description = None
    assert 'description' not in build_event_body(event_request)

def test_event_reminders_are_email_day_before_and_popup():
    assert EVENT_REMINDERS['overrides'] == [
        {'method': 'email', 'minutes': 1440},
        {'method': 'popup', 'minutes': 30},
    ]

def test_create_event_success(client, event_request, mock_google_build_service):
    mock_service_instance = MagicMock()
    mock_events_resource = MagicMock()
    mock_insert_method = MagicMock()
    mock_google_build_service.return_value = mock_service_instance
    mock_service_instance.events.return_value = mock_events_resource
    mock_events_resource.insert.return_value = mock_insert_method
    mock_insert_method.execute.return_value = {'id': 'evt_123', 'htmlLink': 'http://calendar.google.com/evt_123'}

    created = client.create_event("access-token", event_request)

    assert created['id'] == 'evt_123'
    mock_events_resource.insert.assert_called_once_with(calendarId='primary', body=build_event_body(event_request))
    _, kwargs = mock_google_build_service.call_args
    assert kwargs['credentials'].token == "access-token"

def test_create_event_401_raises_auth_error(client, event_request, mock_google_build_service):
    mock_google_build_service.return_value.events.return_value.insert.return_value.execute.side_effect = _http_error(401)

    with pytest.raises(CalendarAuthError):
        client.create_event("expired", event_request)

def test_create_event_other_http_error_raises_api_error(client, event_request, mock_google_build_service):
    mock_google_build_service.return_value.events.return_value.insert.return_value.execute.side_effect = _http_error(400)

    with pytest.raises(CalendarAPIError) as exc_info:
        client.create_event("token", event_request)
    assert exc_info.value.status_code == 400

def test_authorization_url_requests_offline_consent(client):
    url = client.authorization_url(state="user-42")

    assert url.startswith("https://accounts.google.com/o/oauth2/auth")
    assert "access_type=offline" in url
    assert "prompt=consent" in url
    assert "state=user-42" in url
    assert "calendar.events" in url

def test_refresh_access_token_success(client):
    def fake_refresh(self, request):
        self.token = "new-access"
        self.expiry = datetime(2030, 1, 1, 0, 0)

    with patch('voicenote_engine.features.google_calendar.Credentials.refresh', autospec=True, side_effect=fake_refresh):
        refreshed = client.refresh_access_token("refresh-token")

    assert refreshed.access_token == "new-access"
    assert refreshed.expiry_epoch_millis == int(datetime(2030, 1, 1, tzinfo=timezone.utc).timestamp() * 1000)

def test_refresh_access_token_revoked(client):
    with patch('voicenote_engine.features.google_calendar.Credentials.refresh', side_effect=RefreshError("invalid_grant")):
        with pytest.raises(CalendarAuthError):
            client.refresh_access_token("revoked")

def test_exchange_code_returns_tokens(client):
    credentials = MagicMock()
    credentials.token = "access"
    credentials.refresh_token = "refresh"
    credentials.expiry = None
    flow = MagicMock()
    flow.credentials = credentials

    with patch('voicenote_engine.features.google_calendar.Flow.from_client_config', return_value=flow):
        tokens = client.exchange_code("auth-code")

    flow.fetch_token.assert_called_once_with(code="auth-code")
    assert tokens.access_token == "access"
    assert tokens.refresh_token == "refresh"
    assert tokens.expiry_epoch_millis > int(datetime.now(timezone.utc).timestamp() * 1000)

"""Google Calendar client: OAuth consent/exchange/refresh and event creation."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build, Resource
from googleapiclient.errors import HttpError

from voicenote_engine.core.config import Settings
from voicenote_engine.features.extraction_models import CalendarEventRequest
from voicenote_engine.interfaces.calendar_interface import (
    CalendarAPIError,
    CalendarAuthError,
    CalendarInterface,
    OAuthTokens,
    RefreshedToken,
)

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
DEFAULT_TOKEN_LIFETIME = timedelta(hours=1)

# Reminders attached to every created event: an email a day ahead and a popup 30 minutes before
EVENT_REMINDERS = {
    'useDefault': False,
    'overrides': [
        {'method': 'email', 'minutes': 24 * 60},
        {'method': 'popup', 'minutes': 30},
    ],
}

def _expiry_to_epoch_millis(expiry: Optional[datetime]) -> int:
    """google-auth reports expiry as naive UTC; fall back to one hour from now."""
    if expiry is None:
        expiry = datetime.now(timezone.utc) + DEFAULT_TOKEN_LIFETIME
    elif expiry.tzinfo is None:
        expiry = expiry.replace(tzinfo=timezone.utc)
    return int(expiry.timestamp() * 1000)

def build_event_body(event: CalendarEventRequest) -> Dict[str, Any]:
    """Builds the Calendar API v3 event resource for an insert call."""
    event_body = {
        'summary': event.summary,
        'description': event.description,
        'start': {
            'dateTime': event.start_time.isoformat(),
            'timeZone': event.time_zone,
        },
        'end': {
            'dateTime': event.end_time.isoformat(),
            'timeZone': event.time_zone,
        },
        'reminders': EVENT_REMINDERS,
    }
    # Filter out None values to avoid API errors for optional fields
    return {k: v for k, v in event_body.items() if v is not None}

class GoogleCalendarClient(CalendarInterface):
    """Implements CalendarInterface on top of google-api-python-client."""

    def __init__(self, settings: Settings):
        self.client_id = settings.GOOGLE_CLIENT_ID
        self.client_secret = settings.GOOGLE_CLIENT_SECRET
        self.redirect_uri = settings.GOOGLE_OAUTH_REDIRECT_URI
        self.scopes: List[str] = list(settings.GOOGLE_CALENDAR_API_SCOPES)
        if not self.client_id or not self.client_secret:
            logger.warning("Google OAuth client ID/secret not configured. Calendar connect will fail.")

    def _build_flow(self) -> Flow:
        client_config = {
            "web": {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "auth_uri": GOOGLE_AUTH_URI,
                "token_uri": GOOGLE_TOKEN_URI,
                "redirect_uris": [self.redirect_uri],
            }
        }
        # Consent and callback run on different Flow instances, so no PKCE verifier can be carried over
        return Flow.from_client_config(
            client_config,
            scopes=self.scopes,
            redirect_uri=self.redirect_uri,
            autogenerate_code_verifier=False,
        )

    def authorization_url(self, state: str) -> str:
        flow = self._build_flow()
        authorization_url, _ = flow.authorization_url(
            access_type='offline', # Request refresh token for offline access
            prompt='consent',      # Force consent screen to ensure refresh token is granted
            state=state,
        )
        logger.info("Generated Google Calendar consent URL.")
        return authorization_url

    def exchange_code(self, code: str) -> OAuthTokens:
        flow = self._build_flow()
        flow.fetch_token(code=code)
        credentials = flow.credentials
        logger.info(
            f"Google token exchange complete (refresh token present: {bool(credentials.refresh_token)})."
        )
        return OAuthTokens(
            access_token=credentials.token,
            refresh_token=credentials.refresh_token,
            expiry_epoch_millis=_expiry_to_epoch_millis(credentials.expiry),
        )

    def refresh_access_token(self, refresh_token: str) -> RefreshedToken:
        credentials = Credentials(
            token=None,
            refresh_token=refresh_token,
            token_uri=GOOGLE_TOKEN_URI,
            client_id=self.client_id,
            client_secret=self.client_secret,
            scopes=self.scopes,
        )
        try:
            credentials.refresh(GoogleAuthRequest())
        except RefreshError as e:
            logger.error(f"Error refreshing Google OAuth token: {e}. User may need to reconnect.", exc_info=True)
            raise CalendarAuthError(f"Failed to refresh Google Calendar access token: {e}") from e
        except TransportError as e:
            logger.error(f"Network error refreshing Google OAuth token: {e}", exc_info=True)
            raise CalendarAPIError(f"Network error during token refresh: {e}") from e
        return RefreshedToken(
            access_token=credentials.token,
            expiry_epoch_millis=_expiry_to_epoch_millis(credentials.expiry),
        )

    def create_event(self, access_token: str, event: CalendarEventRequest) -> Dict[str, Any]:
        """Adds an event to the user's primary Google Calendar.

        Args:
            access_token: The stored OAuth access token.
            event: Validated event details.

        Returns:
            The created event resource (id, htmlLink, start, end, ...).

        Raises:
            CalendarAuthError: If Google answers 401.
            CalendarAPIError: For any other HTTP or transport failure.
        """
        credentials = Credentials(token=access_token)
        event_body = build_event_body(event)
        logger.debug(f"Attempting to create Google Calendar event: {event_body}")
        try:
            service: Resource = build('calendar', 'v3', credentials=credentials, cache_discovery=False)
            created_event = service.events().insert(
                calendarId='primary',
                body=event_body
            ).execute()
        except HttpError as error:
            status_code = getattr(error.resp, 'status', None)
            if status_code == 401:
                logger.warning("Google Calendar rejected the access token (401).")
                raise CalendarAuthError("Google Calendar access token rejected") from error
            logger.error(f"An HTTP error occurred while creating Google Calendar event: {error}", exc_info=True)
            raise CalendarAPIError(f"Google Calendar API error: {error}", status_code=status_code) from error
        except (TransportError, OSError) as error:
            logger.error(f"Network error while creating Google Calendar event: {error}", exc_info=True)
            raise CalendarAPIError(f"Network error: {error}") from error

        logger.info(f"Successfully created Google Calendar event. ID: {created_event.get('id')}, Link: {created_event.get('htmlLink')}")
        return created_event

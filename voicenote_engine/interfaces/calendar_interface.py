"""Interface definition for the remote calendar collaborator.
"""

from typing import Any, Dict, Optional, Protocol, runtime_checkable

from pydantic import BaseModel

from voicenote_engine.features.extraction_models import CalendarEventRequest

class CalendarError(Exception):
    """Base error raised by calendar clients."""

class CalendarAuthError(CalendarError):
    """The access token was rejected (expired or revoked) or could not be refreshed."""

class CalendarAPIError(CalendarError):
    """Any other calendar failure: validation, rate limiting, network."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

class OAuthTokens(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    expiry_epoch_millis: Optional[int] = None

class RefreshedToken(BaseModel):
    access_token: str
    expiry_epoch_millis: int

@runtime_checkable
class CalendarInterface(Protocol):
    """A protocol for calendar backends (Google Calendar in production)."""

    def authorization_url(self, state: str) -> str:
        """Returns the consent URL; `state` identifies the user in the callback."""
        ...

    def exchange_code(self, code: str) -> OAuthTokens:
        """Exchanges an authorization code for tokens."""
        ...

    def refresh_access_token(self, refresh_token: str) -> RefreshedToken:
        """Obtains a new access token.

        Raises:
            CalendarAuthError: If the refresh token is no longer valid.
        """
        ...

    def create_event(self, access_token: str, event: CalendarEventRequest) -> Dict[str, Any]:
        """Creates an event in the user's primary calendar and returns the remote resource.

        Raises:
            CalendarAuthError: On an authorization failure (HTTP 401).
            CalendarAPIError: On any other failure.
        """
        ...

"""Best-effort calendar materialization for extracted calendar events.

`ensure_event` never raises: every failure is logged and reported in the
returned CalendarSyncResult so item persistence is never affected.
"""

import logging
import sqlite3

from voicenote_engine.database import crud
from voicenote_engine.features.extraction_models import (
    CalendarEventDetails,
    CalendarEventRequest,
    CalendarSyncResult,
)
from voicenote_engine.interfaces.calendar_interface import (
    CalendarAuthError,
    CalendarError,
    CalendarInterface,
)

logger = logging.getLogger(__name__)

NOT_CONNECTED = "not_connected"
UNAUTHORIZED = "unauthorized"
REFRESH_FAILED = "refresh_failed"
API_ERROR = "api_error"

class CalendarSync:
    """Creates remote events with the user's stored credential, refreshing it at most once."""

    def __init__(self, conn: sqlite3.Connection, calendar_client: CalendarInterface, time_zone: str):
        self.conn = conn
        self.calendar_client = calendar_client
        self.time_zone = time_zone

    def ensure_event(self, user_id: str, event: CalendarEventDetails) -> CalendarSyncResult:
        """Creates the event in the user's calendar if one is connected.

        Args:
            user_id: Owner of the credential.
            event: A validated calendar payload.

        Returns:
            created=True with the remote event id, or created=False and a reason
            (not_connected, unauthorized, refresh_failed, api_error).
        """
        request = CalendarEventRequest(
            summary=event.summary,
            description=event.description,
            start_time=event.start_time,
            end_time=event.end_time,
            time_zone=self.time_zone,
        )
        return self.create(user_id, request)

    def create(self, user_id: str, request: CalendarEventRequest) -> CalendarSyncResult:
        """Creates an already-built event request. Never raises."""
        try:
            return self._create_with_refresh(user_id, request)
        except Exception as e:
            logger.error(f"Unexpected error creating calendar event for user '{user_id}': {e}", exc_info=True)
            return CalendarSyncResult(created=False, reason=API_ERROR)

    def _create_with_refresh(self, user_id: str, request: CalendarEventRequest) -> CalendarSyncResult:
        credential = crud.get_calendar_credential(self.conn, user_id)
        if credential is None or not credential.connected or not credential.access_token:
            logger.info(f"Google Calendar not connected for user '{user_id}', skipping event creation.")
            return CalendarSyncResult(created=False, reason=NOT_CONNECTED)

        try:
            created_event = self.calendar_client.create_event(credential.access_token, request)
            return self._created(created_event)
        except CalendarAuthError:
            if not credential.refresh_token:
                logger.warning(f"Calendar authorization failed for user '{user_id}' and no refresh token is stored.")
                return CalendarSyncResult(created=False, reason=UNAUTHORIZED)
            logger.info(f"Calendar access token for user '{user_id}' rejected, refreshing once.")
        except CalendarError as e:
            logger.error(f"Calendar event creation failed for user '{user_id}': {e}")
            return CalendarSyncResult(created=False, reason=API_ERROR)

        try:
            refreshed = self.calendar_client.refresh_access_token(credential.refresh_token)
        except CalendarError as e:
            logger.error(f"Token refresh failed for user '{user_id}': {e}")
            return CalendarSyncResult(created=False, reason=REFRESH_FAILED)
        crud.update_calendar_access_token(self.conn, user_id, refreshed.access_token, refreshed.expiry_epoch_millis)

        try:
            created_event = self.calendar_client.create_event(refreshed.access_token, request)
        except CalendarAuthError:
            # At most one refresh per event
            logger.error(f"Calendar authorization failed again after refresh for user '{user_id}'.")
            return CalendarSyncResult(created=False, reason=UNAUTHORIZED)
        except CalendarError as e:
            logger.error(f"Calendar event creation failed after refresh for user '{user_id}': {e}")
            return CalendarSyncResult(created=False, reason=API_ERROR)
        return self._created(created_event)

    @staticmethod
    def _created(created_event: dict) -> CalendarSyncResult:
        return CalendarSyncResult(
            created=True,
            event_id=created_event.get('id'),
            html_link=created_event.get('htmlLink'),
        )

"""API Router for the Google Calendar integration (OAuth 2.0 flow and manual events)."""

import logging
import sqlite3
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import RedirectResponse

from voicenote_engine.api.models import (
    AuthUrlResponse,
    CalendarStatusResponse,
    CreateEventRequest,
    CreateEventResponse,
    SuccessResponse,
)
from voicenote_engine.core.config import Settings, get_settings
from voicenote_engine.core.dependencies import (
    get_calendar_client,
    get_calendar_sync,
    get_current_user_id,
    get_db,
)
from voicenote_engine.database import crud
from voicenote_engine.features.calendar_sync import NOT_CONNECTED, CalendarSync
from voicenote_engine.features.extraction_models import CalendarEventRequest
from voicenote_engine.features.extraction_service import parse_timestamp
from voicenote_engine.features.oauth_state import OAuthStateError, sign_state, state_secret, verify_state
from voicenote_engine.interfaces.calendar_interface import CalendarInterface

logger = logging.getLogger(__name__)

# Routes under the versioned API prefix
router = APIRouter()
# The OAuth redirect URI registered with Google is unprefixed
callback_router = APIRouter()

CONNECTED_FLAG = "google_calendar_connected"
CONNECTION_FAILED_FLAG = "google_calendar_connection_failed"
MISSING_PARAMETERS_FLAG = "missing_oauth_parameters"

def _result_redirect(settings: Settings, **query: str) -> RedirectResponse:
    return RedirectResponse(
        f"{settings.GOOGLE_OAUTH_RESULT_REDIRECT}?{urlencode(query)}",
        status_code=status.HTTP_303_SEE_OTHER,
    )

@router.get("/connect", response_model=AuthUrlResponse, name="google_calendar_connect")
async def google_calendar_connect(
    user_id: str = Depends(get_current_user_id),
    settings: Settings = Depends(get_settings),
    calendar_client: CalendarInterface = Depends(get_calendar_client),
):
    """Returns the Google consent URL. The user id travels in a signed `state`."""
    try:
        state = sign_state(user_id, state_secret(settings), settings.oauth_state_ttl_seconds)
        auth_url = calendar_client.authorization_url(state=state)
    except Exception as e:
        logger.error(f"Error generating Google Calendar auth URL: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to generate authorization URL")
    return AuthUrlResponse(auth_url=auth_url)

@callback_router.get("/auth/google/callback", name="google_callback")
async def google_oauth_callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    settings: Settings = Depends(get_settings),
    db: sqlite3.Connection = Depends(get_db),
    calendar_client: CalendarInterface = Depends(get_calendar_client),
):
    """Handles the callback from Google after user authorization."""
    logger.info(f"Received Google OAuth callback (code present: {bool(code)}, state present: {bool(state)}, error: {error}).")
    if error:
        logger.error(f"Google OAuth error: {error}")
        return _result_redirect(settings, error=CONNECTION_FAILED_FLAG)
    if not code or not state:
        return _result_redirect(settings, error=MISSING_PARAMETERS_FLAG)

    try:
        user_id = verify_state(state, state_secret(settings))
    except (OAuthStateError, ValueError) as e:
        logger.warning(f"Rejected Google OAuth callback: {e}")
        return _result_redirect(settings, error=CONNECTION_FAILED_FLAG)

    try:
        tokens = await run_in_threadpool(calendar_client.exchange_code, code)
        await run_in_threadpool(
            crud.save_calendar_credential,
            db,
            user_id,
            tokens.access_token,
            tokens.refresh_token,
            tokens.expiry_epoch_millis,
        )
    except Exception as e:
        logger.error(f"Error fetching or saving Google OAuth token: {e}", exc_info=True)
        return _result_redirect(settings, error=CONNECTION_FAILED_FLAG)

    logger.info(f"Google Calendar connected for user '{user_id}'.")
    return _result_redirect(settings, success=CONNECTED_FLAG)

@router.post("/disconnect", response_model=SuccessResponse)
async def google_calendar_disconnect(
    user_id: str = Depends(get_current_user_id),
    db: sqlite3.Connection = Depends(get_db),
):
    """Clears every stored credential field for the user."""
    try:
        await run_in_threadpool(crud.clear_calendar_credential, db, user_id)
    except sqlite3.Error:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to disconnect Google Calendar")
    return SuccessResponse()

@router.get("/status", response_model=CalendarStatusResponse)
async def google_calendar_status(
    user_id: str = Depends(get_current_user_id),
    db: sqlite3.Connection = Depends(get_db),
):
    try:
        credential = await run_in_threadpool(crud.get_calendar_credential, db, user_id)
    except sqlite3.Error:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to load calendar status")
    if credential is None:
        return CalendarStatusResponse(connected=False)
    return CalendarStatusResponse(
        connected=bool(credential.connected and credential.access_token),
        expiry_epoch_millis=credential.expiry_epoch_millis,
        updated_at=credential.updated_at,
    )

@router.post("/create-event", response_model=CreateEventResponse)
async def google_calendar_create_event(
    request: CreateEventRequest,
    user_id: str = Depends(get_current_user_id),
    settings: Settings = Depends(get_settings),
    calendar_sync: CalendarSync = Depends(get_calendar_sync),
):
    """Creates one event in the user's primary calendar from explicit times."""
    start_time = parse_timestamp(request.start_date_time)
    end_time = parse_timestamp(request.end_date_time)
    if not request.summary or start_time is None or end_time is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required fields: summary, startDateTime, endDateTime",
        )

    event_request = CalendarEventRequest(
        summary=request.summary,
        description=request.description,
        start_time=start_time,
        end_time=end_time,
        time_zone=request.time_zone or settings.user_timezone,
    )
    result = await run_in_threadpool(calendar_sync.create, user_id, event_request)
    if not result.created:
        if result.reason == NOT_CONNECTED:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Google Calendar not connected")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create calendar event")

    return CreateEventResponse(
        event={
            "id": result.event_id,
            "summary": event_request.summary,
            "start": {"dateTime": event_request.start_time.isoformat(), "timeZone": event_request.time_zone},
            "end": {"dateTime": event_request.end_time.isoformat(), "timeZone": event_request.time_zone},
            "htmlLink": result.html_link,
        }
    )

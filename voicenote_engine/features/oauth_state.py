"""Signed OAuth `state` values.

The Google consent round trip carries the user id in `state`. It is signed as a
short-lived JWT so the callback only ever stores tokens for the user who
started the flow.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from voicenote_engine.core.config import Settings

logger = logging.getLogger(__name__)

STATE_ALGORITHM = "HS256"
STATE_PURPOSE = "google_calendar_connect"

class OAuthStateError(Exception):
    """Raised when a callback `state` is missing, forged, or expired."""
    pass

def state_secret(settings: Settings) -> str:
    """Returns the signing key: OAUTH_STATE_SECRET, else the Google client secret."""
    secret = settings.OAUTH_STATE_SECRET or settings.GOOGLE_CLIENT_SECRET
    if not secret:
        raise ValueError("OAUTH_STATE_SECRET or GOOGLE_CLIENT_SECRET must be set to sign OAuth state.")
    return secret

def sign_state(user_id: str, secret: str, ttl_seconds: int, now: Optional[datetime] = None) -> str:
    issued_at = now or datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "purpose": STATE_PURPOSE,
        "iat": issued_at,
        "exp": issued_at + timedelta(seconds=ttl_seconds),
    }
    return jwt.encode(payload, secret, algorithm=STATE_ALGORITHM)

def verify_state(state: str, secret: str) -> str:
    """Returns the user id a `state` was signed for.

    Raises:
        OAuthStateError: If the signature, expiry or payload is invalid.
    """
    try:
        payload = jwt.decode(state, secret, algorithms=[STATE_ALGORITHM])
    except jwt.InvalidTokenError as e:
        raise OAuthStateError(f"Invalid OAuth state: {e}") from e

    user_id = payload.get("sub")
    if payload.get("purpose") != STATE_PURPOSE or not isinstance(user_id, str) or not user_id:
        raise OAuthStateError("OAuth state payload is not a calendar connect request.")
    return user_id

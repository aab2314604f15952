"""HTTP client that submits finalized transcripts to the processing endpoint."""

import logging
from typing import Any, Dict, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from voicenote_engine.core.config import Settings

logger = logging.getLogger(__name__)

class SubmissionError(Exception):
    """Raised when a transcript could not be submitted or the server rejected it."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

class ExtractionClient:
    """Posts transcripts to `POST /api/v1/process-voice` on behalf of one user."""

    PROCESS_VOICE_ENDPOINT = "/api/v1/process-voice"
    RETRY_MAX_ATTEMPTS = 3
    RETRY_WAIT_MIN = 0.5
    RETRY_WAIT_MAX = 4

    def __init__(
        self,
        base_url: str,
        user_id: str,
        timeout: float = 60.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        if not user_id:
            raise ValueError("A user id is required to submit transcripts.")
        self.user_id = user_id
        self.http_client = http_client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Settings, user_id: str) -> "ExtractionClient":
        return cls(
            base_url=settings.capture_api_base_url,
            user_id=user_id,
            timeout=settings.capture_request_timeout,
        )

    async def close(self):
        """Close the underlying HTTP client."""
        await self.http_client.aclose()
        logger.info("Extraction HTTP client closed.")

    # Connection failures only; a request that reached the server is never resent
    @retry(
        stop=stop_after_attempt(RETRY_MAX_ATTEMPTS),
        wait=wait_exponential(multiplier=1, min=RETRY_WAIT_MIN, max=RETRY_WAIT_MAX),
        retry=retry_if_exception_type(httpx.ConnectError),
        reraise=True
    )
    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        response = await self.http_client.post(
            self.PROCESS_VOICE_ENDPOINT,
            json=payload,
            headers={"X-User-Id": self.user_id, "Accept": "application/json"},
        )
        response.raise_for_status()
        return response

    async def submit(self, transcript: str) -> Dict[str, Any]:
        """Submits a finalized transcript and returns the `data` block of the response.

        Raises:
            SubmissionError: On network failure, a non-2xx status or an unsuccessful body.
        """
        payload = {"transcript": transcript, "userId": self.user_id}
        logger.info(f"Submitting transcript ({len(transcript)} chars) for user '{self.user_id}'.")
        try:
            response = await self._post(payload)
        except httpx.HTTPStatusError as e:
            logger.error(f"Processing endpoint returned {e.response.status_code}: {e.response.text}")
            raise SubmissionError("Failed to process transcription", status_code=e.response.status_code) from e
        except httpx.HTTPError as e:
            logger.error(f"Error submitting transcript: {e}", exc_info=True)
            raise SubmissionError(f"Failed to reach processing endpoint: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise SubmissionError("Processing endpoint returned invalid JSON") from e
        if not isinstance(body, dict) or not body.get("success"):
            raise SubmissionError("Processing endpoint reported failure")
        data = body.get("data") or {}
        logger.info(f"Processing result: {data.get('items_created', 0)} item(s) created.")
        return data

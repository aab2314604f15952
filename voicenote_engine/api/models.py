"""Pydantic models for API request and response bodies.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from voicenote_engine.database.models import ProcessedItem, Transcription
from voicenote_engine.features.extraction_models import SubmissionResult

class ProcessVoiceRequest(BaseModel):
    """Request body for submitting a finalized transcript.

    Fields are optional here so that missing values are answered with a 400
    by the router rather than a validation 422.
    """
    model_config = ConfigDict(populate_by_name=True)

    transcript: Optional[str] = Field(None, description="The finalized transcript text.")
    user_id: Optional[str] = Field(None, alias="userId", description="Must match the authenticated user.")

class ProcessVoiceResponse(BaseModel):
    success: bool = True
    data: SubmissionResult

class ItemsResponse(BaseModel):
    items: List[ProcessedItem]

class TranscriptionResponse(BaseModel):
    transcription: Transcription
    items: List[ProcessedItem] = Field(default_factory=list)

class AuthUrlResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    auth_url: str = Field(..., alias="authUrl", description="Google consent screen URL.")

class CalendarStatusResponse(BaseModel):
    connected: bool
    expiry_epoch_millis: Optional[int] = None
    updated_at: Optional[datetime] = None

class SuccessResponse(BaseModel):
    success: bool = True

class CreateEventRequest(BaseModel):
    """Manual event creation. Times are ISO 8601 strings."""
    model_config = ConfigDict(populate_by_name=True)

    summary: Optional[str] = None
    description: Optional[str] = None
    start_date_time: Optional[str] = Field(None, alias="startDateTime")
    end_date_time: Optional[str] = Field(None, alias="endDateTime")
    time_zone: Optional[str] = Field(None, alias="timeZone")

class CreateEventResponse(BaseModel):
    success: bool = True
    event: Dict[str, Any]

"""Pydantic models for the voice note extraction feature."""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, Field

from voicenote_engine.database.models import ItemType

# --- Raw model output (untrusted, loosely typed) ---

class RawCalendarEvent(BaseModel):
    """Calendar payload as the model produced it. Nothing here is parsed yet."""
    summary: Any = None
    description: Any = None
    start_time: Any = Field(default=None, validation_alias=AliasChoices("startTime", "start_time"))
    end_time: Any = Field(default=None, validation_alias=AliasChoices("endTime", "end_time"))
    duration_minutes: Any = Field(default=None, validation_alias=AliasChoices("durationMinutes", "duration_minutes"))

class RawItem(BaseModel):
    """One entry of the model's `items` array before validation."""
    category: Optional[str] = None
    content: Optional[str] = None
    item_type: Optional[str] = Field(default=None, validation_alias=AliasChoices("itemType", "item_type"))
    # A bad value in one of these costs only that field, never the item
    due_date: Any = Field(default=None, validation_alias=AliasChoices("dueDate", "due_date"))
    confidence: Any = None
    calendar_event: Any = Field(default=None, validation_alias=AliasChoices("calendarEvent", "calendar_event"))

# --- Validated candidates ---

class CalendarEventDetails(BaseModel):
    """A validated calendar payload: both times parsed, start strictly before end."""
    summary: str
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    duration_minutes: int

class ItemCandidate(BaseModel):
    """An extracted item that passed validation and is ready to persist."""
    category: str
    content: str
    item_type: ItemType
    due_date: Optional[datetime] = None
    confidence: float = Field(ge=0.0, le=1.0)
    calendar_event: Optional[CalendarEventDetails] = None

class ExtractionConfig(BaseModel):
    """Explicit configuration for one ExtractionService instance."""
    model: Optional[str] = None # None means the LLM backend's own default
    temperature: float = 0.3
    max_tokens: int = 1000
    default_timezone: str = "America/New_York"
    past_window_days: int = 30
    future_window_days: int = 365
    default_event_minutes: int = 60
    fallback_category: str = "General"
    fallback_confidence: float = 0.1
    default_confidence: float = 0.5

# --- Calendar requests ---

class CalendarEventRequest(BaseModel):
    """What the calendar collaborator needs to create one event."""
    summary: str
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    time_zone: str

class CalendarSyncResult(BaseModel):
    created: bool
    reason: Optional[str] = None # not_connected | unauthorized | refresh_failed | api_error
    event_id: Optional[str] = None
    html_link: Optional[str] = None

# --- Orchestrator output ---

class CreatedItem(BaseModel):
    processed_item_id: int
    category: str
    category_id: int
    content: str
    item_type: ItemType
    due_date: Optional[datetime] = None
    confidence: float
    calendar_event_id: Optional[str] = None
    calendar_sync: Optional[CalendarSyncResult] = None

class SubmissionResult(BaseModel):
    transcription_id: int
    items_created: int
    items: List[CreatedItem]

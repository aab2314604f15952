"""Pydantic models representing database objects.

These models are used for data validation and structuring when interacting
with the database CRUD operations.
"""

from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

class TranscriptionStatus(str, Enum):
    processing = "processing"
    completed = "completed"
    error = "error"

class ItemType(str, Enum):
    reminder = "reminder"
    task = "task"
    note = "note"
    contact_action = "contact_action"
    calendar_event = "calendar_event"

# === Transcriptions ===

class TranscriptionCreate(BaseModel):
    """Model for creating a new transcription record.

    New records always start in the 'processing' status.
    """
    user_id: str
    original_text: str

class Transcription(TranscriptionCreate):
    """Model representing a transcription retrieved from the database."""
    id: int
    processed_text: Optional[str] = None
    status: TranscriptionStatus = TranscriptionStatus.processing
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True # Enable ORM mode for compatibility with database rows

# === Categories ===

class Category(BaseModel):
    """A user-owned category. Names are unique per user."""
    id: int
    user_id: str
    name: str
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

# === Processed Items ===

class ProcessedItemCreate(BaseModel):
    """Model for inserting one validated candidate as a processed item."""
    user_id: str
    transcription_id: int
    category_id: Optional[int] = None
    content: str
    item_type: ItemType
    due_date: Optional[datetime] = None

class ProcessedItem(ProcessedItemCreate):
    """Model representing a processed item retrieved from the database."""
    id: int
    calendar_event_id: Optional[str] = None
    completed: bool = False
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

# === Calendar Credentials ===

class CalendarCredential(BaseModel):
    """Per-user Google Calendar OAuth credential.

    A disconnected user keeps the row with every token field cleared.
    """
    user_id: str
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expiry_epoch_millis: Optional[int] = None
    connected: bool = False
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

# === Chat Message Model ===

class ChatMessage(BaseModel):
    """Model representing a single message in a chat conversation.

    Used for interacting with LLM chat endpoints.
    """
    role: str = Field(..., description="The role of the message sender (e.g., 'user', 'assistant', 'system').")
    content: str = Field(..., description="The content of the message.")

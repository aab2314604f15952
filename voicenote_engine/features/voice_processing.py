"""Orchestrates one transcript submission: record, extract, resolve, persist, sync.

Per-candidate failures are isolated (logged and skipped). Only a failure of
the extraction step itself marks the transcription as 'error' and is raised
to the caller.
"""

import logging
import sqlite3
from datetime import datetime, timezone
from typing import List, Optional

from voicenote_engine.database import crud
from voicenote_engine.database.models import (
    ItemType,
    ProcessedItemCreate,
    TranscriptionCreate,
    TranscriptionStatus,
)
from voicenote_engine.features.calendar_sync import CalendarSync
from voicenote_engine.features.category_resolver import resolve_category
from voicenote_engine.features.extraction_models import (
    CreatedItem,
    ItemCandidate,
    SubmissionResult,
)
from voicenote_engine.features.extraction_service import ExtractionService

logger = logging.getLogger(__name__)

PROCESSED_TEXT_SEPARATOR = "; "

class VoiceProcessingError(Exception):
    """Raised when the extraction step fails; the transcription is marked 'error'."""

    def __init__(self, message: str, transcription_id: Optional[int] = None):
        super().__init__(message)
        self.transcription_id = transcription_id

def submit_transcript(
    conn: sqlite3.Connection,
    user_id: str,
    transcript: str,
    extraction_service: ExtractionService,
    calendar_sync: Optional[CalendarSync] = None,
    user_timezone: Optional[str] = None,
    now_utc: Optional[datetime] = None,
) -> SubmissionResult:
    """Processes a finalized transcript into stored items.

    Args:
        conn: An active sqlite3 database connection.
        user_id: The submitting user; every row written is scoped to them.
        transcript: The finalized transcript text.
        extraction_service: Produces validated candidates (never fewer than one).
        calendar_sync: Optional best-effort calendar materialization.
        user_timezone: IANA zone used to interpret spoken times.
        now_utc: Override for the current instant (defaults to now).

    Returns:
        The transcription id and the items that were successfully created.

    Raises:
        ValueError: If the transcript is empty or whitespace only.
        VoiceProcessingError: If the extraction step raised.
        sqlite3.Error: If the transcription row itself cannot be created.
    """
    text = (transcript or "").strip()
    if not text:
        raise ValueError("Transcript must not be empty")
    now_utc = now_utc or datetime.now(timezone.utc)

    transcription_id = crud.create_transcription(conn, TranscriptionCreate(user_id=user_id, original_text=text))

    try:
        category_names = crud.get_category_names(conn, user_id)
        candidates = extraction_service.extract(text, category_names, now_utc, user_timezone)
    except Exception as e:
        logger.error(f"Error during processing of transcription {transcription_id}: {e}", exc_info=True)
        try:
            crud.update_transcription_status(conn, user_id, transcription_id, TranscriptionStatus.error)
        except sqlite3.Error:
            logger.error(f"Could not mark transcription {transcription_id} as 'error'.")
        raise VoiceProcessingError("Failed to process voice note", transcription_id=transcription_id) from e

    created_items: List[CreatedItem] = []
    for index, candidate in enumerate(candidates):
        created = _persist_candidate(conn, user_id, transcription_id, candidate, calendar_sync)
        if created is None:
            logger.warning(f"Skipped candidate {index + 1}/{len(candidates)} of transcription {transcription_id}.")
            continue
        created_items.append(created)

    processed_text = PROCESSED_TEXT_SEPARATOR.join(item.content for item in created_items)
    try:
        crud.update_transcription_status(
            conn, user_id, transcription_id, TranscriptionStatus.completed, processed_text=processed_text
        )
    except sqlite3.Error:
        logger.error(f"Items were stored but transcription {transcription_id} could not be marked completed.")

    logger.info(
        f"Transcription {transcription_id}: created {len(created_items)} of {len(candidates)} item(s) for user '{user_id}'."
    )
    return SubmissionResult(
        transcription_id=transcription_id,
        items_created=len(created_items),
        items=created_items,
    )

def _persist_candidate(
    conn: sqlite3.Connection,
    user_id: str,
    transcription_id: int,
    candidate: ItemCandidate,
    calendar_sync: Optional[CalendarSync],
) -> Optional[CreatedItem]:
    """Resolves the category and inserts one item. Returns None if either step fails."""
    try:
        category_id = resolve_category(conn, user_id, candidate.category)
    except Exception as e:
        logger.error(f"Error resolving category '{candidate.category}': {e}", exc_info=True)
        return None

    try:
        item_id = crud.create_processed_item(
            conn,
            ProcessedItemCreate(
                user_id=user_id,
                transcription_id=transcription_id,
                category_id=category_id,
                content=candidate.content,
                item_type=candidate.item_type,
                due_date=candidate.due_date,
            ),
        )
    except Exception as e:
        logger.error(f"Error creating processed item '{candidate.content[:50]}': {e}", exc_info=True)
        return None

    created = CreatedItem(
        processed_item_id=item_id,
        category=candidate.category,
        category_id=category_id,
        content=candidate.content,
        item_type=candidate.item_type,
        due_date=candidate.due_date,
        confidence=candidate.confidence,
    )

    if calendar_sync is not None and candidate.item_type is ItemType.calendar_event and candidate.calendar_event:
        sync_result = calendar_sync.ensure_event(user_id, candidate.calendar_event)
        created.calendar_sync = sync_result
        if sync_result.created and sync_result.event_id:
            try:
                crud.set_processed_item_calendar_event_id(conn, user_id, item_id, sync_result.event_id)
                created.calendar_event_id = sync_result.event_id
            except sqlite3.Error:
                logger.error(f"Calendar event {sync_result.event_id} created but not linked to item {item_id}.")
        elif not sync_result.created:
            logger.info(f"Calendar event for item {item_id} not created ({sync_result.reason}).")

    return created

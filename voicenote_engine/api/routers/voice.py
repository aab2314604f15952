"""API Router for voice note submission and the resulting items."""

import sqlite3
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.concurrency import run_in_threadpool

from voicenote_engine.api.models import (
    ItemsResponse,
    ProcessVoiceRequest,
    ProcessVoiceResponse,
    TranscriptionResponse,
)
from voicenote_engine.core.config import Settings, get_settings
from voicenote_engine.core.dependencies import (
    get_calendar_sync,
    get_current_user_id,
    get_db,
    get_extraction_service,
)
from voicenote_engine.database import crud
from voicenote_engine.features.calendar_sync import CalendarSync
from voicenote_engine.features.extraction_service import ExtractionService
from voicenote_engine.features.voice_processing import VoiceProcessingError, submit_transcript

logger = logging.getLogger(__name__)
router = APIRouter()

@router.post("/process-voice", response_model=ProcessVoiceResponse)
async def process_voice_endpoint(
    request: ProcessVoiceRequest,
    user_id: str = Depends(get_current_user_id),
    db: sqlite3.Connection = Depends(get_db),
    extraction_service: ExtractionService = Depends(get_extraction_service),
    calendar_sync: CalendarSync = Depends(get_calendar_sync),
    settings: Settings = Depends(get_settings),
):
    """Turns a finalized transcript into stored, categorized items."""
    transcript = (request.transcript or "").strip()
    if not transcript or not request.user_id or request.user_id != user_id:
        logger.warning(f"Rejected process-voice request for user '{user_id}' (empty transcript or user mismatch).")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid request data")

    logger.info(f"Processing voice note for user '{user_id}' ({len(transcript)} chars).")
    try:
        result = await run_in_threadpool(
            submit_transcript,
            conn=db,
            user_id=user_id,
            transcript=transcript,
            extraction_service=extraction_service,
            calendar_sync=calendar_sync,
            user_timezone=settings.user_timezone,
        )
    except VoiceProcessingError as e:
        logger.error(f"Voice processing failed for transcription {e.transcription_id}: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to process voice note")
    except sqlite3.Error as e:
        logger.error(f"Database error while processing voice note: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to process voice note")

    return ProcessVoiceResponse(success=True, data=result)

@router.get("/items", response_model=ItemsResponse)
async def list_items_endpoint(
    limit: int = Query(100, gt=0, le=500),
    user_id: str = Depends(get_current_user_id),
    db: sqlite3.Connection = Depends(get_db),
):
    """Lists the user's processed items, newest first."""
    try:
        items = await run_in_threadpool(crud.list_processed_items, db, user_id, limit)
    except sqlite3.Error:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to load items")
    return ItemsResponse(items=items)

@router.get("/transcriptions/{transcription_id}", response_model=TranscriptionResponse)
async def get_transcription_endpoint(
    transcription_id: int,
    user_id: str = Depends(get_current_user_id),
    db: sqlite3.Connection = Depends(get_db),
):
    """Returns one transcription with the items extracted from it."""
    try:
        transcription = await run_in_threadpool(crud.get_transcription, db, user_id, transcription_id)
        if transcription is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transcription not found")
        items = await run_in_threadpool(crud.list_items_for_transcription, db, user_id, transcription_id)
    except sqlite3.Error:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to load transcription")
    return TranscriptionResponse(transcription=transcription, items=items)

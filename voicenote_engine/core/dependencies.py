"""Dependencies module for Voice Note Engine.

This module defines FastAPI dependencies used throughout the application.
"""

from fastapi import Depends, Header, HTTPException, status
import sqlite3
from pathlib import Path
import logging

from voicenote_engine.core.config import Settings, get_settings
from voicenote_engine.database import crud
from voicenote_engine.features.calendar_sync import CalendarSync
from voicenote_engine.features.extraction_models import ExtractionConfig
from voicenote_engine.features.extraction_service import ExtractionService
from voicenote_engine.features.google_calendar import GoogleCalendarClient
from voicenote_engine.interfaces.calendar_interface import CalendarInterface
from voicenote_engine.interfaces.llm_interface import LLMInterface
from voicenote_engine.llms.ollama_client import OllamaClient
from voicenote_engine.llms.openai_client import OpenAIClient

logger = logging.getLogger(__name__)

# --- Singleton instances for services (cached per application lifecycle) ---
_db_connection: sqlite3.Connection | None = None
_llm_service: LLMInterface | None = None
_extraction_service: ExtractionService | None = None
_calendar_client: CalendarInterface | None = None
# ---------------------------------------------------------------------------

def database_path(settings: Settings) -> Path:
    """Resolves the SQLite file path from `database_url`."""
    db_url = settings.database_url
    if not db_url.startswith("sqlite:///"):
        raise ValueError(f"Invalid database_url format: {db_url}. Expected 'sqlite:///path/to/db.sqlite'")
    return Path(db_url[len("sqlite:///"):]).resolve()

# --- Database Dependency ---

def get_db() -> sqlite3.Connection:
    """Provides the singleton database connection instance.

    The connection is opened on first use and tables are created if missing.
    """
    global _db_connection
    if _db_connection is None:
        db_path = database_path(get_settings())
        db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            _db_connection = crud.connect(db_path)
            crud.create_tables(_db_connection)
            logger.info(f"Database connection established at {db_path}.")
        except sqlite3.Error as e:
            logger.critical(f"Failed to establish DB connection in get_db: {e}", exc_info=True)
            _db_connection = None
            raise RuntimeError(f"Database connection could not be established: {e}") from e
    return _db_connection

def close_db() -> None:
    global _db_connection
    if _db_connection is not None:
        _db_connection.close()
        _db_connection = None
        logger.info("Database connection closed.")

# --- Request identity ---

def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Reads the authenticated user's id from the `X-User-Id` header."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return x_user_id.strip()

# --- Service Dependencies (Manual Singleton Pattern with Injected Settings) ---

def get_llm_service(settings: Settings = Depends(get_settings)) -> LLMInterface:
    """Provides the singleton LLMInterface instance for the configured provider."""
    global _llm_service
    if _llm_service is None:
        provider = settings.llm_provider.lower()
        if provider == "ollama":
            logger.info(f"Creating OllamaClient singleton instance for host: {settings.ollama_base_url}")
            _llm_service = OllamaClient(settings=settings)
        elif provider == "openai":
            logger.info(f"Creating OpenAIClient singleton instance for model: {settings.OPENAI_CHAT_MODEL_NAME}")
            _llm_service = OpenAIClient(settings=settings)
        else:
            raise ValueError(f"Unsupported llm_provider: {settings.llm_provider}")
    return _llm_service

def build_extraction_config(settings: Settings) -> ExtractionConfig:
    return ExtractionConfig(
        temperature=settings.extraction_temperature,
        max_tokens=settings.extraction_max_tokens,
        default_timezone=settings.user_timezone,
    )

def get_extraction_service(
    settings: Settings = Depends(get_settings),
    llm: LLMInterface = Depends(get_llm_service),
) -> ExtractionService:
    """Provides the singleton ExtractionService instance."""
    global _extraction_service
    if _extraction_service is None:
        logger.info("Creating ExtractionService singleton instance.")
        _extraction_service = ExtractionService(llm=llm, config=build_extraction_config(settings))
    return _extraction_service

def get_calendar_client(settings: Settings = Depends(get_settings)) -> CalendarInterface:
    """Provides the singleton Google Calendar client."""
    global _calendar_client
    if _calendar_client is None:
        logger.info("Creating GoogleCalendarClient singleton instance.")
        _calendar_client = GoogleCalendarClient(settings=settings)
    return _calendar_client

def get_calendar_sync(
    settings: Settings = Depends(get_settings),
    db: sqlite3.Connection = Depends(get_db),
    calendar_client: CalendarInterface = Depends(get_calendar_client),
) -> CalendarSync:
    """Provides a CalendarSync bound to the shared connection (cheap, built per request)."""
    return CalendarSync(conn=db, calendar_client=calendar_client, time_zone=settings.user_timezone)

def reset_singletons():
    """Resets service singletons that depend on configurable settings."""
    global _llm_service, _extraction_service, _calendar_client

    reset_needed = False
    if _llm_service is not None:
        logger.info("Resetting LLM service singleton due to potential settings change.")
        _llm_service = None
        reset_needed = True

    # Extraction service holds the LLM and a config snapshot
    if _extraction_service is not None:
        logger.info("Resetting ExtractionService singleton due to potential settings change.")
        _extraction_service = None
        reset_needed = True

    if _calendar_client is not None:
        logger.info("Resetting calendar client singleton due to potential settings change.")
        _calendar_client = None
        reset_needed = True

    if not reset_needed:
        logger.info("reset_singletons called, but no relevant services needed resetting.")

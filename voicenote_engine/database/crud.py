"""CRUD (Create, Read, Update, Delete) operations for the database.

This module contains functions for interacting with the database tables.
Every function takes the owning user_id and filters on it; there is no
cross-user access path.
"""

import sqlite3
import logging
from typing import List, Optional
from datetime import datetime, timezone
from pathlib import Path

from voicenote_engine.database.schema import ALL_TABLES
from voicenote_engine.database.models import (
    CalendarCredential,
    Category,
    ProcessedItem,
    ProcessedItemCreate,
    Transcription,
    TranscriptionCreate,
    TranscriptionStatus,
)

logger = logging.getLogger(__name__)

def connect(db_path: str | Path) -> sqlite3.Connection:
    """Opens a connection configured the way the rest of the app expects.

    Rows come back as sqlite3.Row and foreign keys are enforced. The
    connection may be shared with FastAPI's threadpool workers.
    """
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn

def create_tables(conn: sqlite3.Connection) -> None:
    """Creates all tables on an open connection if they don't exist."""
    try:
        with conn:
            cursor = conn.cursor()
            for table_sql in ALL_TABLES:
                cursor.execute(table_sql)
    except sqlite3.Error as e:
        logger.error(f"Error creating database tables: {e}", exc_info=True)
        raise

def initialize_database(db_path: str | Path) -> None:
    """Initializes the database by creating tables if they don't exist.

    Args:
        db_path: The path to the SQLite database file.
    """
    # Ensure parent directory exists
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = connect(db_path)
    try:
        create_tables(conn)
        logger.info(f"Database tables initialized successfully at {db_path}.")
    finally:
        conn.close()

def _to_iso(value: Optional[datetime]) -> Optional[str]:
    """Serializes a datetime as an ISO 8601 UTC string for storage."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()

# --- Transcriptions ---

def create_transcription(conn: sqlite3.Connection, transcription: TranscriptionCreate) -> int:
    """Creates a new transcription record in the 'processing' status.

    Args:
        conn: An active sqlite3 database connection.
        transcription: The transcription data to create.

    Returns:
        The ID of the created transcription record.

    Raises:
        sqlite3.Error: For database errors during insertion.
    """
    sql = """INSERT INTO transcriptions (user_id, original_text, status)
             VALUES (?, ?, ?)"""
    try:
        with conn:
            cursor = conn.cursor()
            cursor.execute(sql, (transcription.user_id, transcription.original_text, TranscriptionStatus.processing.value))
            transcription_id = cursor.lastrowid
        logger.info(f"Created transcription {transcription_id} for user '{transcription.user_id}'")
        return transcription_id
    except sqlite3.Error as e:
        logger.error(f"Error creating transcription for user '{transcription.user_id}': {e}", exc_info=True)
        raise

def get_transcription(conn: sqlite3.Connection, user_id: str, transcription_id: int) -> Optional[Transcription]:
    """Retrieves a transcription owned by the given user.

    Returns:
        The transcription object or None if not found.

    Raises:
        sqlite3.Error: For database errors during query.
    """
    sql = "SELECT * FROM transcriptions WHERE id = ? AND user_id = ?"
    try:
        row = conn.execute(sql, (transcription_id, user_id)).fetchone()
        if row is None:
            logger.debug(f"Transcription {transcription_id} not found for user '{user_id}'.")
            return None
        return Transcription.model_validate(dict(row))
    except sqlite3.Error as e:
        logger.error(f"Error retrieving transcription {transcription_id}: {e}", exc_info=True)
        raise

def update_transcription_status(
    conn: sqlite3.Connection,
    user_id: str,
    transcription_id: int,
    status: TranscriptionStatus,
    processed_text: Optional[str] = None,
) -> None:
    """Moves a transcription to a new status, optionally storing the processed text.

    Raises:
        sqlite3.Error: For database errors during update.
    """
    sql = """UPDATE transcriptions
             SET status = ?, processed_text = COALESCE(?, processed_text), updated_at = CURRENT_TIMESTAMP
             WHERE id = ? AND user_id = ?"""
    try:
        with conn:
            conn.execute(sql, (status.value, processed_text, transcription_id, user_id))
        logger.debug(f"Transcription {transcription_id} marked '{status.value}'.")
    except sqlite3.Error as e:
        logger.error(f"Error updating transcription {transcription_id} to '{status.value}': {e}", exc_info=True)
        raise

# --- Categories ---

def get_category_names(conn: sqlite3.Connection, user_id: str) -> List[str]:
    """Returns the names of all categories owned by the user, oldest first."""
    sql = "SELECT name FROM categories WHERE user_id = ? ORDER BY id"
    try:
        rows = conn.execute(sql, (user_id,)).fetchall()
        return [row["name"] for row in rows]
    except sqlite3.Error as e:
        logger.error(f"Error listing categories for user '{user_id}': {e}", exc_info=True)
        raise

def get_category_by_name(conn: sqlite3.Connection, user_id: str, name: str) -> Optional[Category]:
    """Looks up a category by exact (case-sensitive) name for the user."""
    sql = "SELECT * FROM categories WHERE user_id = ? AND name = ?"
    try:
        row = conn.execute(sql, (user_id, name)).fetchone()
        return Category.model_validate(dict(row)) if row else None
    except sqlite3.Error as e:
        logger.error(f"Error retrieving category '{name}' for user '{user_id}': {e}", exc_info=True)
        raise

def create_category(conn: sqlite3.Connection, user_id: str, name: str, description: Optional[str] = None) -> Category:
    """Creates a category, or returns the existing one with the same name.

    The insert is an upsert against UNIQUE(user_id, name), so two concurrent
    submissions proposing the same new name end up sharing one row.

    Raises:
        sqlite3.Error: For database errors during insertion.
    """
    sql = """INSERT INTO categories (user_id, name, description)
             VALUES (?, ?, ?)
             ON CONFLICT (user_id, name) DO NOTHING"""
    try:
        with conn:
            cursor = conn.cursor()
            cursor.execute(sql, (user_id, name, description))
            created = cursor.rowcount == 1
        category = get_category_by_name(conn, user_id, name)
        if category is None:
            # Only reachable if the row vanished between insert and select
            raise sqlite3.IntegrityError(f"Category '{name}' missing after upsert for user '{user_id}'")
        if created:
            logger.info(f"Created category '{name}' (id {category.id}) for user '{user_id}'")
        return category
    except sqlite3.Error as e:
        logger.error(f"Error creating category '{name}' for user '{user_id}': {e}", exc_info=True)
        raise

# --- Processed Items ---

def create_processed_item(conn: sqlite3.Connection, item: ProcessedItemCreate) -> int:
    """Inserts a processed item and returns its ID.

    Raises:
        sqlite3.Error: For database errors during insertion.
    """
    sql = """INSERT INTO processed_items (user_id, transcription_id, category_id, content, item_type, due_date, completed)
             VALUES (?, ?, ?, ?, ?, ?, FALSE)"""
    try:
        with conn:
            cursor = conn.cursor()
            cursor.execute(
                sql,
                (
                    item.user_id,
                    item.transcription_id,
                    item.category_id,
                    item.content,
                    item.item_type.value,
                    _to_iso(item.due_date),
                ),
            )
            item_id = cursor.lastrowid
        logger.debug(f"Created processed item {item_id} ({item.item_type.value}) for transcription {item.transcription_id}")
        return item_id
    except sqlite3.Error as e:
        logger.error(f"Error creating processed item for transcription {item.transcription_id}: {e}", exc_info=True)
        raise

def get_processed_item(conn: sqlite3.Connection, user_id: str, item_id: int) -> Optional[ProcessedItem]:
    sql = "SELECT * FROM processed_items WHERE id = ? AND user_id = ?"
    try:
        row = conn.execute(sql, (item_id, user_id)).fetchone()
        return ProcessedItem.model_validate(dict(row)) if row else None
    except sqlite3.Error as e:
        logger.error(f"Error retrieving processed item {item_id}: {e}", exc_info=True)
        raise

def list_processed_items(conn: sqlite3.Connection, user_id: str, limit: int = 100) -> List[ProcessedItem]:
    """Lists the user's processed items, newest first."""
    sql = "SELECT * FROM processed_items WHERE user_id = ? ORDER BY created_at DESC, id DESC LIMIT ?"
    try:
        rows = conn.execute(sql, (user_id, limit)).fetchall()
        return [ProcessedItem.model_validate(dict(row)) for row in rows]
    except sqlite3.Error as e:
        logger.error(f"Error listing processed items for user '{user_id}': {e}", exc_info=True)
        raise

def list_items_for_transcription(conn: sqlite3.Connection, user_id: str, transcription_id: int) -> List[ProcessedItem]:
    """Lists the items extracted from one transcription, in creation order."""
    sql = "SELECT * FROM processed_items WHERE user_id = ? AND transcription_id = ? ORDER BY id"
    try:
        rows = conn.execute(sql, (user_id, transcription_id)).fetchall()
        return [ProcessedItem.model_validate(dict(row)) for row in rows]
    except sqlite3.Error as e:
        logger.error(f"Error listing items for transcription {transcription_id}: {e}", exc_info=True)
        raise

def set_processed_item_calendar_event_id(conn: sqlite3.Connection, user_id: str, item_id: int, calendar_event_id: str) -> None:
    sql = """UPDATE processed_items SET calendar_event_id = ?, updated_at = CURRENT_TIMESTAMP
             WHERE id = ? AND user_id = ?"""
    try:
        with conn:
            conn.execute(sql, (calendar_event_id, item_id, user_id))
    except sqlite3.Error as e:
        logger.error(f"Error linking calendar event to processed item {item_id}: {e}", exc_info=True)
        raise

# --- Calendar Credentials ---

def get_calendar_credential(conn: sqlite3.Connection, user_id: str) -> Optional[CalendarCredential]:
    sql = """SELECT user_id, access_token, refresh_token, expiry_epoch_millis, connected, updated_at
             FROM calendar_credentials WHERE user_id = ?"""
    try:
        row = conn.execute(sql, (user_id,)).fetchone()
        return CalendarCredential.model_validate(dict(row)) if row else None
    except sqlite3.Error as e:
        logger.error(f"Error retrieving calendar credential for user '{user_id}': {e}", exc_info=True)
        raise

def save_calendar_credential(
    conn: sqlite3.Connection,
    user_id: str,
    access_token: str,
    refresh_token: Optional[str],
    expiry_epoch_millis: Optional[int],
) -> None:
    """Stores tokens from an authorization-code exchange and marks the user connected.

    A missing refresh token keeps the previously stored one.
    """
    sql = """INSERT INTO calendar_credentials (user_id, access_token, refresh_token, expiry_epoch_millis, connected)
             VALUES (?, ?, ?, ?, TRUE)
             ON CONFLICT (user_id) DO UPDATE SET
                 access_token = excluded.access_token,
                 refresh_token = COALESCE(excluded.refresh_token, calendar_credentials.refresh_token),
                 expiry_epoch_millis = excluded.expiry_epoch_millis,
                 connected = TRUE,
                 updated_at = CURRENT_TIMESTAMP"""
    try:
        with conn:
            conn.execute(sql, (user_id, access_token, refresh_token, expiry_epoch_millis))
        logger.info(f"Saved Google Calendar credential for user '{user_id}'")
    except sqlite3.Error as e:
        logger.error(f"Error saving calendar credential for user '{user_id}': {e}", exc_info=True)
        raise

def update_calendar_access_token(conn: sqlite3.Connection, user_id: str, access_token: str, expiry_epoch_millis: int) -> None:
    """Persists a refreshed access token. Concurrent refreshes are last-write-wins."""
    sql = """UPDATE calendar_credentials
             SET access_token = ?, expiry_epoch_millis = ?, updated_at = CURRENT_TIMESTAMP
             WHERE user_id = ?"""
    try:
        with conn:
            conn.execute(sql, (access_token, expiry_epoch_millis, user_id))
        logger.debug(f"Updated Google Calendar access token for user '{user_id}'")
    except sqlite3.Error as e:
        logger.error(f"Error updating calendar access token for user '{user_id}': {e}", exc_info=True)
        raise

def clear_calendar_credential(conn: sqlite3.Connection, user_id: str) -> None:
    """Disconnects the calendar: every stored credential field is cleared."""
    sql = """UPDATE calendar_credentials
             SET access_token = NULL, refresh_token = NULL, expiry_epoch_millis = NULL,
                 connected = FALSE, updated_at = CURRENT_TIMESTAMP
             WHERE user_id = ?"""
    try:
        with conn:
            conn.execute(sql, (user_id,))
        logger.info(f"Cleared Google Calendar credential for user '{user_id}'")
    except sqlite3.Error as e:
        logger.error(f"Error clearing calendar credential for user '{user_id}': {e}", exc_info=True)
        raise

"""Database schema definitions for Voice Note Engine.

This module defines the SQL statements for creating database tables.
Every table carries a user_id column; all queries are scoped by it.
"""

CREATE_TRANSCRIPTIONS_TABLE = """
CREATE TABLE IF NOT EXISTS transcriptions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    original_text TEXT NOT NULL,
    processed_text TEXT,
    status TEXT NOT NULL DEFAULT 'processing' CHECK(status IN ('processing', 'completed', 'error')),
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""

CREATE_CATEGORIES_TABLE = """
CREATE TABLE IF NOT EXISTS categories (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    description TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (user_id, name) -- Exact, case-sensitive match per user
);
"""

CREATE_PROCESSED_ITEMS_TABLE = """
CREATE TABLE IF NOT EXISTS processed_items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    transcription_id INTEGER NOT NULL,
    category_id INTEGER,
    content TEXT NOT NULL,
    item_type TEXT NOT NULL CHECK(item_type IN ('reminder', 'task', 'note', 'contact_action', 'calendar_event')),
    due_date TIMESTAMP,
    calendar_event_id TEXT,
    completed BOOLEAN DEFAULT FALSE NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (transcription_id) REFERENCES transcriptions (id),
    FOREIGN KEY (category_id) REFERENCES categories (id)
);
"""

CREATE_CALENDAR_CREDENTIALS_TABLE = """
CREATE TABLE IF NOT EXISTS calendar_credentials (
    user_id TEXT PRIMARY KEY,
    access_token TEXT,
    refresh_token TEXT,
    expiry_epoch_millis INTEGER,
    connected BOOLEAN DEFAULT FALSE NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""

CREATE_PROCESSED_ITEMS_USER_INDEX = """
CREATE INDEX IF NOT EXISTS idx_processed_items_user ON processed_items (user_id, created_at);
"""

ALL_TABLES = [
    CREATE_TRANSCRIPTIONS_TABLE,
    CREATE_CATEGORIES_TABLE,
    CREATE_PROCESSED_ITEMS_TABLE,
    CREATE_CALENDAR_CREDENTIALS_TABLE,
    CREATE_PROCESSED_ITEMS_USER_INDEX,
]

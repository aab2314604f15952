"""Maps an extracted item's category name to a per-user category record."""

import logging
import sqlite3

from voicenote_engine.database import crud

logger = logging.getLogger(__name__)

def auto_description(category_name: str) -> str:
    return f"Auto-created category for {category_name.lower()}"

def resolve_category(conn: sqlite3.Connection, user_id: str, category_name: str) -> int:
    """Returns the ID of the user's category with this exact name, creating it if needed.

    Args:
        conn: An active sqlite3 database connection.
        user_id: Owner of the category.
        category_name: Proposed name; matched exactly (case-sensitive).

    Returns:
        The category ID.

    Raises:
        ValueError: If the name is empty.
        sqlite3.Error: For database errors.
    """
    name = category_name.strip()
    if not name:
        raise ValueError("Category name must not be empty")

    existing = crud.get_category_by_name(conn, user_id, name)
    if existing is not None:
        logger.debug(f"Reusing category '{name}' (id {existing.id}) for user '{user_id}'")
        return existing.id

    category = crud.create_category(conn, user_id, name, auto_description(name))
    return category.id

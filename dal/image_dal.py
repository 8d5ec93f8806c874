"""Async Data Access Layer for the `images` table.

Provides ImageDAL class with async operations compatible with
`utils.database_init.AsyncDatabaseInitializer`.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import List, Optional

from models.errors import PersistenceError
from models.image_record import DEFAULT_IMAGE_NAME, ImageRecord
from utils.database_init import AsyncDatabaseInitializer

LOGGER = logging.getLogger(__name__)

# aiosqlite re-exports the sqlite3 exception classes and raises
# ValueError on a closed connection
_DB_ERRORS = (sqlite3.Error, OSError, RuntimeError, ValueError)


class ImageDAL:
    """Data access layer for image records.

    The constructor accepts an `AsyncDatabaseInitializer` (or any object
    exposing an async `connection()` context manager that yields an
    `aiosqlite.Connection`).
    """

    _COLUMNS = ("id", "name", "image_path", "created_at")
    _COLUMN_LIST = ", ".join(_COLUMNS)

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def insert(self, name: Optional[str], image_path: str) -> ImageRecord:
        """Insert a new row and return it as stored.

        Args:
            name: Display name; `None` stores "Untitled".
            image_path: Locator of the already-stored file.

        Returns:
            The created ImageRecord, with server-assigned `id` and `created_at`.

        Raises:
            PersistenceError: If the database is unreachable or the insert fails.
        """
        try:
            async with self._db.connection() as conn:
                cur = await conn.execute(
                    "INSERT INTO images (name, image_path) VALUES (?, ?)",
                    (name or DEFAULT_IMAGE_NAME, image_path),
                )
                new_id = cur.lastrowid
                cur = await conn.execute(
                    f"SELECT {self._COLUMN_LIST} FROM images WHERE id = ?",
                    (new_id,),
                )
                row = await cur.fetchone()
                await conn.commit()
        except _DB_ERRORS as exc:
            LOGGER.error("Failed to insert image record for %s: %s", image_path, exc)
            raise PersistenceError("Failed to save image record", detail=str(exc)) from exc

        return ImageRecord.from_row(row)

    async def get_by_id(self, image_id: int) -> Optional[ImageRecord]:
        """Return the ImageRecord for `image_id`, or None if not found."""
        try:
            async with self._db.connection() as conn:
                cur = await conn.execute(
                    f"SELECT {self._COLUMN_LIST} FROM images WHERE id = ?",
                    (image_id,),
                )
                row = await cur.fetchone()
        except _DB_ERRORS as exc:
            LOGGER.error("Failed to fetch image %s: %s", image_id, exc)
            raise PersistenceError("Failed to fetch image", detail=str(exc)) from exc

        return ImageRecord.from_row(row) if row else None

    async def list_all(self) -> List[ImageRecord]:
        """Return every record, newest first.

        Rows sharing a timestamp are ordered by descending id.
        """
        try:
            async with self._db.connection() as conn:
                cur = await conn.execute(
                    f"SELECT {self._COLUMN_LIST} FROM images ORDER BY created_at DESC, id DESC"
                )
                rows = await cur.fetchall()
        except _DB_ERRORS as exc:
            LOGGER.error("Failed to list images: %s", exc)
            raise PersistenceError("Failed to fetch images", detail=str(exc)) from exc

        return [ImageRecord.from_row(r) for r in rows]

    async def ping(self) -> bool:
        """Return True if a trivial query succeeds against the database."""
        try:
            async with self._db.connection() as conn:
                cur = await conn.execute("SELECT 1")
                await cur.fetchone()
            return True
        except Exception as exc:  # pylint: disable=broad-exception-caught
            LOGGER.warning("Database connectivity probe failed: %s", exc)
            return False

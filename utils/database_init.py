import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import aiosqlite

from utils.connection_pool import ConnectionPool

LOGGER = logging.getLogger(__name__)

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS images (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL DEFAULT 'Untitled',
        image_path TEXT NOT NULL UNIQUE,
        created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_images_created_at ON images(created_at)",
)


class AsyncDatabaseInitializer:
    """
    Manage the async SQLite database holding image records.

    - The database file is located at: <database_dir>/app.db
    - `database_dir` falls back to the DATABASE_DIR environment variable.
      A RuntimeError is raised if neither is set, or if the path is a file
      or cannot be created.
    - `ensure_database()` applies the schema with IF NOT EXISTS statements,
      so it is safe against an existing database and never drops data.
      Subsequent calls on the same instance are no-ops.
    - Connections are handed out through a bounded `ConnectionPool`.
    """

    def __init__(self, database_dir: Optional[Path | str] = None, pool_size: int = 10) -> None:
        env_dir = str(database_dir) if database_dir is not None else os.getenv("DATABASE_DIR")

        if env_dir is None or not env_dir.strip():
            raise RuntimeError(
                "DATABASE_DIR environment variable must be set to a writable "
                "directory path where the SQLite database file will be stored."
            )

        db_dir = Path(env_dir).expanduser()

        if db_dir.exists() and not db_dir.is_dir():
            raise RuntimeError(
                f"DATABASE_DIR={env_dir!r} points to a file, not a directory "
                f"({db_dir}). Please set DATABASE_DIR to a directory path."
            )

        try:
            db_dir.mkdir(parents=True, exist_ok=True)
        except Exception as exc:
            raise RuntimeError(
                f"Failed to create or access database directory at {db_dir}"
            ) from exc

        self.db_dir = db_dir
        self.db_path = self.db_dir / "app.db"
        self.pool = ConnectionPool(self.db_path, max_size=pool_size)

        self._initialized = False
        self._init_lock = asyncio.Lock()

    async def ensure_database(self) -> None:
        """
        Create the `images` table and its index if they are missing.

        Safe to run against an already-initialized database.
        Subsequent calls on the same instance are no-ops.
        """
        if self._initialized:
            return

        async with self._init_lock:
            if self._initialized:
                return

            max_attempts = 3
            for attempt in range(1, max_attempts + 1):
                try:
                    async with aiosqlite.connect(self.db_path) as db:
                        for statement in SCHEMA_STATEMENTS:
                            await db.execute(statement)
                        await db.commit()
                    break
                except FileNotFoundError:
                    # On some platforms a transient missing file error may occur; retry a few times.
                    if attempt >= max_attempts:
                        raise
                    await asyncio.sleep(0.1 * attempt)

            LOGGER.info("Database ready at %s", self.db_path)
            self._initialized = True

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Async context manager yielding a pooled `aiosqlite.Connection`.

        The schema is created on first use via `ensure_database()`.
        """
        await self.ensure_database()
        async with self.pool.connection() as conn:
            yield conn

    async def close(self) -> None:
        """Close the connection pool."""
        await self.pool.close()

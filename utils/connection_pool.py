"""Bounded pool of `aiosqlite` connections.

At most `max_size` connections are checked out at once. Callers beyond
that wait in FIFO order on an `asyncio.Semaphore` (no queue limit) instead
of failing. Idle connections are reused; new ones are opened lazily.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, List

import aiosqlite

LOGGER = logging.getLogger(__name__)


class ConnectionPool:
    """Async connection pool for a single SQLite database file.

    Usage:
        pool = ConnectionPool(db_path, max_size=10)
        async with pool.connection() as conn:
            await conn.execute("SELECT 1")
        await pool.close()
    """

    def __init__(self, db_path: Path | str, max_size: int = 10, busy_timeout_ms: int = 5_000) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.db_path = str(db_path)
        self.max_size = max_size
        self.busy_timeout_ms = busy_timeout_ms
        self._semaphore = asyncio.Semaphore(max_size)
        self._idle: List[aiosqlite.Connection] = []
        self._in_use = 0
        self._closed = False

    @property
    def in_use(self) -> int:
        """Number of connections currently checked out."""
        return self._in_use

    @property
    def closed(self) -> bool:
        return self._closed

    async def _open(self) -> aiosqlite.Connection:
        conn = await aiosqlite.connect(self.db_path)
        try:
            await conn.execute("PRAGMA journal_mode=WAL;")
            await conn.execute(f"PRAGMA busy_timeout={int(self.busy_timeout_ms)};")
            await conn.commit()
        except Exception:
            await conn.close()
            raise
        return conn

    async def acquire(self) -> aiosqlite.Connection:
        """Check out a connection, waiting while the pool is exhausted."""
        if self._closed:
            raise RuntimeError("Connection pool is closed.")
        await self._semaphore.acquire()
        try:
            if self._closed:
                raise RuntimeError("Connection pool is closed.")
            conn = self._idle.pop() if self._idle else await self._open()
        except BaseException:
            self._semaphore.release()
            raise
        self._in_use += 1
        return conn

    async def release(self, conn: aiosqlite.Connection, discard: bool = False) -> None:
        """Return a connection to the pool, closing it if discarded or the pool is closed."""
        self._in_use -= 1
        try:
            if discard or self._closed:
                await conn.close()
            else:
                self._idle.append(conn)
        finally:
            self._semaphore.release()

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """Async context manager that checks a connection out and back in.

        A connection whose block raised a database error is rolled back;
        if the rollback itself fails, the connection is discarded.
        """
        conn = await self.acquire()
        discard = False
        try:
            yield conn
        except Exception:
            try:
                await conn.rollback()
            except Exception:  # pylint: disable=broad-exception-caught
                LOGGER.warning("Rollback failed; discarding pooled connection", exc_info=True)
                discard = True
            raise
        finally:
            await self.release(conn, discard=discard)

    async def close(self) -> None:
        """Close idle connections and refuse further checkouts.

        Connections still checked out are closed when released.
        """
        self._closed = True
        idle, self._idle = self._idle, []
        for conn in idle:
            try:
                await conn.close()
            except Exception:  # pylint: disable=broad-exception-caught
                LOGGER.warning("Error closing pooled connection", exc_info=True)

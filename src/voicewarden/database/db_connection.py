"""
Database connection management: one long-lived aiosqlite connection.

SQLite performs best with a single connection kept open for the whole bot
lifetime, in WAL mode. Writes are serialised through ``transaction()``;
reads share the connection directly.

Usage
-----
    manager = ConnectionManager()
    await manager.open(DB_PATH)

    async with manager.transaction() as conn:
        await conn.execute("INSERT ...")
        # commits automatically on clean exit, rolls back on exception

    async with manager.read() as conn:
        cursor = await conn.execute("SELECT ...")

    await manager.close()
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from voicewarden.util.logger import get_logger

logger = get_logger("database_connection")

DB_PATH = Path("./data/app.db").resolve()

_PRAGMAS = [
    "PRAGMA journal_mode = WAL",
    "PRAGMA synchronous = NORMAL",    # safe with WAL; faster than FULL
    "PRAGMA temp_store = MEMORY",
    "PRAGMA wal_autocheckpoint = 1000",
]


class ConnectionManager:
    """
    Wrapper around a single aiosqlite connection.

    * Reads  - use ``read()`` or ``connection``; WAL allows concurrent reads.
    * Writes - use ``async with transaction()``; writes are serialised by
      ``_write_sem`` so no two coroutines write at the same time.
    """

    def __init__(self) -> None:
        self._conn: aiosqlite.Connection | None = None
        self._write_sem = asyncio.Semaphore(1)
        self._path: Path | None = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self, path: Path) -> None:
        """Open the database file and apply pragmas. Called once at startup."""
        if self._conn is not None:
            logger.warning("[DB CONNECTION] open() called but connection already exists; ignoring")
            return

        self._path = path
        path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = await aiosqlite.connect(path)
        self._conn.row_factory = aiosqlite.Row

        for pragma in _PRAGMAS:
            await self._conn.execute(pragma)
        await self._conn.commit()

        logger.info("[DB CONNECTION] Opened connection to %s", path)

    async def close(self) -> None:
        """Flush the WAL and close the connection."""
        if self._conn is None:
            return

        try:
            await self._conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
            await self._conn.commit()
        except Exception:
            logger.exception("[DB CONNECTION] WAL checkpoint failed during close")
        finally:
            await self._conn.close()
            self._conn = None
            logger.info("[DB CONNECTION] Connection closed")

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    @property
    def connection(self) -> aiosqlite.Connection:
        """
        The raw aiosqlite connection.

        Raises:
            RuntimeError: If the connection has not been opened yet.
        """
        if self._conn is None:
            raise RuntimeError("ConnectionManager: connection is not open. Call await open(path) first.")
        return self._conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Serialised write transaction; commits on clean exit, rolls back on error."""
        conn = self.connection

        async with self._write_sem:
            try:
                yield conn
                await conn.commit()
            except Exception:
                await conn.rollback()
                raise

    @asynccontextmanager
    async def read(self) -> AsyncIterator[aiosqlite.Connection]:
        """Symmetric counterpart of ``transaction()`` for reads; no locking."""
        yield self.connection

"""
Async string-keyed JSON store on top of the shared SQLite connection.

This is the persistence collaborator of the state manager: best-effort
``get``/``set`` by key. Callers decide how to react to failures; the store
itself only logs.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from voicewarden.database.db_connection import ConnectionManager
from voicewarden.database.db_schema import SchemaManager
from voicewarden.util.logger import get_logger

logger = get_logger("key_value_store")


class KeyValueStore:
    """JSON values stored by string key in the ``kv_store`` table."""

    def __init__(self, connection: ConnectionManager | None = None) -> None:
        self.connection = connection or ConnectionManager()

    async def initialize(self, path: Path) -> None:
        """Open the database (if needed) and make sure the schema exists."""
        if not self.connection.is_open:
            await self.connection.open(path)
        async with self.connection.transaction() as conn:
            await SchemaManager.initialize_schema(conn)

    async def get(self, key: str, default: Any = None) -> Any:
        async with self.connection.read() as conn:
            cursor = await conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,))
            row = await cursor.fetchone()
            await cursor.close()

        if row is None:
            return default
        try:
            return json.loads(row["value"])
        except json.JSONDecodeError as exc:
            logger.error("[KV STORE] Corrupt value under %s: %s", key, exc)
            return default

    async def set(self, key: str, value: Any) -> None:
        payload = json.dumps(value)
        async with self.connection.transaction() as conn:
            await conn.execute(
                """
                INSERT INTO kv_store (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (key, payload),
            )

    async def delete(self, key: str) -> None:
        async with self.connection.transaction() as conn:
            await conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))

    async def close(self) -> None:
        await self.connection.close()

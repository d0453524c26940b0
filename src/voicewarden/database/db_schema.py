"""
Database schema initialization.

Creates the key-value table used for state snapshots, its timestamp trigger
and schema version tracking.
"""

import aiosqlite
from voicewarden.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 1


class SchemaManager:
    """Creates and versions the database schema."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """Create all tables and triggers, then record the schema version."""
        await SchemaManager._create_tables(db)
        await SchemaManager._create_triggers(db)
        await SchemaManager._update_schema_version(db)
        await db.commit()
        logger.info("[SCHEMA] Database schema initialized")

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        await db.execute("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    @staticmethod
    async def _create_triggers(db: aiosqlite.Connection) -> None:
        await db.execute("""
            CREATE TRIGGER IF NOT EXISTS update_kv_store_timestamp
            AFTER UPDATE OF value ON kv_store
            FOR EACH ROW
            BEGIN
                UPDATE kv_store SET updated_at = CURRENT_TIMESTAMP
                WHERE key = NEW.key;
            END
        """)

    @staticmethod
    async def _update_schema_version(db: aiosqlite.Connection) -> None:
        await db.execute("INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))

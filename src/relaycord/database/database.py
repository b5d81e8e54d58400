"""
Startup and shutdown of the SQLite database.

``Database`` opens the shared connection, checks the stored schema version and
creates missing tables. Table SQL lives in ``relaycord.repositories`` and the
Store in ``relaycord.store`` combines them over :attr:`Database.connection_manager`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from relaycord.configuration.app_configuration import app_config
from relaycord.database.db_connection import ConnectionManager
from relaycord.database.db_schema import SCHEMA_VERSION, SchemaManager
from relaycord.util.logger import get_logger

logger = get_logger("database")


class SchemaTooNewError(RuntimeError):
    """The database file was written by a newer Relaycord release."""


class Database:
    def __init__(self, db_path: Optional[Path] = None, connection_manager: Optional[ConnectionManager] = None):
        self.db_path = db_path or app_config.database_path
        self.connection_manager = connection_manager or ConnectionManager(
            write_wait=app_config.database_write_wait,
            busy_timeout_ms=app_config.database_busy_timeout_ms,
        )
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> bool:
        """Open the connection and bring the schema up to date; False on failure."""
        if self._initialized:
            return True

        try:
            await self.connection_manager.open(self.db_path)
            async with self.connection_manager.transaction() as db:
                stored = await SchemaManager.current_version(db)
                if stored > SCHEMA_VERSION:
                    raise SchemaTooNewError(
                        f"schema version {stored} is newer than supported version {SCHEMA_VERSION}"
                    )
                await SchemaManager.initialize_schema(db)
        except Exception as exc:
            logger.error("[DATABASE] Could not initialize %s: %s", self.db_path, exc)
            await self.connection_manager.close()
            return False

        self._initialized = True
        logger.info("[DATABASE] Ready at %s (schema v%d)", self.db_path, SCHEMA_VERSION)
        return True

    async def shutdown(self) -> None:
        if not self._initialized:
            return
        await self.connection_manager.close()
        self._initialized = False


_database: Optional[Database] = None


def get_db() -> Database:
    """Process-wide Database, created on first use from the app configuration."""
    global _database
    if _database is None:
        _database = Database()
    return _database

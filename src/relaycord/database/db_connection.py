"""
The aiosqlite connection shared by the Store.

There is one connection per process. Reads use it directly, since WAL lets
them run beside the writer. Writes queue on a single lock and each runs as
one transaction: commit on a clean exit, rollback on an error. A writer that
cannot take the lock within ``write_wait`` seconds raises ``TimeoutError``,
which the Store reports as an outage.

    manager = ConnectionManager()
    await manager.open(path)

    async with manager.read() as conn:
        cursor = await conn.execute("SELECT ...")

    async with manager.transaction() as conn:
        await conn.execute("INSERT ...")

    await manager.close()
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, List

import aiosqlite

from relaycord.util.logger import get_logger

logger = get_logger("database_connection")


class ConnectionManager:
    """Owns the shared connection, its pragmas and the write queue."""

    def __init__(self, write_wait: float = 10.0, busy_timeout_ms: int = 5000) -> None:
        self.write_wait = write_wait
        self.busy_timeout_ms = busy_timeout_ms
        self._conn: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()
        self._waiting_writers = 0
        self._path: Path | None = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def path(self) -> Path | None:
        return self._path

    @property
    def waiting_writers(self) -> int:
        """Writers currently queued behind the active transaction."""
        return self._waiting_writers

    def pragmas(self) -> List[str]:
        return [
            "PRAGMA journal_mode = WAL",
            "PRAGMA foreign_keys = ON",
            "PRAGMA synchronous = NORMAL",
            f"PRAGMA busy_timeout = {int(self.busy_timeout_ms)}",
        ]

    async def open(self, path: Path) -> None:
        """Open ``path`` (creating its directory) and apply the pragmas."""
        if self._conn is not None:
            if path != self._path:
                raise RuntimeError(f"Connection already open on {self._path}")
            return

        path.parent.mkdir(parents=True, exist_ok=True)
        conn = await aiosqlite.connect(path)
        try:
            conn.row_factory = aiosqlite.Row
            for pragma in self.pragmas():
                await conn.execute(pragma)
            await conn.commit()
        except aiosqlite.Error:
            await conn.close()
            raise

        self._conn = conn
        self._path = path
        logger.info("[DB CONNECTION] Opened %s", path)

    async def close(self) -> None:
        """Wait for the running write, checkpoint the WAL and close."""
        if self._conn is None:
            return

        async with self._write_lock:
            conn, self._conn = self._conn, None
            try:
                await conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
            except aiosqlite.Error as exc:
                logger.warning("[DB CONNECTION] WAL checkpoint failed: %s", exc)
            finally:
                await conn.close()
        logger.info("[DB CONNECTION] Closed %s", self._path)

    @property
    def connection(self) -> aiosqlite.Connection:
        """
        The open connection.

        Raises:
            RuntimeError: If :meth:`open` has not been awaited.
        """
        if self._conn is None:
            raise RuntimeError("Database connection is not open")
        return self._conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        if self._conn is None:
            raise RuntimeError("Database connection is not open")

        self._waiting_writers += 1
        try:
            async with asyncio.timeout(self.write_wait):
                await self._write_lock.acquire()
        finally:
            self._waiting_writers -= 1

        try:
            # close() may have run while this writer was queued
            conn = self.connection
            try:
                yield conn
                await conn.commit()
            except Exception:
                await conn.rollback()
                raise
        finally:
            self._write_lock.release()

    @asynccontextmanager
    async def read(self) -> AsyncIterator[aiosqlite.Connection]:
        yield self.connection

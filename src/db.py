"""Async access to the memory database over libsql.

The ``libsql`` driver is synchronous; every call is pushed to a worker thread
with ``asyncio.to_thread()``. The target comes from settings:

- ``TURSO_DATABASE_URL`` + ``TURSO_AUTH_TOKEN`` set → remote Turso database
- otherwise → local file at ``DATABASE_PATH``

Foreign keys are switched on for every connection; message and history
cascades depend on it.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING, Any

import libsql

from src.config import settings

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

logger = logging.getLogger(__name__)


class _AsyncCursor:
    """Result of one statement; rows are fetched off the event loop."""

    def __init__(self, cursor: Any) -> None:
        self._cursor = cursor

    async def fetchone(self) -> tuple | None:
        return await asyncio.to_thread(self._cursor.fetchone)

    async def fetchall(self) -> list[tuple]:
        return await asyncio.to_thread(self._cursor.fetchall)

    @property
    def rowcount(self) -> int:
        return self._cursor.rowcount


class _AsyncConnection:
    """One libsql connection. Not safe for interleaved multi-statement use;
    callers serialise operations themselves."""

    def __init__(self, conn: Any, target: str) -> None:
        self._conn = conn
        self.target = target

    async def execute(self, sql: str, params: tuple = ()) -> _AsyncCursor:
        return _AsyncCursor(await asyncio.to_thread(self._conn.execute, sql, params))

    async def execute_all(self, statements: tuple[str, ...]) -> None:
        """Run DDL statements in order and commit once."""
        for statement in statements:
            await self.execute(statement)
        await self.commit()

    async def commit(self) -> None:
        await asyncio.to_thread(self._conn.commit)

    async def rollback(self) -> None:
        await asyncio.to_thread(self._conn.rollback)

    @contextlib.asynccontextmanager
    async def transaction(self) -> AsyncIterator[_AsyncConnection]:
        """Commit when the block exits cleanly, roll back when it raises."""
        try:
            yield self
        except BaseException:
            try:
                await self.rollback()
            except Exception:
                logger.warning("Rollback failed on %s", self.target, exc_info=True)
            raise
        await self.commit()

    async def close(self) -> None:
        await asyncio.to_thread(self._conn.close)


def _open_local(path: str) -> Any:
    conn = libsql.connect(path)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA busy_timeout=5000")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def _open_remote(url: str, auth_token: str) -> Any:
    conn = libsql.connect(database=url, auth_token=auth_token)
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


async def get_connection(local_path_override: Path | None = None) -> _AsyncConnection:
    """Open a connection to the memory database.

    *local_path_override* (used for test isolation) wins over both the
    Turso URL and ``database_path``.
    """
    if local_path_override is None and settings.turso_database_url:
        conn = await asyncio.to_thread(
            _open_remote, settings.turso_database_url, settings.turso_auth_token
        )
        logger.info("Connected to remote memory database")
        return _AsyncConnection(conn, settings.turso_database_url)

    path = local_path_override or settings.database_path
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = await asyncio.to_thread(_open_local, str(path))
    logger.debug("Opened memory database %s", path)
    return _AsyncConnection(conn, str(path))

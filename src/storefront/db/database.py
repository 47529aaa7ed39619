# manages connections to the sqlite file, creates the schema on first use
import asyncio
import os
from contextlib import asynccontextmanager
from sqlite3 import Row
from typing import AsyncIterator

import aiosqlite

from storefront.utils.logger import get_logger

_logger = get_logger(__name__)

SCHEMA_SCRIPT = os.path.join(os.path.dirname(__file__), "schema.sql")


async def _init_db(conn: aiosqlite.Connection) -> None:
    _logger.info(f"Initializing database with script {SCHEMA_SCRIPT}...")
    with open(SCHEMA_SCRIPT, "r") as f:
        await conn.executescript(f.read())
    await conn.commit()


async def _table_exists(conn: aiosqlite.Connection, table_name: str) -> bool:
    cur = await conn.execute(
        """
        SELECT name
        FROM sqlite_master
        WHERE type = 'table'
          AND name = ?;
        """,
        (table_name,),
    )
    row = await cur.fetchone()
    await cur.close()
    return row is not None


class Database:
    """
    Opens one aiosqlite connection per unit of work against a database file.

    The schema is created lazily by the first connection.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self._initialized = False
        self._init_lock = asyncio.Lock()

    async def _ensure_schema(self, conn: aiosqlite.Connection) -> None:
        if self._initialized:
            return
        async with self._init_lock:
            if not self._initialized:
                if not await _table_exists(conn, "contact_messages"):
                    await _init_db(conn)
                self._initialized = True

    @asynccontextmanager
    async def connect(self) -> AsyncIterator[aiosqlite.Connection]:
        """Yield a connection with rows addressable by column name."""
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        conn = await aiosqlite.connect(self.path)
        conn.row_factory = Row
        try:
            await conn.execute("PRAGMA foreign_keys = ON;")
            await self._ensure_schema(conn)
            yield conn
        finally:
            await conn.close()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Yield a connection whose statements commit together or not at all."""
        async with self.connect() as conn:
            try:
                yield conn
            except BaseException:
                await conn.rollback()
                raise
            await conn.commit()

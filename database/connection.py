import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import aiosqlite

from .schema import SCHEMA

logger = logging.getLogger(__name__)


def _casefold(value: str | None) -> str | None:
    return value.casefold() if value is not None else None


async def init_db(database_path: str, timeout: float = 5.0) -> None:
    """Initialize the database with schema."""
    async with get_db(database_path, timeout) as db:
        await db.executescript(SCHEMA)
        await db.commit()
    logger.info(f"SQLite database initialized at {database_path}")


@asynccontextmanager
async def get_db(database_path: str, timeout: float = 5.0) -> AsyncIterator[aiosqlite.Connection]:
    """Get a database connection.

    Each call opens its own connection so concurrent requests contend on the
    SQLite write lock instead of sharing one transaction. Foreign keys are
    enabled per connection (needed for the history cascade) and `casefold` is
    registered for Unicode-aware case-insensitive search.

    The connection runs with isolation_level=None: transactions are opened
    explicitly with BEGIN / BEGIN IMMEDIATE by the repositories.
    """
    db = await aiosqlite.connect(database_path, timeout=timeout, isolation_level=None)
    db.row_factory = aiosqlite.Row
    try:
        await db.execute("PRAGMA foreign_keys = ON")
        await db.create_function("casefold", 1, _casefold, deterministic=True)
        yield db
    finally:
        await db.close()


@asynccontextmanager
async def transaction(db: aiosqlite.Connection, immediate: bool = False) -> AsyncIterator[aiosqlite.Connection]:
    """Run a block inside one transaction, rolling back on any error.

    Args:
        db: Open connection from get_db()
        immediate: Take the write lock up front (BEGIN IMMEDIATE) so a
            read-then-write sequence cannot interleave with another writer
    """
    await db.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
    try:
        yield db
    except BaseException:
        await db.rollback()
        raise
    else:
        await db.commit()

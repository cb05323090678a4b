import logging

import aiosqlite

from app.core.exceptions import StorageError
from app.repositories.base import SettingsRepository, utc_now
from database.connection import get_db, transaction

logger = logging.getLogger(__name__)


class SQLiteSettingsRepository(SettingsRepository):

    def __init__(self, database_path: str, timeout: float = 5.0):
        self.database_path = database_path
        self.timeout = timeout

    async def get(self, key: str) -> str | None:
        async with get_db(self.database_path, self.timeout) as db:
            cursor = await db.execute("SELECT value FROM settings WHERE key = ?", (key,))
            row = await cursor.fetchone()
            return row["value"] if row else None

    async def set(self, key: str, value: str) -> None:
        async with get_db(self.database_path, self.timeout) as db:
            try:
                async with transaction(db):
                    await db.execute(
                        """INSERT INTO settings (key, value, updated_at) VALUES (?, ?, ?)
                           ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at""",
                        (key, value, utc_now())
                    )
            except aiosqlite.Error as e:
                logger.error(f"Failed to update setting {key}: {e}")
                raise StorageError("Failed to update setting") from e

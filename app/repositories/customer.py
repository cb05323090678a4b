import logging

import aiosqlite

from app.core.exceptions import ConflictError, NotFoundError, StorageError
from app.repositories.base import (
    MIN_SEARCH_LENGTH,
    CustomerRepository,
    generate_customer_id,
    utc_now,
)
from app.services.ledger import LedgerDecision, decide_purchase
from database.connection import get_db, transaction

logger = logging.getLogger(__name__)

CUSTOMER_COLUMNS = "id, name, phone, purchase_count, created_at, updated_at"

# Retries when a freshly generated id collides with an existing one
_MAX_ID_ATTEMPTS = 3


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _is_phone_conflict(error: aiosqlite.IntegrityError) -> bool:
    return "customers.phone" in str(error)


class SQLiteCustomerRepository(CustomerRepository):

    def __init__(self, database_path: str, timeout: float = 5.0):
        self.database_path = database_path
        self.timeout = timeout

    def _connect(self):
        return get_db(self.database_path, self.timeout)

    async def create(self, name: str, phone: str) -> dict:
        """Create a new customer."""
        async with self._connect() as db:
            for attempt in range(_MAX_ID_ATTEMPTS):
                customer_id = generate_customer_id()
                now = utc_now()
                try:
                    async with transaction(db):
                        await db.execute(
                            "INSERT INTO customers (id, name, phone, purchase_count, created_at, updated_at) "
                            "VALUES (?, ?, ?, 0, ?, ?)",
                            (customer_id, name, phone, now, now)
                        )
                except aiosqlite.IntegrityError as e:
                    if _is_phone_conflict(e):
                        raise ConflictError() from e
                    logger.warning(f"Customer id collision on attempt {attempt + 1}: {e}")
                    continue
                except aiosqlite.Error as e:
                    logger.error(f"Failed to create customer: {e}")
                    raise StorageError("Failed to register customer") from e

                return {
                    "id": customer_id,
                    "name": name,
                    "phone": phone,
                    "purchase_count": 0,
                    "created_at": now,
                    "updated_at": now,
                }

        raise StorageError("Failed to register customer")

    async def get_by_id(self, customer_id: str) -> dict | None:
        """Get a customer by ID."""
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {CUSTOMER_COLUMNS} FROM customers WHERE id = ?",
                (customer_id,)
            )
            row = await cursor.fetchone()
            if row:
                return dict(row)
            return None

    async def get_all(self) -> list[dict]:
        """Get all customers ordered by creation date."""
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {CUSTOMER_COLUMNS} FROM customers ORDER BY created_at DESC"
            )
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]

    async def search(self, query: str) -> list[dict]:
        """Search customers by name or phone substring."""
        query = query.strip()
        if len(query) < MIN_SEARCH_LENGTH:
            return []

        pattern = f"%{_escape_like(query.casefold())}%"
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {CUSTOMER_COLUMNS} FROM customers "
                "WHERE casefold(name) LIKE ? ESCAPE '\\' OR casefold(phone) LIKE ? ESCAPE '\\' "
                "ORDER BY created_at DESC",
                (pattern, pattern)
            )
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]

    async def update(self, customer_id: str, name: str, phone: str) -> dict:
        """Update a customer's name and phone."""
        async with self._connect() as db:
            try:
                async with transaction(db):
                    cursor = await db.execute(
                        "UPDATE customers SET name = ?, phone = ?, updated_at = ? WHERE id = ?",
                        (name, phone, utc_now(), customer_id)
                    )
                    if cursor.rowcount == 0:
                        raise NotFoundError()
                    cursor = await db.execute(
                        f"SELECT {CUSTOMER_COLUMNS} FROM customers WHERE id = ?",
                        (customer_id,)
                    )
                    row = await cursor.fetchone()
            except aiosqlite.IntegrityError as e:
                if _is_phone_conflict(e):
                    raise ConflictError() from e
                raise StorageError("Failed to update customer") from e
            except aiosqlite.Error as e:
                logger.error(f"Failed to update customer {customer_id}: {e}")
                raise StorageError("Failed to update customer") from e

        return dict(row)

    async def delete(self, customer_id: str) -> None:
        """Delete a customer. History rows go with it (ON DELETE CASCADE)."""
        async with self._connect() as db:
            try:
                async with transaction(db):
                    cursor = await db.execute("DELETE FROM customers WHERE id = ?", (customer_id,))
                    if cursor.rowcount == 0:
                        raise NotFoundError()
            except aiosqlite.Error as e:
                logger.error(f"Failed to delete customer {customer_id}: {e}")
                raise StorageError("Failed to delete customer") from e

    async def record_purchase(self, customer_id: str, threshold: int) -> LedgerDecision:
        """Apply one purchase (or reward) to a customer.

        BEGIN IMMEDIATE takes the write lock before the counter is read, so two
        concurrent purchases cannot both see the same count. The UPDATE is also
        guarded on the count that was read and on the new count staying within
        the threshold.
        """
        async with self._connect() as db:
            try:
                async with transaction(db, immediate=True):
                    cursor = await db.execute(
                        "SELECT purchase_count FROM customers WHERE id = ?",
                        (customer_id,)
                    )
                    row = await cursor.fetchone()
                    if not row:
                        raise NotFoundError()

                    decision = decide_purchase(row["purchase_count"], threshold)
                    now = utc_now()

                    cursor = await db.execute(
                        "UPDATE customers SET purchase_count = ?, updated_at = ? "
                        "WHERE id = ? AND purchase_count = ? AND ? <= ?",
                        (decision.new_count, now, customer_id, decision.previous_count, decision.new_count, threshold)
                    )
                    if cursor.rowcount != 1:
                        raise StorageError("Purchase counter changed concurrently")

                    await db.execute(
                        "INSERT INTO purchase_history (customer_id, timestamp, action) VALUES (?, ?, ?)",
                        (customer_id, now, decision.action.value)
                    )
            except aiosqlite.Error as e:
                logger.error(f"Failed to add purchase for {customer_id}: {e}")
                raise StorageError("Failed to add purchase") from e

        return decision

    async def reset(self, customer_id: str) -> None:
        """Reset a customer's purchases to 0."""
        async with self._connect() as db:
            try:
                async with transaction(db):
                    cursor = await db.execute(
                        "UPDATE customers SET purchase_count = 0, updated_at = ? WHERE id = ?",
                        (utc_now(), customer_id)
                    )
                    if cursor.rowcount == 0:
                        raise NotFoundError()
            except aiosqlite.Error as e:
                logger.error(f"Failed to reset customer {customer_id}: {e}")
                raise StorageError("Failed to reset customer purchases") from e

    async def get_stats(self, threshold: int) -> dict:
        """Get aggregate counters for the admin dashboard."""
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT COUNT(*) AS total_customers, "
                "COALESCE(SUM(purchase_count), 0) AS total_purchases, "
                "COALESCE(SUM(CASE WHEN purchase_count >= ? THEN 1 ELSE 0 END), 0) AS ready_for_free_coffee "
                "FROM customers",
                (threshold,)
            )
            row = await cursor.fetchone()
            return dict(row)

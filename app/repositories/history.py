from app.repositories.base import PurchaseHistoryRepository
from database.connection import get_db


class SQLitePurchaseHistoryRepository(PurchaseHistoryRepository):

    def __init__(self, database_path: str, timeout: float = 5.0):
        self.database_path = database_path
        self.timeout = timeout

    async def list_for_customer(self, customer_id: str) -> list[dict]:
        """Get purchase history for a customer, newest first."""
        async with get_db(self.database_path, self.timeout) as db:
            cursor = await db.execute(
                "SELECT id, customer_id, timestamp, action FROM purchase_history "
                "WHERE customer_id = ? ORDER BY timestamp DESC, id DESC",
                (customer_id,)
            )
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]

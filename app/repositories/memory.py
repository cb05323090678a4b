"""
In-memory storage backend.

Used for development and tests. All three stores share one MemoryDatabase,
whose asyncio.Lock serializes every mutation, so a purchase's counter update
and history append happen as one step.
"""

import asyncio
import itertools
import logging

from app.core.exceptions import ConflictError, NotFoundError
from app.repositories.base import (
    MIN_SEARCH_LENGTH,
    CustomerRepository,
    PurchaseHistoryRepository,
    SettingsRepository,
    generate_customer_id,
    utc_now,
)
from app.services.ledger import LedgerDecision, decide_purchase

logger = logging.getLogger(__name__)


class MemoryDatabase:

    def __init__(self):
        self.customers: dict[str, dict] = {}
        self.history: list[dict] = []
        self.settings: dict[str, str] = {}
        self.lock = asyncio.Lock()
        self._history_ids = itertools.count(1)

    def next_history_id(self) -> int:
        return next(self._history_ids)

    def phone_owner(self, phone: str) -> str | None:
        for customer in self.customers.values():
            if customer["phone"] == phone:
                return customer["id"]
        return None


def _newest_first(customers) -> list[dict]:
    return [dict(c) for c in sorted(customers, key=lambda c: c["created_at"], reverse=True)]


class MemoryCustomerRepository(CustomerRepository):

    def __init__(self, db: MemoryDatabase):
        self.db = db

    async def create(self, name: str, phone: str) -> dict:
        async with self.db.lock:
            if self.db.phone_owner(phone) is not None:
                raise ConflictError()

            customer_id = generate_customer_id()
            while customer_id in self.db.customers:
                customer_id = generate_customer_id()

            now = utc_now()
            customer = {
                "id": customer_id,
                "name": name,
                "phone": phone,
                "purchase_count": 0,
                "created_at": now,
                "updated_at": now,
            }
            self.db.customers[customer_id] = customer
            return dict(customer)

    async def get_by_id(self, customer_id: str) -> dict | None:
        customer = self.db.customers.get(customer_id)
        return dict(customer) if customer else None

    async def get_all(self) -> list[dict]:
        return _newest_first(self.db.customers.values())

    async def search(self, query: str) -> list[dict]:
        needle = query.strip().casefold()
        if len(needle) < MIN_SEARCH_LENGTH:
            return []
        return _newest_first(
            c for c in self.db.customers.values()
            if needle in c["name"].casefold() or needle in c["phone"].casefold()
        )

    async def update(self, customer_id: str, name: str, phone: str) -> dict:
        async with self.db.lock:
            customer = self.db.customers.get(customer_id)
            if not customer:
                raise NotFoundError()

            owner = self.db.phone_owner(phone)
            if owner is not None and owner != customer_id:
                raise ConflictError()

            customer.update(name=name, phone=phone, updated_at=utc_now())
            return dict(customer)

    async def delete(self, customer_id: str) -> None:
        async with self.db.lock:
            if customer_id not in self.db.customers:
                raise NotFoundError()
            del self.db.customers[customer_id]
            self.db.history = [e for e in self.db.history if e["customer_id"] != customer_id]

    async def record_purchase(self, customer_id: str, threshold: int) -> LedgerDecision:
        async with self.db.lock:
            customer = self.db.customers.get(customer_id)
            if not customer:
                raise NotFoundError()

            decision = decide_purchase(customer["purchase_count"], threshold)
            now = utc_now()
            customer["purchase_count"] = decision.new_count
            customer["updated_at"] = now
            self.db.history.append({
                "id": self.db.next_history_id(),
                "customer_id": customer_id,
                "timestamp": now,
                "action": decision.action.value,
            })
            return decision

    async def reset(self, customer_id: str) -> None:
        async with self.db.lock:
            customer = self.db.customers.get(customer_id)
            if not customer:
                raise NotFoundError()
            customer["purchase_count"] = 0
            customer["updated_at"] = utc_now()

    async def get_stats(self, threshold: int) -> dict:
        customers = list(self.db.customers.values())
        return {
            "total_customers": len(customers),
            "total_purchases": sum(c["purchase_count"] for c in customers),
            "ready_for_free_coffee": sum(1 for c in customers if c["purchase_count"] >= threshold),
        }


class MemoryPurchaseHistoryRepository(PurchaseHistoryRepository):

    def __init__(self, db: MemoryDatabase):
        self.db = db

    async def list_for_customer(self, customer_id: str) -> list[dict]:
        events = [e for e in self.db.history if e["customer_id"] == customer_id]
        events.sort(key=lambda e: (e["timestamp"], e["id"]), reverse=True)
        return [dict(e) for e in events]


class MemorySettingsRepository(SettingsRepository):

    def __init__(self, db: MemoryDatabase):
        self.db = db

    async def get(self, key: str) -> str | None:
        return self.db.settings.get(key)

    async def set(self, key: str, value: str) -> None:
        async with self.db.lock:
            self.db.settings[key] = value

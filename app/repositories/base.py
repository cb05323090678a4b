"""
Storage interface shared by the SQLite and in-memory backends.

Records cross the interface as plain dicts with the keys of the relational
schema (customers: id, name, phone, purchase_count, created_at, updated_at;
history: id, customer_id, timestamp, action).
"""

import secrets
import string
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable
from datetime import datetime, timezone

from app.services.ledger import LedgerDecision

CUSTOMER_ID_LENGTH = 10
_ID_ALPHABET = string.ascii_letters + string.digits + "_-"

MIN_SEARCH_LENGTH = 2

BARISTA_PHONE_KEY = "barista_phone"


def generate_customer_id() -> str:
    """Short opaque URL-safe id, printed in QR codes."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(CUSTOMER_ID_LENGTH))


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class CustomerRepository(ABC):

    @abstractmethod
    async def create(self, name: str, phone: str) -> dict:
        """Create a customer. Raises ConflictError if the phone is taken."""

    @abstractmethod
    async def get_by_id(self, customer_id: str) -> dict | None:
        """Get a customer by ID."""

    @abstractmethod
    async def get_all(self) -> list[dict]:
        """Get all customers, newest first."""

    @abstractmethod
    async def search(self, query: str) -> list[dict]:
        """Case-insensitive substring search on name or phone, newest first."""

    @abstractmethod
    async def update(self, customer_id: str, name: str, phone: str) -> dict:
        """Update name and phone. Raises NotFoundError or ConflictError."""

    @abstractmethod
    async def delete(self, customer_id: str) -> None:
        """Delete a customer and its history. Raises NotFoundError."""

    @abstractmethod
    async def record_purchase(self, customer_id: str, threshold: int) -> LedgerDecision:
        """Apply one redemption event atomically.

        Reads the counter, runs the ledger, writes the new counter and appends
        the history event in a single transaction. Raises NotFoundError.
        """

    @abstractmethod
    async def reset(self, customer_id: str) -> None:
        """Set the counter back to 0 without logging an event. Raises NotFoundError."""

    @abstractmethod
    async def get_stats(self, threshold: int) -> dict:
        """Aggregate counters: total_customers, total_purchases, ready_for_free_coffee."""


class PurchaseHistoryRepository(ABC):

    @abstractmethod
    async def list_for_customer(self, customer_id: str) -> list[dict]:
        """Events for a customer, newest first."""


class SettingsRepository(ABC):

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Get a setting value."""

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Insert or replace a setting value."""

    async def get_phone(self, default: str) -> str:
        """Contact phone shown on the customer card, or `default` when unset."""
        value = await self.get(BARISTA_PHONE_KEY)
        return value if value is not None else default

    async def set_phone(self, phone: str) -> None:
        await self.set(BARISTA_PHONE_KEY, phone)


@dataclass
class Storage:
    """The three stores of one backend, created together at startup."""

    backend: str
    customers: CustomerRepository
    history: PurchaseHistoryRepository
    settings: SettingsRepository

    initializer: Callable[[], Awaitable[None]] | None = None

    async def init(self) -> None:
        if self.initializer is not None:
            await self.initializer()

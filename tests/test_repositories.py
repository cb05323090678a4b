import pytest

from app.core.exceptions import ConflictError, NotFoundError, StorageError
from app.repositories.base import CUSTOMER_ID_LENGTH
from database.connection import get_db

pytestmark = pytest.mark.anyio

THRESHOLD = 6


# =============================================================================
# Customer Store
# =============================================================================

class TestCustomerStore:
    """Tests run against both the in-memory and the SQLite backends."""

    async def test_create_and_get(self, storage):
        created = await storage.customers.create("Anna", "+7 900 111-22-33")

        assert len(created["id"]) == CUSTOMER_ID_LENGTH
        assert created["purchase_count"] == 0

        fetched = await storage.customers.get_by_id(created["id"])
        assert fetched["name"] == "Anna"
        assert fetched["phone"] == "+7 900 111-22-33"
        assert fetched["purchase_count"] == 0
        assert fetched["created_at"] is not None

    async def test_get_unknown_returns_none(self, storage):
        assert await storage.customers.get_by_id("missing") is None

    async def test_duplicate_phone_conflicts(self, storage):
        await storage.customers.create("Anna", "+7 900 111-22-33")

        with pytest.raises(ConflictError):
            await storage.customers.create("Boris", "+7 900 111-22-33")

        assert len(await storage.customers.get_all()) == 1

    async def test_ids_are_unique(self, storage):
        ids = {(await storage.customers.create(f"Guest {i}", f"+7 900 000-00-{i:02d}"))["id"] for i in range(20)}
        assert len(ids) == 20

    async def test_search_is_case_insensitive(self, storage):
        anna = await storage.customers.create("Анна Петрова", "+7 900 111-22-33")
        await storage.customers.create("Boris", "+7 900 999-88-77")

        results = await storage.customers.search("анна")
        assert [c["id"] for c in results] == [anna["id"]]

        results = await storage.customers.search("PETROVA")
        assert results == []

    async def test_search_matches_latin_names_and_phones(self, storage):
        anna = await storage.customers.create("Anna Petrova", "+7 900 111-22-33")
        boris = await storage.customers.create("Boris", "+7 900 999-88-77")

        assert [c["id"] for c in await storage.customers.search("petROVA")] == [anna["id"]]
        assert [c["id"] for c in await storage.customers.search("999")] == [boris["id"]]
        assert {c["id"] for c in await storage.customers.search("+7 900")} == {anna["id"], boris["id"]}

    async def test_search_short_query_returns_nothing(self, storage):
        await storage.customers.create("Anna", "+7 900 111-22-33")

        assert await storage.customers.search("a") == []
        assert await storage.customers.search("  ") == []

    async def test_search_treats_wildcards_literally(self, storage):
        await storage.customers.create("Anna", "+7 900 111-22-33")

        assert await storage.customers.search("%%") == []
        assert await storage.customers.search("__") == []

    async def test_update(self, storage):
        created = await storage.customers.create("Anna", "+7 900 111-22-33")

        updated = await storage.customers.update(created["id"], "Anna P.", "+7 900 444-55-66")

        assert updated["name"] == "Anna P."
        assert updated["phone"] == "+7 900 444-55-66"
        assert (await storage.customers.get_by_id(created["id"]))["phone"] == "+7 900 444-55-66"

    async def test_update_keeping_own_phone(self, storage):
        created = await storage.customers.create("Anna", "+7 900 111-22-33")

        updated = await storage.customers.update(created["id"], "Anna P.", "+7 900 111-22-33")

        assert updated["name"] == "Anna P."

    async def test_update_to_taken_phone_conflicts(self, storage):
        await storage.customers.create("Anna", "+7 900 111-22-33")
        boris = await storage.customers.create("Boris", "+7 900 999-88-77")

        with pytest.raises(ConflictError):
            await storage.customers.update(boris["id"], "Boris", "+7 900 111-22-33")

        assert (await storage.customers.get_by_id(boris["id"]))["phone"] == "+7 900 999-88-77"

    async def test_update_unknown_customer(self, storage):
        with pytest.raises(NotFoundError):
            await storage.customers.update("missing", "Nobody", "+7 900 000-00-00")

    async def test_delete_unknown_customer(self, storage):
        with pytest.raises(NotFoundError):
            await storage.customers.delete("missing")

    async def test_delete_cascades_history(self, storage):
        anna = await storage.customers.create("Anna", "+7 900 111-22-33")
        boris = await storage.customers.create("Boris", "+7 900 999-88-77")
        for _ in range(3):
            await storage.customers.record_purchase(anna["id"], THRESHOLD)
        await storage.customers.record_purchase(boris["id"], THRESHOLD)

        await storage.customers.delete(anna["id"])

        assert await storage.customers.get_by_id(anna["id"]) is None
        assert await storage.history.list_for_customer(anna["id"]) == []
        assert len(await storage.history.list_for_customer(boris["id"])) == 1

    async def test_phone_reusable_after_delete(self, storage):
        anna = await storage.customers.create("Anna", "+7 900 111-22-33")
        await storage.customers.delete(anna["id"])

        again = await storage.customers.create("Anna", "+7 900 111-22-33")

        assert again["id"] != anna["id"]


# =============================================================================
# Purchase Ledger persistence
# =============================================================================

class TestRecordPurchase:

    async def test_six_purchases_reach_threshold(self, storage):
        customer = await storage.customers.create("Anna", "+7 900 111-22-33")

        decisions = [await storage.customers.record_purchase(customer["id"], THRESHOLD) for _ in range(6)]

        assert [d.new_count for d in decisions] == [1, 2, 3, 4, 5, 6]
        assert decisions[-1].reward_ready is True
        assert not any(d.reward_granted for d in decisions)
        assert (await storage.customers.get_by_id(customer["id"]))["purchase_count"] == 6

    async def test_seventh_purchase_grants_free_coffee(self, storage):
        customer = await storage.customers.create("Anna", "+7 900 111-22-33")
        for _ in range(6):
            await storage.customers.record_purchase(customer["id"], THRESHOLD)

        decision = await storage.customers.record_purchase(customer["id"], THRESHOLD)

        assert decision.reward_granted is True
        assert decision.new_count == 0
        assert (await storage.customers.get_by_id(customer["id"]))["purchase_count"] == 0

        history = await storage.history.list_for_customer(customer["id"])
        assert len(history) == 7
        assert history[0]["action"] == "free_coffee"
        assert [e["action"] for e in history[1:]] == ["purchase"] * 6

    async def test_one_event_per_call(self, storage):
        customer = await storage.customers.create("Anna", "+7 900 111-22-33")

        for _ in range(15):
            await storage.customers.record_purchase(customer["id"], THRESHOLD)

        history = await storage.history.list_for_customer(customer["id"])
        assert len(history) == 15
        assert sum(1 for e in history if e["action"] == "free_coffee") == 2

    async def test_count_stays_in_range(self, storage):
        customer = await storage.customers.create("Anna", "+7 900 111-22-33")

        for _ in range(30):
            decision = await storage.customers.record_purchase(customer["id"], THRESHOLD)
            assert 0 <= decision.new_count <= THRESHOLD
            stored = await storage.customers.get_by_id(customer["id"])
            assert stored["purchase_count"] == decision.new_count

    async def test_history_is_newest_first(self, storage):
        customer = await storage.customers.create("Anna", "+7 900 111-22-33")
        for _ in range(4):
            await storage.customers.record_purchase(customer["id"], THRESHOLD)

        history = await storage.history.list_for_customer(customer["id"])

        ids = [e["id"] for e in history]
        assert ids == sorted(ids, reverse=True)
        assert all(e["customer_id"] == customer["id"] for e in history)

    async def test_unknown_customer(self, storage):
        with pytest.raises(NotFoundError):
            await storage.customers.record_purchase("missing", THRESHOLD)

    async def test_reset(self, storage):
        customer = await storage.customers.create("Anna", "+7 900 111-22-33")
        for _ in range(4):
            await storage.customers.record_purchase(customer["id"], THRESHOLD)

        await storage.customers.reset(customer["id"])

        assert (await storage.customers.get_by_id(customer["id"]))["purchase_count"] == 0
        # Reset is a correction, not a redemption event
        assert len(await storage.history.list_for_customer(customer["id"])) == 4

    async def test_reset_unknown_customer(self, storage):
        with pytest.raises(NotFoundError):
            await storage.customers.reset("missing")


# =============================================================================
# SQLite write guards and rollback
# =============================================================================

FAIL_HISTORY_TRIGGER = """
CREATE TRIGGER fail_history BEFORE INSERT ON purchase_history
BEGIN
    SELECT RAISE(ABORT, 'history unavailable');
END;
"""


async def set_stored_count(database_path, customer_id, count):
    async with get_db(database_path) as db:
        await db.execute("UPDATE customers SET purchase_count = ? WHERE id = ?", (count, customer_id))


class TestSQLiteWrites:
    """Counter writes on the SQLite backend"""

    async def test_count_above_threshold_is_redeemed(self, sqlite_storage, sqlite_settings):
        customer = await sqlite_storage.customers.create("Anna", "+7 900 111-22-33")
        await set_stored_count(sqlite_settings.database_path, customer["id"], THRESHOLD + 3)

        decision = await sqlite_storage.customers.record_purchase(customer["id"], THRESHOLD)

        assert decision.reward_granted is True
        assert decision.new_count == 0
        assert (await sqlite_storage.customers.get_by_id(customer["id"]))["purchase_count"] == 0

    async def test_lowered_threshold_keeps_count_in_range(self, sqlite_storage):
        customer = await sqlite_storage.customers.create("Anna", "+7 900 111-22-33")
        for _ in range(4):
            await sqlite_storage.customers.record_purchase(customer["id"], THRESHOLD)

        decision = await sqlite_storage.customers.record_purchase(customer["id"], 3)

        assert decision.reward_granted is True
        assert (await sqlite_storage.customers.get_by_id(customer["id"]))["purchase_count"] == 0

    async def test_failed_history_insert_rolls_back_counter(self, sqlite_storage, sqlite_settings):
        customer = await sqlite_storage.customers.create("Anna", "+7 900 111-22-33")
        await sqlite_storage.customers.record_purchase(customer["id"], THRESHOLD)
        async with get_db(sqlite_settings.database_path) as db:
            await db.executescript(FAIL_HISTORY_TRIGGER)

        with pytest.raises(StorageError):
            await sqlite_storage.customers.record_purchase(customer["id"], THRESHOLD)

        assert (await sqlite_storage.customers.get_by_id(customer["id"]))["purchase_count"] == 1
        assert len(await sqlite_storage.history.list_for_customer(customer["id"])) == 1


class TestStats:

    async def test_empty_store(self, storage):
        stats = await storage.customers.get_stats(THRESHOLD)

        assert stats == {"total_customers": 0, "total_purchases": 0, "ready_for_free_coffee": 0}

    async def test_aggregates_current_counters(self, storage):
        anna = await storage.customers.create("Anna", "+7 900 111-22-33")
        boris = await storage.customers.create("Boris", "+7 900 999-88-77")
        await storage.customers.create("Vera", "+7 900 555-44-33")
        for _ in range(6):
            await storage.customers.record_purchase(anna["id"], THRESHOLD)
        for _ in range(2):
            await storage.customers.record_purchase(boris["id"], THRESHOLD)

        stats = await storage.customers.get_stats(THRESHOLD)

        assert stats == {"total_customers": 3, "total_purchases": 8, "ready_for_free_coffee": 1}


# =============================================================================
# Settings Store
# =============================================================================

class TestSettingsStore:

    async def test_default_when_unset(self, storage):
        assert await storage.settings.get_phone("+7 (999) 123-45-67") == "+7 (999) 123-45-67"

    async def test_set_and_overwrite(self, storage):
        await storage.settings.set_phone("+7 (900) 000-00-01")
        await storage.settings.set_phone("+7 (900) 000-00-02")

        assert await storage.settings.get_phone("+7 (999) 123-45-67") == "+7 (900) 000-00-02"

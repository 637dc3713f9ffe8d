"""
Tests for bookkeeping.query_cache module.
"""
import asyncio
import dataclasses

import pytest

from bookkeeping.exceptions import MutationError, NotFoundError
from bookkeeping.expense_ledger import expenses_for_month
from bookkeeping.models import ExpenseCategory, ExpenseType, FinancialExpense
from bookkeeping.query_cache import (
    EXPENSES,
    TEMP_PREFIX,
    OptimisticMutation,
    QueryCache,
    ResourceMutations,
)


def expense(expense_id, amount=100.0, date="2025-03-10", category=ExpenseCategory.ADS):
    return FinancialExpense(
        id=expense_id, category=category, amount=amount, date=date,
        expense_type=ExpenseType.OPERATING, created_at=f"{date}T09:00:00",
    )


@pytest.fixture
def cache(march_expenses):
    cache = QueryCache()
    cache.set((EXPENSES, "2025-03"), expenses_for_month(march_expenses, "2025-03"))
    cache.set((EXPENSES, "2025-02"), expenses_for_month(march_expenses, "2025-02"))
    return cache


@pytest.fixture
def expenses(cache):
    return ResourceMutations(cache, EXPENSES)


def ids(cache, month):
    return [e.id for e in cache.get((EXPENSES, month))]


class TestQueryCache:
    """Tests for the keyed cache."""

    def test_versions_increase(self):
        cache = QueryCache()
        first = cache.set(("a", "1"), [])
        second = cache.set(("a", "1"), [1])
        assert second > first
        assert cache.version(("a", "1")) == second

    def test_stats(self):
        cache = QueryCache()
        cache.get(("a", "1"))
        cache.set(("a", "1"), [])
        cache.get(("a", "1"))
        assert cache.stats.hits == 1
        assert cache.stats.misses == 1
        assert cache.stats.hit_rate == 50.0

    def test_snapshot_restore_absent_key(self):
        """Restoring a snapshot of a missing key removes it again."""
        cache = QueryCache()
        snap = cache.snapshot(("a", "1"))
        cache.set(("a", "1"), [1])
        cache.restore(snap)
        assert ("a", "1") not in cache

    def test_invalidate_resource(self, cache):
        assert cache.invalidate_resource(EXPENSES) == 2
        assert cache.keys() == []


class TestCreate:
    """Tests for optimistic create."""

    @pytest.mark.asyncio
    async def test_temp_row_swapped_for_saved(self, cache, expenses):
        """The saved record replaces the temporary row by id, exactly once."""
        seen = []

        async def persist():
            seen.append(list(ids(cache, "2025-03")))
            return expense("e-9", amount=75.0, date="2025-03-20")

        saved = await expenses.create(expense("", amount=75.0, date="2025-03-20"), persist)
        assert saved.id == "e-9"
        assert seen[0][0].startswith(TEMP_PREFIX)
        assert ids(cache, "2025-03") == ["e-9", "e-2", "e-1"]

    @pytest.mark.asyncio
    async def test_failure_rolls_back(self, cache, expenses):
        async def persist():
            raise RuntimeError("db down")

        with pytest.raises(MutationError) as exc_info:
            await expenses.create(expense("", date="2025-03-20"), persist)
        assert exc_info.value.operation == "create"
        assert ids(cache, "2025-03") == ["e-2", "e-1"]
        assert cache.stats.rollbacks == 1

    @pytest.mark.asyncio
    async def test_rollback_keeps_newer_writes(self, cache, expenses):
        """A key rewritten during persistence is not restored; only the temp row goes."""
        async def persist():
            cache.set((EXPENSES, "2025-03"), cache.get((EXPENSES, "2025-03")) + [expense("e-refetched")])
            raise RuntimeError("timeout")

        with pytest.raises(MutationError):
            await expenses.create(expense("", date="2025-03-20"), persist)
        current = ids(cache, "2025-03")
        assert "e-refetched" in current
        assert not any(i.startswith(TEMP_PREFIX) for i in current)
        assert cache.stats.skipped_rollbacks == 1

    @pytest.mark.asyncio
    async def test_saved_in_other_month(self, cache, expenses):
        """If the server files the record under another month it moves there."""
        async def persist():
            return expense("e-9", date="2025-02-28")

        await expenses.create(expense("", date="2025-03-20"), persist)
        assert ids(cache, "2025-03") == ["e-2", "e-1"]
        assert "e-9" in ids(cache, "2025-02")

    @pytest.mark.asyncio
    async def test_concurrent_creates_match_by_id(self, cache, expenses):
        """Two identical drafts each resolve to their own saved record."""
        async def persist_a():
            await asyncio.sleep(0)
            return expense("e-a", date="2025-03-20")

        async def persist_b():
            return expense("e-b", date="2025-03-20")

        await asyncio.gather(
            expenses.create(expense("", date="2025-03-20"), persist_a),
            expenses.create(expense("", date="2025-03-20"), persist_b),
        )
        current = ids(cache, "2025-03")
        assert sorted(i for i in current if i.startswith("e-") and i not in ("e-1", "e-2")) == ["e-a", "e-b"]
        assert not any(i.startswith(TEMP_PREFIX) for i in current)


class TestFieldMatching:
    """Commit falls back to date + amount + category when the temporary id is gone."""

    @staticmethod
    def rekey_temp_rows(cache):
        """Stand-in for a refetch that kept the pending row under a new temporary id."""
        cache.update((EXPENSES, "2025-03"), lambda items: [
            dataclasses.replace(i, id=f"{TEMP_PREFIX}rekeyed") if i.id.startswith(TEMP_PREFIX) else i
            for i in items
        ])

    @pytest.mark.asyncio
    async def test_matches_within_tolerance(self, cache, expenses):
        """Amounts within 0.01 identify the pending row; the list is re-sorted by date."""
        async def persist():
            self.rekey_temp_rows(cache)
            return expense("e-9", amount=200.004, date="2025-03-05")

        await expenses.create(expense("", amount=200.0, date="2025-03-05"), persist)
        assert ids(cache, "2025-03") == ["e-2", "e-9", "e-1"]

    @pytest.mark.asyncio
    async def test_mismatch_appends(self, cache, expenses):
        """A saved record that matches no pending row is added, not swapped in."""
        async def persist():
            self.rekey_temp_rows(cache)
            return expense("e-9", amount=200.5, date="2025-03-05")

        await expenses.create(expense("", amount=200.0, date="2025-03-05"), persist)
        month_ids = ids(cache, "2025-03")
        assert len(month_ids) == 4
        assert set(month_ids[1:3]) == {"e-9", f"{TEMP_PREFIX}rekeyed"}
        assert (month_ids[0], month_ids[-1]) == ("e-2", "e-1")

    @pytest.mark.asyncio
    async def test_category_must_match(self, cache, expenses):
        async def persist():
            self.rekey_temp_rows(cache)
            return expense("e-9", amount=200.0, date="2025-03-05", category=ExpenseCategory.PACKAGING)

        await expenses.create(expense("", amount=200.0, date="2025-03-05"), persist)
        assert f"{TEMP_PREFIX}rekeyed" in ids(cache, "2025-03")


class TestUpdate:
    """Tests for optimistic update."""

    @pytest.mark.asyncio
    async def test_date_change_moves_bucket(self, cache, expenses):
        moved = expense("e-1", amount=200.0, date="2025-02-10")

        async def persist():
            assert "e-1" in ids(cache, "2025-02")
            return moved

        await expenses.update("e-1", {"date": "2025-02-10"}, persist)
        assert "e-1" not in ids(cache, "2025-03")
        assert "e-1" in ids(cache, "2025-02")

    @pytest.mark.asyncio
    async def test_failure_restores_original(self, cache, expenses):
        async def persist():
            raise RuntimeError("boom")

        with pytest.raises(MutationError):
            await expenses.update("e-1", {"amount": 999.0}, persist)
        amounts = {e.id: e.amount for e in cache.get((EXPENSES, "2025-03"))}
        assert amounts["e-1"] == 200.0

    @pytest.mark.asyncio
    async def test_missing_record(self, cache, expenses):
        """Server reports the record gone: NotFoundError, cache untouched."""
        async def persist():
            return None

        with pytest.raises(NotFoundError):
            await expenses.update("e-1", {"amount": 1.0}, persist)
        assert ids(cache, "2025-03") == ["e-2", "e-1"]


class TestDelete:
    """Tests for optimistic delete."""

    @pytest.mark.asyncio
    async def test_delete(self, cache, expenses):
        async def persist():
            return True

        assert await expenses.delete("e-2", persist) is True
        assert ids(cache, "2025-03") == ["e-1"]

    @pytest.mark.asyncio
    async def test_delete_failure_restores(self, cache, expenses):
        async def persist():
            raise RuntimeError("boom")

        with pytest.raises(MutationError):
            await expenses.delete("e-2", persist)
        assert ids(cache, "2025-03") == ["e-2", "e-1"]


class TestOptimisticMutation:
    """Tests for the generic mutation primitive."""

    @pytest.mark.asyncio
    async def test_commit_called_with_result(self):
        cache = QueryCache()
        mutation = OptimisticMutation(cache, "payout-config")
        key = ("payout-config", "current")

        async def persist():
            return "saved"

        result = await mutation.run(
            "update", [key],
            apply=lambda c: c.set(key, "speculative"),
            persist=persist,
            commit=lambda c, saved: c.set(key, saved),
        )
        assert result == "saved"
        assert cache.get(key) == "saved"

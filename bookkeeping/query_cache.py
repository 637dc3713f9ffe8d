"""
Client-side query cache with optimistic, rollback-safe mutations.

Collections are cached under (resource, month) keys, e.g.
("financial-expenses", "2025-03"). A mutation is one transaction:

    1. snapshot every affected key
    2. apply the change to the cached lists right away
    3. await persistence
    4. success: swap the speculative entry for the saved one by exact id
       failure: restore the snapshots and raise MutationError

Usage:
    cache = QueryCache()
    expenses = ResourceMutations(cache, EXPENSES)

    saved = await expenses.create(draft_expense, lambda: client.create_expense(draft))
"""
import copy
import dataclasses
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from bookkeeping.exceptions import MutationError, NotFoundError
from bookkeeping.observability import get_logger

logger = get_logger(__name__)

CacheKey = Tuple[str, str]

# Resource names
ORDERS = "financial-orders"
EXPENSES = "financial-expenses"
SHIPPING_RECORDS = "shipping-records"
SHIPPING_SHADOWS = "shipping-shadows"
MONTHLY_PROFIT = "monthly-profit"
PAYOUT_CONFIG = "payout-config"

TEMP_PREFIX = "temp-"
AMOUNT_TOLERANCE = 0.01


@dataclass
class CacheStats:
    """Cache statistics for monitoring."""

    hits: int = 0
    misses: int = 0
    sets: int = 0
    invalidations: int = 0
    rollbacks: int = 0
    skipped_rollbacks: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return (self.hits / total * 100) if total > 0 else 0.0

    def to_dict(self) -> dict:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "invalidations": self.invalidations,
            "rollbacks": self.rollbacks,
            "skipped_rollbacks": self.skipped_rollbacks,
            "hit_rate_percent": round(self.hit_rate, 2),
        }

    def reset(self) -> None:
        self.hits = 0
        self.misses = 0
        self.sets = 0
        self.invalidations = 0
        self.rollbacks = 0
        self.skipped_rollbacks = 0


@dataclass(frozen=True)
class Snapshot:
    key: CacheKey
    value: Any
    version: Optional[int]

    @property
    def present(self) -> bool:
        return self.version is not None


def _now() -> str:
    return datetime.now(timezone.utc).replace(tzinfo=None).isoformat(timespec="microseconds")


def sort_newest_first(items: Iterable[Any]) -> List[Any]:
    """Date descending, then created_at descending."""
    return sorted(items, key=lambda i: (i.date or "", i.created_at or ""), reverse=True)


class QueryCache:
    """
    Keyed in-memory cache.

    Every write stamps the key with a new version from a monotonic clock, so
    a snapshot can tell whether the entry was overwritten after it was taken.
    """

    def __init__(self):
        self._values: Dict[CacheKey, Any] = {}
        self._versions: Dict[CacheKey, int] = {}
        self._clock = 0
        self.stats = CacheStats()

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._values

    def keys(self, resource: Optional[str] = None) -> List[CacheKey]:
        return [k for k in self._values if resource is None or k[0] == resource]

    def get(self, key: CacheKey, default: Any = None) -> Any:
        if key in self._values:
            self.stats.hits += 1
            return self._values[key]
        self.stats.misses += 1
        return default

    def set(self, key: CacheKey, value: Any) -> int:
        self._clock += 1
        self._values[key] = value
        self._versions[key] = self._clock
        self.stats.sets += 1
        return self._clock

    def update(self, key: CacheKey, fn: Callable[[List[Any]], List[Any]], create: bool = True) -> Optional[int]:
        """Replace a cached list with fn(list). Missing keys start empty unless create=False."""
        if key not in self._values and not create:
            return None
        return self.set(key, fn(list(self._values.get(key) or [])))

    def version(self, key: CacheKey) -> Optional[int]:
        return self._versions.get(key)

    def invalidate(self, key: CacheKey) -> bool:
        if key not in self._values:
            return False
        del self._values[key]
        del self._versions[key]
        self.stats.invalidations += 1
        return True

    def invalidate_resource(self, resource: str) -> int:
        keys = self.keys(resource)
        for key in keys:
            self.invalidate(key)
        return len(keys)

    def snapshot(self, key: CacheKey) -> Snapshot:
        return Snapshot(key, copy.deepcopy(self._values.get(key)), self._versions.get(key))

    def restore(self, snapshot: Snapshot) -> None:
        if snapshot.present:
            self.set(snapshot.key, copy.deepcopy(snapshot.value))
        else:
            self.invalidate(snapshot.key)


class OptimisticMutation:
    """
    snapshot -> speculative apply -> commit or rollback, for one resource.

    On failure a key is restored from its snapshot only if nothing wrote it
    after the speculative apply. Otherwise `undo` reverts just this mutation's
    change, leaving newer writes in place.
    """

    def __init__(self, cache: QueryCache, resource: str):
        self.cache = cache
        self.resource = resource

    async def run(
        self,
        operation: str,
        keys: Sequence[CacheKey],
        apply: Callable[[QueryCache], None],
        persist: Callable[[], Awaitable[Any]],
        commit: Optional[Callable[[QueryCache, Any], None]] = None,
        undo: Optional[Callable[[QueryCache], None]] = None,
        missing: Optional[Any] = None,
    ) -> Any:
        keys = list(dict.fromkeys(keys))
        snapshots = [self.cache.snapshot(key) for key in keys]
        apply(self.cache)
        applied = {key: self.cache.version(key) for key in keys}

        try:
            result = await persist()
        except Exception as exc:
            self._rollback(snapshots, applied, undo)
            logger.warning(f"{operation} {self.resource} failed, cache rolled back: {exc}")
            raise MutationError(self.resource, operation, exc) from exc

        if result is None or result is False:
            self._rollback(snapshots, applied, undo)
            raise NotFoundError(self.resource, missing)

        if commit:
            commit(self.cache, result)
        return result

    def _rollback(
        self,
        snapshots: List[Snapshot],
        applied: Dict[CacheKey, Optional[int]],
        undo: Optional[Callable[[QueryCache], None]],
    ) -> None:
        overwritten = False
        for snapshot in snapshots:
            if self.cache.version(snapshot.key) == applied[snapshot.key]:
                self.cache.restore(snapshot)
                self.cache.stats.rollbacks += 1
            else:
                overwritten = True
                self.cache.stats.skipped_rollbacks += 1
                logger.debug(f"Skipping snapshot restore for {snapshot.key}: overwritten since apply")
        if overwritten and undo:
            undo(self.cache)


class ResourceMutations:
    """
    Create/update/delete for a month-bucketed collection of dataclass records.

    Records need `id`, `date`, `created_at` and a `month` property.
    `match_fields` identify a saved record when its temporary id is gone;
    float fields match within 0.01.
    """

    def __init__(
        self,
        cache: QueryCache,
        resource: str,
        match_fields: Tuple[str, ...] = ("date", "amount", "category"),
    ):
        self.cache = cache
        self.resource = resource
        self.match_fields = match_fields
        self._mutation = OptimisticMutation(cache, resource)

    def key(self, month: str) -> CacheKey:
        return (self.resource, month)

    def find(self, item_id: str) -> Optional[Tuple[CacheKey, Any]]:
        for key in self.cache.keys(self.resource):
            for item in self.cache.get(key) or []:
                if item.id == item_id:
                    return key, item
        return None

    def _matches(self, candidate: Any, saved: Any) -> bool:
        for name in self.match_fields:
            a, b = getattr(candidate, name, None), getattr(saved, name, None)
            if isinstance(a, float) or isinstance(b, float):
                if a is None or b is None or abs(float(a) - float(b)) >= AMOUNT_TOLERANCE:
                    return False
            elif a != b:
                return False
        return True

    def _place(self, items: List[Any], saved: Any, speculative_id: Optional[str]) -> List[Any]:
        """Put `saved` where its speculative entry was, preferring exact ids."""
        for target_id in (speculative_id, saved.id):
            if target_id is None:
                continue
            for index, item in enumerate(items):
                if item.id == target_id:
                    items[index] = saved
                    return sort_newest_first(_dedupe(items, saved, index))

        for index, item in enumerate(items):
            if str(item.id).startswith(TEMP_PREFIX) and self._matches(item, saved):
                items[index] = saved
                return sort_newest_first(items)

        items.append(saved)
        return sort_newest_first(items)

    async def create(self, item: Any, persist: Callable[[], Awaitable[Any]]) -> Any:
        """Show `item` at once under a temporary id; swap in the saved record."""
        now = _now()
        temp = dataclasses.replace(item, id=f"{TEMP_PREFIX}{uuid.uuid4().hex}", created_at=now, updated_at=now)
        key = self.key(temp.month)

        def apply(cache: QueryCache) -> None:
            cache.update(key, lambda items: sort_newest_first(items + [temp]))

        def undo(cache: QueryCache) -> None:
            cache.update(key, lambda items: [i for i in items if i.id != temp.id], create=False)

        def commit(cache: QueryCache, saved: Any) -> None:
            if saved.month != temp.month:
                undo(cache)
                cache.update(self.key(saved.month), lambda items: self._place(items, saved, None), create=False)
            else:
                cache.update(key, lambda items: self._place(items, saved, temp.id))

        return await self._mutation.run("create", [key], apply, persist, commit, undo, missing=temp.id)

    async def update(self, item_id: str, changes: Dict[str, Any], persist: Callable[[], Awaitable[Any]]) -> Any:
        """
        Apply `changes` to the cached record at once.

        A date change moves the record to its new month bucket (when cached).
        """
        found = self.find(item_id)
        if found is None:
            keys: List[CacheKey] = []
            old_key, old, new = None, None, None
        else:
            old_key, old = found
            fields = {k: v for k, v in changes.items() if k not in ("id", "updated_at")}
            new = dataclasses.replace(old, **fields, updated_at=_now())
            keys = [old_key, self.key(new.month)]

        def apply(cache: QueryCache) -> None:
            if old is None:
                return
            cache.update(old_key, lambda items: [i for i in items if i.id != item_id], create=False)
            cache.update(self.key(new.month), lambda items: sort_newest_first(items + [new]), create=False)

        def undo(cache: QueryCache) -> None:
            if old is None:
                return
            cache.update(self.key(new.month), lambda items: [i for i in items if i.id != item_id], create=False)
            cache.update(old_key, lambda items: sort_newest_first(items + [old]), create=False)

        def commit(cache: QueryCache, saved: Any) -> None:
            for key in cache.keys(self.resource):
                if key[1] != saved.month:
                    cache.update(key, lambda items: [i for i in items if i.id != saved.id], create=False)
            cache.update(self.key(saved.month), lambda items: self._place(items, saved, item_id), create=False)

        return await self._mutation.run("update", keys, apply, persist, commit, undo, missing=item_id)

    async def delete(self, item_id: str, persist: Callable[[], Awaitable[bool]]) -> bool:
        """Drop the record from the cache at once; restore it if deletion fails."""
        found = self.find(item_id)
        keys = [found[0]] if found else []

        def apply(cache: QueryCache) -> None:
            if found:
                cache.update(found[0], lambda items: [i for i in items if i.id != item_id], create=False)

        def undo(cache: QueryCache) -> None:
            if found:
                cache.update(found[0], lambda items: sort_newest_first(items + [found[1]]), create=False)

        return await self._mutation.run("delete", keys, apply, persist, None, undo, missing=item_id)


def _dedupe(items: List[Any], saved: Any, keep_index: int) -> List[Any]:
    return [i for n, i in enumerate(items) if n == keep_index or i.id != saved.id]

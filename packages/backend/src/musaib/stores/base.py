"""CollectionStore — fetch on open, write-after-confirm mutations.

Learn: a store is the portal's handle on one entity collection:

1. open()  → acquire the shared mirror; full fetch if it's empty or stale
2. create/update/delete → call the backend FIRST; only a confirmed
   result is patched into the mirror (append/prepend, replace-by-id,
   filter-out). A failed call raises and leaves the mirror untouched,
   so there is never anything to roll back.
3. close() → release the mirror

Fetch errors are different: they're recorded on `error` (the page shows
them) and never raised.
"""

import uuid
from typing import Any, Generic, Optional, TypeVar

import structlog

from musaib.backend.rows import BackendError, Table
from musaib.stores.cache import CacheListener, CacheRegistry, CollectionCache

logger = structlog.get_logger()

T = TypeVar("T")


class CollectionStore(Generic[T]):
    """Base class for the data-access stores."""

    def __init__(
        self,
        table: Table[T],
        caches: CacheRegistry,
        key: Optional[str] = None,
        filters: Optional[dict[str, Any]] = None,
    ):
        self.table = table
        self.caches = caches
        self.key = key or table.name
        self.filters = filters or {}
        self._cache: Optional[CollectionCache] = None

    # ─── Lifecycle ───────────────────────────────────────

    async def open(self) -> "CollectionStore[T]":
        if self._cache is None:
            self._cache = self.caches.acquire(self.key)
        if self._cache.needs_fetch and not self._cache.loading:
            await self.fetch()
        return self

    async def close(self) -> None:
        if self._cache is not None:
            self.caches.release(self.key)
            self._cache = None

    async def __aenter__(self):
        return await self.open()

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @property
    def cache(self) -> CollectionCache:
        if self._cache is None:
            raise RuntimeError(f"Store '{self.key}' is not open")
        return self._cache

    def _live(self, cache: CollectionCache) -> bool:
        """False once the mirror was released while a call was in flight."""
        return self.caches.get(self.key) is cache

    # ─── State ───────────────────────────────────────────

    @property
    def items(self) -> list[T]:
        return self.cache.items

    @property
    def loading(self) -> bool:
        return self.cache.loading

    @property
    def error(self) -> Optional[str]:
        return self.cache.error

    def subscribe(self, listener: CacheListener):
        return self.cache.subscribe(listener)

    def find(self, item_id: uuid.UUID) -> Optional[T]:
        return self.cache.find(item_id)

    # ─── Fetch ───────────────────────────────────────────

    async def fetch(self) -> None:
        """Full fetch into the mirror. Errors land on `error`."""
        cache = self.cache
        cache.loading = True
        try:
            rows = await self.table.select(**self.filters)
        except BackendError as e:
            logger.warning("store.fetch_failed", key=self.key, error=str(e))
            cache.error = str(e)
            return
        finally:
            cache.loading = False

        if self._live(cache):
            cache.replace_all(rows)

    # ─── Confirmed mutations ─────────────────────────────

    async def _insert(self, values: dict[str, Any], front: bool = False) -> T:
        cache = self.cache
        row = await self.table.insert(values)
        if self._live(cache):
            cache.insert(row, front=front)
        await self.caches.confirmed(self.key)
        return row

    async def _update(
        self,
        item_id: uuid.UUID,
        values: dict[str, Any],
        expected: Optional[dict[str, Any]] = None,
    ) -> T:
        cache = self.cache
        row = await self.table.update(item_id, values, expected=expected)
        if self._live(cache):
            cache.replace(row)
        await self.caches.confirmed(self.key)
        return row

    async def _delete(self, item_id: uuid.UUID) -> None:
        cache = self.cache
        await self.table.delete(item_id)
        if self._live(cache):
            cache.remove(item_id)
        await self.caches.confirmed(self.key)

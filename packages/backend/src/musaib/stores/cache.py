"""Shared collection cache — one mirror per collection, many readers.

Learn: every store that reads the same collection key through the same
CacheRegistry gets the SAME CollectionCache. A confirmed mutation made
through any of them patches that one mirror, and every subscriber hears
about it:

    registry.acquire("services")      # refcount 1, empty mirror
    registry.acquire("services")      # refcount 2, same object
    registry.release("services")      # refcount 1
    registry.release("services")      # refcount 0 → mirror dropped

Keys are "<table>" or "<table>:<scope>" (e.g. "family_members:user:<id>").
When a mutation is confirmed on one key, the other keys of the same table
are marked stale, since they hold a different slice and can't be patched
in place, and refetch on their next open. So are the mirrors of tables
that embed its rows (EMBEDDED_IN): a request mirror carries copies of its
service, beneficiary and member. If a broadcaster is set (Redis, see
musaib.realtime.pubsub) other processes get the same signal.
"""

import enum
import uuid
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Iterable, Optional, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


class CacheOp(str, enum.Enum):
    REPLACE_ALL = "replace_all"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    STALE = "stale"


@dataclass(frozen=True)
class CacheChange:
    key: str
    op: CacheOp
    item_id: Optional[uuid.UUID] = None


CacheListener = Callable[[CacheChange], None]
Broadcaster = Callable[[str, str], Awaitable[None]]  # (table, origin)

# Tables whose rows embed rows of another table (expanded relationships).
# A change to the key table leaves copies inside these mirrors out of date.
EMBEDDED_IN: dict[str, tuple[str, ...]] = {
    "services": ("service_requests",),
    "family_members": ("service_requests",),
    "profiles": ("service_requests",),
}


def table_of(key: str) -> str:
    return key.split(":", 1)[0]


class CollectionCache(Generic[T]):
    """Local mirror of one collection. Items must have an `id`."""

    def __init__(self, key: str):
        self.key = key
        self.items: list[T] = []
        self.loaded = False
        self.stale = False
        self.loading = False
        self.error: Optional[str] = None
        self._listeners: list[CacheListener] = []

    @property
    def table(self) -> str:
        return table_of(self.key)

    @property
    def needs_fetch(self) -> bool:
        return not self.loaded or self.stale

    # ─── Pub/sub ─────────────────────────────────────────

    def subscribe(self, listener: CacheListener) -> Callable[[], None]:
        """Register a listener; returns the unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, op: CacheOp, item_id: Optional[uuid.UUID] = None) -> None:
        change = CacheChange(self.key, op, item_id)
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                logger.exception("cache.listener_failed", key=self.key, op=op.value)

    # ─── Mutations (only after the backend confirmed) ────

    def replace_all(self, items: Iterable[T]) -> None:
        self.items = list(items)
        self.loaded = True
        self.stale = False
        self.error = None
        self._publish(CacheOp.REPLACE_ALL)

    def insert(self, item: T, front: bool = False) -> None:
        if front:
            self.items = [item, *self.items]
        else:
            self.items = [*self.items, item]
        self._publish(CacheOp.INSERT, item.id)

    def replace(self, item: T) -> None:
        self.items = [item if i.id == item.id else i for i in self.items]
        self._publish(CacheOp.UPDATE, item.id)

    def remove(self, item_id: uuid.UUID) -> None:
        self.items = [i for i in self.items if i.id != item_id]
        self._publish(CacheOp.DELETE, item_id)

    def mark_stale(self) -> None:
        if not self.stale:
            self.stale = True
            self._publish(CacheOp.STALE)

    def find(self, item_id: uuid.UUID) -> Optional[T]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None


class CacheRegistry:
    """Reference-counted CollectionCaches keyed by collection key."""

    def __init__(self, broadcaster: Optional[Broadcaster] = None):
        self.origin = uuid.uuid4().hex
        self.broadcaster = broadcaster
        self._caches: dict[str, CollectionCache] = {}
        self._refs: dict[str, int] = {}

    def acquire(self, key: str) -> CollectionCache:
        cache = self._caches.get(key)
        if cache is None:
            cache = self._caches[key] = CollectionCache(key)
            self._refs[key] = 0
        self._refs[key] += 1
        return cache

    def release(self, key: str) -> None:
        if key not in self._refs:
            return
        self._refs[key] -= 1
        if self._refs[key] <= 0:
            del self._refs[key]
            del self._caches[key]

    def refcount(self, key: str) -> int:
        return self._refs.get(key, 0)

    def get(self, key: str) -> Optional[CollectionCache]:
        return self._caches.get(key)

    def mark_table_stale(self, table: str, except_key: Optional[str] = None) -> None:
        for key, cache in self._caches.items():
            if key != except_key and cache.table == table:
                cache.mark_stale()

    def invalidate(self, table: str, except_key: Optional[str] = None) -> None:
        """Mark `table` stale along with every table that embeds its rows."""
        self.mark_table_stale(table, except_key=except_key)
        for dependent in EMBEDDED_IN.get(table, ()):
            self.mark_table_stale(dependent)

    async def confirmed(self, key: str) -> None:
        """A mutation on `key` was confirmed by the backend."""
        await self.changed(table_of(key), except_key=key)

    async def changed(self, table: str, except_key: Optional[str] = None) -> None:
        """`table` was written; local mirrors go stale and other processes hear."""
        self.invalidate(table, except_key=except_key)
        if self.broadcaster is None:
            return
        try:
            await self.broadcaster(table, self.origin)
        except Exception as e:
            # Broadcast is best-effort, local caches are already right
            logger.warning("cache.broadcast_failed", table=table, error=str(e))

    def on_remote_change(self, table: str, origin: str) -> None:
        """Another process changed `table`; everything we hold is stale."""
        if origin == self.origin:
            return
        self.invalidate(table)

    def clear(self) -> None:
        self._caches.clear()
        self._refs.clear()

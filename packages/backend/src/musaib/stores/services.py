"""Service catalog store (admin-managed, read by members)."""

import uuid

from musaib.backend import Backend
from musaib.schemas.service import ServiceCreate, ServiceRead, ServiceUpdate
from musaib.stores.base import CollectionStore
from musaib.stores.cache import CacheRegistry


class ServiceStore(CollectionStore[ServiceRead]):
    """All services, ordered by name."""

    def __init__(self, backend: Backend, caches: CacheRegistry):
        super().__init__(backend.services, caches)

    def active(self) -> list[ServiceRead]:
        return [s for s in self.items if s.is_active]

    async def create(self, body: ServiceCreate) -> ServiceRead:
        return await self._insert(body.model_dump())

    async def update(self, service_id: uuid.UUID, body: ServiceUpdate) -> ServiceRead:
        return await self._update(service_id, body.model_dump(exclude_unset=True))

    async def delete(self, service_id: uuid.UUID) -> None:
        await self._delete(service_id)

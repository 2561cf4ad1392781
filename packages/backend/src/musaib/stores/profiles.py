"""Profiles store — the admin's member directory."""

import uuid

from musaib.backend import Backend
from musaib.schemas.profile import ProfileRead
from musaib.stores.base import CollectionStore
from musaib.stores.cache import CacheRegistry


class ProfileStore(CollectionStore[ProfileRead]):
    """Every profile, newest first. No create/delete: registration lives elsewhere."""

    def __init__(self, backend: Backend, caches: CacheRegistry):
        super().__init__(backend.profiles, caches)

    def members(self) -> list[ProfileRead]:
        return [p for p in self.items if p.role == "member"]

    async def update(self, profile_id: uuid.UUID, changes: dict) -> ProfileRead:
        return await self._update(profile_id, changes)

    async def set_status(self, profile_id: uuid.UUID, status: str) -> ProfileRead:
        """Suspend or reactivate a member."""
        return await self.update(profile_id, {"status": status})

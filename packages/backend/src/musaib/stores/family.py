"""Family dependents of one member."""

import uuid

from musaib.backend import Backend, RowNotFound
from musaib.schemas.family import (
    FamilyMemberCreate,
    FamilyMemberRead,
    FamilyMemberUpdate,
)
from musaib.stores.base import CollectionStore
from musaib.stores.cache import CacheRegistry


class FamilyMemberStore(CollectionStore[FamilyMemberRead]):
    """A member's dependents, ordered by first name.

    Scoped to one owner: creates are stamped with the owner's id, and
    updates/deletes of anyone else's rows fail as not-found.
    """

    def __init__(self, backend: Backend, caches: CacheRegistry, user_id: uuid.UUID):
        super().__init__(
            backend.family_members,
            caches,
            key=f"family_members:user:{user_id}",
            filters={"user_id": user_id},
        )
        self.user_id = user_id

    async def _owned(self, member_id: uuid.UUID) -> FamilyMemberRead:
        member = self.find(member_id) or await self.table.get(member_id)
        if member.user_id != self.user_id:
            raise RowNotFound(f"family_members: no row with id {member_id}")
        return member

    async def create(self, body: FamilyMemberCreate) -> FamilyMemberRead:
        return await self._insert({**body.model_dump(), "user_id": self.user_id})

    async def update(
        self, member_id: uuid.UUID, body: FamilyMemberUpdate
    ) -> FamilyMemberRead:
        await self._owned(member_id)
        return await self._update(member_id, body.model_dump(exclude_unset=True))

    async def delete(self, member_id: uuid.UUID) -> None:
        await self._owned(member_id)
        await self._delete(member_id)

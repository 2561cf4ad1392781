"""Service request store with the status state machine.

Learn: a request has three states and two moves:

    pending → approved
    pending → rejected

approved and rejected are terminal. Every allowed move stamps
processed_at, so processed_at is set exactly when status != pending.
A move that isn't in VALID_TRANSITIONS (including "back to pending")
raises InvalidTransitionError before anything is written, so there is
no stale processed_at or admin_comments to clean up.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog

from musaib.backend import Backend, RowConflict
from musaib.schemas.request import ServiceRequestCreate, ServiceRequestRead
from musaib.stores.base import CollectionStore
from musaib.stores.cache import CacheRegistry

logger = structlog.get_logger()


# ═══════════════════════════════════════════════════════════
# State Machine
# ═══════════════════════════════════════════════════════════

VALID_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"approved", "rejected"},
    "approved": set(),  # terminal state
    "rejected": set(),  # terminal state
}


class InvalidTransitionError(Exception):
    """Raised when a status transition is not allowed."""
    pass


# ═══════════════════════════════════════════════════════════
# Store
# ═══════════════════════════════════════════════════════════


class ServiceRequestStore(CollectionStore[ServiceRequestRead]):
    """Requests with nested service/beneficiary/user, newest first.

    With a user_id the store only sees that member's requests (member
    area); without one it sees every request (admin area).
    """

    def __init__(
        self,
        backend: Backend,
        caches: CacheRegistry,
        user_id: Optional[uuid.UUID] = None,
    ):
        if user_id is None:
            super().__init__(backend.service_requests, caches)
        else:
            super().__init__(
                backend.service_requests,
                caches,
                key=f"service_requests:user:{user_id}",
                filters={"user_id": user_id},
            )
        self.user_id = user_id

    async def create(
        self,
        body: ServiceRequestCreate,
        user_id: Optional[uuid.UUID] = None,
    ) -> ServiceRequestRead:
        """Submit a new pending request; it goes to the top of the list."""
        owner = self.user_id or user_id
        if owner is None:
            raise ValueError("A request needs an owning member")

        values = {
            **body.model_dump(),
            "user_id": owner,
            "status": "pending",
            "submitted_at": datetime.now(timezone.utc),
        }
        return await self._insert(values, front=True)

    async def update_status(
        self,
        request_id: uuid.UUID,
        new_status: str,
        admin_comments: Optional[str] = None,
    ) -> ServiceRequestRead:
        """Move a request through the state machine.

        The write only lands while the row still has the status the check
        was made against. When two decisions race, the loser sees the
        winner's status and gets InvalidTransitionError like any other
        late caller.

        Raises:
            InvalidTransitionError: if the move isn't allowed
            RowNotFound: if the request doesn't exist
        """
        current = await self.table.get(request_id)
        self._check_transition(current.status, new_status)

        values: dict = {
            "status": new_status,
            "processed_at": datetime.now(timezone.utc),
        }
        if admin_comments is not None:
            values["admin_comments"] = admin_comments
        try:
            return await self._update(
                request_id, values, expected={"status": current.status}
            )
        except RowConflict:
            latest = await self.table.get(request_id)
            logger.info(
                "request.status_conflict",
                request_id=str(request_id),
                wanted=new_status,
                found=latest.status,
            )
            self._check_transition(latest.status, new_status)
            raise

    @staticmethod
    def _check_transition(current: str, new_status: str) -> None:
        allowed = VALID_TRANSITIONS.get(current, set())
        if new_status not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition from '{current}' to '{new_status}'. "
                f"Allowed: {sorted(allowed) or 'none (terminal state)'}"
            )

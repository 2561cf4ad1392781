"""Row store — generic per-table CRUD over async SQLAlchemy.

Learn: this is the "database-as-a-service" surface the portal talks to.
Every call opens its own session, does one thing, commits, and returns
pydantic Read models (never live ORM objects), so callers can keep the
results in a cache without holding a session open.

Failures come back as BackendError (RowNotFound for a missing id). The
row store never swallows errors — deciding what a failure means is the
caller's job.
"""

import uuid
from typing import Any, Generic, Optional, Sequence, TypeVar

import structlog
from pydantic import BaseModel
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from musaib.db.models import Base

logger = structlog.get_logger()

S = TypeVar("S", bound=BaseModel)


class BackendError(Exception):
    """Raised when a row operation fails."""


class RowNotFound(BackendError):
    """Raised when no row matches the requested id."""


class RowConflict(BackendError):
    """Raised when a conditional update finds the row already changed."""


class Table(Generic[S]):
    """CRUD for one table, returning `schema` instances.

    order_by/descending give every full fetch a stable order. expand names
    relationships that are always loaded alongside the row (the nested
    sub-objects of a joined fetch).
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        model: type[Base],
        schema: type[S],
        order_by: str,
        descending: bool = False,
        expand: Sequence[str] = (),
    ):
        self.session_factory = session_factory
        self.model = model
        self.schema = schema
        self.order_by = order_by
        self.descending = descending
        self.expand = tuple(expand)

    @property
    def name(self) -> str:
        return self.model.__tablename__

    # ─── Read ────────────────────────────────────────────

    def _select(self):
        query = select(self.model)
        for rel in self.expand:
            query = query.options(selectinload(getattr(self.model, rel)))
        return query

    async def select(self, **filters: Any) -> list[S]:
        """Full fetch, optionally filtered by column equality."""
        column = getattr(self.model, self.order_by)
        query = self._select().order_by(column.desc() if self.descending else column)
        for field, value in filters.items():
            query = query.where(getattr(self.model, field) == value)

        try:
            async with self.session_factory() as db:
                result = await db.execute(query)
                rows = result.scalars().all()
                return [self.schema.model_validate(row) for row in rows]
        except SQLAlchemyError as e:
            raise BackendError(f"{self.name}: select failed: {e}") from e

    async def get(self, row_id: uuid.UUID) -> S:
        try:
            async with self.session_factory() as db:
                row = await self._load(db, row_id)
                return self.schema.model_validate(row)
        except SQLAlchemyError as e:
            raise BackendError(f"{self.name}: get failed: {e}") from e

    async def count(self, *criteria: Any) -> int:
        """Count rows matching SQLAlchemy criteria (head-only query)."""
        query = select(func.count()).select_from(self.model)
        for criterion in criteria:
            query = query.where(criterion)
        try:
            async with self.session_factory() as db:
                result = await db.execute(query)
                return int(result.scalar_one())
        except SQLAlchemyError as e:
            raise BackendError(f"{self.name}: count failed: {e}") from e

    async def _load(self, db: AsyncSession, row_id: uuid.UUID) -> Base:
        query = (
            self._select()
            .where(self.model.id == row_id)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)
        row = result.scalars().first()
        if row is None:
            raise RowNotFound(f"{self.name}: no row with id {row_id}")
        return row

    # ─── Write ───────────────────────────────────────────

    async def insert(self, values: dict[str, Any]) -> S:
        try:
            async with self.session_factory() as db:
                row = self.model(**values)
                db.add(row)
                await db.commit()
                row = await self._load(db, row.id)
                return self.schema.model_validate(row)
        except SQLAlchemyError as e:
            logger.warning("rows.insert_failed", table=self.name, error=str(e))
            raise BackendError(f"{self.name}: insert failed: {e}") from e

    async def update(
        self,
        row_id: uuid.UUID,
        values: dict[str, Any],
        expected: Optional[dict[str, Any]] = None,
    ) -> S:
        """Update one row.

        With `expected`, the write is a single conditional UPDATE that only
        matches while those columns still hold the given values. If another
        writer got there first nothing changes and RowConflict is raised.
        """
        try:
            async with self.session_factory() as db:
                if expected:
                    await self._update_where(db, row_id, values, expected)
                else:
                    row = await self._load(db, row_id)
                    for field, value in values.items():
                        setattr(row, field, value)
                await db.commit()
                row = await self._load(db, row_id)
                return self.schema.model_validate(row)
        except SQLAlchemyError as e:
            logger.warning(
                "rows.update_failed", table=self.name, id=str(row_id), error=str(e)
            )
            raise BackendError(f"{self.name}: update failed: {e}") from e

    async def _update_where(
        self,
        db: AsyncSession,
        row_id: uuid.UUID,
        values: dict[str, Any],
        expected: dict[str, Any],
    ) -> None:
        query = update(self.model).where(self.model.id == row_id)
        for field, value in expected.items():
            query = query.where(getattr(self.model, field) == value)
        query = query.values(**values).execution_options(synchronize_session=False)

        result = await db.execute(query)
        if result.rowcount == 0:
            await self._load(db, row_id)  # RowNotFound wins over a conflict
            raise RowConflict(
                f"{self.name}: row {row_id} no longer matches {expected}"
            )

    async def delete(self, row_id: uuid.UUID) -> None:
        try:
            async with self.session_factory() as db:
                row = await db.get(self.model, row_id)
                if row is None:
                    raise RowNotFound(f"{self.name}: no row with id {row_id}")
                await db.delete(row)
                await db.commit()
        except SQLAlchemyError as e:
            logger.warning(
                "rows.delete_failed", table=self.name, id=str(row_id), error=str(e)
            )
            raise BackendError(f"{self.name}: delete failed: {e}") from e

    async def find(self, **filters: Any) -> Optional[S]:
        """First row matching the filters, or None."""
        rows = await self.select(**filters)
        return rows[0] if rows else None

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Optional, Type, TypeVar
from uuid import UUID

from sqlalchemy import Executable, func, select
from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseRepository:
    """
    Base class for repositories providing common helpers.

    Repositories never commit; the calling service owns the transaction.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def execute(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        """Execute a SQLAlchemy statement."""
        return await self.session.execute(statement, params or {})

    async def scalars(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        """Execute and return scalars."""
        result = await self.execute(statement, params)
        return result.scalars()

    async def scalar_one_or_none(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        """Execute and return a single scalar or None."""
        result = await self.execute(statement, params)
        return result.scalar_one_or_none()

    async def get(self, model: Type[T], entity_id: UUID, *, for_update: bool = False) -> Optional[T]:
        """Load one entity by primary key, optionally locking the row."""
        stmt = select(model).where(model.id == entity_id)  # type: ignore[attr-defined]
        if for_update:
            stmt = stmt.with_for_update()
        return await self.scalar_one_or_none(stmt)

    async def next_code(self, column, prefix: str) -> str:
        """
        Return the next sequential code of the form `{prefix}-{YYYY}-{NNNN}`.

        Numbering restarts each calendar year; the unique constraint on the
        column rejects a concurrent duplicate.
        """
        year_prefix = f"{prefix}-{datetime.now(tz=timezone.utc).year}-"
        stmt = select(func.count()).where(column.like(f"{year_prefix}%"))
        count = (await self.execute(stmt)).scalar_one()
        return f"{year_prefix}{count + 1:04d}"

    async def flush(self) -> None:
        """Flush pending changes so database-side checks and counts see them."""
        await self.session.flush()

    async def add_all(self, entities: Iterable[Any]) -> None:
        """Add multiple entities to session."""
        self.session.add_all(list(entities))

    async def add(self, entity: Any) -> None:
        """Add a single entity to session."""
        self.session.add(entity)

"""Repository for project-owned tables addressed by name.

Most dependent tables of a project have no ORM model here; the cascade
only needs their name, their ``id`` column and the column that points at
their owner. Lightweight ``table()``/``column()`` constructs cover that.
"""

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import TableClause, column, delete, func, select, table
from sqlalchemy.ext.asyncio import AsyncSession


def owned_table(name: str, owner_column: str) -> TableClause:
    """Build a minimal table clause with ``id`` and the owner column."""
    return table(name, column("id"), column(owner_column))


class OwnedRecordRepository:
    """Select, delete and count rows owned through a single column."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def select_ids(
        self, table_name: str, owner_column: str, owner_ids: Sequence[UUID]
    ) -> list[UUID]:
        """Ids of rows in ``table_name`` whose ``owner_column`` is in ``owner_ids``."""
        if not owner_ids:
            return []
        t = owned_table(table_name, owner_column)
        result = await self.session.execute(
            select(t.c.id).where(t.c[owner_column].in_(list(owner_ids)))
        )
        return list(result.scalars().all())

    async def delete_owned(
        self, table_name: str, owner_column: str, owner_ids: Sequence[UUID]
    ) -> int:
        """Delete rows whose ``owner_column`` is in ``owner_ids``. Returns rows deleted."""
        if not owner_ids:
            return 0
        t = owned_table(table_name, owner_column)
        result = await self.session.execute(
            delete(t).where(t.c[owner_column].in_(list(owner_ids)))
        )
        return result.rowcount  # type: ignore[attr-defined]

    async def count_owned(
        self, table_name: str, owner_column: str, owner_ids: Sequence[UUID]
    ) -> int:
        """Count rows whose ``owner_column`` is in ``owner_ids``."""
        if not owner_ids:
            return 0
        t = owned_table(table_name, owner_column)
        result = await self.session.execute(
            select(func.count()).select_from(t).where(t.c[owner_column].in_(list(owner_ids)))
        )
        return result.scalar_one()

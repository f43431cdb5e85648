"""Base repository with common data access operations."""

from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel, select

ModelType = TypeVar("ModelType", bound=SQLModel)


class BaseRepository(Generic[ModelType]):
    """Base repository providing common database operations.

    Repositories handle data access only. Transaction control (commit,
    rollback) is done in the service layer.

    Write helpers issue Core statements and return the affected row count,
    so callers never hold ORM instances across a rollback.
    """

    model: type[ModelType]

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, id: UUID) -> ModelType | None:
        """Get a record by its primary key."""
        result = await self.session.execute(
            select(self.model).where(self.model.id == id)  # type: ignore[attr-defined]
        )
        return result.scalar_one_or_none()

    async def exists(self, id: UUID) -> bool:
        """Check whether a record with this primary key exists."""
        result = await self.session.execute(
            select(self.model.id).where(self.model.id == id)  # type: ignore[attr-defined]
        )
        return result.first() is not None

    def add(self, entity: ModelType) -> None:
        """Add entity to session (no flush/commit)."""
        self.session.add(entity)

    async def update_fields(self, id: UUID, values: dict[str, Any]) -> int:
        """Update columns of a single record addressed by primary key.

        Returns:
            Number of rows matched (0 when the record does not exist).
        """
        result = await self.session.execute(
            update(self.model)
            .where(self.model.id == id)  # type: ignore[attr-defined]
            .values(**values)
        )
        return result.rowcount  # type: ignore[attr-defined]

    async def delete_by_id(self, id: UUID) -> int:
        """Delete a single record by primary key. Returns rows deleted."""
        result = await self.session.execute(
            delete(self.model).where(self.model.id == id)  # type: ignore[attr-defined]
        )
        return result.rowcount  # type: ignore[attr-defined]

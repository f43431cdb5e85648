"""Repositories for payments and financial snapshots."""

from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID

from sqlalchemy import RowMapping, delete, func
from sqlmodel import select

from src.sitedesk.models.finance import Payment, ProjectFinancial
from src.sitedesk.repositories.base import BaseRepository


class PaymentRepository(BaseRepository[Payment]):
    """Repository for Payment entity."""

    model = Payment

    async def list_overdrawn(self, project_id: UUID) -> Sequence[RowMapping]:
        """Payments of a project where amount_used exceeds cash_received."""
        result = await self.session.execute(
            select(Payment.id, Payment.cash_received, Payment.amount_used).where(
                Payment.project_id == project_id,
                Payment.amount_used > Payment.cash_received,
            )
        )
        return result.mappings().all()

    async def total_for_project(self, project_id: UUID) -> Decimal:
        """Sum of payment amounts recorded for a project."""
        result = await self.session.execute(
            select(func.coalesce(func.sum(Payment.amount), 0)).where(
                Payment.project_id == project_id
            )
        )
        return Decimal(result.scalar_one())


class ProjectFinancialRepository(BaseRepository[ProjectFinancial]):
    """Repository for ProjectFinancial snapshots."""

    model = ProjectFinancial

    async def list_for_project(self, project_id: UUID) -> Sequence[RowMapping]:
        """All snapshots of a project, latest first.

        Latest means: snapshot_date desc, then updated_at desc, then created_at desc.
        """
        result = await self.session.execute(
            select(
                ProjectFinancial.id,
                ProjectFinancial.project_id,
                ProjectFinancial.cash_received,
                ProjectFinancial.amount_used,
                ProjectFinancial.amount_remaining,
                ProjectFinancial.snapshot_date,
                ProjectFinancial.created_at,
                ProjectFinancial.updated_at,
            )
            .where(ProjectFinancial.project_id == project_id)
            .order_by(
                ProjectFinancial.snapshot_date.desc(),  # type: ignore[attr-defined]
                ProjectFinancial.updated_at.desc(),  # type: ignore[attr-defined]
                ProjectFinancial.created_at.desc(),  # type: ignore[attr-defined]
            )
        )
        return result.mappings().all()

    async def get_latest(self, project_id: UUID) -> RowMapping | None:
        """The authoritative (latest) snapshot of a project, if any."""
        rows = await self.list_for_project(project_id)
        return rows[0] if rows else None

    async def delete_ids(self, ids: Sequence[UUID]) -> int:
        """Delete snapshots by id. Returns rows deleted."""
        if not ids:
            return 0
        result = await self.session.execute(
            delete(ProjectFinancial).where(ProjectFinancial.id.in_(ids))  # type: ignore[attr-defined]
        )
        return result.rowcount  # type: ignore[attr-defined]

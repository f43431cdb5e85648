"""Maintenance service - admin operations over the project graph."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.sitedesk.core.exceptions import (
    ProjectDeletionError,
    ProjectNotFoundError,
    SnapshotWriteError,
    error_text,
    sqlstate_of,
)
from src.sitedesk.core.logging import (
    bind_maintenance_context,
    clear_maintenance_context,
    get_logger,
)
from src.sitedesk.models.enums import SnapshotStatus
from src.sitedesk.repositories import (
    PaymentRepository,
    ProjectFinancialRepository,
    ProjectRepository,
)
from src.sitedesk.services.cascade_delete import DeletionReport, ProjectCascadeDeleter
from src.sitedesk.services.reconcile import (
    BatchReport,
    DriftAnalysis,
    FinancialSnapshotReconciler,
    ProgressReconciler,
    SnapshotOutcome,
    SnapshotValues,
)

logger = get_logger(__name__)


@dataclass
class BulkDeletionItem:
    """Per-project result of a bulk deletion."""

    id: UUID
    name: str | None
    status: str  # deleted, not_found, failed
    error: str | None = None


@dataclass
class FinancialOverview:
    """Current financial figures of a project."""

    project_id: UUID
    source: str  # snapshot or estimate
    contract_value: Decimal
    total_payments: Decimal
    cash_received: Decimal
    amount_used: Decimal
    amount_remaining: Decimal
    financial_health: str
    snapshot_id: UUID | None = None


def financial_health(contract_value: Decimal, amount_remaining: Decimal) -> str:
    """Healthy, Caution (<25% remaining) or Critical (<10% remaining)."""
    if contract_value <= 0:
        return "Healthy"
    remaining_rate = amount_remaining / contract_value * 100
    if remaining_rate < 10:
        return "Critical"
    if remaining_rate < 25:
        return "Caution"
    return "Healthy"


class MaintenanceService:
    """Entry point for the admin maintenance operations.

    Each operation binds its name (and project) into the log context for
    its duration.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.projects = ProjectRepository(session)
        self.payments = PaymentRepository(session)
        self.financials = ProjectFinancialRepository(session)

    async def delete_project(self, project_id: UUID) -> DeletionReport:
        """Cascade-delete a project and everything it owns.

        Raises:
            ProjectNotFoundError: If the project does not exist.
            ProjectDeletionError: If the project row could not be deleted.
        """
        bind_maintenance_context("delete_project", project_id)
        try:
            exists = await self.projects.exists(project_id)
            await self.session.commit()
            if not exists:
                raise ProjectNotFoundError(project_id)
            return await ProjectCascadeDeleter(self.session).delete_project(project_id)
        finally:
            clear_maintenance_context()

    async def delete_projects(self, project_ids: list[UUID]) -> list[BulkDeletionItem]:
        """Delete several projects one after another.

        A failure on one project is recorded in its item and does not stop
        the others, including database errors raised while looking it up.
        """
        results: list[BulkDeletionItem] = []
        for project_id in project_ids:
            name: str | None = None
            try:
                name = await self.projects.get_name(project_id)
                await self.session.commit()
                await self.delete_project(project_id)
            except ProjectNotFoundError:
                results.append(
                    BulkDeletionItem(
                        id=project_id, name=name, status="not_found", error="Project not found"
                    )
                )
                continue
            except ProjectDeletionError as e:
                results.append(
                    BulkDeletionItem(
                        id=project_id, name=name, status="failed", error=f"{e}: {e.details}"
                    )
                )
                continue
            except SQLAlchemyError as e:
                await self.session.rollback()
                logger.warning(
                    "Bulk deletion item failed",
                    project_id=str(project_id),
                    sqlstate=sqlstate_of(e),
                    error=error_text(e),
                )
                results.append(
                    BulkDeletionItem(
                        id=project_id, name=name, status="failed", error=error_text(e)
                    )
                )
                continue
            results.append(BulkDeletionItem(id=project_id, name=name, status="deleted"))

        deleted = sum(1 for item in results if item.status == "deleted")
        logger.info("Bulk deletion finished", requested=len(project_ids), deleted=deleted)
        return results

    async def list_orphaned(self) -> list[dict]:
        """Projects without a client, or whose client no longer exists."""
        rows = await self.projects.list_orphaned()
        await self.session.commit()
        return [dict(row) for row in rows]

    async def delete_orphaned(self) -> list[BulkDeletionItem]:
        orphaned = await self.list_orphaned()
        logger.info("Deleting orphaned projects", count=len(orphaned))
        return await self.delete_projects([row["id"] for row in orphaned])

    async def recompute_all(self) -> BatchReport:
        bind_maintenance_context("recompute_progress")
        try:
            return await ProgressReconciler(self.session).recompute_all()
        finally:
            clear_maintenance_context()

    async def drift_report(self) -> DriftAnalysis:
        bind_maintenance_context("find_drift")
        try:
            return await ProgressReconciler(self.session).analyze()
        finally:
            clear_maintenance_context()

    async def update_financials(self, project_id: UUID, values: SnapshotValues) -> SnapshotOutcome:
        """Write the financial snapshot of a project and collapse duplicates.

        Raises:
            ProjectNotFoundError: If the project does not exist.
            SnapshotWriteError: If the snapshot could not be written at all.
        """
        bind_maintenance_context("update_financials", project_id)
        try:
            exists = await self.projects.exists(project_id)
            await self.session.commit()
            if not exists:
                raise ProjectNotFoundError(project_id)

            outcome = await FinancialSnapshotReconciler(self.session).reconcile_snapshot(
                project_id, values
            )
            if outcome.status == SnapshotStatus.FAILED:
                logger.error("Financial snapshot could not be written", error=outcome.error)
                raise SnapshotWriteError(project_id, outcome.error or "Unknown error")
            return outcome
        finally:
            clear_maintenance_context()

    async def get_financials(self, project_id: UUID) -> FinancialOverview:
        """Latest snapshot figures, or an estimate from payments and progress.

        Raises:
            ProjectNotFoundError: If the project does not exist.
        """
        project = await self.projects.get_by_id(project_id)
        if project is None:
            await self.session.commit()
            raise ProjectNotFoundError(project_id)
        contract_value = project.contract_value or Decimal("0")
        progress = project.progress_percentage or 0

        total_payments = await self.payments.total_for_project(project_id)
        latest = await self.financials.get_latest(project_id)
        await self.session.commit()

        if latest is not None:
            # Zero is a real figure; only missing columns fall back
            cash_received = latest["cash_received"]
            if cash_received is None:
                cash_received = total_payments
            amount_used = latest["amount_used"]
            if amount_used is None:
                amount_used = Decimal("0")
            amount_remaining = latest["amount_remaining"]
            if amount_remaining is None:
                amount_remaining = contract_value - cash_received
            source = "snapshot"
        else:
            cash_received = total_payments
            amount_used = (contract_value * progress / 100).quantize(
                Decimal("1"), rounding=ROUND_HALF_UP
            )
            amount_remaining = contract_value - amount_used
            source = "estimate"

        return FinancialOverview(
            project_id=project_id,
            source=source,
            contract_value=contract_value,
            total_payments=total_payments,
            cash_received=cash_received,
            amount_used=amount_used,
            amount_remaining=amount_remaining,
            financial_health=financial_health(contract_value, amount_remaining),
            snapshot_id=latest["id"] if latest is not None else None,
        )

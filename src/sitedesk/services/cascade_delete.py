"""Dependency-ordered cascade deletion of a project and everything it owns.

The schema does not declare every ownership relation as a FOREIGN KEY, so
the database cannot be asked to cascade, nor to describe the ownership
graph. The graph lives here instead, as a fixed plan ordered so that a
table is only emptied after every table that references it.

Deletion of a project:
1. Repair payments that violate ``amount_used <= cash_received`` (a guard
   on the payments table rejects deleting such rows).
2. Walk the plan. Steps owned through an intermediate table first resolve
   the intermediate ids, then delete by those ids. A failing step is
   logged and recorded; the walk continues.
3. Verification sweep: recount every step by the owner ids it used and
   report leftovers as residual-reference warnings. A step whose owner ids
   could not be resolved cannot be recounted and is reported as unverified.
4. Delete the project row. Only this step can fail the operation.

Every statement is committed on its own; there is no transaction spanning
the walk.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.sitedesk.core.exceptions import (
    ProjectDeletionError,
    ProjectNotFoundError,
    classify_sqlstate,
    error_text,
    sqlstate_of,
)
from src.sitedesk.core.logging import get_logger
from src.sitedesk.models.base import utc_now
from src.sitedesk.models.enums import StepStatus
from src.sitedesk.repositories import (
    OwnedRecordRepository,
    PaymentRepository,
    ProjectRepository,
)

logger = get_logger(__name__)

# (table, column) hops from the project to the owner of a step's rows.
OwnerPath = tuple[tuple[str, str], ...]


@dataclass(frozen=True)
class CascadeStep:
    """One table of the ownership graph.

    Attributes:
        table: Table to empty for the project.
        column: Column of ``table`` pointing at its owner.
        via: Hops to resolve the owner ids. Empty when ``column`` points at
            the project itself.
    """

    table: str
    column: str = "project_id"
    via: OwnerPath = ()


PHOTOS: OwnerPath = (("project_photos", "project_id"),)
ALBUMS: OwnerPath = (("photo_albums", "project_id"),)
CHECKLISTS: OwnerPath = (("quality_checklists", "project_id"),)
INSPECTIONS: OwnerPath = (("quality_inspections", "project_id"),)
INCIDENTS: OwnerPath = (("safety_incidents", "project_id"),)
ORDERS: OwnerPath = (("project_orders", "project_id"),)
DELIVERIES: OwnerPath = ORDERS + (("deliveries", "order_id"),)
DOCUMENTS: OwnerPath = (("documents", "project_id"),)
PAYMENTS: OwnerPath = (("payments", "project_id"),)

# Children before parents. Keep in sync with the migrations when a table is added.
PROJECT_CASCADE_PLAN: tuple[CascadeStep, ...] = (
    # Leaves reachable only through an intermediate owner
    CascadeStep("photo_comments", "photo_id", PHOTOS),
    CascadeStep("album_photos", "album_id", ALBUMS),
    CascadeStep("work_sessions"),
    CascadeStep("schedule_tasks"),
    CascadeStep("schedule_phases"),
    CascadeStep("quality_checklist_items", "checklist_id", CHECKLISTS),
    CascadeStep("quality_inspection_results", "inspection_id", INSPECTIONS),
    CascadeStep("quality_photos", "inspection_id", INSPECTIONS),
    CascadeStep("safety_incident_attachments", "incident_id", INCIDENTS),
    CascadeStep("delivery_items", "delivery_id", DELIVERIES),
    CascadeStep("deliveries", "order_id", ORDERS),
    CascadeStep("order_items", "order_id", ORDERS),
    CascadeStep("order_status_history", "order_id", ORDERS),
    CascadeStep("document_versions", "document_id", DOCUMENTS),
    CascadeStep("receipt_metadata", "payment_id", PAYMENTS),
    # Direct dependents
    CascadeStep("approval_requests"),
    CascadeStep("conversations"),
    CascadeStep("credit_accounts"),
    CascadeStep("enhanced_credit_accounts"),
    CascadeStep("documents"),
    CascadeStep("photo_albums"),
    CascadeStep("project_contractors"),
    CascadeStep("project_photos"),
    CascadeStep("project_schedules"),
    CascadeStep("project_updates"),
    CascadeStep("quality_reports"),
    CascadeStep("quality_inspections"),
    CascadeStep("quality_checklists"),
    CascadeStep("requests"),
    CascadeStep("safety_training_records"),
    CascadeStep("project_orders"),
    CascadeStep("communication_log"),
    CascadeStep("compliance_documents"),
    CascadeStep("meeting_records"),
    CascadeStep("safety_inspections"),
    CascadeStep("safety_incidents"),
    CascadeStep("weather_conditions"),
    CascadeStep("legacy_orders"),
    CascadeStep("payments"),
    CascadeStep("project_milestones"),
    # Snapshots last: triggers on payments and milestones write into them
    CascadeStep("project_financials"),
)


@dataclass
class StepResult:
    """Outcome of one cascade step."""

    table: str
    status: StepStatus
    deleted: int = 0
    error: str | None = None
    sqlstate: str | None = None


@dataclass
class PaymentRepair:
    """A payment found violating ``amount_used <= cash_received``."""

    payment_id: UUID
    cash_received: Decimal
    amount_used: Decimal
    repaired: bool = False
    error: str | None = None


@dataclass
class ResidualReference:
    """Rows that survived the cascade (diagnostic only).

    ``remaining`` is None when the step's owner ids could not be resolved,
    so its leftovers were never counted.
    """

    table: str
    remaining: int | None

    @property
    def verified(self) -> bool:
        return self.remaining is not None


@dataclass
class DeletionReport:
    """Everything that happened while deleting one project."""

    project_id: UUID
    deleted: bool = False
    steps: list[StepResult] = field(default_factory=list)
    repairs: list[PaymentRepair] = field(default_factory=list)
    warnings: list[ResidualReference] = field(default_factory=list)

    @property
    def failed_steps(self) -> list[StepResult]:
        return [step for step in self.steps if step.status == StepStatus.FAILED]


class ProjectCascadeDeleter:
    """Delete a project and its whole ownership graph, table by table."""

    def __init__(
        self,
        session: AsyncSession,
        plan: tuple[CascadeStep, ...] = PROJECT_CASCADE_PLAN,
    ):
        self.session = session
        self.plan = plan
        self.records = OwnedRecordRepository(session)
        self.payments = PaymentRepository(session)
        self.projects = ProjectRepository(session)

    async def delete_project(self, project_id: UUID) -> DeletionReport:
        """Delete ``project_id`` and everything it owns.

        Returns:
            DeletionReport with per-step outcomes, repairs and residual warnings.

        Raises:
            ProjectDeletionError: If the project row itself could not be deleted.
            ProjectNotFoundError: If the project row was already gone.
        """
        report = DeletionReport(project_id=project_id)
        logger.info("Starting project cascade deletion", steps=len(self.plan))

        await self._repair_payments(project_id, report)

        owners: dict[str, list[UUID]] = {}
        unresolved: list[str] = []
        resolved: dict[OwnerPath, list[UUID]] = {(): [project_id]}
        for step in self.plan:
            owner_ids = await self._run_step(step, resolved, report)
            if owner_ids is None:
                unresolved.append(step.table)
            elif owner_ids:
                owners[step.table] = owner_ids

        await self._verify(owners, unresolved, report)
        await self._delete_root(project_id, report)

        logger.info(
            "Project deleted",
            failed_steps=len(report.failed_steps),
            repairs=len(report.repairs),
            residual_tables=[w.table for w in report.warnings],
        )
        return report

    async def _repair_payments(self, project_id: UUID, report: DeletionReport) -> None:
        """Make over-drawn payments deletable. Best effort: failures are recorded."""
        try:
            overdrawn = await self.payments.list_overdrawn(project_id)
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.warning("Could not scan payments for repair", error=error_text(e))
            return

        for row in overdrawn:
            repair = PaymentRepair(
                payment_id=row["id"],
                cash_received=row["cash_received"],
                amount_used=row["amount_used"],
            )
            report.repairs.append(repair)
            logger.info(
                "Repairing over-drawn payment",
                payment_id=str(repair.payment_id),
                amount_used=str(repair.amount_used),
                cash_received=str(repair.cash_received),
            )
            try:
                await self.payments.update_fields(
                    repair.payment_id,
                    {
                        "amount_used": Decimal("0"),
                        "cash_received": max(repair.cash_received, repair.amount_used),
                        "updated_at": utc_now(),
                    },
                )
                await self.session.commit()
                repair.repaired = True
            except SQLAlchemyError as e:
                await self.session.rollback()
                repair.error = error_text(e)
                logger.warning(
                    "Payment repair failed",
                    payment_id=str(repair.payment_id),
                    sqlstate=sqlstate_of(e),
                    error=repair.error,
                )

    async def _resolve(self, path: OwnerPath, resolved: dict[OwnerPath, list[UUID]]) -> list[UUID]:
        """Owner ids at the end of ``path``, memoized per deletion run.

        Plan order guarantees every table on a path is still populated when
        the path is first resolved.
        """
        if path in resolved:
            return resolved[path]
        parent_ids = await self._resolve(path[:-1], resolved)
        table, column = path[-1]
        ids = await self.records.select_ids(table, column, parent_ids)
        resolved[path] = ids
        return ids

    async def _run_step(
        self,
        step: CascadeStep,
        resolved: dict[OwnerPath, list[UUID]],
        report: DeletionReport,
    ) -> list[UUID] | None:
        """Delete one table's rows for the project.

        Returns the owner ids used, or None when they could not be resolved.
        """
        try:
            owner_ids = await self._resolve(step.via, resolved)
            if not owner_ids:
                report.steps.append(StepResult(table=step.table, status=StepStatus.SKIPPED))
                return []
            deleted = await self.records.delete_owned(step.table, step.column, owner_ids)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            result = StepResult(
                table=step.table,
                status=StepStatus.FAILED,
                error=error_text(e),
                sqlstate=sqlstate_of(e),
            )
            report.steps.append(result)
            logger.warning(
                "Cascade step failed, continuing",
                table=step.table,
                sqlstate=result.sqlstate,
                error=result.error,
            )
            return resolved.get(step.via)

        report.steps.append(
            StepResult(table=step.table, status=StepStatus.DELETED, deleted=deleted)
        )
        if deleted:
            logger.debug("Deleted owned rows", table=step.table, deleted=deleted)
        return owner_ids

    async def _verify(
        self, owners: dict[str, list[UUID]], unresolved: list[str], report: DeletionReport
    ) -> None:
        """Recount every step by the owner ids it used; leftovers become warnings."""
        for table in unresolved:
            report.warnings.append(ResidualReference(table=table, remaining=None))
            logger.warning("Residual references not verified, owners unresolved", table=table)
        for step in self.plan:
            owner_ids = owners.get(step.table)
            if not owner_ids:
                continue
            try:
                remaining = await self.records.count_owned(step.table, step.column, owner_ids)
                await self.session.commit()
            except SQLAlchemyError as e:
                await self.session.rollback()
                logger.warning(
                    "Verification query failed",
                    table=step.table,
                    sqlstate=sqlstate_of(e),
                    error=error_text(e),
                )
                continue
            if remaining:
                report.warnings.append(ResidualReference(table=step.table, remaining=remaining))
                logger.warning(
                    "Residual references after cascade",
                    table=step.table,
                    remaining=remaining,
                )

    async def _delete_root(self, project_id: UUID, report: DeletionReport) -> None:
        try:
            deleted = await self.projects.delete_by_id(project_id)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            code = sqlstate_of(e)
            category = classify_sqlstate(code)
            logger.error(
                "Project row could not be deleted",
                category=category.value,
                sqlstate=code,
                error=error_text(e),
            )
            raise ProjectDeletionError(
                category=category,
                details=error_text(e),
                code=code,
                report=report,
            ) from e

        if deleted == 0:
            raise ProjectNotFoundError(project_id)
        report.deleted = True

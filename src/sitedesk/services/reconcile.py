"""Reconciliation of derived project metrics.

Two kinds of derived data drift in this store:

- Project progress (``progress_percentage``, ``total_milestones``,
  ``completed_milestones``) is cached on the project but computable from
  its milestones. Several write paths touch the cache, so it is recounted
  rather than trusted.
- Financial snapshots are meant to be one row per project, but some write
  paths insert instead of update. The latest row is authoritative; the
  rest are duplicates.
"""

import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy import RowMapping
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.sitedesk.core.exceptions import error_text, sqlstate_of
from src.sitedesk.core.logging import get_logger
from src.sitedesk.models.base import utc_now, utc_today
from src.sitedesk.models.enums import RecomputeStatus, SnapshotStatus
from src.sitedesk.models.finance import ProjectFinancial
from src.sitedesk.repositories import ProjectFinancialRepository, ProjectRepository
from src.sitedesk.services.resilient_update import (
    ResilientUpdater,
    UpdateOutcome,
    UpdateStrategy,
)

logger = get_logger(__name__)

PROGRESS_FIELD = "progress_percentage"
TOTALS_FIELDS = ("total_milestones", "completed_milestones", "updated_at")

# The progress column is the one guarded by the faulty trigger, so the last
# resort writes the milestone totals alone.
PROGRESS_STRATEGIES = (
    UpdateStrategy.full((PROGRESS_FIELD, *TOTALS_FIELDS)),
    UpdateStrategy.per_field(((PROGRESS_FIELD,), TOTALS_FIELDS)),
    UpdateStrategy.subset(TOTALS_FIELDS, name="totals_only"),
)

AMOUNT_FIELDS = ("cash_received", "amount_used", "amount_remaining")
STAMP_FIELDS = ("snapshot_date", "updated_at")

SNAPSHOT_STRATEGIES = (
    UpdateStrategy.full((*AMOUNT_FIELDS, *STAMP_FIELDS)),
    UpdateStrategy.per_field([*((name,) for name in AMOUNT_FIELDS), STAMP_FIELDS]),
    UpdateStrategy.subset(AMOUNT_FIELDS, name="amounts_only"),
)


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_progress(completed: int, total: int) -> int:
    """Percentage of completed milestones, rounded half up; 0 without milestones."""
    if total <= 0:
        return 0
    return round_half_up(Decimal(completed) * 100 / Decimal(total))


def _average(values: Sequence[int]) -> int:
    if not values:
        return 0
    return round_half_up(Decimal(sum(values)) / len(values))


@dataclass
class ProgressResult:
    """Outcome of recomputing one project."""

    project_id: UUID
    name: str
    old_value: int | None
    new_value: int
    saved_value: int | None
    total_milestones: int
    completed_milestones: int
    status: RecomputeStatus
    strategy: str | None = None
    omitted_fields: list[str] = field(default_factory=list)
    error: str | None = None
    warning: str | None = None


@dataclass
class BatchSummary:
    total_processed: int = 0
    updated: int = 0
    partial: int = 0
    unchanged: int = 0
    failed: int = 0
    average_progress: int = 0
    average_progress_before: int = 0
    average_progress_after: int = 0
    projects_with_milestones: int = 0
    projects_not_started: int = 0
    projects_in_progress: int = 0
    projects_completed: int = 0
    execution_time_ms: int = 0

    @property
    def succeeded(self) -> int:
        return self.updated + self.partial + self.unchanged


@dataclass
class BatchReport:
    summary: BatchSummary
    results: list[ProgressResult]


@dataclass
class DriftEntry:
    """A project whose cached progress differs from the milestone recount."""

    project_id: UUID
    name: str
    current_value: int | None
    computed_value: int
    delta: int
    current_total_milestones: int | None
    actual_total_milestones: int
    current_completed_milestones: int | None
    actual_completed_milestones: int


@dataclass
class ProgressDistribution:
    not_started: int = 0  # 0%
    just_started: int = 0  # 1-25%
    in_progress: int = 0  # 26-75%
    near_complete: int = 0  # 76-99%
    completed: int = 0  # 100%

    def add(self, progress: int) -> None:
        if progress <= 0:
            self.not_started += 1
        elif progress <= 25:
            self.just_started += 1
        elif progress <= 75:
            self.in_progress += 1
        elif progress < 100:
            self.near_complete += 1
        else:
            self.completed += 1


@dataclass
class DriftSummary:
    total_projects: int = 0
    projects_with_milestones: int = 0
    projects_without_milestones: int = 0
    projects_needing_update: int = 0
    average_progress: int = 0
    progress_distribution: ProgressDistribution = field(default_factory=ProgressDistribution)


@dataclass
class DriftAnalysis:
    summary: DriftSummary
    drifting: list[DriftEntry]


class ProgressReconciler:
    """Recount milestone progress and bring the cached project fields in sync."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.projects = ProjectRepository(session)
        self.updater = ResilientUpdater(session)

    async def recompute_all(self) -> BatchReport:
        """Recompute progress for every project, one at a time.

        A project that cannot be updated is reported as failed; the batch
        always runs to the end.
        """
        started = time.perf_counter()
        rows = await self.projects.list_progress_rows()
        await self.session.commit()
        logger.info("Recomputing project progress", projects=len(rows))

        results = [await self._recompute_one(row) for row in rows]

        summary = self._summarize(results)
        summary.execution_time_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            "Progress recompute finished",
            updated=summary.updated,
            partial=summary.partial,
            unchanged=summary.unchanged,
            failed=summary.failed,
            execution_time_ms=summary.execution_time_ms,
        )
        return BatchReport(summary=summary, results=results)

    async def _recompute_one(self, row: RowMapping) -> ProgressResult:
        total = row["milestone_count"]
        completed = row["completed_count"]
        computed = compute_progress(completed, total)
        result = ProgressResult(
            project_id=row["id"],
            name=row["project_name"],
            old_value=row["progress_percentage"],
            new_value=computed,
            saved_value=row["progress_percentage"],
            total_milestones=total,
            completed_milestones=completed,
            status=RecomputeStatus.NO_CHANGE,
        )

        in_sync = (
            row["progress_percentage"] == computed
            and row["total_milestones"] == total
            and row["completed_milestones"] == completed
        )
        if in_sync:
            return result

        values = {
            PROGRESS_FIELD: computed,
            "total_milestones": total,
            "completed_milestones": completed,
            "updated_at": utc_now(),
        }
        outcome = await self.updater.apply(
            self.projects.update_fields, result.project_id, values, PROGRESS_STRATEGIES
        )
        self._apply_outcome(result, outcome)
        return result

    @staticmethod
    def _apply_outcome(result: ProgressResult, outcome: UpdateOutcome) -> None:
        result.strategy = outcome.strategy
        # A failed strategy may still have committed progress before giving up
        if PROGRESS_FIELD in outcome.written_fields:
            result.saved_value = result.new_value
        if not outcome.succeeded:
            result.status = RecomputeStatus.FAILED
            result.error = outcome.error or "Unknown error"
            result.omitted_fields = sorted(outcome.omitted_fields)
            return

        if outcome.degraded:
            result.status = RecomputeStatus.PARTIAL
            result.omitted_fields = sorted(outcome.omitted_fields)
            if PROGRESS_FIELD in outcome.omitted_fields:
                result.warning = (
                    "Progress percentage could not be updated due to database constraints"
                )
        else:
            result.status = RecomputeStatus.UPDATED

    @staticmethod
    def _summarize(results: list[ProgressResult]) -> BatchSummary:
        summary = BatchSummary(total_processed=len(results))
        changed: list[ProgressResult] = []
        for result in results:
            match result.status:
                case RecomputeStatus.UPDATED:
                    summary.updated += 1
                    changed.append(result)
                case RecomputeStatus.PARTIAL:
                    summary.partial += 1
                    changed.append(result)
                case RecomputeStatus.NO_CHANGE:
                    summary.unchanged += 1
                case RecomputeStatus.FAILED:
                    summary.failed += 1

            if result.total_milestones > 0:
                summary.projects_with_milestones += 1

            saved = result.saved_value or 0
            if saved <= 0:
                summary.projects_not_started += 1
            elif saved >= 100:
                summary.projects_completed += 1
            else:
                summary.projects_in_progress += 1

        summary.average_progress = _average([r.saved_value or 0 for r in results])
        summary.average_progress_before = _average([r.old_value or 0 for r in changed])
        summary.average_progress_after = _average([r.saved_value or 0 for r in changed])
        return summary

    async def analyze(self) -> DriftAnalysis:
        """Read-only comparison of cached progress against the recount."""
        rows = await self.projects.list_progress_rows()
        await self.session.commit()

        summary = DriftSummary(total_projects=len(rows))
        drifting: list[DriftEntry] = []
        for row in rows:
            total = row["milestone_count"]
            completed = row["completed_count"]
            current = row["progress_percentage"]
            computed = compute_progress(completed, total)

            if total > 0:
                summary.projects_with_milestones += 1
            else:
                summary.projects_without_milestones += 1
            summary.progress_distribution.add(current or 0)

            delta = abs(computed - (current or 0))
            if delta:
                drifting.append(
                    DriftEntry(
                        project_id=row["id"],
                        name=row["project_name"],
                        current_value=current,
                        computed_value=computed,
                        delta=delta,
                        current_total_milestones=row["total_milestones"],
                        actual_total_milestones=total,
                        current_completed_milestones=row["completed_milestones"],
                        actual_completed_milestones=completed,
                    )
                )

        drifting.sort(key=lambda entry: entry.delta, reverse=True)
        summary.projects_needing_update = len(drifting)
        summary.average_progress = _average([row["progress_percentage"] or 0 for row in rows])
        return DriftAnalysis(summary=summary, drifting=drifting)

    async def find_drift(self) -> list[DriftEntry]:
        """Projects whose cached progress differs from the recount, largest delta first."""
        return (await self.analyze()).drifting


@dataclass(frozen=True)
class SnapshotValues:
    cash_received: Decimal
    amount_used: Decimal
    amount_remaining: Decimal


@dataclass
class SnapshotOutcome:
    """Outcome of writing a project's financial snapshot."""

    project_id: UUID
    status: SnapshotStatus
    snapshot_id: UUID | None = None
    strategy: str | None = None
    omitted_fields: list[str] = field(default_factory=list)
    duplicates_removed: int = 0
    error: str | None = None
    cleanup_error: str | None = None


class FinancialSnapshotReconciler:
    """Write a project's financial snapshot and collapse duplicates onto it."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.financials = ProjectFinancialRepository(session)
        self.updater = ResilientUpdater(session)

    async def reconcile_snapshot(self, project_id: UUID, values: SnapshotValues) -> SnapshotOutcome:
        """Apply ``values`` to the latest snapshot (or create one), then drop duplicates.

        The latest snapshot is updated by its own id, never by project id, so
        duplicates are never touched by the write.
        """
        latest = await self.financials.get_latest(project_id)
        if latest is not None:
            outcome = await self._update(project_id, latest["id"], values)
        else:
            outcome = await self._insert(project_id, values)

        if outcome.status == SnapshotStatus.FAILED:
            return outcome

        await self._remove_duplicates(outcome)
        return outcome

    async def _update(
        self, project_id: UUID, snapshot_id: UUID, values: SnapshotValues
    ) -> SnapshotOutcome:
        fields = {
            "cash_received": values.cash_received,
            "amount_used": values.amount_used,
            "amount_remaining": values.amount_remaining,
            "snapshot_date": utc_today(),
            "updated_at": utc_now(),
        }
        result = await self.updater.apply(
            self.financials.update_fields, snapshot_id, fields, SNAPSHOT_STRATEGIES
        )
        if not result.succeeded:
            return SnapshotOutcome(
                project_id=project_id,
                status=SnapshotStatus.FAILED,
                snapshot_id=snapshot_id,
                omitted_fields=sorted(result.omitted_fields),
                error=result.error,
            )
        return SnapshotOutcome(
            project_id=project_id,
            status=SnapshotStatus.PARTIAL if result.degraded else SnapshotStatus.UPDATED,
            snapshot_id=snapshot_id,
            strategy=result.strategy,
            omitted_fields=sorted(result.omitted_fields),
        )

    async def _insert(self, project_id: UUID, values: SnapshotValues) -> SnapshotOutcome:
        now = utc_now()
        snapshot = ProjectFinancial(
            project_id=project_id,
            cash_received=values.cash_received,
            amount_used=values.amount_used,
            amount_remaining=values.amount_remaining,
            snapshot_date=utc_today(),
            created_at=now,
            updated_at=now,
        )
        try:
            self.financials.add(snapshot)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.warning(
                "Financial snapshot insert failed",
                sqlstate=sqlstate_of(e),
                error=error_text(e),
            )
            return SnapshotOutcome(
                project_id=project_id, status=SnapshotStatus.FAILED, error=error_text(e)
            )
        return SnapshotOutcome(
            project_id=project_id, status=SnapshotStatus.CREATED, snapshot_id=snapshot.id
        )

    async def _remove_duplicates(self, outcome: SnapshotOutcome) -> None:
        """Delete every snapshot of the project except the one just written. Best effort."""
        try:
            rows = await self.financials.list_for_project(outcome.project_id)
            duplicate_ids = [row["id"] for row in rows if row["id"] != outcome.snapshot_id]
            if not duplicate_ids:
                await self.session.commit()
                return
            outcome.duplicates_removed = await self.financials.delete_ids(duplicate_ids)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            outcome.duplicates_removed = 0
            outcome.cleanup_error = error_text(e)
            logger.warning(
                "Could not clean up duplicate financial snapshots",
                sqlstate=sqlstate_of(e),
                error=outcome.cleanup_error,
            )
            return

        logger.info(
            "Removed duplicate financial snapshots",
            kept=str(outcome.snapshot_id),
            removed=outcome.duplicates_removed,
        )

"""Project maintenance endpoints.

Static paths (``/cleanup``, ``/orphaned``, ``/recompute``) are declared
before ``/{project_id}`` so they are never parsed as a project id.
"""

from uuid import UUID

from fastapi import APIRouter

from src.sitedesk.api.dependencies import AdminAccess, MaintenanceServiceDep
from src.sitedesk.core.config import get_settings
from src.sitedesk.schemas.project import (
    BatchSummaryRead,
    BulkDeleteRequest,
    BulkDeletionItemRead,
    BulkDeletionResponse,
    DriftEntryRead,
    DriftReportResponse,
    DriftSummaryRead,
    FinancialOverviewRead,
    FinancialUpdate,
    OrphanedProjectRead,
    OrphanedProjectsResponse,
    PaymentRepairRead,
    ProgressResultRead,
    ProjectDeletionResponse,
    RecomputeResponse,
    ResidualReferenceRead,
    SnapshotOutcomeRead,
    StepResultRead,
)
from src.sitedesk.services.maintenance_service import BulkDeletionItem
from src.sitedesk.services.reconcile import SnapshotValues

router = APIRouter(prefix="/projects", tags=["projects"], dependencies=[AdminAccess])


def _bulk_response(items: list[BulkDeletionItem], total_requested: int) -> BulkDeletionResponse:
    deleted_count = sum(1 for item in items if item.status == "deleted")
    return BulkDeletionResponse(
        message=f"Deleted {deleted_count} of {total_requested} projects",
        deleted_count=deleted_count,
        total_requested=total_requested,
        results=[BulkDeletionItemRead.model_validate(item) for item in items],
    )


@router.post(
    "/cleanup",
    response_model=BulkDeletionResponse,
    summary="Delete selected projects",
    description="Cascade-delete each listed project in turn. Per-project failures are "
    "reported in the results and never abort the batch.",
)
async def cleanup_projects(
    request: BulkDeleteRequest,
    service: MaintenanceServiceDep,
) -> BulkDeletionResponse:
    """Delete several projects."""
    items = await service.delete_projects(request.project_ids)
    return _bulk_response(items, len(request.project_ids))


@router.get(
    "/orphaned",
    response_model=OrphanedProjectsResponse,
    summary="List orphaned projects",
    description="Projects with no client, or whose client user no longer exists.",
)
async def list_orphaned_projects(service: MaintenanceServiceDep) -> OrphanedProjectsResponse:
    """List orphaned projects."""
    rows = await service.list_orphaned()
    return OrphanedProjectsResponse(
        count=len(rows),
        projects=[OrphanedProjectRead.model_validate(row) for row in rows],
    )


@router.delete(
    "/orphaned",
    response_model=BulkDeletionResponse,
    summary="Delete orphaned projects",
    description="Cascade-delete every orphaned project in turn.",
)
async def delete_orphaned_projects(service: MaintenanceServiceDep) -> BulkDeletionResponse:
    """Delete all orphaned projects."""
    items = await service.delete_orphaned()
    return _bulk_response(items, len(items))


@router.post(
    "/recompute",
    response_model=RecomputeResponse,
    summary="Recompute project progress",
    description="Recount milestones for every project and write the derived progress "
    "fields, falling back to narrower updates when the full update is rejected.",
)
async def recompute_progress(service: MaintenanceServiceDep) -> RecomputeResponse:
    """Recompute progress for all projects."""
    report = await service.recompute_all()
    summary = report.summary
    return RecomputeResponse(
        message=f"Recomputed progress for {summary.succeeded} of "
        f"{summary.total_processed} projects",
        summary=BatchSummaryRead.model_validate(summary),
        results=[ProgressResultRead.model_validate(result) for result in report.results],
    )


@router.get(
    "/recompute",
    response_model=DriftReportResponse,
    summary="Report progress drift",
    description="Read-only. Projects whose cached progress differs from the milestone "
    "recount, largest difference first.",
)
async def progress_drift(service: MaintenanceServiceDep) -> DriftReportResponse:
    """Report projects whose cached progress has drifted."""
    limit = get_settings().drift_report_limit
    analysis = await service.drift_report()
    return DriftReportResponse(
        summary=DriftSummaryRead.model_validate(analysis.summary),
        drifting_projects=[
            DriftEntryRead.model_validate(entry) for entry in analysis.drifting[:limit]
        ],
        has_more=len(analysis.drifting) > limit,
    )


@router.delete(
    "/{project_id}",
    response_model=ProjectDeletionResponse,
    summary="Delete project",
    description="Delete a project and everything it owns, children first.",
    responses={
        200: {"description": "Project deleted (warnings list any residual references)"},
        404: {"description": "Project not found"},
        500: {"description": "Project row could not be deleted; body carries the category"},
    },
)
async def delete_project(
    project_id: UUID,
    service: MaintenanceServiceDep,
) -> ProjectDeletionResponse:
    """Cascade-delete a project."""
    report = await service.delete_project(project_id)
    return ProjectDeletionResponse(
        message="Project and all related data deleted successfully",
        project_id=project_id,
        warnings=[ResidualReferenceRead.model_validate(w) for w in report.warnings],
        steps=[StepResultRead.model_validate(step) for step in report.steps],
        repairs=[PaymentRepairRead.model_validate(repair) for repair in report.repairs],
    )


@router.get(
    "/{project_id}/financials",
    response_model=FinancialOverviewRead,
    summary="Get project financials",
    description="Latest financial snapshot, or an estimate from payments and progress "
    "when the project has none.",
    responses={404: {"description": "Project not found"}},
)
async def get_financials(
    project_id: UUID,
    service: MaintenanceServiceDep,
) -> FinancialOverviewRead:
    """Get a project's current financial figures."""
    overview = await service.get_financials(project_id)
    return FinancialOverviewRead.model_validate(overview)


@router.put(
    "/{project_id}/financials",
    response_model=SnapshotOutcomeRead,
    summary="Update project financials",
    description="Write the project's financial snapshot and remove duplicate snapshots.",
    responses={
        404: {"description": "Project not found"},
        500: {"description": "Snapshot could not be written"},
    },
)
async def update_financials(
    project_id: UUID,
    request: FinancialUpdate,
    service: MaintenanceServiceDep,
) -> SnapshotOutcomeRead:
    """Update a project's financial snapshot."""
    outcome = await service.update_financials(
        project_id,
        SnapshotValues(
            cash_received=request.cash_received,
            amount_used=request.amount_used,
            amount_remaining=request.amount_remaining,
        ),
    )
    return SnapshotOutcomeRead.model_validate(outcome)

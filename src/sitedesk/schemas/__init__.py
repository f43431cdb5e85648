from src.sitedesk.schemas.project import (
    BulkDeleteRequest,
    BulkDeletionResponse,
    DriftReportResponse,
    FinancialOverviewRead,
    FinancialUpdate,
    OrphanedProjectsResponse,
    ProjectDeletionResponse,
    RecomputeResponse,
    SnapshotOutcomeRead,
)

__all__ = [
    # Deletion
    "BulkDeleteRequest",
    "BulkDeletionResponse",
    "OrphanedProjectsResponse",
    "ProjectDeletionResponse",
    # Progress
    "DriftReportResponse",
    "RecomputeResponse",
    # Financials
    "FinancialOverviewRead",
    "FinancialUpdate",
    "SnapshotOutcomeRead",
]

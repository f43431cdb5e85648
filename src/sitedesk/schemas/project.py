"""Project maintenance schemas for API request/response."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from src.sitedesk.models.enums import RecomputeStatus, SnapshotStatus, StepStatus


class StepResultRead(BaseModel):
    table: str
    status: StepStatus
    deleted: int = 0
    error: str | None = None
    sqlstate: str | None = None

    model_config = {"from_attributes": True}


class PaymentRepairRead(BaseModel):
    payment_id: UUID
    cash_received: Decimal
    amount_used: Decimal
    repaired: bool
    error: str | None = None

    model_config = {"from_attributes": True}


class ResidualReferenceRead(BaseModel):
    table: str
    remaining: int | None  # None when the leftovers could not be counted
    verified: bool = True

    model_config = {"from_attributes": True}


class ProjectDeletionResponse(BaseModel):
    """Response after a project and its owned data were deleted."""

    success: bool = True
    message: str
    project_id: UUID
    warnings: list[ResidualReferenceRead] = []
    steps: list[StepResultRead] = []
    repairs: list[PaymentRepairRead] = []


class BulkDeleteRequest(BaseModel):
    """Schema for deleting several projects at once."""

    project_ids: list[UUID] = Field(min_length=1, max_length=500)

    @field_validator("project_ids")
    @classmethod
    def dedupe(cls, v: list[UUID]) -> list[UUID]:
        return list(dict.fromkeys(v))


class BulkDeletionItemRead(BaseModel):
    id: UUID
    name: str | None = None
    status: str  # "deleted", "not_found", "failed"
    error: str | None = None

    model_config = {"from_attributes": True}


class BulkDeletionResponse(BaseModel):
    message: str
    deleted_count: int
    total_requested: int
    results: list[BulkDeletionItemRead]


class OrphanedProjectRead(BaseModel):
    id: UUID
    project_name: str
    client_id: UUID | None
    status: str
    created_at: datetime


class OrphanedProjectsResponse(BaseModel):
    count: int
    projects: list[OrphanedProjectRead]


class ProgressResultRead(BaseModel):
    project_id: UUID
    name: str
    old_value: int | None
    new_value: int
    saved_value: int | None
    total_milestones: int
    completed_milestones: int
    status: RecomputeStatus
    strategy: str | None = None
    omitted_fields: list[str] = []
    error: str | None = None
    warning: str | None = None

    model_config = {"from_attributes": True}


class BatchSummaryRead(BaseModel):
    total_processed: int
    succeeded: int
    updated: int
    partial: int
    unchanged: int
    failed: int
    average_progress: int
    average_progress_before: int
    average_progress_after: int
    projects_with_milestones: int
    projects_not_started: int
    projects_in_progress: int
    projects_completed: int
    execution_time_ms: int

    model_config = {"from_attributes": True}


class RecomputeResponse(BaseModel):
    """Response of a progress recompute over every project."""

    message: str
    summary: BatchSummaryRead
    results: list[ProgressResultRead]


class DriftEntryRead(BaseModel):
    project_id: UUID
    name: str
    current_value: int | None
    computed_value: int
    delta: int
    current_total_milestones: int | None
    actual_total_milestones: int
    current_completed_milestones: int | None
    actual_completed_milestones: int

    model_config = {"from_attributes": True}


class ProgressDistributionRead(BaseModel):
    not_started: int
    just_started: int
    in_progress: int
    near_complete: int
    completed: int

    model_config = {"from_attributes": True}


class DriftSummaryRead(BaseModel):
    total_projects: int
    projects_with_milestones: int
    projects_without_milestones: int
    projects_needing_update: int
    average_progress: int
    progress_distribution: ProgressDistributionRead

    model_config = {"from_attributes": True}


class DriftReportResponse(BaseModel):
    """Read-only drift analysis, largest delta first."""

    summary: DriftSummaryRead
    drifting_projects: list[DriftEntryRead]
    has_more: bool


class FinancialUpdate(BaseModel):
    """Schema for writing a project's financial snapshot."""

    cash_received: Decimal = Field(ge=0, max_digits=14, decimal_places=2)
    amount_used: Decimal = Field(ge=0, max_digits=14, decimal_places=2)
    amount_remaining: Decimal = Field(max_digits=14, decimal_places=2)


class SnapshotOutcomeRead(BaseModel):
    project_id: UUID
    status: SnapshotStatus
    snapshot_id: UUID | None = None
    strategy: str | None = None
    omitted_fields: list[str] = []
    duplicates_removed: int = 0
    cleanup_error: str | None = None

    model_config = {"from_attributes": True}


class FinancialOverviewRead(BaseModel):
    project_id: UUID
    source: str  # "snapshot" or "estimate"
    contract_value: Decimal
    total_payments: Decimal
    cash_received: Decimal
    amount_used: Decimal
    amount_remaining: Decimal
    financial_health: str  # "Healthy", "Caution", "Critical"
    snapshot_id: UUID | None = None

    model_config = {"from_attributes": True}

"""Shared enums for models and maintenance reports."""

from enum import Enum


class ProjectStatus(str, Enum):
    """Project lifecycle status."""

    PLANNING = "planning"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ON_HOLD = "on_hold"
    CANCELLED = "cancelled"


class MilestoneStatus(str, Enum):
    """Milestone status. Only COMPLETED counts towards project progress."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    DELAYED = "delayed"
    ON_HOLD = "on_hold"


class DeletionErrorCategory(str, Enum):
    """User-facing category of a failed project deletion."""

    FOREIGN_KEY_VIOLATION = "foreign_key_violation"
    CHECK_VIOLATION = "check_violation"
    OTHER = "other"


class StepStatus(str, Enum):
    """Outcome of one cascade step."""

    DELETED = "deleted"
    SKIPPED = "skipped"
    FAILED = "failed"


class RecomputeStatus(str, Enum):
    """Outcome of recomputing one project's progress."""

    UPDATED = "updated"
    PARTIAL = "partial"
    NO_CHANGE = "no_change"
    FAILED = "failed"


class SnapshotStatus(str, Enum):
    """Outcome of a financial snapshot reconciliation."""

    UPDATED = "updated"
    PARTIAL = "partial"
    CREATED = "created"
    FAILED = "failed"

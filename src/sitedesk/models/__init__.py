"""Model exports.

Import from here: `from src.sitedesk.models import Project, Payment`
"""

# Enums
from src.sitedesk.models.enums import (
    DeletionErrorCategory,
    MilestoneStatus,
    ProjectStatus,
    RecomputeStatus,
    SnapshotStatus,
    StepStatus,
)

# Finance
from src.sitedesk.models.finance import Payment, ProjectFinancial

# Projects
from src.sitedesk.models.project import Project, ProjectMilestone, User

__all__ = [
    # Enums
    "DeletionErrorCategory",
    "MilestoneStatus",
    "ProjectStatus",
    "RecomputeStatus",
    "SnapshotStatus",
    "StepStatus",
    # Finance
    "Payment",
    "ProjectFinancial",
    # Projects
    "Project",
    "ProjectMilestone",
    "User",
]

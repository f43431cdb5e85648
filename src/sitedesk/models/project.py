"""Project aggregate root, its milestones, and the client users who own projects."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel

from src.sitedesk.models.base import utc_now
from src.sitedesk.models.enums import MilestoneStatus, ProjectStatus


class User(SQLModel, table=True):
    """Platform user. Projects reference their client through ``client_id``."""

    __tablename__ = "users"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    email: str = Field(max_length=255, unique=True, index=True)
    full_name: str = Field(max_length=200)
    phone: str | None = Field(default=None, max_length=50)
    role: str = Field(default="client", max_length=20)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class Project(SQLModel, table=True):
    """Aggregate root for everything a construction project owns.

    ``progress_percentage``, ``total_milestones`` and ``completed_milestones``
    are denormalized from ``project_milestones`` and may drift; the
    reconciler recounts them.

    Note: ``client_id`` carries no FOREIGN KEY. A client can be removed
    while the project survives, which is what makes a project orphaned.
    """

    __tablename__ = "projects"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    client_id: UUID | None = Field(default=None, index=True)
    project_name: str = Field(max_length=200, index=True)
    project_address: str | None = Field(default=None, max_length=500)
    contract_value: Decimal = Field(default=Decimal("0"), max_digits=14, decimal_places=2)
    start_date: date | None = None
    expected_completion: date | None = None
    current_phase: str | None = Field(default=None, max_length=100)
    status: str = Field(default=ProjectStatus.PLANNING.value, max_length=20)
    progress_percentage: int | None = Field(default=0)
    total_milestones: int | None = Field(default=0)
    completed_milestones: int | None = Field(default=0)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class ProjectMilestone(SQLModel, table=True):
    """A milestone of a project; completed milestones drive project progress."""

    __tablename__ = "project_milestones"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    project_id: UUID = Field(foreign_key="projects.id", index=True)
    milestone_name: str = Field(max_length=200)
    phase_category: str | None = Field(default=None, max_length=100)
    status: str = Field(default=MilestoneStatus.NOT_STARTED.value, max_length=20)
    progress_percentage: int = Field(default=0)
    order_index: int = Field(default=0)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

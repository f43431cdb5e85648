"""Repository for the Project aggregate root."""

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import RowMapping, func, or_
from sqlmodel import select

from src.sitedesk.models.enums import MilestoneStatus
from src.sitedesk.models.project import Project, ProjectMilestone, User
from src.sitedesk.repositories.base import BaseRepository


class ProjectRepository(BaseRepository[Project]):
    """Repository for Project entity."""

    model = Project

    async def get_name(self, project_id: UUID) -> str | None:
        """Get a project's display name, or None if the project does not exist."""
        result = await self.session.execute(
            select(Project.project_name).where(Project.id == project_id)
        )
        return result.scalar_one_or_none()

    async def list_progress_rows(self) -> Sequence[RowMapping]:
        """Cached progress fields of every project alongside a milestone recount.

        Each row carries ``id``, ``project_name``, ``progress_percentage``,
        ``total_milestones``, ``completed_milestones`` (cached values) and
        ``milestone_count``, ``completed_count`` (recounted from
        ``project_milestones``).
        """
        counts = (
            select(
                ProjectMilestone.project_id,
                func.count(ProjectMilestone.id).label("milestone_count"),
                func.count(ProjectMilestone.id)
                .filter(ProjectMilestone.status == MilestoneStatus.COMPLETED.value)
                .label("completed_count"),
            )
            .group_by(ProjectMilestone.project_id)
            .subquery()
        )
        query = (
            select(
                Project.id,
                Project.project_name,
                Project.progress_percentage,
                Project.total_milestones,
                Project.completed_milestones,
                func.coalesce(counts.c.milestone_count, 0).label("milestone_count"),
                func.coalesce(counts.c.completed_count, 0).label("completed_count"),
            )
            .outerjoin(counts, counts.c.project_id == Project.id)
            .order_by(Project.created_at, Project.id)
        )
        result = await self.session.execute(query)
        return result.mappings().all()

    async def list_orphaned(self) -> Sequence[RowMapping]:
        """Projects with no client, or whose client row no longer exists."""
        query = (
            select(
                Project.id,
                Project.project_name,
                Project.client_id,
                Project.status,
                Project.created_at,
            )
            .outerjoin(User, User.id == Project.client_id)
            .where(or_(Project.client_id.is_(None), User.id.is_(None)))  # type: ignore[union-attr]
            .order_by(Project.created_at.desc())  # type: ignore[attr-defined]
        )
        result = await self.session.execute(query)
        return result.mappings().all()

"""Cascade deletion against a real PostgreSQL schema."""

from uuid import UUID, uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from src.sitedesk.services.cascade_delete import PROJECT_CASCADE_PLAN
from tests.factories import MilestoneFactory, PaymentFactory, ProjectFactory, UserFactory
from tests.utils import count_rows, insert_owned

pytestmark = pytest.mark.integration


async def populate(session: AsyncSession, project_id: UUID) -> None:
    """One row in every table of the plan, intermediates included."""
    session.add(MilestoneFactory.completed(project_id=project_id))
    session.add(PaymentFactory.build(project_id=project_id))
    await session.flush()

    owners: dict[str, UUID] = {}
    for step in PROJECT_CASCADE_PLAN:
        if step.table in ("payments", "project_milestones", "project_financials"):
            continue
        owner_id = project_id
        for table, column in step.via:
            if table not in owners:
                if table == "payments":
                    result = await session.execute(
                        text("SELECT id FROM payments WHERE project_id = :id"), {"id": owner_id}
                    )
                    owners[table] = result.scalar_one()
                else:
                    owners[table] = await insert_owned(session, table, column, owner_id)
            owner_id = owners[table]
        if step.table not in owners:
            owners[step.table] = await insert_owned(session, step.table, step.column, owner_id)
    await session.commit()


async def test_delete_removes_project_and_everything_it_owns(
    client: AsyncClient, db_session: AsyncSession, project: UUID
):
    await populate(db_session, project)
    other = ProjectFactory.build()
    db_session.add(other)
    await db_session.commit()
    await populate(db_session, other.id)

    response = await client.delete(f"/api/v1/projects/{project}")

    assert response.status_code == 200
    data = response.json()
    assert data["warnings"] == []
    assert all(step["status"] == "deleted" for step in data["steps"])
    for table in ("documents", "project_orders", "payments", "project_milestones"):
        assert await count_rows(db_session, table, "project_id", project) == 0
        assert await count_rows(db_session, table, "project_id", other.id) == 1
    assert await count_rows(db_session, "projects", "id", project) == 0
    assert await count_rows(db_session, "projects", "id", other.id) == 1


async def test_overdrawn_payment_is_repaired_then_deleted(
    client: AsyncClient, db_session: AsyncSession, project: UUID
):
    payment = PaymentFactory.overdrawn(project_id=project)
    db_session.add(payment)
    await db_session.commit()

    response = await client.delete(f"/api/v1/projects/{project}")

    assert response.status_code == 200
    repairs = response.json()["repairs"]
    assert [(r["payment_id"], r["repaired"]) for r in repairs] == [(str(payment.id), True)]
    assert await count_rows(db_session, "payments", "project_id", project) == 0


async def test_guard_blocks_unrepaired_payment(db_session: AsyncSession, project: UUID):
    db_session.add(PaymentFactory.overdrawn(project_id=project))
    await db_session.commit()

    with pytest.raises(DBAPIError) as exc_info:
        await db_session.execute(
            text("DELETE FROM payments WHERE project_id = :id"), {"id": project}
        )

    assert "amount_used greater than cash_received" in str(exc_info.value)
    await db_session.rollback()


async def test_unplanned_reference_fails_with_foreign_key_category(
    client: AsyncClient, db_session: AsyncSession, project: UUID
):
    await db_session.execute(
        text(
            "CREATE TABLE IF NOT EXISTS pinned_projects "
            "(project_id uuid REFERENCES projects(id))"
        )
    )
    await db_session.execute(
        text("INSERT INTO pinned_projects (project_id) VALUES (:id)"), {"id": project}
    )
    await db_session.commit()

    try:
        response = await client.delete(f"/api/v1/projects/{project}")

        assert response.status_code == 500
        data = response.json()
        assert data["category"] == "foreign_key_violation"
        assert data["code"] == "23503"
        assert data["hint"]
        assert data["request_id"]
        assert await count_rows(db_session, "projects", "id", project) == 1
    finally:
        await db_session.execute(text("DROP TABLE pinned_projects"))
        await db_session.commit()


async def test_unknown_project_is_404(client: AsyncClient):
    response = await client.delete(f"/api/v1/projects/{uuid4()}")

    assert response.status_code == 404


async def test_orphaned_projects_are_listed_and_deleted(
    client: AsyncClient, db_session: AsyncSession
):
    user = UserFactory.build()
    owned = ProjectFactory.build(client_id=user.id)
    no_client = ProjectFactory.build()
    gone_client = ProjectFactory.build(client_id=uuid4())
    db_session.add_all([user, owned, no_client, gone_client])
    await db_session.commit()

    listing = await client.get("/api/v1/projects/orphaned")

    assert listing.status_code == 200
    assert {p["id"] for p in listing.json()["projects"]} == {
        str(no_client.id),
        str(gone_client.id),
    }

    response = await client.delete("/api/v1/projects/orphaned")

    assert response.json()["deleted_count"] == 2
    assert await count_rows(db_session, "projects", "id", owned.id) == 1

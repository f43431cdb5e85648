"""Initial schema: projects and everything they own

Revision ID: 001
Revises:
Create Date: 2026-10-01 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
import sqlmodel

from alembic import op

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

# Tables owned by a project (or by another owned table) that have no model.
# Ownership is by convention only: no FOREIGN KEY unless listed in OWNED_FKS.
OWNED_TABLES: list[tuple[str, str]] = [
    # Direct dependents
    ("approval_requests", "project_id"),
    ("conversations", "project_id"),
    ("credit_accounts", "project_id"),
    ("enhanced_credit_accounts", "project_id"),
    ("documents", "project_id"),
    ("photo_albums", "project_id"),
    ("project_contractors", "project_id"),
    ("project_photos", "project_id"),
    ("project_schedules", "project_id"),
    ("project_updates", "project_id"),
    ("quality_reports", "project_id"),
    ("quality_inspections", "project_id"),
    ("quality_checklists", "project_id"),
    ("requests", "project_id"),
    ("safety_training_records", "project_id"),
    ("project_orders", "project_id"),
    ("communication_log", "project_id"),
    ("compliance_documents", "project_id"),
    ("meeting_records", "project_id"),
    ("safety_inspections", "project_id"),
    ("safety_incidents", "project_id"),
    ("weather_conditions", "project_id"),
    ("legacy_orders", "project_id"),
    ("work_sessions", "project_id"),
    ("schedule_tasks", "project_id"),
    ("schedule_phases", "project_id"),
    # Owned through an intermediate table
    ("photo_comments", "photo_id"),
    ("album_photos", "album_id"),
    ("quality_checklist_items", "checklist_id"),
    ("quality_inspection_results", "inspection_id"),
    ("quality_photos", "inspection_id"),
    ("safety_incident_attachments", "incident_id"),
    ("deliveries", "order_id"),
    ("delivery_items", "delivery_id"),
    ("order_items", "order_id"),
    ("order_status_history", "order_id"),
    ("document_versions", "document_id"),
    ("receipt_metadata", "payment_id"),
]

OWNED_FKS: dict[str, str] = {
    "project_orders": "projects.id",
    "delivery_items": "deliveries.id",
}

MONEY = sa.Numeric(precision=14, scale=2)


def _create_owned_table(name: str, owner_column: str) -> None:
    constraints: list[sa.Constraint] = [sa.PrimaryKeyConstraint("id")]
    if name in OWNED_FKS:
        constraints.append(sa.ForeignKeyConstraint([owner_column], [OWNED_FKS[name]]))
    op.create_table(
        name,
        sa.Column("id", sa.Uuid(), nullable=False, server_default=sa.text("gen_random_uuid()")),
        sa.Column(owner_column, sa.Uuid(), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        *constraints,
    )
    op.create_index(f"ix_{name}_{owner_column}", name, [owner_column], unique=False)


def upgrade() -> None:
    # 1. Users (clients own projects by convention)
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sqlmodel.sql.sqltypes.AutoString(length=255), nullable=False),
        sa.Column("full_name", sqlmodel.sql.sqltypes.AutoString(length=200), nullable=False),
        sa.Column("phone", sqlmodel.sql.sqltypes.AutoString(length=50), nullable=True),
        sa.Column(
            "role",
            sqlmodel.sql.sqltypes.AutoString(length=20),
            nullable=False,
            server_default="client",
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # 2. Projects (client_id has no FOREIGN KEY: a client can disappear)
    op.create_table(
        "projects",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("client_id", sa.Uuid(), nullable=True),
        sa.Column("project_name", sqlmodel.sql.sqltypes.AutoString(length=200), nullable=False),
        sa.Column(
            "project_address", sqlmodel.sql.sqltypes.AutoString(length=500), nullable=True
        ),
        sa.Column("contract_value", MONEY, nullable=False, server_default="0"),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("expected_completion", sa.Date(), nullable=True),
        sa.Column("current_phase", sqlmodel.sql.sqltypes.AutoString(length=100), nullable=True),
        sa.Column(
            "status",
            sqlmodel.sql.sqltypes.AutoString(length=20),
            nullable=False,
            server_default="planning",
        ),
        sa.Column("progress_percentage", sa.Integer(), nullable=True, server_default="0"),
        sa.Column("total_milestones", sa.Integer(), nullable=True, server_default="0"),
        sa.Column("completed_milestones", sa.Integer(), nullable=True, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_projects_client_id", "projects", ["client_id"], unique=False)
    op.create_index("ix_projects_project_name", "projects", ["project_name"], unique=False)
    op.create_index("ix_projects_created_at", "projects", ["created_at"], unique=False)

    # 3. Milestones
    op.create_table(
        "project_milestones",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("milestone_name", sqlmodel.sql.sqltypes.AutoString(length=200), nullable=False),
        sa.Column("phase_category", sqlmodel.sql.sqltypes.AutoString(length=100), nullable=True),
        sa.Column(
            "status",
            sqlmodel.sql.sqltypes.AutoString(length=20),
            nullable=False,
            server_default="not_started",
        ),
        sa.Column("progress_percentage", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_project_milestones_project_id", "project_milestones", ["project_id"], unique=False
    )

    # 4. Payments (amount_used <= cash_received is not enforced by a constraint)
    op.create_table(
        "payments",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("milestone_id", sa.Uuid(), nullable=True),
        sa.Column("amount", MONEY, nullable=False, server_default="0"),
        sa.Column("cash_received", MONEY, nullable=False, server_default="0"),
        sa.Column("amount_used", MONEY, nullable=False, server_default="0"),
        sa.Column("payment_date", sa.Date(), nullable=False),
        sa.Column(
            "payment_category",
            sqlmodel.sql.sqltypes.AutoString(length=20),
            nullable=False,
            server_default="other",
        ),
        sa.Column(
            "status",
            sqlmodel.sql.sqltypes.AutoString(length=20),
            nullable=False,
            server_default="completed",
        ),
        sa.Column("reference", sqlmodel.sql.sqltypes.AutoString(length=100), nullable=True),
        sa.Column("description", sqlmodel.sql.sqltypes.AutoString(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_payments_project_id", "payments", ["project_id"], unique=False)

    # 5. Financial snapshots (no unique constraint on project_id)
    op.create_table(
        "project_financials",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("cash_received", MONEY, nullable=False, server_default="0"),
        sa.Column("amount_used", MONEY, nullable=False, server_default="0"),
        sa.Column("amount_remaining", MONEY, nullable=False, server_default="0"),
        sa.Column("snapshot_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_project_financials_project_id", "project_financials", ["project_id"], unique=False
    )

    # 6. Everything else a project owns
    for name, owner_column in OWNED_TABLES:
        _create_owned_table(name, owner_column)


def downgrade() -> None:
    for name, owner_column in reversed(OWNED_TABLES):
        op.drop_index(f"ix_{name}_{owner_column}", table_name=name)
        op.drop_table(name)

    op.drop_index("ix_project_financials_project_id", table_name="project_financials")
    op.drop_table("project_financials")

    op.drop_index("ix_payments_project_id", table_name="payments")
    op.drop_table("payments")

    op.drop_index("ix_project_milestones_project_id", table_name="project_milestones")
    op.drop_table("project_milestones")

    op.drop_index("ix_projects_created_at", table_name="projects")
    op.drop_index("ix_projects_project_name", table_name="projects")
    op.drop_index("ix_projects_client_id", table_name="projects")
    op.drop_table("projects")

    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")

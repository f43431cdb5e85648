"""Payments and point-in-time financial snapshots of a project."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel

from src.sitedesk.models.base import utc_now, utc_today


class Payment(SQLModel, table=True):
    """A payment recorded against a project.

    Invariant: ``amount_used <= cash_received``. Earlier write paths did not
    enforce it, so stored rows may violate it.
    """

    __tablename__ = "payments"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    project_id: UUID = Field(foreign_key="projects.id", index=True)
    milestone_id: UUID | None = None
    amount: Decimal = Field(default=Decimal("0"), max_digits=14, decimal_places=2)
    cash_received: Decimal = Field(default=Decimal("0"), max_digits=14, decimal_places=2)
    amount_used: Decimal = Field(default=Decimal("0"), max_digits=14, decimal_places=2)
    payment_date: date = Field(default_factory=utc_today)
    payment_category: str = Field(default="other", max_length=20)
    status: str = Field(default="completed", max_length=20)
    reference: str | None = Field(default=None, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class ProjectFinancial(SQLModel, table=True):
    """Financial snapshot of a project.

    Meant to be one row per project; the latest row by
    (snapshot_date, updated_at, created_at) is authoritative and older rows
    are duplicates.
    """

    __tablename__ = "project_financials"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    project_id: UUID = Field(foreign_key="projects.id", index=True)
    cash_received: Decimal = Field(default=Decimal("0"), max_digits=14, decimal_places=2)
    amount_used: Decimal = Field(default=Decimal("0"), max_digits=14, decimal_places=2)
    amount_remaining: Decimal = Field(default=Decimal("0"), max_digits=14, decimal_places=2)
    snapshot_date: date = Field(default_factory=utc_today)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

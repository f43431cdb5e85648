"""In-memory doubles for the repository layer.

``FakeStore`` keeps rows as plain dicts per table and hands out repository
doubles with the same async methods the services call. It imitates the
database behaviors the maintenance core has to cope with:

- a delete guard on ``payments`` rejecting over-drawn rows (SQLSTATE P0001)
- FOREIGN KEYs from ``payments``, ``project_milestones``,
  ``project_financials`` and ``project_orders`` to ``projects`` (23503)
- injected failures per table and operation
"""

from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

import pytest
from sqlalchemy.exc import DBAPIError

from src.sitedesk.models.enums import MilestoneStatus

ProjectReferences = ("payments", "project_milestones", "project_financials", "project_orders")


class FakeDriverError(Exception):
    """Stands in for an asyncpg error carrying a SQLSTATE."""

    def __init__(self, message: str, sqlstate: str | None = None):
        super().__init__(message)
        self.sqlstate = sqlstate


def db_error(message: str, sqlstate: str | None = None) -> DBAPIError:
    """A SQLAlchemy DBAPIError wrapping a driver error with ``sqlstate``."""
    return DBAPIError("-- statement --", {}, FakeDriverError(message, sqlstate))


class FakeStore:
    """Rows per table plus failure injection."""

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {}
        # (operation, table) -> error raised on that operation
        self.failures: dict[tuple[str, str], Exception] = {}
        # (table, field) -> error raised when an update writes that field
        self.field_failures: dict[tuple[str, str], Exception] = {}
        # row id -> error raised when that row is looked up
        self.lookup_failures: dict[UUID, Exception] = {}
        self.calls: list[tuple[str, str]] = []

        self.records = FakeOwnedRecords(self)
        self.projects = FakeProjects(self)
        self.payments = FakePayments(self)
        self.financials = FakeFinancials(self)

    # --- Data setup ---

    def rows(self, table: str) -> list[dict[str, Any]]:
        return self.tables.setdefault(table, [])

    def insert(self, table: str, **values: Any) -> dict[str, Any]:
        row = {"id": uuid4(), **values}
        self.rows(table).append(row)
        return row

    def add_project(self, name: str = "Test Project", **values: Any) -> dict[str, Any]:
        defaults = {
            "project_name": name,
            "client_id": None,
            "status": "planning",
            "contract_value": Decimal("0"),
            "progress_percentage": 0,
            "total_milestones": 0,
            "completed_milestones": 0,
            "created_at": datetime(2026, 1, 1, tzinfo=UTC),
        }
        defaults.update(values)
        return self.insert("projects", **defaults)

    def add_milestones(self, project_id: UUID, completed: int, total: int) -> None:
        for index in range(total):
            status = MilestoneStatus.COMPLETED if index < completed else MilestoneStatus.NOT_STARTED
            self.insert(
                "project_milestones",
                project_id=project_id,
                status=status.value,
                order_index=index,
            )

    def count(self, table: str, **where: Any) -> int:
        return sum(1 for row in self.rows(table) if all(row.get(k) == v for k, v in where.items()))

    def find(self, table: str, row_id: UUID) -> dict[str, Any] | None:
        error = self.lookup_failures.get(row_id)
        if error is not None:
            raise error
        return next((row for row in self.rows(table) if row["id"] == row_id), None)

    # --- Failure injection ---

    def fail(self, operation: str, table: str, error: Exception) -> None:
        self.failures[(operation, table)] = error

    def fail_field(self, table: str, field: str, error: Exception) -> None:
        self.field_failures[(table, field)] = error

    def fail_lookup(self, row_id: UUID, error: Exception) -> None:
        self.lookup_failures[row_id] = error

    def check(self, operation: str, table: str) -> None:
        self.calls.append((operation, table))
        error = self.failures.get((operation, table))
        if error is not None:
            raise error

    # --- Shared row operations ---

    def update_row(self, table: str, row_id: UUID, values: dict[str, Any]) -> int:
        self.check("update", table)
        for name in values:
            error = self.field_failures.get((table, name))
            if error is not None:
                raise error
        row = self.find(table, row_id)
        if row is None:
            return 0
        row.update(values)
        return 1

    def patch(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Make every service build its repositories from this store."""
        factories: dict[str, Callable[[Any], Any]] = {
            "OwnedRecordRepository": lambda session: self.records,
            "ProjectRepository": lambda session: self.projects,
            "PaymentRepository": lambda session: self.payments,
            "ProjectFinancialRepository": lambda session: self.financials,
        }
        modules = (
            "src.sitedesk.services.cascade_delete",
            "src.sitedesk.services.reconcile",
            "src.sitedesk.services.maintenance_service",
        )
        for module in modules:
            for name, factory in factories.items():
                monkeypatch.setattr(f"{module}.{name}", factory, raising=False)


class FakeOwnedRecords:
    def __init__(self, store: FakeStore):
        self.store = store

    async def select_ids(
        self, table_name: str, owner_column: str, owner_ids: Sequence[UUID]
    ) -> list[UUID]:
        self.store.check("select", table_name)
        return [
            row["id"] for row in self.store.rows(table_name) if row.get(owner_column) in owner_ids
        ]

    async def delete_owned(
        self, table_name: str, owner_column: str, owner_ids: Sequence[UUID]
    ) -> int:
        self.store.check("delete", table_name)
        rows = self.store.rows(table_name)
        doomed = [row for row in rows if row.get(owner_column) in owner_ids]
        if table_name == "payments" and any(
            row["amount_used"] > row["cash_received"] for row in doomed
        ):
            raise db_error("amount_used exceeds cash_received", "P0001")
        self.store.tables[table_name] = [row for row in rows if row not in doomed]
        return len(doomed)

    async def count_owned(
        self, table_name: str, owner_column: str, owner_ids: Sequence[UUID]
    ) -> int:
        self.store.check("count", table_name)
        return sum(1 for row in self.store.rows(table_name) if row.get(owner_column) in owner_ids)


class FakeProjects:
    def __init__(self, store: FakeStore):
        self.store = store

    async def exists(self, id: UUID) -> bool:
        return self.store.find("projects", id) is not None

    async def get_by_id(self, id: UUID) -> Any:
        row = self.store.find("projects", id)
        return _Record(row) if row is not None else None

    async def get_name(self, project_id: UUID) -> str | None:
        row = self.store.find("projects", project_id)
        return row["project_name"] if row is not None else None

    async def update_fields(self, id: UUID, values: dict[str, Any]) -> int:
        return self.store.update_row("projects", id, values)

    async def delete_by_id(self, id: UUID) -> int:
        self.store.check("delete", "projects")
        for table in ProjectReferences:
            if self.store.count(table, project_id=id):
                raise db_error(
                    f'update or delete on table "projects" violates foreign key '
                    f'constraint on table "{table}"',
                    "23503",
                )
        before = len(self.store.rows("projects"))
        self.store.tables["projects"] = [r for r in self.store.rows("projects") if r["id"] != id]
        return before - len(self.store.rows("projects"))

    async def list_progress_rows(self) -> list[dict[str, Any]]:
        self.store.check("select", "projects")
        rows = []
        for project in self.store.rows("projects"):
            milestones = [
                m for m in self.store.rows("project_milestones") if m["project_id"] == project["id"]
            ]
            rows.append(
                {
                    "id": project["id"],
                    "project_name": project["project_name"],
                    "progress_percentage": project["progress_percentage"],
                    "total_milestones": project["total_milestones"],
                    "completed_milestones": project["completed_milestones"],
                    "milestone_count": len(milestones),
                    "completed_count": sum(
                        1 for m in milestones if m["status"] == MilestoneStatus.COMPLETED.value
                    ),
                }
            )
        return rows

    async def list_orphaned(self) -> list[dict[str, Any]]:
        user_ids = {row["id"] for row in self.store.rows("users")}
        return [
            {
                "id": p["id"],
                "project_name": p["project_name"],
                "client_id": p["client_id"],
                "status": p["status"],
                "created_at": p["created_at"],
            }
            for p in self.store.rows("projects")
            if p["client_id"] is None or p["client_id"] not in user_ids
        ]


class FakePayments:
    def __init__(self, store: FakeStore):
        self.store = store

    async def list_overdrawn(self, project_id: UUID) -> list[dict[str, Any]]:
        self.store.check("select", "payments")
        return [
            {"id": p["id"], "cash_received": p["cash_received"], "amount_used": p["amount_used"]}
            for p in self.store.rows("payments")
            if p["project_id"] == project_id and p["amount_used"] > p["cash_received"]
        ]

    async def update_fields(self, id: UUID, values: dict[str, Any]) -> int:
        return self.store.update_row("payments", id, values)

    async def total_for_project(self, project_id: UUID) -> Decimal:
        amounts = [
            p.get("amount", Decimal("0"))
            for p in self.store.rows("payments")
            if p["project_id"] == project_id
        ]
        return sum(amounts, Decimal("0"))


class FakeFinancials:
    def __init__(self, store: FakeStore):
        self.store = store

    async def list_for_project(self, project_id: UUID) -> list[dict[str, Any]]:
        self.store.check("select", "project_financials")
        rows = [r for r in self.store.rows("project_financials") if r["project_id"] == project_id]
        return sorted(
            rows,
            key=lambda r: (r["snapshot_date"], r["updated_at"], r["created_at"]),
            reverse=True,
        )

    async def get_latest(self, project_id: UUID) -> dict[str, Any] | None:
        rows = await self.list_for_project(project_id)
        return rows[0] if rows else None

    async def delete_ids(self, ids: Sequence[UUID]) -> int:
        self.store.check("delete", "project_financials")
        rows = self.store.rows("project_financials")
        self.store.tables["project_financials"] = [r for r in rows if r["id"] not in ids]
        return len(rows) - len(self.store.tables["project_financials"])

    async def update_fields(self, id: UUID, values: dict[str, Any]) -> int:
        return self.store.update_row("project_financials", id, values)

    def add(self, entity: Any) -> None:
        self.store.check("insert", "project_financials")
        self.store.rows("project_financials").append(entity.model_dump())


class _Record:
    """Attribute access over a row dict, like a loaded model instance."""

    def __init__(self, row: dict[str, Any]):
        self.__dict__.update(row)

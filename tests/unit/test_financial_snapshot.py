"""Unit tests for FinancialSnapshotReconciler."""

from datetime import date, datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from src.sitedesk.models.enums import SnapshotStatus
from src.sitedesk.services.reconcile import FinancialSnapshotReconciler, SnapshotValues
from tests.helpers import db_error

pytestmark = pytest.mark.unit

VALUES = SnapshotValues(
    cash_received=Decimal("50000.00"),
    amount_used=Decimal("20000.00"),
    amount_remaining=Decimal("30000.00"),
)


@pytest.fixture
def reconciler(mock_session, store) -> FinancialSnapshotReconciler:
    return FinancialSnapshotReconciler(mock_session)


def add_snapshot(store, project_id, days_ago: int):
    stamp = datetime(2026, 1, 1) - timedelta(days=days_ago)
    return store.insert(
        "project_financials",
        project_id=project_id,
        cash_received=Decimal("0"),
        amount_used=Decimal("0"),
        amount_remaining=Decimal("0"),
        snapshot_date=stamp.date(),
        created_at=stamp,
        updated_at=stamp,
    )


class TestReconcileSnapshot:
    async def test_creates_snapshot_when_none_exists(self, reconciler, store):
        project_id = uuid4()

        outcome = await reconciler.reconcile_snapshot(project_id, VALUES)

        assert outcome.status == SnapshotStatus.CREATED
        rows = store.rows("project_financials")
        assert len(rows) == 1
        assert rows[0]["id"] == outcome.snapshot_id
        assert rows[0]["cash_received"] == Decimal("50000.00")
        assert isinstance(rows[0]["snapshot_date"], date)

    async def test_updates_latest_and_removes_duplicates(self, reconciler, store):
        project_id = uuid4()
        oldest = add_snapshot(store, project_id, days_ago=30)
        latest = add_snapshot(store, project_id, days_ago=1)
        middle = add_snapshot(store, project_id, days_ago=10)
        other_project = add_snapshot(store, uuid4(), days_ago=1)

        outcome = await reconciler.reconcile_snapshot(project_id, VALUES)

        assert outcome.status == SnapshotStatus.UPDATED
        assert outcome.snapshot_id == latest["id"]
        assert outcome.duplicates_removed == 2
        remaining = [r["id"] for r in store.rows("project_financials")]
        assert latest["id"] in remaining
        assert oldest["id"] not in remaining
        assert middle["id"] not in remaining
        assert other_project["id"] in remaining
        assert latest["amount_used"] == Decimal("20000.00")

    async def test_repeated_writes_keep_exactly_one_snapshot(self, reconciler, store):
        project_id = uuid4()
        for days_ago in (3, 2, 1):
            add_snapshot(store, project_id, days_ago=days_ago)

        for _ in range(3):
            await reconciler.reconcile_snapshot(project_id, VALUES)

        assert store.count("project_financials", project_id=project_id) == 1

    async def test_degraded_update_reports_omitted_fields(self, reconciler, store):
        project_id = uuid4()
        snapshot = add_snapshot(store, project_id, days_ago=1)
        store.fail_field("project_financials", "snapshot_date", db_error("bad date", "22008"))

        outcome = await reconciler.reconcile_snapshot(project_id, VALUES)

        assert outcome.status == SnapshotStatus.PARTIAL
        assert outcome.strategy == "amounts_only"
        assert outcome.omitted_fields == ["snapshot_date", "updated_at"]
        assert snapshot["cash_received"] == Decimal("50000.00")

    async def test_write_failure_skips_cleanup(self, reconciler, store):
        project_id = uuid4()
        add_snapshot(store, project_id, days_ago=2)
        add_snapshot(store, project_id, days_ago=1)
        store.fail("update", "project_financials", db_error("read-only transaction", "25006"))

        outcome = await reconciler.reconcile_snapshot(project_id, VALUES)

        assert outcome.status == SnapshotStatus.FAILED
        assert outcome.error == "read-only transaction"
        assert store.count("project_financials", project_id=project_id) == 2
        assert ("delete", "project_financials") not in store.calls

    async def test_insert_failure_is_reported(self, reconciler, store, mock_session):
        store.fail("insert", "project_financials", db_error("FK violation", "23503"))

        outcome = await reconciler.reconcile_snapshot(uuid4(), VALUES)

        assert outcome.status == SnapshotStatus.FAILED
        assert outcome.error == "FK violation"
        mock_session.rollback.assert_awaited()

    async def test_cleanup_failure_keeps_write(self, reconciler, store):
        project_id = uuid4()
        add_snapshot(store, project_id, days_ago=2)
        latest = add_snapshot(store, project_id, days_ago=1)
        store.fail("delete", "project_financials", db_error("lock not available", "55P03"))

        outcome = await reconciler.reconcile_snapshot(project_id, VALUES)

        assert outcome.status == SnapshotStatus.UPDATED
        assert outcome.duplicates_removed == 0
        assert outcome.cleanup_error == "lock not available"
        assert latest["cash_received"] == Decimal("50000.00")

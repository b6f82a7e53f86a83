"""Tests for the usage ledger background tasks."""

import pytest
from procrastinate.testing import InMemoryConnector

from budgetbite.models import OperationType
from budgetbite.services import CommitRequest
from budgetbite.tasks import usage_tasks
from budgetbite.tasks.worker import app

USER = "user-1"


@pytest.fixture
def in_memory():
    """Procrastinate app backed by an in-memory job queue."""
    connector = InMemoryConnector()
    with app.replace_connector(connector):
        yield connector


@pytest.fixture(autouse=True)
def task_ledger(monkeypatch, ledger):
    """Run tasks against the test database and clock."""
    monkeypatch.setattr(usage_tasks, "build_ledger", lambda: ledger)
    return ledger


async def test_defer_commit_retry_queues_request(in_memory):
    """Test a failed commit is queued with everything needed to replay it."""
    request = CommitRequest(
        user_id=USER,
        operation_type=OperationType.SCAN_IMAGE,
        cost_cents=8,
        was_cached=True,
        idempotency_key="req-1",
        reservation_id="res-1",
        tier="family",
    )

    await usage_tasks.defer_commit_retry(request)

    (job,) = in_memory.jobs.values()
    assert job["task_name"] == "retry_usage_commit"
    args = dict(job["args"])
    args["operation_type"] = OperationType.parse(args["operation_type"])
    assert CommitRequest(**args) == request


async def test_retry_usage_commit_applies_once(task_ledger):
    """Test replaying a queued commit twice bills once."""
    job = {
        "user_id": USER,
        "operation_type": "chat",
        "cost_cents": 2,
        "was_cached": False,
        "idempotency_key": "req-1",
    }

    await usage_tasks.retry_usage_commit(**job)
    await usage_tasks.retry_usage_commit(**job)

    period = await task_ledger.store.get(USER, 2026, 10)
    assert period.total_cost_cents == 2
    assert period.per_category_count == {OperationType.CHAT: 1}


async def test_retry_usage_commit_settles_reservation(task_ledger):
    """Test a queued commit settles the hold it was admitted under."""
    reservation = await task_ledger.check_and_reserve(USER, "scan")

    await usage_tasks.retry_usage_commit(
        user_id=USER,
        operation_type="scan_image",
        cost_cents=8,
        was_cached=False,
        idempotency_key=reservation.id,
        reservation_id=reservation.id,
    )

    period = await task_ledger.store.get(USER, 2026, 10)
    assert period.total_cost_cents == 8
    assert period.reserved_cents == 0


async def test_retry_into_closed_period_releases_hold(task_ledger):
    """Test a queued commit that can no longer land gives its hold back."""
    reservation = await task_ledger.check_and_reserve(USER, "chat")
    await task_ledger.record_commit(USER, "scan", 200)

    await usage_tasks.retry_usage_commit(
        user_id=USER,
        operation_type="chat",
        cost_cents=2,
        was_cached=False,
        idempotency_key=reservation.id,
        reservation_id=reservation.id,
    )

    period = await task_ledger.store.get(USER, 2026, 10)
    assert period.total_cost_cents == 200
    assert period.reserved_cents == 0
    assert (await task_ledger.store.get_reservation(reservation.id)).status.value == "released"


async def test_sweep_task_releases_expired_holds(task_ledger, clock):
    """Test the periodic sweep hands back stale holds only."""
    stale = await task_ledger.check_and_reserve(USER, "scan")
    clock.advance(minutes=10)
    fresh = await task_ledger.check_and_reserve(USER, "chat")

    await usage_tasks.sweep_expired_reservations(timestamp=0)

    period = await task_ledger.store.get(USER, 2026, 10)
    assert period.reserved_cents == 2
    assert (await task_ledger.store.get_reservation(stale.id)).status.value == "released"
    assert (await task_ledger.store.get_reservation(fresh.id)).status.value == "pending"

"""Tests for committing charges."""

from datetime import datetime, timezone

import pytest

from budgetbite.exceptions import PeriodClosed, StoreUnavailable
from budgetbite.models import OperationType
from budgetbite.services import LedgerStore, UsageRecorder


class FlakyStore(LedgerStore):
    """Store whose first ``failures`` charges fail after being applied."""

    def __init__(self, *args, failures: int, lose_response: bool = False, **kwargs):
        super().__init__(*args, **kwargs)
        self.failures = failures
        self.lose_response = lose_response
        self.calls = 0

    async def apply_charge(self, *args, **kwargs):
        self.calls += 1
        if self.calls <= self.failures:
            if self.lose_response:
                # Write succeeded but the caller never heard back
                await super().apply_charge(*args, **kwargs)
            raise StoreUnavailable("connection reset")
        return await super().apply_charge(*args, **kwargs)


async def test_commit_creates_period_lazily(store, ceilings, clock):
    """Test the first commit of a month creates its period."""
    recorder = UsageRecorder(store, ceilings, clock=clock)

    period = await recorder.commit("user-1", "scan", 8, was_cached=True)

    assert (period.year, period.month) == (2026, 10)
    assert period.ceiling_cents == 200
    assert period.total_cost_cents == 8
    assert period.categories[0].cached_count == 1


async def test_commit_uses_month_of_completion(store, ceilings, clock):
    """Test a commit after midnight on the 1st bills the new month."""
    clock.now = datetime(2026, 10, 31, 23, 59, 59, tzinfo=timezone.utc)
    recorder = UsageRecorder(store, ceilings, clock=clock)
    await recorder.commit("user-1", OperationType.CHAT, 2)

    clock.advance(seconds=2)
    period = await recorder.commit("user-1", OperationType.CHAT, 2)

    assert (period.year, period.month) == (2026, 11)
    assert period.total_cost_cents == 2
    assert (await store.get("user-1", 2026, 10)).total_cost_cents == 2


async def test_commit_with_same_key_is_idempotent(store, ceilings, clock):
    """Test callers may retry a commit safely."""
    recorder = UsageRecorder(store, ceilings, clock=clock)

    await recorder.commit("user-1", "chat", 2, idempotency_key="req-1")
    period = await recorder.commit("user-1", "chat", 2, idempotency_key="req-1")

    assert period.total_cost_cents == 2


async def test_commit_retries_transient_failures(session_factory, ceilings, clock):
    """Test a store hiccup is retried with the same idempotency key."""
    store = FlakyStore(session_factory, clock=clock, failures=2, lose_response=True)
    await store.create_if_absent("user-1", 2026, 10, 200)
    recorder = UsageRecorder(store, ceilings, clock=clock, attempts=3, backoff_seconds=0)

    period = await recorder.commit("user-1", "chat", 2)

    assert store.calls == 3
    assert period.total_cost_cents == 2


async def test_commit_gives_up_after_attempts(session_factory, ceilings, clock):
    """Test exhausted retries surface StoreUnavailable."""
    store = FlakyStore(session_factory, clock=clock, failures=5)
    recorder = UsageRecorder(store, ceilings, clock=clock, attempts=2, backoff_seconds=0)

    with pytest.raises(StoreUnavailable):
        await recorder.commit("user-1", "chat", 2)

    assert store.calls == 2


async def test_commit_after_limit_raises_period_closed(store, ceilings, clock, caplog):
    """Test a commit into a closed period is rejected and logged."""
    recorder = UsageRecorder(store, ceilings, clock=clock)
    await recorder.commit("user-1", "scan", 200)

    with pytest.raises(PeriodClosed):
        await recorder.commit("user-1", "chat", 2)

    assert "Unrecorded AI charge" in caplog.text


async def test_commit_rejects_negative_cost(store, ceilings, clock):
    """Test a negative cost is a caller bug."""
    recorder = UsageRecorder(store, ceilings, clock=clock)

    with pytest.raises(ValueError):
        await recorder.commit("user-1", "chat", -1)


async def test_replay_in_next_month_returns_original_period(store, ceilings, clock):
    """Test a late retry neither moves the charge nor opens an empty month."""
    recorder = UsageRecorder(store, ceilings, clock=clock)
    await recorder.commit("user-1", "chat", 2, idempotency_key="req-1")
    clock.now = datetime(2026, 11, 1, 0, 5, tzinfo=timezone.utc)

    period = await recorder.commit("user-1", "chat", 2, idempotency_key="req-1")

    assert (period.year, period.month) == (2026, 10)
    assert period.total_cost_cents == 2
    assert await store.get("user-1", 2026, 11) is None


async def test_commit_uses_tier_for_new_period(store, ceilings, clock):
    """Test a commit that opens the month honours the subscription tier."""
    recorder = UsageRecorder(store, ceilings, clock=clock)

    period = await recorder.commit("user-1", "chat", 2, tier="family")

    assert period.ceiling_cents == 400

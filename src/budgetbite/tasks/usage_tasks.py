"""Usage ledger task definitions for Procrastinate."""

import logging

from ..database import async_session_factory
from ..exceptions import PeriodClosed
from ..models import OperationType
from ..services.ledger import UsageLedger
from ..services.usage_recorder import CommitRequest
from .worker import app

logger = logging.getLogger(__name__)


def build_ledger() -> UsageLedger:
    """Ledger bound to the application database."""
    return UsageLedger(async_session_factory)


@app.task(name="retry_usage_commit", retry=5)
async def retry_usage_commit(
    user_id: str,
    operation_type: str,
    cost_cents: int,
    was_cached: bool,
    idempotency_key: str,
    reservation_id: str | None = None,
    tier: str | None = None,
) -> None:
    """Re-apply a commit that failed inline. Safe to run more than once."""
    ledger = build_ledger()
    request = CommitRequest(
        user_id=user_id,
        operation_type=OperationType.parse(operation_type),
        cost_cents=cost_cents,
        was_cached=was_cached,
        idempotency_key=idempotency_key,
        reservation_id=reservation_id,
        tier=tier,
    )
    try:
        await ledger.recorder.apply(request)
    except PeriodClosed:
        # Logged by the recorder; retrying cannot succeed
        if reservation_id is not None:
            await ledger.protocol.release_hold(reservation_id)


@app.periodic(cron="*/5 * * * *")
@app.task(name="sweep_expired_reservations", queueing_lock="sweep_expired_reservations")
async def sweep_expired_reservations(timestamp: int) -> None:
    """Release holds whose AI call never committed or released."""
    ledger = build_ledger()
    released = await ledger.sweep_expired_reservations()
    if released:
        logger.info(f"Released {released} expired reservations")


async def defer_commit_retry(request: CommitRequest) -> None:
    """Queue a durable retry of a failed commit."""
    await retry_usage_commit.defer_async(
        user_id=request.user_id,
        operation_type=request.operation_type.value,
        cost_cents=request.cost_cents,
        was_cached=request.was_cached,
        idempotency_key=request.idempotency_key,
        reservation_id=request.reservation_id,
        tier=request.tier,
    )

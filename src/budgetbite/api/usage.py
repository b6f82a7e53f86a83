"""Usage ledger endpoints called by AI-backed features."""

from fastapi import APIRouter, Depends, Path

from ..schemas.usage import (
    CheckRequest,
    CheckResponse,
    CommitRequest,
    PeriodResponse,
    ReleaseRequest,
    SummaryResponse,
)
from ..services.budget_policy import remaining_cents
from ..services.ledger import UsageLedger
from .deps import get_ledger

router = APIRouter(prefix="/usage", tags=["usage"])


@router.post("/check", response_model=CheckResponse)
async def check_budget(
    request: CheckRequest,
    ledger: UsageLedger = Depends(get_ledger),
) -> CheckResponse:
    """
    Check and reserve budget before calling the AI model.

    Denials are returned as 429 with a translated message.
    """
    reservation = await ledger.protocol.admit_or_raise(
        request.user_id,
        request.operation_type,
        request.estimated_cost_cents,
        tier=request.tier,
    )
    period = reservation.period
    return CheckResponse(
        allowed=True,
        reservation_id=reservation.id if reservation.held else None,
        idempotency_key=reservation.id,
        remaining_cents=remaining_cents(period),
        total_used_cents=period.total_cost_cents,
        limit_cents=period.ceiling_cents,
    )


@router.post("/commit", response_model=PeriodResponse)
async def commit_usage(
    request: CommitRequest,
    ledger: UsageLedger = Depends(get_ledger),
) -> PeriodResponse:
    """Record the actual cost of a successful AI call."""
    period = await ledger.record_commit(
        request.user_id,
        request.operation_type,
        request.cost_cents,
        was_cached=request.was_cached,
        idempotency_key=request.idempotency_key,
        reservation_id=request.reservation_id,
        tier=request.tier,
    )
    return PeriodResponse.from_period(period)


@router.post("/release")
async def release_reservation(
    request: ReleaseRequest,
    ledger: UsageLedger = Depends(get_ledger),
) -> dict:
    """Release a reservation after a failed or cancelled AI call."""
    released = await ledger.release(request.reservation_id, request.user_id)
    return {"status": "released" if released else "already_settled"}


@router.get("/{user_id}/summary", response_model=SummaryResponse)
async def current_summary(
    user_id: str,
    ledger: UsageLedger = Depends(get_ledger),
) -> SummaryResponse:
    """Remaining budget for the current month."""
    return SummaryResponse.from_summary(await ledger.get_summary(user_id))


@router.get("/{user_id}/summary/{year}/{month}", response_model=SummaryResponse)
async def month_summary(
    user_id: str,
    year: int = Path(..., ge=2000),
    month: int = Path(..., ge=1, le=12),
    ledger: UsageLedger = Depends(get_ledger),
) -> SummaryResponse:
    """Usage for any month."""
    return SummaryResponse.from_summary(await ledger.summarize(user_id, year, month))

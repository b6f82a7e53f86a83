"""Admin API endpoints."""

from fastapi import APIRouter, Depends, Query

from ..schemas.admin import MonthUsageResponse, SweepResponse
from ..services.cost_tracker import utcnow
from ..services.ledger import UsageLedger
from .deps import get_ledger

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/usage/summary", response_model=MonthUsageResponse)
async def usage_summary(
    year: int | None = Query(None, ge=2000),
    month: int | None = Query(None, ge=1, le=12),
    ledger: UsageLedger = Depends(get_ledger),
) -> MonthUsageResponse:
    """Get usage summary across all users."""
    now = utcnow()
    year = year or now.year
    month = month or now.month

    totals = await ledger.store.month_totals(year, month)
    return MonthUsageResponse(year=year, month=month, **totals)


@router.post("/reservations/sweep", response_model=SweepResponse)
async def sweep_reservations(
    ledger: UsageLedger = Depends(get_ledger),
) -> SweepResponse:
    """Release reservations whose AI call never reported back."""
    return SweepResponse(released=await ledger.sweep_expired_reservations())

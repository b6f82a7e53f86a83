"""Usage ledger API schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

from ..models import UsagePeriod
from ..services.usage_summary import UsageSummary


class CheckRequest(BaseModel):
    """Request to check and reserve budget before an AI call."""

    user_id: str = Field(..., min_length=1, max_length=64)
    operation_type: str
    estimated_cost_cents: int | None = Field(None, ge=0)
    tier: str | None = Field(None, max_length=32)  # subscription tier from the caller


class CheckResponse(BaseModel):
    """Admission decision."""

    allowed: bool
    reservation_id: str | None = None  # only set for hard reservations
    idempotency_key: str | None = None
    reason: str | None = None
    remaining_cents: int
    total_used_cents: int
    limit_cents: int
    message: str | None = None
    message_en: str | None = None


class CommitRequest(BaseModel):
    """Request to record the actual cost of a successful AI call."""

    user_id: str = Field(..., min_length=1, max_length=64)
    operation_type: str
    cost_cents: int = Field(..., ge=0)
    was_cached: bool = False
    idempotency_key: str | None = Field(None, max_length=128)
    reservation_id: str | None = None
    tier: str | None = Field(None, max_length=32)


class ReleaseRequest(BaseModel):
    """Request to release a reservation after a failed AI call."""

    user_id: str = Field(..., min_length=1, max_length=64)
    reservation_id: str


class PeriodResponse(BaseModel):
    """Ledger state after a commit."""

    user_id: str
    year: int
    month: int
    total_cost_cents: int
    ceiling_cents: int
    reserved_cents: int
    limit_reached: bool
    limit_reached_at: datetime | None
    per_category_cost_cents: dict[str, int]
    per_category_count: dict[str, int]

    @classmethod
    def from_period(cls, period: UsagePeriod) -> "PeriodResponse":
        return cls(
            user_id=period.user_id,
            year=period.year,
            month=period.month,
            total_cost_cents=period.total_cost_cents,
            ceiling_cents=period.ceiling_cents,
            reserved_cents=period.reserved_cents,
            limit_reached=period.limit_reached,
            limit_reached_at=period.limit_reached_at,
            per_category_cost_cents={
                op.value: cost for op, cost in period.per_category_cost_cents.items()
            },
            per_category_count={op.value: n for op, n in period.per_category_count.items()},
        )


class CategoryUsageResponse(BaseModel):
    """Spend for one operation type."""

    cost_cents: int
    count: int
    cached_count: int


class SummaryResponse(BaseModel):
    """Remaining budget for the UI usage indicator."""

    user_id: str
    year: int
    month: int
    total_used_cents: int
    limit_cents: int
    remaining_cents: int
    reserved_cents: int
    percent_used: float
    limit_reached: bool
    limit_reached_at: datetime | None
    per_category: dict[str, CategoryUsageResponse]
    used_formatted: str
    limit_formatted: str
    remaining_formatted: str

    @classmethod
    def from_summary(cls, summary: UsageSummary) -> "SummaryResponse":
        return cls(
            user_id=summary.user_id,
            year=summary.year,
            month=summary.month,
            total_used_cents=summary.total_cost_cents,
            limit_cents=summary.ceiling_cents,
            remaining_cents=summary.remaining_cents,
            reserved_cents=summary.reserved_cents,
            percent_used=summary.percent_used,
            limit_reached=summary.limit_reached,
            limit_reached_at=summary.limit_reached_at,
            per_category={
                op.value: CategoryUsageResponse(
                    cost_cents=usage.cost_cents,
                    count=usage.count,
                    cached_count=usage.cached_count,
                )
                for op, usage in summary.per_category.items()
            },
            used_formatted=summary.used_formatted,
            limit_formatted=summary.limit_formatted,
            remaining_formatted=summary.remaining_formatted,
        )

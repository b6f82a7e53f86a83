"""Read-only projection of a user's monthly usage."""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from ..models import OperationType, UsagePeriod
from .cost_tracker import period_of, utcnow
from .ledger_store import LedgerStore
from .tier_resolver import CeilingResolver


def format_cents(cents: int) -> str:
    """Format cents as dollars, e.g. 190 -> "$1.90"."""
    return f"${cents / 100:.2f}"


@dataclass(frozen=True)
class CategoryUsage:
    """Spend and call counts for one operation type."""

    cost_cents: int = 0
    count: int = 0
    cached_count: int = 0


@dataclass(frozen=True)
class UsageSummary:
    """What the UI shows as "X left this month"."""

    user_id: str
    year: int
    month: int
    total_cost_cents: int
    ceiling_cents: int
    reserved_cents: int
    limit_reached: bool
    limit_reached_at: datetime | None = None
    per_category: dict[OperationType, CategoryUsage] = field(default_factory=dict)

    @property
    def remaining_cents(self) -> int:
        return max(0, self.ceiling_cents - self.total_cost_cents - self.reserved_cents)

    @property
    def percent_used(self) -> float:
        return min(100.0, self.total_cost_cents / self.ceiling_cents * 100)

    @property
    def used_formatted(self) -> str:
        return format_cents(self.total_cost_cents)

    @property
    def limit_formatted(self) -> str:
        return format_cents(self.ceiling_cents)

    @property
    def remaining_formatted(self) -> str:
        return format_cents(self.remaining_cents)

    @classmethod
    def from_period(cls, period: UsagePeriod) -> "UsageSummary":
        return cls(
            user_id=period.user_id,
            year=period.year,
            month=period.month,
            total_cost_cents=period.total_cost_cents,
            ceiling_cents=period.ceiling_cents,
            reserved_cents=period.reserved_cents,
            limit_reached=period.limit_reached,
            limit_reached_at=period.limit_reached_at,
            per_category={
                c.operation_type: CategoryUsage(c.cost_cents, c.count, c.cached_count)
                for c in period.categories
            },
        )


class UsageSummaryReader:
    """Builds summaries straight from the store on every call.

    Never creates or mutates a period. A month with no record yet reports
    the full ceiling the user would get.
    """

    def __init__(
        self,
        store: LedgerStore,
        ceilings: CeilingResolver,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.ceilings = ceilings
        self._clock = clock

    async def summarize(self, user_id: str, year: int, month: int) -> UsageSummary:
        period = await self.store.get(user_id, year, month)
        if period is not None:
            return UsageSummary.from_period(period)

        return UsageSummary(
            user_id=user_id,
            year=year,
            month=month,
            total_cost_cents=0,
            ceiling_cents=await self.ceilings.ceiling_for(user_id),
            reserved_cents=0,
            limit_reached=False,
        )

    async def current(self, user_id: str) -> UsageSummary:
        year, month = period_of(self._clock())
        return await self.summarize(user_id, year, month)

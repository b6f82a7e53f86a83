"""Admin API schemas."""

from pydantic import BaseModel


class CategoryTotal(BaseModel):
    """Aggregate spend for one operation type."""

    cost_cents: int
    count: int


class MonthUsageResponse(BaseModel):
    """Spend across all users for a month."""

    year: int
    month: int
    periods: int
    total_cost_cents: int
    reserved_cents: int
    limit_reached: int
    by_category: dict[str, CategoryTotal]


class SweepResponse(BaseModel):
    """Result of releasing expired reservations."""

    released: int

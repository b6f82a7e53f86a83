"""Pydantic schemas for API validation."""

from .admin import CategoryTotal, MonthUsageResponse, SweepResponse
from .usage import (
    CategoryUsageResponse,
    CheckRequest,
    CheckResponse,
    CommitRequest,
    PeriodResponse,
    ReleaseRequest,
    SummaryResponse,
)

__all__ = [
    "CategoryTotal",
    "CategoryUsageResponse",
    "CheckRequest",
    "CheckResponse",
    "CommitRequest",
    "MonthUsageResponse",
    "PeriodResponse",
    "ReleaseRequest",
    "SummaryResponse",
    "SweepResponse",
]

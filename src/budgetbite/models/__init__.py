"""Database models."""

from .base import Base
from .charge import UsageCharge
from .reservation import ReservationStatus, UsageReservation
from .usage import OperationType, UsageCategoryTotal, UsagePeriod

__all__ = [
    "Base",
    "OperationType",
    "ReservationStatus",
    "UsageCategoryTotal",
    "UsageCharge",
    "UsagePeriod",
    "UsageReservation",
]

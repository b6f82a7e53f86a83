"""Ledger error taxonomy."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .services.budget_policy import DenyReason
    from .services.usage_summary import UsageSummary

LIMIT_REACHED_MESSAGE = (
    "Has alcanzado tu límite de uso de IA este mes. "
    "El límite se reinicia el 1 de cada mes."
)
LIMIT_REACHED_MESSAGE_EN = (
    "You have reached your AI usage limit this month. "
    "The limit resets on the 1st of each month."
)


class LedgerError(Exception):
    """Base class for usage ledger errors."""


class BudgetExceeded(LedgerError):
    """The user has no budget left for the requested operation.

    Expected and user-facing. Callers must not make the AI call.
    """

    message = LIMIT_REACHED_MESSAGE
    message_en = LIMIT_REACHED_MESSAGE_EN

    def __init__(self, reason: "DenyReason", summary: "UsageSummary | None" = None):
        super().__init__(f"AI budget exceeded ({reason.value})")
        self.reason = reason
        self.summary = summary


class StoreUnavailable(LedgerError):
    """The storage layer failed; assume nothing was recorded."""


class PeriodNotFound(LedgerError):
    """A charge targeted a usage period that has not been created."""


class PeriodClosed(LedgerError):
    """A charge arrived after the period's limit flag was set."""

    def __init__(self, user_id: str, year: int, month: int):
        super().__init__(f"Usage period {user_id} {year}-{month:02d} is closed")
        self.user_id = user_id
        self.year = year
        self.month = month


class UnknownOperationType(LedgerError, ValueError):
    """An operation category outside the known set was supplied."""

    def __init__(self, value: str):
        super().__init__(f"Unknown operation type: {value!r}")
        self.value = value


class ReservationNotFound(LedgerError):
    """A reservation id did not match any reservation."""

    def __init__(self, reservation_id: str):
        super().__init__(f"Reservation {reservation_id} not found")
        self.reservation_id = reservation_id

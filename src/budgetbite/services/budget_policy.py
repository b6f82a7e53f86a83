"""Admission decisions for proposed charges.

Pure functions: nothing here touches the store, so they are safe to call
for previews.
"""

from dataclasses import dataclass
from enum import Enum

from ..models import UsagePeriod


class DenyReason(str, Enum):
    """Why a charge was not admitted."""

    ALREADY_AT_LIMIT = "already_at_limit"
    WOULD_EXCEED = "would_exceed"


@dataclass(frozen=True)
class Admit:
    """The charge fits in the remaining budget."""


@dataclass(frozen=True)
class Deny:
    """The charge must not be made."""

    reason: DenyReason


Decision = Admit | Deny


def admit(period: UsagePeriod, proposed_cost_cents: int) -> Decision:
    """Decide whether a charge of ``proposed_cost_cents`` is admissible.

    Outstanding reservation holds count as spent. Without hard reservations
    ``reserved_cents`` stays at zero, so only committed spend is compared.
    """
    if proposed_cost_cents < 0:
        raise ValueError("proposed_cost_cents must be >= 0")

    if period.limit_reached:
        return Deny(DenyReason.ALREADY_AT_LIMIT)

    committed = period.total_cost_cents + period.reserved_cents
    if committed + proposed_cost_cents > period.ceiling_cents:
        return Deny(DenyReason.WOULD_EXCEED)

    return Admit()


def remaining_cents(period: UsagePeriod) -> int:
    """Budget still available, never negative."""
    return max(0, period.ceiling_cents - period.total_cost_cents - period.reserved_cents)

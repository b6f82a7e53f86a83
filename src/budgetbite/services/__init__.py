"""Business logic services."""

from .budget_policy import Admit, Decision, Deny, DenyReason, admit, remaining_cents
from .cost_tracker import estimate_cost_cents, period_of, utcnow
from .ledger import UsageLedger
from .ledger_store import LedgerStore
from .reservation import AiResult, Reservation, ReservationProtocol, ReservationState
from .tier_resolver import CeilingResolver, TierCeilingResolver
from .usage_recorder import CommitRequest, UsageRecorder
from .usage_summary import CategoryUsage, UsageSummary, UsageSummaryReader, format_cents

__all__ = [
    "Admit",
    "AiResult",
    "CategoryUsage",
    "CeilingResolver",
    "CommitRequest",
    "Decision",
    "Deny",
    "DenyReason",
    "LedgerStore",
    "Reservation",
    "ReservationProtocol",
    "ReservationState",
    "TierCeilingResolver",
    "UsageLedger",
    "UsageRecorder",
    "UsageSummary",
    "UsageSummaryReader",
    "admit",
    "estimate_cost_cents",
    "format_cents",
    "period_of",
    "remaining_cents",
    "utcnow",
]

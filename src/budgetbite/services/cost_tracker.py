"""Operation cost estimates and billing period resolution."""

from datetime import datetime, timezone

from ..config import settings
from ..models import OperationType


def estimate_cost_cents(operation_type: OperationType | str) -> int:
    """Estimated cost in cents of a single operation of the given type."""
    match OperationType.parse(operation_type):
        case OperationType.CHAT:
            return settings.chat_cost_cents
        case OperationType.SCAN_IMAGE:
            return settings.scan_image_cost_cents
        case OperationType.SHOPPING_LIST:
            return settings.shopping_list_cost_cents
        case OperationType.BODY_SCAN:
            return settings.body_scan_cost_cents


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def period_of(moment: datetime) -> tuple[int, int]:
    """Calendar (year, month) a moment falls in, in UTC."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.year, moment.month

"""Monthly ceiling lookup by subscription tier."""

import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

from ..config import settings

logger = logging.getLogger(__name__)


class CeilingResolver(Protocol):
    """Supplies the monthly ceiling for a user when a period is created."""

    async def ceiling_for(self, user_id: str, tier: str | None = None) -> int: ...


class TierCeilingResolver:
    """Map a user's subscription tier to a ceiling from settings.

    A tier passed by the caller wins. Otherwise ``tier_of``, the
    subscription collaborator, is asked. Without either, or for an unknown
    tier, the default ceiling applies.
    """

    def __init__(
        self,
        tier_of: Callable[[str], Awaitable[str | None]] | None = None,
        tiers: dict[str, int] | None = None,
        default_cents: int | None = None,
    ):
        self._tier_of = tier_of
        self._tiers = tiers if tiers is not None else settings.tier_ceilings_cents
        self._default_cents = (
            default_cents if default_cents is not None else settings.default_monthly_ceiling_cents
        )

    async def ceiling_for(self, user_id: str, tier: str | None = None) -> int:
        if tier is None and self._tier_of is not None:
            tier = await self._tier_of(user_id)
        if tier is None:
            return self._default_cents
        if tier not in self._tiers:
            logger.warning(f"Unknown subscription tier {tier!r} for user {user_id}")
            return self._default_cents
        return self._tiers[tier]

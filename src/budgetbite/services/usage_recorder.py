"""Applies committed AI charges to the ledger."""

import asyncio
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from ..config import settings
from ..exceptions import PeriodClosed, PeriodNotFound, StoreUnavailable
from ..models import OperationType, UsagePeriod
from .cost_tracker import period_of, utcnow
from .ledger_store import LedgerStore
from .tier_resolver import CeilingResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommitRequest:
    """A charge to commit. Retrying the same request never double-charges."""

    user_id: str
    operation_type: OperationType
    cost_cents: int
    was_cached: bool = False
    idempotency_key: str = field(default_factory=lambda: uuid.uuid4().hex)
    reservation_id: str | None = None
    tier: str | None = None  # subscription tier, used if the period is new


class UsageRecorder:
    """Commits actual costs against the month in which the commit happens."""

    def __init__(
        self,
        store: LedgerStore,
        ceilings: CeilingResolver,
        clock: Callable[[], datetime] = utcnow,
        attempts: int | None = None,
        backoff_seconds: float | None = None,
    ):
        self.store = store
        self.ceilings = ceilings
        self._clock = clock
        self._attempts = attempts or settings.commit_retry_attempts
        self._backoff_seconds = (
            backoff_seconds if backoff_seconds is not None else settings.commit_retry_backoff_seconds
        )

    async def commit(
        self,
        user_id: str,
        operation_type: OperationType | str,
        cost_cents: int,
        *,
        was_cached: bool = False,
        idempotency_key: str | None = None,
        reservation_id: str | None = None,
        tier: str | None = None,
    ) -> UsagePeriod:
        """Record ``cost_cents`` for the current month and return the period."""
        request = CommitRequest(
            user_id=user_id,
            operation_type=OperationType.parse(operation_type),
            cost_cents=cost_cents,
            was_cached=was_cached,
            idempotency_key=idempotency_key or uuid.uuid4().hex,
            reservation_id=reservation_id,
            tier=tier,
        )
        return await self.apply(request)

    async def apply(self, request: CommitRequest) -> UsagePeriod:
        """Apply a commit, retrying transient store failures.

        Raises StoreUnavailable once attempts are exhausted and PeriodClosed
        if the period's limit was already reached. Both are logged as
        unrecorded charges.
        """
        if request.cost_cents < 0:
            raise ValueError("cost_cents must be >= 0")

        for attempt in range(1, self._attempts + 1):
            try:
                period = await self._apply_once(request)
                break
            except StoreUnavailable:
                if attempt == self._attempts:
                    logger.error(
                        f"Unrecorded AI charge after {attempt} attempts: "
                        f"user={request.user_id}, type={request.operation_type.value}, "
                        f"cost={request.cost_cents}c, key={request.idempotency_key}"
                    )
                    raise
                logger.warning(
                    f"Retrying AI usage commit ({attempt}/{self._attempts}): "
                    f"key={request.idempotency_key}"
                )
                await asyncio.sleep(self._backoff_seconds * attempt)
            except PeriodClosed as e:
                logger.error(
                    f"Unrecorded AI charge, period closed: user={request.user_id}, "
                    f"period={e.year}-{e.month:02d}, type={request.operation_type.value}, "
                    f"cost={request.cost_cents}c"
                )
                raise

        logger.info(
            f"Recorded AI usage: user={request.user_id}, type={request.operation_type.value}, "
            f"cost={request.cost_cents}c, cached={request.was_cached}, "
            f"total={period.total_cost_cents}c"
        )
        if period.limit_reached:
            logger.info(
                f"AI usage limit reached: user={request.user_id}, "
                f"total={period.total_cost_cents}c, ceiling={period.ceiling_cents}c"
            )
        return period

    async def _apply_once(self, request: CommitRequest) -> UsagePeriod:
        # Resolved per attempt: the charge lands in the month it completes in
        year, month = period_of(self._clock())
        try:
            return await self._apply_charge(request, year, month)
        except PeriodNotFound:
            ceiling = await self.ceilings.ceiling_for(request.user_id, request.tier)
            await self.store.create_if_absent(request.user_id, year, month, ceiling)

        return await self._apply_charge(request, year, month)

    async def _apply_charge(self, request: CommitRequest, year: int, month: int) -> UsagePeriod:
        return await self.store.apply_charge(
            request.user_id,
            year,
            month,
            request.operation_type,
            request.cost_cents,
            idempotency_key=request.idempotency_key,
            was_cached=request.was_cached,
            reservation_id=request.reservation_id,
        )

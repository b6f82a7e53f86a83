"""Entry point for AI-backed features: check, commit, summarize."""

from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from typing import Literal

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import settings
from ..exceptions import PeriodClosed, ReservationNotFound
from ..models import OperationType, UsagePeriod
from .cost_tracker import utcnow
from .ledger_store import LedgerStore
from .reservation import Reservation, ReservationProtocol
from .tier_resolver import CeilingResolver, TierCeilingResolver
from .usage_recorder import CommitRequest, UsageRecorder
from .usage_summary import UsageSummary, UsageSummaryReader


class UsageLedger:
    """Wires the store, recorder, protocol and reader together."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        ceilings: CeilingResolver | None = None,
        mode: Literal["hard", "soft"] | None = None,
        clock: Callable[[], datetime] = utcnow,
        on_commit_failure: Callable[[CommitRequest], Awaitable[None]] | None = None,
    ):
        self.store = LedgerStore(session_factory, clock=clock)
        self.ceilings = ceilings or TierCeilingResolver()
        self.recorder = UsageRecorder(self.store, self.ceilings, clock=clock)
        self.protocol = ReservationProtocol(
            self.store,
            self.recorder,
            self.ceilings,
            mode=mode,
            clock=clock,
            on_commit_failure=on_commit_failure,
        )
        self.reader = UsageSummaryReader(self.store, self.ceilings, clock=clock)

    async def check_and_reserve(
        self,
        user_id: str,
        operation_type: OperationType | str,
        estimated_cost_cents: int | None = None,
        *,
        tier: str | None = None,
    ) -> Reservation:
        return await self.protocol.check_and_reserve(
            user_id, operation_type, estimated_cost_cents, tier=tier
        )

    async def record_commit(
        self,
        user_id: str,
        operation_type: OperationType | str,
        actual_cost_cents: int,
        *,
        was_cached: bool = False,
        idempotency_key: str | None = None,
        reservation_id: str | None = None,
        tier: str | None = None,
    ) -> UsagePeriod:
        """Commit a charge, settling its reservation when one is given.

        The reservation id doubles as the idempotency key unless another
        key is supplied. If the period closed while the call was in flight
        the hold is released and PeriodClosed is raised.
        """
        if reservation_id is not None:
            await self._owned_reservation(reservation_id, user_id)
            idempotency_key = idempotency_key or reservation_id

        try:
            return await self.recorder.commit(
                user_id,
                operation_type,
                actual_cost_cents,
                was_cached=was_cached,
                idempotency_key=idempotency_key,
                reservation_id=reservation_id,
                tier=tier,
            )
        except PeriodClosed:
            if reservation_id is not None:
                await self.protocol.release_hold(reservation_id)
            raise

    async def release(self, reservation_id: str, user_id: str) -> bool:
        """Release a hold owned by ``user_id``. False if already settled."""
        await self._owned_reservation(reservation_id, user_id)
        return await self.store.release(reservation_id)

    async def get_summary(self, user_id: str) -> UsageSummary:
        return await self.reader.current(user_id)

    async def summarize(self, user_id: str, year: int, month: int) -> UsageSummary:
        return await self.reader.summarize(user_id, year, month)

    async def sweep_expired_reservations(self) -> int:
        return await self.store.release_expired(
            timedelta(seconds=settings.reservation_ttl_seconds)
        )

    async def _owned_reservation(self, reservation_id: str, user_id: str) -> None:
        reservation = await self.store.get_reservation(reservation_id)
        if reservation is None or reservation.user_id != user_id:
            raise ReservationNotFound(reservation_id)

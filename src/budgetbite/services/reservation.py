"""Check-then-commit protocol every AI-backed feature follows.

A request moves through::

    CHECKING -> ADMITTED -> SPENDING -> COMMITTED
    CHECKING -> DENIED
    ADMITTED -> SPENDING -> FAILED   (never billed)

In ``hard`` mode the estimated cost is held in the store at check time and
the hold is released on commit, failure or cancellation, so concurrent
requests cannot overshoot the ceiling. In ``soft`` mode nothing is held and
overshoot is bounded by the sticky limit flag.
"""

import logging
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Literal

from ..config import settings
from ..exceptions import BudgetExceeded, PeriodClosed, StoreUnavailable
from ..models import OperationType, UsagePeriod
from .budget_policy import Admit, Decision, Deny, DenyReason, admit
from .cost_tracker import estimate_cost_cents, period_of, utcnow
from .ledger_store import LedgerStore
from .tier_resolver import CeilingResolver
from .usage_recorder import CommitRequest, UsageRecorder
from .usage_summary import UsageSummary

logger = logging.getLogger(__name__)

# Conditional reserve attempts before giving up on a contended period
_RESERVE_ATTEMPTS = 3


class ReservationState(str, Enum):
    """Where a metered request is in the protocol."""

    CHECKING = "checking"
    ADMITTED = "admitted"
    SPENDING = "spending"
    COMMITTED = "committed"
    DENIED = "denied"
    FAILED = "failed"


@dataclass(frozen=True)
class AiResult:
    """Outcome reported by the AI invocation boundary."""

    success: bool
    actual_cost_cents: int = 0
    was_cached: bool = False
    value: Any = None


@dataclass
class Reservation:
    """One metered request."""

    user_id: str
    operation_type: OperationType
    estimated_cost_cents: int
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: ReservationState = ReservationState.CHECKING
    decision: Decision | None = None
    period: UsagePeriod | None = None
    held: bool = False  # estimate is held in the store
    actual_cost_cents: int | None = None
    was_cached: bool = False
    tier: str | None = None

    @property
    def admitted(self) -> bool:
        return isinstance(self.decision, Admit)

    def mark_failed(self) -> None:
        """Flag the AI call as failed so ``metered`` skips billing."""
        self.state = ReservationState.FAILED


class ReservationProtocol:
    """Drives admission, spending and commit for AI calls."""

    def __init__(
        self,
        store: LedgerStore,
        recorder: UsageRecorder,
        ceilings: CeilingResolver,
        mode: Literal["hard", "soft"] | None = None,
        clock: Callable[[], datetime] = utcnow,
        on_commit_failure: Callable[[CommitRequest], Awaitable[None]] | None = None,
    ):
        self.store = store
        self.recorder = recorder
        self.ceilings = ceilings
        self.mode = mode or settings.reservation_mode
        self._clock = clock
        self._on_commit_failure = on_commit_failure

    async def check_and_reserve(
        self,
        user_id: str,
        operation_type: OperationType | str,
        estimated_cost_cents: int | None = None,
        *,
        tier: str | None = None,
    ) -> Reservation:
        """Decide whether the user may spend the estimate now.

        Lazily creates the current month's period. Fails closed: a store
        error raises StoreUnavailable and the caller must not call the AI.
        """
        operation_type = OperationType.parse(operation_type)
        if estimated_cost_cents is None:
            estimated_cost_cents = estimate_cost_cents(operation_type)

        reservation = Reservation(
            user_id=user_id,
            operation_type=operation_type,
            estimated_cost_cents=estimated_cost_cents,
            tier=tier,
        )
        year, month = period_of(self._clock())

        try:
            period = await self._get_or_create_period(user_id, year, month, tier)
            decision = admit(period, estimated_cost_cents)

            if isinstance(decision, Admit) and self.mode == "hard":
                for _ in range(_RESERVE_ATTEMPTS):
                    held = await self.store.reserve(
                        user_id, year, month, operation_type, estimated_cost_cents, reservation.id
                    )
                    if held is not None:
                        period = held
                        reservation.held = True
                        break
                    # Lost a race for the remaining budget; re-evaluate
                    period = await self.store.get(user_id, year, month)
                    decision = admit(period, estimated_cost_cents)
                    if isinstance(decision, Deny):
                        break
                else:
                    decision = Deny(DenyReason.WOULD_EXCEED)
        except StoreUnavailable:
            reservation.state = ReservationState.DENIED
            logger.error(
                f"AI budget check failed, denying: user={user_id}, type={operation_type.value}"
            )
            raise

        reservation.period = period
        reservation.decision = decision

        match decision:
            case Deny(reason=reason):
                reservation.state = ReservationState.DENIED
                logger.info(
                    f"AI budget denied: user={user_id}, type={operation_type.value}, "
                    f"reason={reason.value}, total={period.total_cost_cents}c, "
                    f"ceiling={period.ceiling_cents}c"
                )
            case _:
                reservation.state = ReservationState.ADMITTED

        return reservation

    async def admit_or_raise(
        self,
        user_id: str,
        operation_type: OperationType | str,
        estimated_cost_cents: int | None = None,
        *,
        tier: str | None = None,
    ) -> Reservation:
        """Like ``check_and_reserve`` but raises BudgetExceeded on denial."""
        reservation = await self.check_and_reserve(
            user_id, operation_type, estimated_cost_cents, tier=tier
        )
        if isinstance(reservation.decision, Deny):
            raise BudgetExceeded(
                reservation.decision.reason,
                UsageSummary.from_period(reservation.period),
            )
        return reservation

    async def commit(
        self,
        reservation: Reservation,
        actual_cost_cents: int | None = None,
        *,
        was_cached: bool = False,
    ) -> UsagePeriod:
        """Bill the actual cost of a successful AI call.

        Raises PeriodClosed, after releasing the hold, if the limit was
        reached while the call was in flight.
        """
        if reservation.state not in (ReservationState.ADMITTED, ReservationState.SPENDING):
            raise ValueError(f"Cannot commit a {reservation.state.value} reservation")

        request = self._commit_request(reservation, actual_cost_cents, was_cached)
        try:
            period = await self.recorder.apply(request)
        except PeriodClosed:
            await self.abandon(reservation)
            raise
        reservation.state = ReservationState.COMMITTED
        reservation.period = period
        return period

    async def abandon(self, reservation: Reservation) -> None:
        """The AI call failed or was cancelled: release the hold, bill nothing."""
        reservation.state = ReservationState.FAILED
        if reservation.held:
            await self.release_hold(reservation.id)

    async def settle(
        self,
        reservation: Reservation,
        actual_cost_cents: int | None = None,
        *,
        was_cached: bool = False,
    ) -> UsagePeriod | None:
        """Commit after a paid AI call without failing the caller.

        The provider has already been paid, so a lost commit is logged (and
        handed to the retry queue when one is configured) instead of raised.
        """
        request = self._commit_request(reservation, actual_cost_cents, was_cached)
        try:
            period = await self.recorder.apply(request)
        except PeriodClosed:
            await self.abandon(reservation)
            return None
        except StoreUnavailable:
            await self._hand_off(request)
            return None

        reservation.state = ReservationState.COMMITTED
        reservation.period = period
        return period

    async def invoke(
        self,
        user_id: str,
        operation_type: OperationType | str,
        call: Callable[[], Awaitable[AiResult]],
        estimated_cost_cents: int | None = None,
        *,
        tier: str | None = None,
    ) -> AiResult:
        """Run ``call`` under the full protocol.

        Raises BudgetExceeded without calling ``call`` when denied. Failed
        or cancelled calls are never billed.
        """
        reservation = await self.admit_or_raise(
            user_id, operation_type, estimated_cost_cents, tier=tier
        )
        reservation.state = ReservationState.SPENDING

        try:
            result = await call()
        except BaseException:
            await self.abandon(reservation)
            raise

        if not result.success:
            await self.abandon(reservation)
            return result

        await self.settle(reservation, result.actual_cost_cents, was_cached=result.was_cached)
        return result

    @asynccontextmanager
    async def metered(
        self,
        user_id: str,
        operation_type: OperationType | str,
        estimated_cost_cents: int | None = None,
        *,
        tier: str | None = None,
    ) -> AsyncIterator[Reservation]:
        """Context manager form of ``invoke``.

        Set ``actual_cost_cents`` on the yielded reservation (the estimate is
        billed otherwise). Raise, or call ``mark_failed()``, when the AI call
        fails.
        """
        reservation = await self.admit_or_raise(
            user_id, operation_type, estimated_cost_cents, tier=tier
        )
        reservation.state = ReservationState.SPENDING

        try:
            yield reservation
        except BaseException:
            await self.abandon(reservation)
            raise

        if reservation.state == ReservationState.FAILED:
            await self.abandon(reservation)
        else:
            await self.settle(
                reservation, reservation.actual_cost_cents, was_cached=reservation.was_cached
            )

    async def _get_or_create_period(
        self, user_id: str, year: int, month: int, tier: str | None
    ) -> UsagePeriod:
        period = await self.store.get(user_id, year, month)
        if period is None:
            ceiling = await self.ceilings.ceiling_for(user_id, tier)
            period = await self.store.create_if_absent(user_id, year, month, ceiling)
        return period

    def _commit_request(
        self,
        reservation: Reservation,
        actual_cost_cents: int | None,
        was_cached: bool,
    ) -> CommitRequest:
        if actual_cost_cents is None:
            actual_cost_cents = reservation.estimated_cost_cents
        return CommitRequest(
            user_id=reservation.user_id,
            operation_type=reservation.operation_type,
            cost_cents=actual_cost_cents,
            was_cached=was_cached,
            idempotency_key=reservation.id,
            reservation_id=reservation.id if reservation.held else None,
            tier=reservation.tier,
        )

    async def release_hold(self, reservation_id: str) -> None:
        """Release a hold without failing the caller."""
        try:
            await self.store.release(reservation_id)
        except StoreUnavailable:
            # Expired holds are released by the sweeper
            logger.warning(f"Failed to release reservation {reservation_id}")

    async def _hand_off(self, request: CommitRequest) -> None:
        if self._on_commit_failure is None:
            return
        try:
            await self._on_commit_failure(request)
            logger.info(f"Queued AI usage commit retry: key={request.idempotency_key}")
        except Exception as e:
            logger.error(
                f"Failed to queue AI usage commit retry: key={request.idempotency_key}, "
                f"user={request.user_id}, cost={request.cost_cents}c: {e}"
            )

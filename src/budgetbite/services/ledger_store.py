"""Durable storage for monthly usage periods.

Every mutation here is a server-side expression (``col = col + :delta``)
inside a conditional ``UPDATE ... RETURNING`` or an
``INSERT ... ON CONFLICT``. Values are never read into Python, changed and
written back, so concurrent handlers on different processes cannot lose
each other's updates.
"""

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timedelta

from sqlalchemy import case, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..exceptions import PeriodClosed, PeriodNotFound, ReservationNotFound, StoreUnavailable
from ..models import (
    OperationType,
    ReservationStatus,
    UsageCategoryTotal,
    UsageCharge,
    UsagePeriod,
    UsageReservation,
)
from .cost_tracker import utcnow

logger = logging.getLogger(__name__)


def _insert(session: AsyncSession, model):
    """INSERT construct with ON CONFLICT support for the bound dialect."""
    if session.get_bind().dialect.name == "postgresql":
        return postgresql.insert(model)
    return sqlite.insert(model)


class LedgerStore:
    """Per-user, per-month usage ledger backed by SQLAlchemy.

    Each call runs in its own short transaction. Rows are only locked for
    the duration of a single increment, never across an AI call.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self._clock = clock

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session, session.begin():
                yield session
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Usage ledger store error: {e}")
            raise StoreUnavailable(str(e)) from e

    async def get(self, user_id: str, year: int, month: int) -> UsagePeriod | None:
        """Load a period, or None if it has not been created yet."""
        async with self._transaction() as session:
            return await self._load(session, user_id, year, month)

    async def create_if_absent(
        self,
        user_id: str,
        year: int,
        month: int,
        ceiling_cents: int,
    ) -> UsagePeriod:
        """Create the period if missing and return it.

        Concurrent callers all observe the same row. The ceiling of an
        existing period is never changed.
        """
        if ceiling_cents <= 0:
            raise ValueError("ceiling_cents must be > 0")

        now = self._clock()
        async with self._transaction() as session:
            stmt = (
                _insert(session, UsagePeriod)
                .values(
                    user_id=user_id,
                    year=year,
                    month=month,
                    ceiling_cents=ceiling_cents,
                    total_cost_cents=0,
                    reserved_cents=0,
                    limit_reached=False,
                    created_at=now,
                    updated_at=now,
                )
                .on_conflict_do_nothing(index_elements=["user_id", "year", "month"])
                .returning(UsagePeriod.id)
            )
            created = (await session.execute(stmt)).scalar_one_or_none()
            if created is not None:
                logger.info(
                    f"Created usage period: user={user_id}, period={year}-{month:02d}, "
                    f"ceiling={ceiling_cents}c"
                )
            period = await self._load(session, user_id, year, month)

        # Unique constraint makes a missing row here a store bug
        assert period is not None
        return period

    async def apply_charge(
        self,
        user_id: str,
        year: int,
        month: int,
        operation_type: OperationType,
        cost_cents: int,
        *,
        idempotency_key: str,
        was_cached: bool = False,
        reservation_id: str | None = None,
    ) -> UsagePeriod:
        """Atomically add a committed charge to a period.

        Increments the total and the category sub-totals, and sets the
        sticky limit flag in the same statement when the new total reaches
        the ceiling. A repeated ``idempotency_key`` is a no-op that returns the
        period the charge was first applied to. If a
        reservation is given, its hold is released in the same transaction.

        Raises PeriodClosed if the limit flag was already set.
        """
        if cost_cents < 0:
            raise ValueError("cost_cents must be >= 0")

        operation_type = OperationType.parse(operation_type)
        now = self._clock()

        async with self._transaction() as session:
            # A replay returns the period the charge first landed in
            landed = await self._charged_period_id(session, idempotency_key)
            if landed is not None:
                logger.info(f"Ignoring duplicate commit: user={user_id}, key={idempotency_key}")
                return await self._load_by_id(session, landed)

            period_id = await self._period_id(session, user_id, year, month)
            if period_id is None:
                raise PeriodNotFound(f"No usage period for {user_id} {year}-{month:02d}")

            charge = (
                _insert(session, UsageCharge)
                .values(
                    idempotency_key=idempotency_key,
                    period_id=period_id,
                    user_id=user_id,
                    operation_type=operation_type,
                    cost_cents=cost_cents,
                    was_cached=was_cached,
                    reservation_id=reservation_id,
                    created_at=now,
                )
                .on_conflict_do_nothing(index_elements=["idempotency_key"])
                .returning(UsageCharge.id)
            )
            if (await session.execute(charge)).scalar_one_or_none() is None:
                logger.info(f"Ignoring duplicate commit: user={user_id}, key={idempotency_key}")
                landed = await self._charged_period_id(session, idempotency_key)
                return await self._load_by_id(session, landed)

            if reservation_id is not None:
                await self._settle_reservation(
                    session, reservation_id, ReservationStatus.COMMITTED, now
                )

            new_total = UsagePeriod.total_cost_cents + cost_cents
            crossed = new_total >= UsagePeriod.ceiling_cents
            result = await session.execute(
                update(UsagePeriod)
                .where(
                    UsagePeriod.id == period_id,
                    UsagePeriod.limit_reached.is_(False),
                )
                .values(
                    total_cost_cents=new_total,
                    limit_reached=crossed,
                    limit_reached_at=case((crossed, now), else_=UsagePeriod.limit_reached_at),
                    updated_at=now,
                )
                .returning(UsagePeriod.id)
                .execution_options(synchronize_session=False)
            )
            if result.scalar_one_or_none() is None:
                raise PeriodClosed(user_id, year, month)

            category = (
                _insert(session, UsageCategoryTotal)
                .values(
                    period_id=period_id,
                    operation_type=operation_type,
                    cost_cents=cost_cents,
                    count=1,
                    cached_count=int(was_cached),
                )
                .on_conflict_do_update(
                    index_elements=["period_id", "operation_type"],
                    set_={
                        "cost_cents": UsageCategoryTotal.cost_cents + cost_cents,
                        "count": UsageCategoryTotal.count + 1,
                        "cached_count": UsageCategoryTotal.cached_count + int(was_cached),
                    },
                )
            )
            await session.execute(category)

            return await self._load(session, user_id, year, month)

    async def reserve(
        self,
        user_id: str,
        year: int,
        month: int,
        operation_type: OperationType,
        estimated_cents: int,
        reservation_id: str,
    ) -> UsagePeriod | None:
        """Hold ``estimated_cents`` against a period if it still fits.

        The capacity check and the increment are one conditional UPDATE,
        so concurrent reservations can never jointly exceed the ceiling.
        Returns the updated period, or None when there is no room.
        """
        if estimated_cents < 0:
            raise ValueError("estimated_cents must be >= 0")

        operation_type = OperationType.parse(operation_type)
        now = self._clock()

        async with self._transaction() as session:
            period_id = await self._period_id(session, user_id, year, month)
            if period_id is None:
                raise PeriodNotFound(f"No usage period for {user_id} {year}-{month:02d}")

            held = UsagePeriod.reserved_cents + estimated_cents
            result = await session.execute(
                update(UsagePeriod)
                .where(
                    UsagePeriod.id == period_id,
                    UsagePeriod.limit_reached.is_(False),
                    UsagePeriod.total_cost_cents + held <= UsagePeriod.ceiling_cents,
                )
                .values(reserved_cents=held, updated_at=now)
                .returning(UsagePeriod.id)
                .execution_options(synchronize_session=False)
            )
            if result.scalar_one_or_none() is None:
                return None

            session.add(
                UsageReservation(
                    id=reservation_id,
                    period_id=period_id,
                    user_id=user_id,
                    operation_type=operation_type,
                    estimated_cents=estimated_cents,
                    status=ReservationStatus.PENDING,
                    created_at=now,
                )
            )
            return await self._load(session, user_id, year, month)

    async def release(self, reservation_id: str) -> bool:
        """Drop a pending hold. Returns False if it was already settled."""
        now = self._clock()
        async with self._transaction() as session:
            released = await self._settle_reservation(
                session, reservation_id, ReservationStatus.RELEASED, now
            )
            if not released and await session.get(UsageReservation, reservation_id) is None:
                raise ReservationNotFound(reservation_id)
        return released

    async def release_expired(self, older_than: timedelta) -> int:
        """Release pending holds created before ``now - older_than``.

        Each hold is settled in its own transaction so a long sweep never
        keeps period rows locked.
        """
        now = self._clock()
        cutoff = now - older_than
        async with self._transaction() as session:
            result = await session.execute(
                select(UsageReservation.id).where(
                    UsageReservation.status == ReservationStatus.PENDING,
                    UsageReservation.created_at < cutoff,
                )
            )
            expired = result.scalars().all()

        released = 0
        for reservation_id in expired:
            async with self._transaction() as session:
                if await self._settle_reservation(
                    session, reservation_id, ReservationStatus.RELEASED, now
                ):
                    released += 1
        return released

    async def get_reservation(self, reservation_id: str) -> UsageReservation | None:
        async with self._transaction() as session:
            reservation = await session.get(UsageReservation, reservation_id)
            if reservation is not None:
                session.expunge(reservation)
            return reservation

    async def month_totals(self, year: int, month: int) -> dict:
        """Aggregate spend across all users for one month."""
        async with self._transaction() as session:
            totals = (
                await session.execute(
                    select(
                        func.count(UsagePeriod.id).label("periods"),
                        func.sum(UsagePeriod.total_cost_cents).label("total_cost_cents"),
                        func.sum(UsagePeriod.reserved_cents).label("reserved_cents"),
                        func.sum(case((UsagePeriod.limit_reached, 1), else_=0)).label(
                            "limit_reached"
                        ),
                    ).where(UsagePeriod.year == year, UsagePeriod.month == month)
                )
            ).one()
            by_category = await session.execute(
                select(
                    UsageCategoryTotal.operation_type,
                    func.sum(UsageCategoryTotal.cost_cents),
                    func.sum(UsageCategoryTotal.count),
                )
                .join(UsagePeriod, UsageCategoryTotal.period_id == UsagePeriod.id)
                .where(UsagePeriod.year == year, UsagePeriod.month == month)
                .group_by(UsageCategoryTotal.operation_type)
            )

            return {
                "periods": totals.periods or 0,
                "total_cost_cents": totals.total_cost_cents or 0,
                "reserved_cents": totals.reserved_cents or 0,
                "limit_reached": totals.limit_reached or 0,
                "by_category": {
                    op.value: {"cost_cents": cost or 0, "count": count or 0}
                    for op, cost, count in by_category.all()
                },
            }

    async def _period_id(
        self, session: AsyncSession, user_id: str, year: int, month: int
    ) -> int | None:
        result = await session.execute(
            select(UsagePeriod.id).where(
                UsagePeriod.user_id == user_id,
                UsagePeriod.year == year,
                UsagePeriod.month == month,
            )
        )
        return result.scalar_one_or_none()

    async def _charged_period_id(self, session: AsyncSession, idempotency_key: str) -> int | None:
        result = await session.execute(
            select(UsageCharge.period_id).where(UsageCharge.idempotency_key == idempotency_key)
        )
        return result.scalar_one_or_none()

    async def _load(
        self, session: AsyncSession, user_id: str, year: int, month: int
    ) -> UsagePeriod | None:
        return await self._load_where(
            session,
            UsagePeriod.user_id == user_id,
            UsagePeriod.year == year,
            UsagePeriod.month == month,
        )

    async def _load_by_id(self, session: AsyncSession, period_id: int) -> UsagePeriod | None:
        return await self._load_where(session, UsagePeriod.id == period_id)

    async def _load_where(self, session: AsyncSession, *criteria) -> UsagePeriod | None:
        result = await session.execute(
            select(UsagePeriod).where(*criteria).execution_options(populate_existing=True)
        )
        period = result.scalar_one_or_none()
        if period is not None:
            # Detach so the snapshot survives the end of the transaction
            session.expunge(period)
        return period

    async def _settle_reservation(
        self,
        session: AsyncSession,
        reservation_id: str,
        status: ReservationStatus,
        now: datetime,
    ) -> bool:
        result = await session.execute(
            update(UsageReservation)
            .where(
                UsageReservation.id == reservation_id,
                UsageReservation.status == ReservationStatus.PENDING,
            )
            .values(status=status, resolved_at=now)
            .returning(UsageReservation.period_id, UsageReservation.estimated_cents)
            .execution_options(synchronize_session=False)
        )
        row = result.one_or_none()
        if row is None:
            return False

        period_id, estimated_cents = row
        await session.execute(
            update(UsagePeriod)
            .where(UsagePeriod.id == period_id)
            .values(
                reserved_cents=case(
                    (
                        UsagePeriod.reserved_cents > estimated_cents,
                        UsagePeriod.reserved_cents - estimated_cents,
                    ),
                    else_=0,
                ),
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return True

"""Budget reservation model."""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Integer, String, func
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base
from .usage import OperationType


class ReservationStatus(str, Enum):
    """Lifecycle of a reservation hold."""

    PENDING = "pending"
    COMMITTED = "committed"
    RELEASED = "released"  # AI call failed, cancelled, or expired


class UsageReservation(Base):
    """Estimated cost held against a period while the AI call runs."""

    __tablename__ = "usage_reservations"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    period_id: Mapped[int] = mapped_column(
        ForeignKey("usage_periods.id", ondelete="CASCADE"),
        index=True,
    )
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    operation_type: Mapped[OperationType] = mapped_column(SQLEnum(OperationType))
    estimated_cents: Mapped[int] = mapped_column(Integer)

    status: Mapped[ReservationStatus] = mapped_column(
        SQLEnum(ReservationStatus),
        default=ReservationStatus.PENDING,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

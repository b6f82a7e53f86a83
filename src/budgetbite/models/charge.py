"""Committed charge audit trail."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, func
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base
from .usage import OperationType


class UsageCharge(Base):
    """A single committed charge.

    Append-only. The unique idempotency key is what makes retried commits
    safe: a second insert with the same key is a no-op.
    """

    __tablename__ = "usage_charges"

    id: Mapped[int] = mapped_column(primary_key=True)
    idempotency_key: Mapped[str] = mapped_column(String(128), unique=True)
    period_id: Mapped[int] = mapped_column(
        ForeignKey("usage_periods.id", ondelete="CASCADE"),
        index=True,
    )
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    operation_type: Mapped[OperationType] = mapped_column(SQLEnum(OperationType))
    cost_cents: Mapped[int] = mapped_column(Integer)
    was_cached: Mapped[bool] = mapped_column(Boolean, default=False)
    reservation_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

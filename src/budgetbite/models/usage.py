"""Monthly AI usage ledger models."""

from datetime import datetime
from enum import Enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..exceptions import UnknownOperationType
from .base import Base


class OperationType(str, Enum):
    """AI-backed operations that are billed against the monthly budget."""

    SCAN_IMAGE = "scan_image"
    CHAT = "chat"
    SHOPPING_LIST = "shopping_list"
    BODY_SCAN = "body_scan"

    @classmethod
    def parse(cls, value: "str | OperationType") -> "OperationType":
        """Resolve an operation type, accepting the short legacy names."""
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        normalized = _LEGACY_NAMES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            raise UnknownOperationType(str(value)) from None


_LEGACY_NAMES = {
    "scan": OperationType.SCAN_IMAGE.value,
    "shopping": OperationType.SHOPPING_LIST.value,
}


class UsagePeriod(Base):
    """Per-user, per-calendar-month usage ledger record."""

    __tablename__ = "usage_periods"
    __table_args__ = (
        UniqueConstraint("user_id", "year", "month", name="uq_user_year_month"),
        CheckConstraint("ceiling_cents > 0", name="ck_ceiling_positive"),
        CheckConstraint("total_cost_cents >= 0", name="ck_total_non_negative"),
        CheckConstraint("reserved_cents >= 0", name="ck_reserved_non_negative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)

    # Period
    year: Mapped[int] = mapped_column(Integer)
    month: Mapped[int] = mapped_column(Integer)  # 1-12

    # Budget (fixed when the period is created)
    ceiling_cents: Mapped[int] = mapped_column(Integer)

    # Totals
    total_cost_cents: Mapped[int] = mapped_column(Integer, default=0)
    reserved_cents: Mapped[int] = mapped_column(Integer, default=0)  # pending holds

    # Sticky limit flag
    limit_reached: Mapped[bool] = mapped_column(Boolean, default=False)
    limit_reached_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    # Relationships
    categories: Mapped[list["UsageCategoryTotal"]] = relationship(
        back_populates="period",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def per_category_cost_cents(self) -> dict[OperationType, int]:
        return {c.operation_type: c.cost_cents for c in self.categories}

    @property
    def per_category_count(self) -> dict[OperationType, int]:
        return {c.operation_type: c.count for c in self.categories}


class UsageCategoryTotal(Base):
    """Cost and call count for one operation type within a period."""

    __tablename__ = "usage_category_totals"
    __table_args__ = (
        UniqueConstraint("period_id", "operation_type", name="uq_period_operation_type"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    period_id: Mapped[int] = mapped_column(
        ForeignKey("usage_periods.id", ondelete="CASCADE"),
        index=True,
    )
    operation_type: Mapped[OperationType] = mapped_column(SQLEnum(OperationType))

    cost_cents: Mapped[int] = mapped_column(Integer, default=0)
    count: Mapped[int] = mapped_column(Integer, default=0)
    cached_count: Mapped[int] = mapped_column(Integer, default=0)  # served from scan cache

    # Relationships
    period: Mapped["UsagePeriod"] = relationship(back_populates="categories")

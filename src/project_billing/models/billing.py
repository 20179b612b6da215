"""Management billing adjustment model."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Index, Numeric, String, text
from sqlalchemy.orm import Mapped, mapped_column

from project_billing.models.base import Base, TimestampMixin

PROJECT_SCOPE = "project"
DEFAULT_ADJUSTMENT_REASON = "Management adjustment"

ACTIVE_ADJUSTMENT_KEY = (
    "user_id",
    "project_id",
    "billing_period_start",
    "billing_period_end",
    "adjustment_scope",
)
ACTIVE_ADJUSTMENT_WHERE = text("deleted_at IS NULL")


class BillingAdjustment(Base, TimestampMixin):
    """Management-tier delta applied on top of the approved base.

    At most one active (deleted_at IS NULL) row exists per
    (user, project, period start, period end, scope); the partial unique
    index is also the ON CONFLICT target for upserts.
    """

    __tablename__ = "billing_adjustment"

    adjustment_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.user_id", ondelete="CASCADE"),
        nullable=False,
    )
    project_id: Mapped[UUID] = mapped_column(
        ForeignKey("project.project_id", ondelete="CASCADE"),
        nullable=False,
    )
    adjustment_scope: Mapped[str] = mapped_column(String, nullable=False, default=PROJECT_SCOPE)
    billing_period_start: Mapped[date] = mapped_column(Date, nullable=False)
    billing_period_end: Mapped[date] = mapped_column(Date, nullable=False)

    total_worked_hours: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )
    adjustment_hours: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )
    original_billable_hours: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )
    adjusted_billable_hours: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )

    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    adjusted_by: Mapped[UUID | None] = mapped_column(nullable=True)
    adjusted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    deleted_by: Mapped[UUID | None] = mapped_column(nullable=True)

    __table_args__ = (
        Index(
            "billing_adjustment_active_key",
            *ACTIVE_ADJUSTMENT_KEY,
            unique=True,
            postgresql_where=ACTIVE_ADJUSTMENT_WHERE,
            sqlite_where=ACTIVE_ADJUSTMENT_WHERE,
        ),
        Index("billing_adjustment_period", "billing_period_start", "billing_period_end"),
        CheckConstraint(
            "billing_period_end >= billing_period_start",
            name="billing_adjustment_period_check",
        ),
        CheckConstraint(
            "adjustment_scope IN ('project', 'timesheet')",
            name="billing_adjustment_scope_check",
        ),
        CheckConstraint(
            "adjusted_billable_hours >= 0",
            name="billing_adjustment_target_check",
        ),
    )

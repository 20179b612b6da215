"""Timesheet, per-project approval and time entry models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from project_billing.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from project_billing.models.organization import AppUser, Project, Task


class TimesheetStatus(str, Enum):
    """Timesheet lifecycle states."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    LEAD_APPROVED = "lead_approved"
    LEAD_REJECTED = "lead_rejected"
    MANAGER_APPROVED = "manager_approved"
    MANAGER_REJECTED = "manager_rejected"
    MANAGEMENT_PENDING = "management_pending"
    MANAGEMENT_REJECTED = "management_rejected"
    FROZEN = "frozen"
    BILLED = "billed"


class ApprovalStatus(str, Enum):
    """Per-tier approval states on a timesheet project approval."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    NOT_REQUIRED = "not_required"


class EntryCategory(str, Enum):
    """Time entry categories. Only project and training time is billed."""

    PROJECT = "project"
    TRAINING = "training"
    LEAVE = "leave"
    HOLIDAY = "holiday"
    MISCELLANEOUS = "miscellaneous"


class Timesheet(Base, TimestampMixin):
    """A user's weekly timesheet."""

    __tablename__ = "timesheet"

    timesheet_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.user_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    week_start_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    week_end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default=TimesheetStatus.DRAFT.value)
    total_hours: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("user_id", "week_start_date", name="timesheet_user_week_unique"),
        CheckConstraint("week_end_date >= week_start_date", name="timesheet_week_order_check"),
    )

    user: Mapped[AppUser] = relationship(back_populates="timesheets")
    project_approvals: Mapped[list[TimesheetProjectApproval]] = relationship(
        back_populates="timesheet"
    )
    time_entries: Mapped[list[TimeEntry]] = relationship(back_populates="timesheet")


class TimesheetProjectApproval(Base, TimestampMixin):
    """Multi-tier approval of one timesheet's hours on one project.

    ``billable_hours`` is the manager-approved base and already includes
    ``billable_adjustment`` (the manager-tier delta over worked hours).
    """

    __tablename__ = "timesheet_project_approval"

    approval_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    timesheet_id: Mapped[UUID] = mapped_column(
        ForeignKey("timesheet.timesheet_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    project_id: Mapped[UUID] = mapped_column(
        ForeignKey("project.project_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    worked_hours: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    billable_hours: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    billable_adjustment: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )
    entries_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    manager_status: Mapped[str] = mapped_column(
        String, nullable=False, default=ApprovalStatus.PENDING.value
    )
    management_status: Mapped[str] = mapped_column(
        String, nullable=False, default=ApprovalStatus.PENDING.value
    )
    manager_approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    management_approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("timesheet_id", "project_id", name="tpa_timesheet_project_unique"),
        CheckConstraint("worked_hours >= 0", name="tpa_worked_hours_check"),
        CheckConstraint("billable_hours >= 0", name="tpa_billable_hours_check"),
    )

    timesheet: Mapped[Timesheet] = relationship(back_populates="project_approvals")
    project: Mapped[Project] = relationship()


class TimeEntry(Base, TimestampMixin):
    """A single booked block of time on a timesheet."""

    __tablename__ = "time_entry"

    time_entry_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    timesheet_id: Mapped[UUID] = mapped_column(
        ForeignKey("timesheet.timesheet_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    project_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("project.project_id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    task_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("task.task_id", ondelete="SET NULL"),
        nullable=True,
    )
    task_type: Mapped[str | None] = mapped_column(String, nullable=True)
    custom_task_description: Mapped[str | None] = mapped_column(String, nullable=True)
    entry_category: Mapped[str | None] = mapped_column(String, nullable=True)
    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    hours: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    is_billable: Mapped[bool] = mapped_column(default=True, nullable=False)
    description: Mapped[str | None] = mapped_column(String, nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (CheckConstraint("hours >= 0", name="time_entry_hours_check"),)

    timesheet: Mapped[Timesheet] = relationship(back_populates="time_entries")
    task: Mapped[Task | None] = relationship()

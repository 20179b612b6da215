"""SQLAlchemy ORM models."""

from project_billing.models.base import Base, TimestampMixin
from project_billing.models.billing import PROJECT_SCOPE, BillingAdjustment
from project_billing.models.organization import AppUser, Client, Project, Task
from project_billing.models.timesheet import (
    ApprovalStatus,
    EntryCategory,
    TimeEntry,
    Timesheet,
    TimesheetProjectApproval,
    TimesheetStatus,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "PROJECT_SCOPE",
    "BillingAdjustment",
    "AppUser",
    "Client",
    "Project",
    "Task",
    "ApprovalStatus",
    "EntryCategory",
    "TimeEntry",
    "Timesheet",
    "TimesheetProjectApproval",
    "TimesheetStatus",
]

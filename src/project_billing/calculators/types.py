"""Type definitions for the billing aggregation pipeline.

Each stage hands the next a typed record instead of a loose mapping:

    ApprovalRecord   -> collector output (one per project/user)
    ResolvedAdjustment -> resolver output
    TaskHours / WeeklyHours -> task aggregator output
    ResourceBillingData / ProjectBillingData -> assembler output
    AllocationTarget / DistributionResult -> distribution output

Hours and money are Decimal. Internal compute keeps 4 decimal places;
values are rounded to 2 places when persisted or priced.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from uuid import UUID

from project_billing.errors import BillingErrorKind, validate_period

ZERO = Decimal("0")
HOURS_PRECISION = Decimal("0.0001")
OUTPUT_PRECISION = Decimal("0.01")

# Entry categories that count toward billing
BILLABLE_ENTRY_CATEGORIES = frozenset({"project", "training"})
CUSTOM_TASK_TYPE = "custom_task"
CUSTOM_TASK_ID = "custom"
CUSTOM_TASK_NAME = "Custom Task"
UNKNOWN_USER_NAME = "Unknown User"
DEFAULT_ROLE = "employee"


def to_hours(value: Any) -> Decimal:
    """Coerce a numeric value from a store or request into Decimal."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def round_hours(value: Decimal) -> Decimal:
    """Round to internal precision (4 places)."""
    return value.quantize(HOURS_PRECISION, rounding=ROUND_HALF_UP)


def round_to_cents(amount: Decimal) -> Decimal:
    """Round amount (or persisted hours) to 2 decimal places."""
    return amount.quantize(OUTPUT_PRECISION, rounding=ROUND_HALF_UP)


def _coerce(obj: Any, *names: str) -> None:
    for name in names:
        object.__setattr__(obj, name, to_hours(getattr(obj, name)))


# =============================================================================
# Collaborator projections
# =============================================================================


@dataclass(frozen=True)
class ProjectInfo:
    """Project metadata needed to label a report row."""

    project_id: UUID
    name: str
    client_id: UUID | None = None
    client_name: str | None = None


@dataclass(frozen=True)
class UserProfile:
    """User fields billing needs: display name, role and rate."""

    user_id: UUID
    full_name: str | None
    role: str | None = None
    hourly_rate: Decimal | None = None

    def __post_init__(self) -> None:
        if self.hourly_rate is not None:
            _coerce(self, "hourly_rate")

    @property
    def rate(self) -> Decimal:
        return self.hourly_rate if self.hourly_rate is not None else ZERO


@dataclass(frozen=True)
class ApprovalRecord:
    """Management-verified approval totals for one user on one project.

    base_billable_hours already includes manager_adjustment.
    """

    project_id: UUID
    user_id: UUID
    worked_hours: Decimal = ZERO
    base_billable_hours: Decimal = ZERO
    manager_adjustment: Decimal = ZERO
    verified_at: datetime | None = None
    entries_count: int = 0

    def __post_init__(self) -> None:
        _coerce(self, "worked_hours", "base_billable_hours", "manager_adjustment")
        if self.worked_hours < 0:
            raise ValueError(f"worked_hours must be >= 0, got {self.worked_hours}")
        if self.base_billable_hours < 0:
            raise ValueError(
                f"base_billable_hours must be >= 0, got {self.base_billable_hours}"
            )
        if self.entries_count < 0:
            raise ValueError(f"entries_count must be >= 0, got {self.entries_count}")


@dataclass(frozen=True)
class ApprovalBase:
    """Approved base for one exact (user, project, period) scope."""

    worked_hours: Decimal
    base_billable_hours: Decimal
    manager_adjustment: Decimal

    def __post_init__(self) -> None:
        _coerce(self, "worked_hours", "base_billable_hours", "manager_adjustment")


@dataclass(frozen=True)
class TimeEntryRecord:
    """Time entry projection used for task and weekly breakdowns."""

    timesheet_id: UUID
    project_id: UUID
    hours: Decimal
    is_billable: bool
    entry_date: date | None = None
    task_id: UUID | None = None
    task_name: str | None = None
    task_type: str | None = None
    custom_task_description: str | None = None
    entry_category: str | None = None

    def __post_init__(self) -> None:
        _coerce(self, "hours")
        if self.hours < 0:
            raise ValueError(f"hours must be >= 0, got {self.hours}")


@dataclass(frozen=True)
class AdjustmentKey:
    """Composite key of an active adjustment."""

    user_id: UUID
    project_id: UUID
    period_start: date
    period_end: date
    scope: str = "project"

    def __post_init__(self) -> None:
        validate_period(self.period_start, self.period_end)


@dataclass(frozen=True)
class AdjustmentRecord:
    """Stored management adjustment."""

    adjustment_id: UUID
    user_id: UUID
    project_id: UUID
    period_start: date
    period_end: date
    adjustment_hours: Decimal
    original_billable_hours: Decimal
    adjusted_billable_hours: Decimal
    adjusted_at: datetime
    total_worked_hours: Decimal = ZERO
    reason: str | None = None
    adjusted_by: UUID | None = None
    deleted_at: datetime | None = None
    scope: str = "project"

    def __post_init__(self) -> None:
        _coerce(
            self,
            "adjustment_hours",
            "original_billable_hours",
            "adjusted_billable_hours",
            "total_worked_hours",
        )

    @property
    def key(self) -> AdjustmentKey:
        return AdjustmentKey(
            user_id=self.user_id,
            project_id=self.project_id,
            period_start=self.period_start,
            period_end=self.period_end,
            scope=self.scope,
        )

    @property
    def is_active(self) -> bool:
        return self.deleted_at is None


# =============================================================================
# Stage outputs
# =============================================================================


@dataclass(frozen=True)
class ResolvedAdjustment:
    """Resolver output: the management delta for one resource."""

    management_adjustment: Decimal = ZERO
    adjusted_at: datetime | None = None


@dataclass(frozen=True)
class IntegrityResult:
    """Validator output."""

    valid: bool
    errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class TaskHours:
    """Summed hours for one (project, task, task name) group."""

    project_id: UUID
    task_id: str
    task_name: str
    total_hours: Decimal = ZERO
    billable_hours: Decimal = ZERO
    non_billable_hours: Decimal = ZERO


@dataclass(frozen=True)
class WeeklyHours:
    """Summed hours for one week (weeks start on Sunday)."""

    week_start: date
    total_hours: Decimal = ZERO
    billable_hours: Decimal = ZERO


@dataclass(frozen=True)
class TaskBillingData:
    """Priced task line on a resource."""

    task_id: str
    task_name: str
    project_id: UUID
    project_name: str
    total_hours: Decimal
    billable_hours: Decimal
    non_billable_hours: Decimal
    amount: Decimal


@dataclass(frozen=True)
class WeeklyBreakdown:
    """Priced weekly line on a resource."""

    week_start: date
    total_hours: Decimal
    billable_hours: Decimal
    amount: Decimal


@dataclass(frozen=True)
class ResourceBillingData:
    """Billing figures for one user on one project."""

    user_id: UUID
    user_name: str
    role: str
    worked_hours: Decimal
    manager_adjustment: Decimal
    base_billable_hours: Decimal
    management_adjustment: Decimal
    final_billable_hours: Decimal
    non_billable_hours: Decimal
    hourly_rate: Decimal
    total_amount: Decimal
    verified_at: datetime | None = None
    last_adjusted_at: datetime | None = None
    tasks: tuple[TaskBillingData, ...] = ()
    weekly_breakdown: tuple[WeeklyBreakdown, ...] | None = None
    integrity_errors: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.non_billable_hours < 0:
            raise ValueError(
                f"non_billable_hours must be >= 0, got {self.non_billable_hours}"
            )

    @property
    def total_hours(self) -> Decimal:
        return self.worked_hours

    @property
    def billable_hours(self) -> Decimal:
        return self.final_billable_hours

    @property
    def is_consistent(self) -> bool:
        return not self.integrity_errors


@dataclass(frozen=True)
class VerificationInfo:
    """Aggregate of the approvals behind a project row."""

    worked_hours: Decimal
    billable_hours: Decimal
    manager_adjustment: Decimal
    user_count: int
    verified_at: datetime | None
    is_verified: bool = True


@dataclass
class ProjectBillingData:
    """Report row for one project."""

    project_id: UUID
    project_name: str
    client_name: str | None = None
    total_hours: Decimal = ZERO
    billable_hours: Decimal = ZERO
    non_billable_hours: Decimal = ZERO
    total_amount: Decimal = ZERO
    resources: list[ResourceBillingData] = field(default_factory=list)
    verification_info: VerificationInfo | None = None

    @property
    def integrity_error_count(self) -> int:
        return sum(len(r.integrity_errors) for r in self.resources)


# =============================================================================
# Pivot views
# =============================================================================


@dataclass(frozen=True)
class UserProjectBilling:
    """One project line in a user's billing view."""

    project_id: UUID
    project_name: str
    client_name: str | None
    total_hours: Decimal
    billable_hours: Decimal
    non_billable_hours: Decimal
    amount: Decimal


@dataclass
class UserBillingData:
    """Per-user totals across the projects of a report."""

    user_id: UUID
    user_name: str
    role: str
    hourly_rate: Decimal
    total_hours: Decimal = ZERO
    billable_hours: Decimal = ZERO
    non_billable_hours: Decimal = ZERO
    total_amount: Decimal = ZERO
    projects: list[UserProjectBilling] = field(default_factory=list)


@dataclass(frozen=True)
class TaskResourceData:
    """One resource line in a task's billing view."""

    user_id: UUID
    user_name: str
    hours: Decimal
    billable_hours: Decimal
    rate: Decimal
    amount: Decimal


@dataclass
class TaskBillingSummary:
    """Per-task totals across the resources of a report."""

    task_id: str
    task_name: str
    project_id: UUID
    project_name: str
    total_hours: Decimal = ZERO
    billable_hours: Decimal = ZERO
    non_billable_hours: Decimal = ZERO
    amount: Decimal = ZERO
    resources: list[TaskResourceData] = field(default_factory=list)


# =============================================================================
# Distribution and commit results
# =============================================================================


@dataclass(frozen=True)
class AllocationTarget:
    """Proposed billable hours for one resource."""

    user_id: UUID
    current_hours: Decimal
    worked_hours: Decimal
    target_hours: Decimal

    @property
    def delta(self) -> Decimal:
        return self.target_hours - self.current_hours


@dataclass(frozen=True)
class DistributionResult:
    """Output of a retarget preview.

    unallocated_hours is the part of an increased total that the capped
    targets do not reach; it is never moved to other resources.
    """

    current_total: Decimal
    target_total: Decimal
    difference: Decimal
    allocations: tuple[AllocationTarget, ...]
    unallocated_hours: Decimal = ZERO

    @property
    def allocated_total(self) -> Decimal:
        return sum((a.target_hours for a in self.allocations), ZERO)


@dataclass(frozen=True)
class AdjustmentResult:
    """Outcome of committing or deleting an adjustment."""

    adjustment: AdjustmentRecord | None = None
    error_kind: BillingErrorKind | None = None
    message: str = ""

    @property
    def success(self) -> bool:
        return self.error_kind is None

    @classmethod
    def ok(cls, adjustment: AdjustmentRecord, message: str = "") -> AdjustmentResult:
        return cls(adjustment=adjustment, message=message)

    @classmethod
    def failure(cls, kind: BillingErrorKind, message: str) -> AdjustmentResult:
        return cls(error_kind=kind, message=message)


@dataclass(frozen=True)
class ProjectTotalUpdateResult:
    """Outcome of retargeting a project's billable total."""

    project_id: UUID
    distribution: DistributionResult | None = None
    results: dict[UUID, AdjustmentResult] = field(default_factory=dict)
    error_kind: BillingErrorKind | None = None
    message: str = ""

    @property
    def success(self) -> bool:
        return self.error_kind is None

    @classmethod
    def failure(cls, project_id: UUID, kind: BillingErrorKind, message: str) -> ProjectTotalUpdateResult:
        return cls(project_id=project_id, error_kind=kind, message=message)

    @property
    def members_updated(self) -> int:
        return sum(1 for r in self.results.values() if r.success)

    @property
    def failures(self) -> dict[UUID, AdjustmentResult]:
        return {uid: r for uid, r in self.results.items() if not r.success}

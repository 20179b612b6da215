"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ============================================================================
# Common
# ============================================================================


class ErrorResponse(BaseModel):
    """Error response schema."""

    detail: str
    code: str | None = None


class PeriodRequest(BaseModel):
    """Inclusive billing period carried by write requests."""

    start_date: date
    end_date: date

    @model_validator(mode="after")
    def check_order(self) -> "PeriodRequest":
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


# ============================================================================
# Project report
# ============================================================================


class TaskBillingResponse(BaseModel):
    """Priced task line on a resource."""

    model_config = ConfigDict(from_attributes=True)

    task_id: str
    task_name: str
    project_id: UUID
    project_name: str
    total_hours: Decimal
    billable_hours: Decimal
    non_billable_hours: Decimal
    amount: Decimal


class WeeklyBreakdownResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    week_start: date
    total_hours: Decimal
    billable_hours: Decimal
    amount: Decimal


class VerificationInfoResponse(BaseModel):
    """Aggregate of the approvals behind a project row."""

    model_config = ConfigDict(from_attributes=True)

    is_verified: bool
    worked_hours: Decimal
    billable_hours: Decimal
    manager_adjustment: Decimal
    user_count: int
    verified_at: datetime | None = None


class ResourceBillingResponse(BaseModel):
    """Billing figures for one user on one project."""

    model_config = ConfigDict(from_attributes=True)

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
    tasks: list[TaskBillingResponse] = Field(default_factory=list)
    weekly_breakdown: list[WeeklyBreakdownResponse] | None = None
    integrity_errors: list[str] = Field(default_factory=list)


class ProjectBillingResponse(BaseModel):
    """Report row for one project."""

    model_config = ConfigDict(from_attributes=True)

    project_id: UUID
    project_name: str
    client_name: str | None = None
    total_hours: Decimal
    billable_hours: Decimal
    non_billable_hours: Decimal
    total_amount: Decimal
    resources: list[ResourceBillingResponse] = Field(default_factory=list)
    verification_info: VerificationInfoResponse | None = None


class BillingSummary(BaseModel):
    """Totals across every row of a report."""

    total_hours: Decimal = Decimal("0")
    billable_hours: Decimal = Decimal("0")
    non_billable_hours: Decimal = Decimal("0")
    total_amount: Decimal = Decimal("0")


class ProjectBillingReportResponse(BaseModel):
    start_date: date
    end_date: date
    view: str
    projects: list[ProjectBillingResponse]
    summary: BillingSummary


# ============================================================================
# User and task views
# ============================================================================


class UserProjectBillingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    project_id: UUID
    project_name: str
    client_name: str | None = None
    total_hours: Decimal
    billable_hours: Decimal
    non_billable_hours: Decimal
    amount: Decimal


class UserBillingResponse(BaseModel):
    """Per-user totals across the projects of a report."""

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    user_name: str
    role: str
    hourly_rate: Decimal
    total_hours: Decimal
    billable_hours: Decimal
    non_billable_hours: Decimal
    total_amount: Decimal
    projects: list[UserProjectBillingResponse] = Field(default_factory=list)


class UserBillingViewResponse(BaseModel):
    start_date: date
    end_date: date
    users: list[UserBillingResponse]
    summary: BillingSummary


class TaskResourceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    user_name: str
    hours: Decimal
    billable_hours: Decimal
    rate: Decimal
    amount: Decimal


class TaskBillingSummaryResponse(BaseModel):
    """Per-task totals across the resources of a report."""

    model_config = ConfigDict(from_attributes=True)

    task_id: str
    task_name: str
    project_id: UUID
    project_name: str
    total_hours: Decimal
    billable_hours: Decimal
    non_billable_hours: Decimal
    amount: Decimal
    resources: list[TaskResourceResponse] = Field(default_factory=list)


class TaskBillingViewResponse(BaseModel):
    start_date: date
    end_date: date
    tasks: list[TaskBillingSummaryResponse]


# ============================================================================
# Retargeting
# ============================================================================


class ProjectTargetRequest(PeriodRequest):
    """Request to preview or apply a new project billable total."""

    target_billable_hours: Decimal
    reason: str | None = Field(default=None, max_length=500)
    adjusted_by: UUID | None = None


class AllocationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    current_hours: Decimal
    worked_hours: Decimal
    target_hours: Decimal
    delta: Decimal


class DistributionResponse(BaseModel):
    """Per-resource targets for a new project total."""

    model_config = ConfigDict(from_attributes=True)

    current_total: Decimal
    target_total: Decimal
    difference: Decimal
    allocated_total: Decimal
    unallocated_hours: Decimal
    allocations: list[AllocationResponse]


# ============================================================================
# Adjustments
# ============================================================================


class BillingAdjustmentRequest(PeriodRequest):
    """Request to set one resource's final billable hours."""

    user_id: UUID
    project_id: UUID
    billable_hours: Decimal
    reason: str | None = Field(default=None, max_length=500)
    adjusted_by: UUID | None = None


class BillingAdjustmentResponse(BaseModel):
    """Stored management adjustment."""

    model_config = ConfigDict(from_attributes=True)

    adjustment_id: UUID
    user_id: UUID
    project_id: UUID
    scope: str
    period_start: date
    period_end: date
    total_worked_hours: Decimal
    adjustment_hours: Decimal
    original_billable_hours: Decimal
    adjusted_billable_hours: Decimal
    reason: str | None = None
    adjusted_by: UUID | None = None
    adjusted_at: datetime
    deleted_at: datetime | None = None


class AdjustmentResultResponse(BaseModel):
    success: bool
    message: str
    error_kind: Literal["no_data", "invalid_input", "persistence_failure"] | None = None
    adjustment: BillingAdjustmentResponse | None = None


class MemberUpdateResponse(AdjustmentResultResponse):
    user_id: UUID


class ProjectTotalUpdateResponse(BaseModel):
    project_id: UUID
    distribution: DistributionResponse
    members_updated: int
    results: list[MemberUpdateResponse]

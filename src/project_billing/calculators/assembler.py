"""Billing report assembly.

Pure merge of the collector, resolver and task aggregator outputs into
one ProjectBillingData per requested project. No I/O happens here.

Per resource:
    final_billable = base_billable + management_adjustment
    non_billable   = max(worked - final_billable, 0)
    total_amount   = final_billable * hourly_rate   (rounded to cents)

Per project:
    total_hours    = sum(worked)
    billable_hours = sum(final_billable)
    non_billable   = max(total_hours - billable_hours, 0)
    total_amount   = sum(resource total_amount)
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Mapping, Sequence
from decimal import Decimal
from uuid import UUID

from project_billing.calculators.integrity import (
    DEFAULT_TOLERANCE,
    report_integrity_violation,
    validate_adjustment_integrity,
)
from project_billing.calculators.types import (
    DEFAULT_ROLE,
    UNKNOWN_USER_NAME,
    ZERO,
    ApprovalRecord,
    ProjectBillingData,
    ProjectInfo,
    ResolvedAdjustment,
    ResourceBillingData,
    TaskBillingData,
    TaskHours,
    UserProfile,
    VerificationInfo,
    WeeklyBreakdown,
    WeeklyHours,
    round_to_cents,
)

logger = logging.getLogger(__name__)

PairKey = tuple[UUID, UUID]


class BillingReportAssembler:
    """Builds report rows from already-fetched stage outputs."""

    def __init__(self, tolerance: Decimal = DEFAULT_TOLERANCE):
        self.tolerance = tolerance

    def assemble(
        self,
        projects: Sequence[ProjectInfo],
        approvals: Sequence[ApprovalRecord],
        users: Mapping[UUID, UserProfile],
        adjustments: Mapping[PairKey, ResolvedAdjustment],
        task_hours: Mapping[PairKey, Sequence[TaskHours]],
        weekly_hours: Mapping[PairKey, Sequence[WeeklyHours]] | None = None,
    ) -> list[ProjectBillingData]:
        """Build one row per project, in the order projects were given.

        adjustments is keyed by (project_id, user_id); task_hours and
        weekly_hours by (user_id, project_id). A failure while building one
        project's row is logged and yields an empty row for that project.
        """
        approvals_by_project: dict[UUID, list[ApprovalRecord]] = defaultdict(list)
        for approval in approvals:
            approvals_by_project[approval.project_id].append(approval)

        rows: list[ProjectBillingData] = []
        for project in projects:
            try:
                row = self.assemble_project(
                    project,
                    approvals_by_project.get(project.project_id, []),
                    users,
                    adjustments,
                    task_hours,
                    weekly_hours,
                )
            except Exception:
                logger.exception(
                    "Failed to assemble billing for project %s (%s)",
                    project.name,
                    project.project_id,
                )
                row = self.empty_project_billing(project)
            rows.append(row)
        return rows

    def assemble_project(
        self,
        project: ProjectInfo,
        approvals: Sequence[ApprovalRecord],
        users: Mapping[UUID, UserProfile],
        adjustments: Mapping[PairKey, ResolvedAdjustment],
        task_hours: Mapping[PairKey, Sequence[TaskHours]],
        weekly_hours: Mapping[PairKey, Sequence[WeeklyHours]] | None = None,
    ) -> ProjectBillingData:
        """Build the report row for a single project."""
        row = self.empty_project_billing(project)

        for approval in approvals:
            user = users.get(approval.user_id)
            if user is None:
                logger.warning(
                    "Skipping approval for unknown user %s on project %s",
                    approval.user_id,
                    project.project_id,
                )
                continue

            pair = (approval.user_id, project.project_id)
            weeks = None
            if weekly_hours is not None:
                weeks = weekly_hours.get(pair, ())

            resource = self.build_resource(
                approval,
                user,
                adjustments.get((project.project_id, approval.user_id), ResolvedAdjustment()),
                project,
                task_hours.get(pair, ()),
                weeks,
            )
            row.resources.append(resource)
            row.total_hours += resource.worked_hours
            row.billable_hours += resource.final_billable_hours
            row.total_amount += resource.total_amount

        row.non_billable_hours = max(row.total_hours - row.billable_hours, ZERO)
        row.verification_info = self.calculate_verification_info(approvals)
        return row

    def build_resource(
        self,
        approval: ApprovalRecord,
        user: UserProfile,
        adjustment: ResolvedAdjustment,
        project: ProjectInfo,
        tasks: Sequence[TaskHours] = (),
        weeks: Sequence[WeeklyHours] | None = None,
    ) -> ResourceBillingData:
        """Derive one resource's billing figures and validate them."""
        worked = approval.worked_hours
        base = approval.base_billable_hours
        manager_adjustment = approval.manager_adjustment
        management_adjustment = adjustment.management_adjustment

        final = base + management_adjustment
        non_billable = max(worked - final, ZERO)
        rate = user.rate
        user_name = user.full_name or UNKNOWN_USER_NAME

        integrity = validate_adjustment_integrity(
            worked,
            manager_adjustment,
            base,
            management_adjustment,
            final,
            tolerance=self.tolerance,
        )
        report_integrity_violation(
            integrity,
            user_id=user.user_id,
            user_name=user_name,
            project_id=project.project_id,
            project_name=project.name,
        )

        weekly_breakdown = None
        if weeks is not None:
            weekly_breakdown = tuple(
                WeeklyBreakdown(
                    week_start=w.week_start,
                    total_hours=w.total_hours,
                    billable_hours=w.billable_hours,
                    amount=round_to_cents(w.billable_hours * rate),
                )
                for w in weeks
            )

        return ResourceBillingData(
            user_id=user.user_id,
            user_name=user_name,
            role=user.role or DEFAULT_ROLE,
            worked_hours=worked,
            manager_adjustment=manager_adjustment,
            base_billable_hours=base,
            management_adjustment=management_adjustment,
            final_billable_hours=final,
            non_billable_hours=non_billable,
            hourly_rate=rate,
            total_amount=round_to_cents(final * rate),
            verified_at=approval.verified_at,
            last_adjusted_at=adjustment.adjusted_at,
            tasks=tuple(self.price_task(t, project, rate) for t in tasks),
            weekly_breakdown=weekly_breakdown,
            integrity_errors=integrity.errors,
        )

    @staticmethod
    def price_task(task: TaskHours, project: ProjectInfo, rate: Decimal) -> TaskBillingData:
        return TaskBillingData(
            task_id=task.task_id,
            task_name=task.task_name,
            project_id=project.project_id,
            project_name=project.name,
            total_hours=task.total_hours,
            billable_hours=task.billable_hours,
            non_billable_hours=task.non_billable_hours,
            amount=round_to_cents(task.billable_hours * rate),
        )

    @staticmethod
    def calculate_verification_info(
        approvals: Sequence[ApprovalRecord],
    ) -> VerificationInfo | None:
        """Summarize a project's approvals; None when there are none."""
        if not approvals:
            return None

        latest = None
        for a in approvals:
            if a.verified_at is not None and (latest is None or a.verified_at > latest):
                latest = a.verified_at

        return VerificationInfo(
            worked_hours=sum((a.worked_hours for a in approvals), ZERO),
            billable_hours=sum((a.base_billable_hours for a in approvals), ZERO),
            manager_adjustment=sum((a.manager_adjustment for a in approvals), ZERO),
            user_count=len(approvals),
            verified_at=latest,
        )

    @staticmethod
    def empty_project_billing(project: ProjectInfo) -> ProjectBillingData:
        return ProjectBillingData(
            project_id=project.project_id,
            project_name=project.name,
            client_name=project.client_name,
        )

"""Project billing service - orchestrates report building and adjustments."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from datetime import date
from decimal import Decimal, InvalidOperation
from uuid import UUID

from project_billing.calculators.assembler import BillingReportAssembler
from project_billing.calculators.distribution import calculate_project_billable_targets
from project_billing.calculators.integrity import DEFAULT_TOLERANCE
from project_billing.calculators.types import (
    AdjustmentResult,
    DistributionResult,
    ProjectBillingData,
    ProjectTotalUpdateResult,
    ResourceBillingData,
    TaskBillingSummary,
    UserBillingData,
    round_to_cents,
    to_hours,
)
from project_billing.calculators.views import build_task_billing_view, build_user_billing_view
from project_billing.config import Settings
from project_billing.errors import (
    BillingErrorKind,
    InvalidBillingTargetError,
    InvalidReportViewError,
    validate_period,
)
from project_billing.repositories.base import BillingRepository
from project_billing.services.adjustment_resolver import ManagementAdjustmentResolver
from project_billing.services.adjustment_service import AdjustmentService
from project_billing.services.collector import ApprovalDataCollector
from project_billing.services.task_aggregator import DEFAULT_CONCURRENCY, TaskBreakdownAggregator

logger = logging.getLogger(__name__)

REPORT_VIEWS = ("weekly", "monthly", "custom")
DEFAULT_REPORT_VIEW = "custom"


class ProjectBillingService:
    """Entry point for project billing.

    Operations:
    - build_project_billing_data: verified per-resource, per-task report
    - build_user_billing_view / build_task_billing_view: pivots of the report
    - calculate_project_billable_targets: retarget preview, nothing persisted
    - apply_billing_adjustment: commit one resource's final billable hours
    - apply_project_billable_total: preview and commit a project retarget
    - delete_billing_adjustment: soft-delete an active adjustment

    Stateless; build one per request.
    """

    def __init__(
        self,
        repository: BillingRepository,
        tolerance: Decimal = DEFAULT_TOLERANCE,
        concurrency: int = DEFAULT_CONCURRENCY,
    ):
        self.repository = repository
        self.collector = ApprovalDataCollector(repository)
        self.resolver = ManagementAdjustmentResolver(repository)
        self.task_aggregator = TaskBreakdownAggregator(repository, concurrency)
        self.assembler = BillingReportAssembler(tolerance)
        self.adjustment_service = AdjustmentService(repository)

    @classmethod
    def from_settings(cls, repository: BillingRepository, settings: Settings) -> ProjectBillingService:
        return cls(
            repository,
            tolerance=settings.billing_tolerance_hours,
            concurrency=settings.task_fetch_concurrency,
        )

    # -------------------------------------------------------------------------
    # Reports
    # -------------------------------------------------------------------------

    async def build_project_billing_data(
        self,
        project_ids: Iterable[UUID] | None,
        client_ids: Iterable[UUID] | None,
        start: date,
        end: date,
        view: str = DEFAULT_REPORT_VIEW,
    ) -> list[ProjectBillingData]:
        """Build the billing report for the matching projects.

        Every matching project gets a row, zero-valued when it has no
        eligible approvals. Weekly breakdowns are attached for the weekly
        view only.

        Raises:
            InvalidBillingPeriodError: If end is before start
            InvalidReportViewError: If view is unknown
        """
        validate_period(start, end)
        if view not in REPORT_VIEWS:
            raise InvalidReportViewError(view)

        projects = await self.repository.find_projects(project_ids, client_ids)
        if not projects:
            return []
        ids = [p.project_id for p in projects]

        approvals, project_timesheets = await asyncio.gather(
            self.collector.collect(ids, start, end),
            self.repository.find_approval_timesheet_ids(ids, start, end),
        )
        user_ids = list(dict.fromkeys(a.user_id for a in approvals))

        users, adjustments, breakdown = await asyncio.gather(
            self.repository.find_users(user_ids),
            self.resolver.resolve_many(ids, user_ids, start, end),
            self.task_aggregator.aggregate(
                project_timesheets,
                user_ids,
                include_weekly=view == "weekly",
            ),
        )

        report = self.assembler.assemble(
            projects,
            approvals,
            {u.user_id: u for u in users},
            adjustments,
            breakdown.tasks,
            breakdown.weeks,
        )
        logger.debug(
            "Built billing report: %d projects, %d resources, %d integrity errors (%s..%s, %s)",
            len(report),
            sum(len(p.resources) for p in report),
            sum(p.integrity_error_count for p in report),
            start,
            end,
            view,
        )
        return report

    async def build_user_billing_view(
        self,
        project_ids: Iterable[UUID] | None,
        client_ids: Iterable[UUID] | None,
        start: date,
        end: date,
    ) -> list[UserBillingData]:
        report = await self.build_project_billing_data(project_ids, client_ids, start, end)
        return build_user_billing_view(report)

    async def build_task_billing_view(
        self,
        project_ids: Iterable[UUID] | None,
        client_ids: Iterable[UUID] | None,
        start: date,
        end: date,
    ) -> list[TaskBillingSummary]:
        report = await self.build_project_billing_data(project_ids, client_ids, start, end)
        return build_task_billing_view(report)

    # -------------------------------------------------------------------------
    # Retargeting
    # -------------------------------------------------------------------------

    @staticmethod
    def calculate_project_billable_targets(
        resources: Sequence[ResourceBillingData],
        target_total: Decimal | int | float | str,
    ) -> DistributionResult:
        """Preview per-resource targets for a new project total. Never persists."""
        return calculate_project_billable_targets(resources, _parse_target(target_total))

    async def preview_project_billable_targets(
        self,
        project_id: UUID,
        start: date,
        end: date,
        target_total: Decimal | int | float | str,
    ) -> DistributionResult:
        """Build the project's report and preview a retarget against it."""
        target = _parse_target(target_total)
        report = await self.build_project_billing_data([project_id], None, start, end)
        resources = report[0].resources if report else []
        return calculate_project_billable_targets(resources, target)

    async def apply_project_billable_total(
        self,
        project_id: UUID,
        start: date,
        end: date,
        target_total: Decimal | int | float | str,
        reason: str | None = None,
        adjusted_by: UUID | None = None,
    ) -> ProjectTotalUpdateResult:
        """Distribute a new project total and commit each changed resource.

        Resources whose target rounds to their current hours are left alone.
        Each commit is independent; failures are reported per user. An
        unknown project, or one without approved billing data in the
        period, is a NO_DATA failure and nothing is written.
        """
        target = _parse_target(target_total)
        report = await self.build_project_billing_data([project_id], None, start, end)
        if not report:
            logger.warning("Project billable total rejected: project=%s not found", project_id)
            return ProjectTotalUpdateResult.failure(
                project_id, BillingErrorKind.NO_DATA, "Project not found"
            )
        resources = report[0].resources
        if not resources:
            logger.warning(
                "Project billable total rejected: project=%s has no approved data (%s..%s)",
                project_id,
                start,
                end,
            )
            return ProjectTotalUpdateResult.failure(
                project_id,
                BillingErrorKind.NO_DATA,
                "No approved billing data for this project and period",
            )
        distribution = calculate_project_billable_targets(resources, target)

        results: dict[UUID, AdjustmentResult] = {}
        for allocation in distribution.allocations:
            if round_to_cents(allocation.target_hours) == round_to_cents(allocation.current_hours):
                continue
            results[allocation.user_id] = await self.adjustment_service.apply_billing_adjustment(
                allocation.user_id,
                project_id,
                start,
                end,
                allocation.target_hours,
                reason=reason,
                adjusted_by=adjusted_by,
            )

        update = ProjectTotalUpdateResult(
            project_id=project_id,
            distribution=distribution,
            results=results,
        )
        logger.info(
            "Project billable total applied: project=%s target=%s current=%s updated=%d failed=%d",
            project_id,
            distribution.target_total,
            distribution.current_total,
            update.members_updated,
            len(update.failures),
        )
        return update

    # -------------------------------------------------------------------------
    # Single adjustments
    # -------------------------------------------------------------------------

    async def apply_billing_adjustment(
        self,
        user_id: UUID,
        project_id: UUID,
        start: date,
        end: date,
        billable_hours: Decimal | int | float | str,
        reason: str | None = None,
        adjusted_by: UUID | None = None,
    ) -> AdjustmentResult:
        return await self.adjustment_service.apply_billing_adjustment(
            user_id,
            project_id,
            start,
            end,
            billable_hours,
            reason=reason,
            adjusted_by=adjusted_by,
        )

    async def delete_billing_adjustment(
        self,
        user_id: UUID,
        project_id: UUID,
        start: date,
        end: date,
        deleted_by: UUID | None = None,
    ) -> AdjustmentResult:
        return await self.adjustment_service.delete_billing_adjustment(
            user_id, project_id, start, end, deleted_by=deleted_by
        )


def _parse_target(target_total: Decimal | int | float | str) -> Decimal:
    try:
        target = to_hours(target_total)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise InvalidBillingTargetError(target_total) from exc
    if not target.is_finite() or target < 0:
        raise InvalidBillingTargetError(target_total)
    return target

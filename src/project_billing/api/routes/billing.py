"""Project billing API endpoints."""

from collections.abc import Iterable
from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, HTTPException, Path, Query, status

from project_billing.api.dependencies import BillingService
from project_billing.api.schemas import (
    AdjustmentResultResponse,
    BillingAdjustmentRequest,
    BillingAdjustmentResponse,
    BillingSummary,
    DistributionResponse,
    ErrorResponse,
    MemberUpdateResponse,
    ProjectBillingReportResponse,
    ProjectBillingResponse,
    ProjectTargetRequest,
    ProjectTotalUpdateResponse,
    TaskBillingSummaryResponse,
    TaskBillingViewResponse,
    UserBillingResponse,
    UserBillingViewResponse,
)
from project_billing.calculators.types import AdjustmentResult, ProjectBillingData, UserBillingData
from project_billing.errors import BillingErrorKind
from project_billing.services.billing_service import DEFAULT_REPORT_VIEW

router = APIRouter(prefix="/billing", tags=["billing"])

ERROR_STATUS = {
    BillingErrorKind.NO_DATA: status.HTTP_404_NOT_FOUND,
    BillingErrorKind.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    BillingErrorKind.PERSISTENCE_FAILURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

StartDate = Annotated[date, Query(description="Inclusive period start")]
EndDate = Annotated[date, Query(description="Inclusive period end")]
ProjectIds = Annotated[list[UUID] | None, Query(alias="project_id")]
ClientIds = Annotated[list[UUID] | None, Query(alias="client_id")]


def _result_response(result: AdjustmentResult) -> AdjustmentResultResponse:
    """Convert a successful result; raise HTTPException for a failed one."""
    if not result.success:
        raise HTTPException(
            status_code=ERROR_STATUS[result.error_kind],
            detail=result.message,
        )
    return AdjustmentResultResponse(
        success=True,
        message=result.message,
        adjustment=BillingAdjustmentResponse.model_validate(result.adjustment),
    )


def _summarize(rows: Iterable[ProjectBillingData] | Iterable[UserBillingData]) -> BillingSummary:
    summary = BillingSummary()
    for row in rows:
        summary.total_hours += row.total_hours
        summary.billable_hours += row.billable_hours
        summary.non_billable_hours += row.non_billable_hours
        summary.total_amount += row.total_amount
    return summary


# ============================================================================
# Reports
# ============================================================================


@router.get(
    "/projects",
    response_model=ProjectBillingReportResponse,
    responses={400: {"model": ErrorResponse}},
)
async def get_project_billing(
    service: BillingService,
    start_date: StartDate,
    end_date: EndDate,
    project_ids: ProjectIds = None,
    client_ids: ClientIds = None,
    view: Annotated[str, Query(pattern="^(weekly|monthly|custom)$")] = DEFAULT_REPORT_VIEW,
) -> ProjectBillingReportResponse:
    """Verified billing report per project, resource and task."""
    report = await service.build_project_billing_data(
        project_ids, client_ids, start_date, end_date, view
    )
    return ProjectBillingReportResponse(
        start_date=start_date,
        end_date=end_date,
        view=view,
        projects=[ProjectBillingResponse.model_validate(row) for row in report],
        summary=_summarize(report),
    )


@router.get(
    "/users",
    response_model=UserBillingViewResponse,
    responses={400: {"model": ErrorResponse}},
)
async def get_user_billing(
    service: BillingService,
    start_date: StartDate,
    end_date: EndDate,
    project_ids: ProjectIds = None,
    client_ids: ClientIds = None,
) -> UserBillingViewResponse:
    """Billing totals per user across the matching projects."""
    users = await service.build_user_billing_view(project_ids, client_ids, start_date, end_date)
    return UserBillingViewResponse(
        start_date=start_date,
        end_date=end_date,
        users=[UserBillingResponse.model_validate(u) for u in users],
        summary=_summarize(users),
    )


@router.get(
    "/tasks",
    response_model=TaskBillingViewResponse,
    responses={400: {"model": ErrorResponse}},
)
async def get_task_billing(
    service: BillingService,
    start_date: StartDate,
    end_date: EndDate,
    project_ids: ProjectIds = None,
    client_ids: ClientIds = None,
) -> TaskBillingViewResponse:
    """Billing totals per task across the matching projects."""
    tasks = await service.build_task_billing_view(project_ids, client_ids, start_date, end_date)
    return TaskBillingViewResponse(
        start_date=start_date,
        end_date=end_date,
        tasks=[TaskBillingSummaryResponse.model_validate(t) for t in tasks],
    )


# ============================================================================
# Retargeting
# ============================================================================


@router.post(
    "/projects/{project_id}/billable-total/preview",
    response_model=DistributionResponse,
    responses={400: {"model": ErrorResponse}},
)
async def preview_project_billable_total(
    service: BillingService,
    project_id: Annotated[UUID, Path()],
    payload: ProjectTargetRequest,
) -> DistributionResponse:
    """Preview per-resource targets for a new project total. Nothing is saved."""
    distribution = await service.preview_project_billable_targets(
        project_id,
        payload.start_date,
        payload.end_date,
        payload.target_billable_hours,
    )
    return DistributionResponse.model_validate(distribution)


@router.put(
    "/projects/{project_id}/billable-total",
    response_model=ProjectTotalUpdateResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_project_billable_total(
    service: BillingService,
    project_id: Annotated[UUID, Path()],
    payload: ProjectTargetRequest,
) -> ProjectTotalUpdateResponse:
    """Distribute a new project total and save an adjustment per changed resource."""
    update = await service.apply_project_billable_total(
        project_id,
        payload.start_date,
        payload.end_date,
        payload.target_billable_hours,
        reason=payload.reason,
        adjusted_by=payload.adjusted_by,
    )

    if not update.success:
        raise HTTPException(
            status_code=ERROR_STATUS[update.error_kind],
            detail=update.message,
        )

    results = []
    for user_id, result in update.results.items():
        results.append(
            MemberUpdateResponse(
                user_id=user_id,
                success=result.success,
                message=result.message,
                error_kind=result.error_kind.value if result.error_kind else None,
                adjustment=(
                    BillingAdjustmentResponse.model_validate(result.adjustment)
                    if result.adjustment is not None
                    else None
                ),
            )
        )

    return ProjectTotalUpdateResponse(
        project_id=project_id,
        distribution=DistributionResponse.model_validate(update.distribution),
        members_updated=update.members_updated,
        results=results,
    )


# ============================================================================
# Adjustments
# ============================================================================


@router.put(
    "/adjustments",
    response_model=AdjustmentResultResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def apply_billing_adjustment(
    service: BillingService,
    payload: BillingAdjustmentRequest,
) -> AdjustmentResultResponse:
    """Set one resource's final billable hours. Repeating the call is safe."""
    result = await service.apply_billing_adjustment(
        payload.user_id,
        payload.project_id,
        payload.start_date,
        payload.end_date,
        payload.billable_hours,
        reason=payload.reason,
        adjusted_by=payload.adjusted_by,
    )
    return _result_response(result)


@router.delete(
    "/adjustments",
    response_model=AdjustmentResultResponse,
    responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def delete_billing_adjustment(
    service: BillingService,
    user_id: UUID,
    project_id: UUID,
    start_date: StartDate,
    end_date: EndDate,
    deleted_by: UUID | None = None,
) -> AdjustmentResultResponse:
    """Soft-delete the active adjustment for exactly this user, project and period."""
    result = await service.delete_billing_adjustment(
        user_id, project_id, start_date, end_date, deleted_by=deleted_by
    )
    return _result_response(result)

"""Persistence of management billing adjustments."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from project_billing.calculators.types import (
    AdjustmentKey,
    AdjustmentResult,
    round_to_cents,
    to_hours,
)
from project_billing.errors import BillingErrorKind, validate_period
from project_billing.repositories.base import AdjustmentValues, BillingRepository

logger = logging.getLogger(__name__)


class AdjustmentService:
    """Commits and removes management adjustments.

    Key invariants:
    1. The approved base is re-read at commit time for the exact scope
    2. adjustment_hours = target - base; the stored target is never negative
    3. One active record per key; repeated commits update it in place
    4. Failures come back as AdjustmentResult, never as exceptions
    """

    def __init__(self, repository: BillingRepository):
        self.repository = repository

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
        """Set the final billable hours for one user on one project and period.

        Raises:
            InvalidBillingPeriodError: If end is before start
        """
        validate_period(start, end)

        try:
            target = to_hours(billable_hours)
        except (InvalidOperation, TypeError, ValueError):
            return AdjustmentResult.failure(
                BillingErrorKind.INVALID_INPUT,
                f"Billable hours must be a number, got {billable_hours!r}",
            )
        if not target.is_finite() or target < 0:
            return AdjustmentResult.failure(
                BillingErrorKind.INVALID_INPUT,
                f"Billable hours must be a non-negative number, got {billable_hours}",
            )

        try:
            base = await self.repository.find_approval_base(project_id, user_id, start, end)
        except SQLAlchemyError:
            logger.exception(
                "Failed to load approval base for user %s on project %s", user_id, project_id
            )
            return AdjustmentResult.failure(
                BillingErrorKind.PERSISTENCE_FAILURE,
                "Failed to load approved billing data",
            )

        if base is None:
            return AdjustmentResult.failure(
                BillingErrorKind.NO_DATA,
                "No approved billing data found for this user, project and period",
            )

        target = round_to_cents(target)
        key = AdjustmentKey(
            user_id=user_id,
            project_id=project_id,
            period_start=start,
            period_end=end,
        )
        values = AdjustmentValues(
            total_worked_hours=round_to_cents(base.worked_hours),
            adjustment_hours=round_to_cents(target - base.base_billable_hours),
            original_billable_hours=round_to_cents(base.base_billable_hours),
            adjusted_billable_hours=target,
            adjusted_at=datetime.now(timezone.utc),
            reason=reason,
            adjusted_by=adjusted_by,
        )

        try:
            record = await self.repository.upsert_adjustment(key, values)
        except SQLAlchemyError:
            logger.exception(
                "Failed to save billing adjustment for user %s on project %s (%s..%s)",
                user_id,
                project_id,
                start,
                end,
            )
            return AdjustmentResult.failure(
                BillingErrorKind.PERSISTENCE_FAILURE,
                "Failed to save billing adjustment",
            )

        logger.info(
            "Billing adjustment saved: user=%s project=%s period=%s..%s "
            "base=%s target=%s adjustment=%s",
            user_id,
            project_id,
            start,
            end,
            values.original_billable_hours,
            values.adjusted_billable_hours,
            values.adjustment_hours,
        )
        return AdjustmentResult.ok(record, "Billing adjustment saved")

    async def delete_billing_adjustment(
        self,
        user_id: UUID,
        project_id: UUID,
        start: date,
        end: date,
        deleted_by: UUID | None = None,
    ) -> AdjustmentResult:
        """Soft-delete the active adjustment for exactly this scope."""
        validate_period(start, end)
        key = AdjustmentKey(
            user_id=user_id,
            project_id=project_id,
            period_start=start,
            period_end=end,
        )

        try:
            record = await self.repository.soft_delete_adjustment(key, deleted_by)
        except SQLAlchemyError:
            logger.exception(
                "Failed to delete billing adjustment for user %s on project %s", user_id, project_id
            )
            return AdjustmentResult.failure(
                BillingErrorKind.PERSISTENCE_FAILURE,
                "Failed to delete billing adjustment",
            )

        if record is None:
            return AdjustmentResult.failure(
                BillingErrorKind.NO_DATA,
                "No active billing adjustment found for this user, project and period",
            )

        logger.info(
            "Billing adjustment deleted: user=%s project=%s period=%s..%s by=%s",
            user_id,
            project_id,
            start,
            end,
            deleted_by,
        )
        return AdjustmentResult.ok(record, "Billing adjustment deleted")

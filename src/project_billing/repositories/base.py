"""Storage protocol consumed by the billing pipeline.

The engine only needs read projections of approvals, time entries, users
and projects, plus read/write access to management adjustments. Any store
implementing BillingRepository can back the service.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from project_billing.calculators.types import (
    AdjustmentKey,
    AdjustmentRecord,
    ApprovalBase,
    ApprovalRecord,
    ProjectInfo,
    TimeEntryRecord,
    UserProfile,
)


@dataclass(frozen=True)
class AdjustmentValues:
    """Column values written by an adjustment upsert.

    reason and adjusted_by left as None keep whatever the active record
    already holds.
    """

    total_worked_hours: Decimal
    adjustment_hours: Decimal
    original_billable_hours: Decimal
    adjusted_billable_hours: Decimal
    adjusted_at: datetime
    reason: str | None = None
    adjusted_by: UUID | None = None


class BillingRepository(Protocol):
    """Protocol for billing data access.

    Approval reads apply the same eligibility filter everywhere:
    management-approved, owning timesheet not deleted, timesheet status in
    the configured eligible set, week start within [start, end].
    """

    async def find_projects(
        self,
        project_ids: Iterable[UUID] | None = None,
        client_ids: Iterable[UUID] | None = None,
    ) -> list[ProjectInfo]:
        """Return non-deleted projects matching either filter.

        With neither filter, all non-deleted projects are returned.
        """
        ...

    async def find_approved_approvals(
        self,
        project_ids: Iterable[UUID],
        start: date,
        end: date,
    ) -> list[ApprovalRecord]:
        """Return eligible approvals summed per (project, user)."""
        ...

    async def find_approval_timesheet_ids(
        self,
        project_ids: Iterable[UUID],
        start: date,
        end: date,
    ) -> dict[UUID, set[UUID]]:
        """Return eligible timesheet IDs grouped by the project they were approved for."""
        ...

    async def find_time_entries(
        self,
        timesheet_ids: Iterable[UUID],
        user_id: UUID,
        project_ids: Iterable[UUID],
    ) -> list[TimeEntryRecord]:
        """Return one user's non-deleted entries in the given timesheets and projects."""
        ...

    async def find_users(self, user_ids: Iterable[UUID]) -> list[UserProfile]:
        ...

    async def find_active_adjustment(
        self,
        project_id: UUID,
        user_id: UUID,
        start: date,
        end: date,
    ) -> AdjustmentRecord | None:
        """Return the most recent active adjustment overlapping [start, end]."""
        ...

    async def find_active_adjustments(
        self,
        project_ids: Iterable[UUID],
        user_ids: Iterable[UUID],
        start: date,
        end: date,
    ) -> list[AdjustmentRecord]:
        """Return all active adjustments overlapping [start, end] for the given pairs."""
        ...

    async def find_approval_base(
        self,
        project_id: UUID,
        user_id: UUID,
        start: date,
        end: date,
    ) -> ApprovalBase | None:
        """Return summed eligible approval totals, or None when nothing is eligible."""
        ...

    async def upsert_adjustment(
        self,
        key: AdjustmentKey,
        values: AdjustmentValues,
    ) -> AdjustmentRecord:
        """Insert or update the active adjustment for key in one statement."""
        ...

    async def soft_delete_adjustment(
        self,
        key: AdjustmentKey,
        deleted_by: UUID | None = None,
    ) -> AdjustmentRecord | None:
        """Mark the active adjustment for key deleted; None when there is none."""
        ...

"""SQLAlchemy implementation of the billing repository."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from datetime import date, datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from project_billing.calculators.types import (
    AdjustmentKey,
    AdjustmentRecord,
    ApprovalBase,
    ApprovalRecord,
    ProjectInfo,
    TimeEntryRecord,
    UserProfile,
)
from project_billing.config import DEFAULT_ELIGIBLE_STATUSES
from project_billing.models import (
    AppUser,
    ApprovalStatus,
    BillingAdjustment,
    Client,
    Project,
    Task,
    TimeEntry,
    Timesheet,
    TimesheetProjectApproval,
)
from project_billing.models.billing import (
    ACTIVE_ADJUSTMENT_KEY,
    ACTIVE_ADJUSTMENT_WHERE,
    DEFAULT_ADJUSTMENT_REASON,
    PROJECT_SCOPE,
)
from project_billing.repositories.base import AdjustmentValues

Approval = TimesheetProjectApproval


def to_adjustment_record(row: BillingAdjustment) -> AdjustmentRecord:
    return AdjustmentRecord(
        adjustment_id=row.adjustment_id,
        user_id=row.user_id,
        project_id=row.project_id,
        period_start=row.billing_period_start,
        period_end=row.billing_period_end,
        adjustment_hours=row.adjustment_hours,
        original_billable_hours=row.original_billable_hours,
        adjusted_billable_hours=row.adjusted_billable_hours,
        adjusted_at=row.adjusted_at,
        total_worked_hours=row.total_worked_hours,
        reason=row.reason,
        adjusted_by=row.adjusted_by,
        deleted_at=row.deleted_at,
        scope=row.adjustment_scope,
    )


class SqlBillingRepository:
    """BillingRepository backed by the relational schema in project_billing.models.

    Each read opens its own short-lived session, so concurrent reads from
    asyncio.gather never share a connection. Writes run in one transaction
    per call.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        eligible_statuses: Iterable[str] = DEFAULT_ELIGIBLE_STATUSES,
    ):
        self.session_factory = session_factory
        self.eligible_statuses = sorted(set(eligible_statuses))

    async def _fetch(self, stmt: Select) -> list[Any]:
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.all())

    def _eligible_approval(self, start: date, end: date) -> tuple[Any, ...]:
        """Where-clauses shared by every approval read. Requires a join to Timesheet."""
        return (
            Approval.management_status == ApprovalStatus.APPROVED.value,
            Approval.deleted_at.is_(None),
            Timesheet.deleted_at.is_(None),
            Timesheet.status.in_(self.eligible_statuses),
            Timesheet.week_start_date >= start,
            Timesheet.week_start_date <= end,
        )

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def find_projects(
        self,
        project_ids: Iterable[UUID] | None = None,
        client_ids: Iterable[UUID] | None = None,
    ) -> list[ProjectInfo]:
        project_ids = list(project_ids or ())
        client_ids = list(client_ids or ())

        stmt = (
            select(Project.project_id, Project.name, Project.client_id, Client.name)
            .outerjoin(Client, Client.client_id == Project.client_id)
            .where(Project.deleted_at.is_(None))
            .order_by(Project.name, Project.project_id)
        )
        filters = []
        if project_ids:
            filters.append(Project.project_id.in_(project_ids))
        if client_ids:
            filters.append(Project.client_id.in_(client_ids))
        if filters:
            stmt = stmt.where(*filters)

        rows = await self._fetch(stmt)
        return [
            ProjectInfo(
                project_id=project_id,
                name=name,
                client_id=client_id,
                client_name=client_name,
            )
            for project_id, name, client_id, client_name in rows
        ]

    async def find_approved_approvals(
        self,
        project_ids: Iterable[UUID],
        start: date,
        end: date,
    ) -> list[ApprovalRecord]:
        project_ids = list(project_ids)
        if not project_ids:
            return []

        stmt = (
            select(
                Approval.project_id,
                Timesheet.user_id,
                func.sum(Approval.worked_hours),
                func.sum(Approval.billable_hours),
                func.sum(Approval.billable_adjustment),
                func.max(Approval.management_approved_at),
                func.sum(Approval.entries_count),
            )
            .join(Timesheet, Timesheet.timesheet_id == Approval.timesheet_id)
            .where(Approval.project_id.in_(project_ids), *self._eligible_approval(start, end))
            .group_by(Approval.project_id, Timesheet.user_id)
            .order_by(Approval.project_id, Timesheet.user_id)
        )

        rows = await self._fetch(stmt)
        return [
            ApprovalRecord(
                project_id=project_id,
                user_id=user_id,
                worked_hours=worked,
                base_billable_hours=billable,
                manager_adjustment=manager_adjustment,
                verified_at=verified_at,
                entries_count=int(entries or 0),
            )
            for project_id, user_id, worked, billable, manager_adjustment, verified_at, entries in rows
        ]

    async def find_approval_timesheet_ids(
        self,
        project_ids: Iterable[UUID],
        start: date,
        end: date,
    ) -> dict[UUID, set[UUID]]:
        project_ids = list(project_ids)
        if not project_ids:
            return {}

        stmt = (
            select(Approval.project_id, Approval.timesheet_id)
            .join(Timesheet, Timesheet.timesheet_id == Approval.timesheet_id)
            .where(Approval.project_id.in_(project_ids), *self._eligible_approval(start, end))
            .distinct()
        )

        grouped: dict[UUID, set[UUID]] = defaultdict(set)
        for project_id, timesheet_id in await self._fetch(stmt):
            grouped[project_id].add(timesheet_id)
        return dict(grouped)

    async def find_time_entries(
        self,
        timesheet_ids: Iterable[UUID],
        user_id: UUID,
        project_ids: Iterable[UUID],
    ) -> list[TimeEntryRecord]:
        timesheet_ids = list(timesheet_ids)
        project_ids = list(project_ids)
        if not timesheet_ids or not project_ids:
            return []

        stmt = (
            select(TimeEntry, Task.name)
            .join(Timesheet, Timesheet.timesheet_id == TimeEntry.timesheet_id)
            .outerjoin(Task, Task.task_id == TimeEntry.task_id)
            .where(
                TimeEntry.timesheet_id.in_(timesheet_ids),
                TimeEntry.project_id.in_(project_ids),
                TimeEntry.deleted_at.is_(None),
                Timesheet.user_id == user_id,
            )
            .order_by(TimeEntry.entry_date, TimeEntry.time_entry_id)
        )

        return [
            TimeEntryRecord(
                timesheet_id=entry.timesheet_id,
                project_id=entry.project_id,
                hours=entry.hours,
                is_billable=entry.is_billable,
                entry_date=entry.entry_date,
                task_id=entry.task_id,
                task_name=task_name,
                task_type=entry.task_type,
                custom_task_description=entry.custom_task_description,
                entry_category=entry.entry_category,
            )
            for entry, task_name in await self._fetch(stmt)
        ]

    async def find_users(self, user_ids: Iterable[UUID]) -> list[UserProfile]:
        user_ids = list(user_ids)
        if not user_ids:
            return []

        stmt = select(
            AppUser.user_id, AppUser.full_name, AppUser.role, AppUser.hourly_rate
        ).where(AppUser.user_id.in_(user_ids))

        return [
            UserProfile(user_id=user_id, full_name=full_name, role=role, hourly_rate=rate)
            for user_id, full_name, role, rate in await self._fetch(stmt)
        ]

    def _active_overlapping(self, start: date, end: date) -> Select:
        return (
            select(BillingAdjustment)
            .where(
                BillingAdjustment.deleted_at.is_(None),
                BillingAdjustment.adjustment_scope == PROJECT_SCOPE,
                BillingAdjustment.billing_period_start <= end,
                BillingAdjustment.billing_period_end >= start,
            )
            .order_by(BillingAdjustment.adjusted_at.desc())
        )

    async def find_active_adjustment(
        self,
        project_id: UUID,
        user_id: UUID,
        start: date,
        end: date,
    ) -> AdjustmentRecord | None:
        stmt = (
            self._active_overlapping(start, end)
            .where(
                BillingAdjustment.project_id == project_id,
                BillingAdjustment.user_id == user_id,
            )
            .limit(1)
        )
        async with self.session_factory() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            return to_adjustment_record(row) if row is not None else None

    async def find_active_adjustments(
        self,
        project_ids: Iterable[UUID],
        user_ids: Iterable[UUID],
        start: date,
        end: date,
    ) -> list[AdjustmentRecord]:
        project_ids = list(project_ids)
        user_ids = list(user_ids)
        if not project_ids or not user_ids:
            return []

        stmt = self._active_overlapping(start, end).where(
            BillingAdjustment.project_id.in_(project_ids),
            BillingAdjustment.user_id.in_(user_ids),
        )
        async with self.session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [to_adjustment_record(row) for row in rows]

    async def find_approval_base(
        self,
        project_id: UUID,
        user_id: UUID,
        start: date,
        end: date,
    ) -> ApprovalBase | None:
        stmt = (
            select(
                func.count(Approval.approval_id),
                func.sum(Approval.worked_hours),
                func.sum(Approval.billable_hours),
                func.sum(Approval.billable_adjustment),
            )
            .join(Timesheet, Timesheet.timesheet_id == Approval.timesheet_id)
            .where(
                Approval.project_id == project_id,
                Timesheet.user_id == user_id,
                *self._eligible_approval(start, end),
            )
        )

        rows = await self._fetch(stmt)
        count, worked, billable, manager_adjustment = rows[0]
        if not count:
            return None
        return ApprovalBase(
            worked_hours=worked,
            base_billable_hours=billable,
            manager_adjustment=manager_adjustment,
        )

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    @staticmethod
    def _key_clauses(key: AdjustmentKey) -> tuple[Any, ...]:
        return (
            BillingAdjustment.user_id == key.user_id,
            BillingAdjustment.project_id == key.project_id,
            BillingAdjustment.billing_period_start == key.period_start,
            BillingAdjustment.billing_period_end == key.period_end,
            BillingAdjustment.adjustment_scope == key.scope,
            BillingAdjustment.deleted_at.is_(None),
        )

    async def upsert_adjustment(
        self,
        key: AdjustmentKey,
        values: AdjustmentValues,
    ) -> AdjustmentRecord:
        """INSERT ... ON CONFLICT (active key) WHERE deleted_at IS NULL DO UPDATE.

        A new row without a reason gets the default one; an update only
        overwrites reason and adjusted_by when they are given.
        """
        figures: dict[str, Any] = {
            "total_worked_hours": values.total_worked_hours,
            "adjustment_hours": values.adjustment_hours,
            "original_billable_hours": values.original_billable_hours,
            "adjusted_billable_hours": values.adjusted_billable_hours,
            "adjusted_at": values.adjusted_at,
        }
        on_conflict: dict[str, Any] = {**figures, "updated_at": func.now()}
        if values.reason is not None:
            on_conflict["reason"] = values.reason
        if values.adjusted_by is not None:
            on_conflict["adjusted_by"] = values.adjusted_by

        async with self.session_factory() as session:
            async with session.begin():
                dialect = session.get_bind().dialect.name
                insert = postgresql.insert if dialect == "postgresql" else sqlite.insert

                stmt = (
                    insert(BillingAdjustment)
                    .values(
                        user_id=key.user_id,
                        project_id=key.project_id,
                        billing_period_start=key.period_start,
                        billing_period_end=key.period_end,
                        adjustment_scope=key.scope,
                        reason=values.reason or DEFAULT_ADJUSTMENT_REASON,
                        adjusted_by=values.adjusted_by,
                        **figures,
                    )
                    .on_conflict_do_update(
                        index_elements=list(ACTIVE_ADJUSTMENT_KEY),
                        index_where=ACTIVE_ADJUSTMENT_WHERE,
                        set_=on_conflict,
                    )
                )
                await session.execute(stmt)

                row = (
                    await session.execute(select(BillingAdjustment).where(*self._key_clauses(key)))
                ).scalar_one()
                return to_adjustment_record(row)

    async def soft_delete_adjustment(
        self,
        key: AdjustmentKey,
        deleted_by: UUID | None = None,
    ) -> AdjustmentRecord | None:
        async with self.session_factory() as session:
            async with session.begin():
                row = (
                    await session.execute(select(BillingAdjustment).where(*self._key_clauses(key)))
                ).scalar_one_or_none()
                if row is None:
                    return None

                row.deleted_at = datetime.now(timezone.utc)
                row.deleted_by = deleted_by
                await session.flush()
                return to_adjustment_record(row)

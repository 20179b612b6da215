"""Pytest fixtures for project billing tests."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import UUID, uuid4

import pytest
from sqlalchemy.exc import SQLAlchemyError

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
from project_billing.models.billing import DEFAULT_ADJUSTMENT_REASON
from project_billing.repositories.base import AdjustmentValues
from project_billing.services.billing_service import ProjectBillingService

# March 2026; the 1st is a Sunday
PERIOD_START = date(2026, 3, 1)
PERIOD_END = date(2026, 3, 31)
WEEK_1 = date(2026, 3, 1)
WEEK_2 = date(2026, 3, 8)


@dataclass
class FakeApproval:
    """One timesheet-project approval row with its owning timesheet's fields."""

    project_id: UUID
    user_id: UUID
    timesheet_id: UUID
    week_start: date
    worked_hours: Decimal
    billable_hours: Decimal
    manager_adjustment: Decimal = Decimal("0")
    timesheet_status: str = "frozen"
    management_status: str = "approved"
    verified_at: datetime | None = None
    entries_count: int = 1
    timesheet_deleted: bool = False


class InMemoryBillingRepository:
    """BillingRepository over plain lists, mirroring SqlBillingRepository filters."""

    def __init__(self, eligible_statuses: Iterable[str] = DEFAULT_ELIGIBLE_STATUSES):
        self.eligible_statuses = frozenset(eligible_statuses)
        self.projects: list[ProjectInfo] = []
        self.users: dict[UUID, UserProfile] = {}
        self.approvals: list[FakeApproval] = []
        self.entries: list[tuple[UUID, TimeEntryRecord]] = []
        self.adjustments: list[AdjustmentRecord] = []
        self.fail_writes = False
        self.entry_fetches = 0
        self.active_fetches = 0
        self.max_active_fetches = 0

    # Seeding helpers

    def add_project(self, name: str, client_name: str | None = None, client_id: UUID | None = None) -> ProjectInfo:
        project = ProjectInfo(
            project_id=uuid4(),
            name=name,
            client_id=client_id or (uuid4() if client_name else None),
            client_name=client_name,
        )
        self.projects.append(project)
        return project

    def add_user(self, full_name: str, hourly_rate: str | None = "100", role: str = "employee") -> UserProfile:
        user = UserProfile(
            user_id=uuid4(),
            full_name=full_name,
            role=role,
            hourly_rate=Decimal(hourly_rate) if hourly_rate is not None else None,
        )
        self.users[user.user_id] = user
        return user

    def add_approval(
        self,
        project: ProjectInfo,
        user_id: UUID,
        worked: str,
        billable: str,
        manager_adjustment: str = "0",
        week_start: date = WEEK_1,
        **kwargs,
    ) -> FakeApproval:
        approval = FakeApproval(
            project_id=project.project_id,
            user_id=user_id,
            timesheet_id=kwargs.pop("timesheet_id", uuid4()),
            week_start=week_start,
            worked_hours=Decimal(worked),
            billable_hours=Decimal(billable),
            manager_adjustment=Decimal(manager_adjustment),
            verified_at=kwargs.pop("verified_at", datetime(2026, 4, 2, 9, 0, tzinfo=timezone.utc)),
            **kwargs,
        )
        self.approvals.append(approval)
        return approval

    def add_entry(
        self,
        approval: FakeApproval,
        hours: str,
        *,
        project_id: UUID | None = None,
        entry_date: date | None = None,
        is_billable: bool = True,
        task_id: UUID | None = None,
        task_name: str | None = None,
        task_type: str | None = "project_task",
        custom_task_description: str | None = None,
        entry_category: str | None = "project",
    ) -> TimeEntryRecord:
        entry = TimeEntryRecord(
            timesheet_id=approval.timesheet_id,
            project_id=project_id or approval.project_id,
            hours=Decimal(hours),
            is_billable=is_billable,
            entry_date=entry_date or approval.week_start,
            task_id=task_id,
            task_name=task_name,
            task_type=task_type,
            custom_task_description=custom_task_description,
            entry_category=entry_category,
        )
        self.entries.append((approval.user_id, entry))
        return entry

    def add_adjustment(
        self,
        project: ProjectInfo,
        user_id: UUID,
        adjustment_hours: str,
        start: date = PERIOD_START,
        end: date = PERIOD_END,
        adjusted_at: datetime | None = None,
    ) -> AdjustmentRecord:
        record = AdjustmentRecord(
            adjustment_id=uuid4(),
            user_id=user_id,
            project_id=project.project_id,
            period_start=start,
            period_end=end,
            adjustment_hours=Decimal(adjustment_hours),
            original_billable_hours=Decimal("0"),
            adjusted_billable_hours=Decimal("0"),
            adjusted_at=adjusted_at or datetime(2026, 4, 3, 12, 0, tzinfo=timezone.utc),
        )
        self.adjustments.append(record)
        return record

    def active_adjustments(self) -> list[AdjustmentRecord]:
        return [a for a in self.adjustments if a.is_active]

    # Protocol

    def _eligible(self, start: date, end: date) -> list[FakeApproval]:
        return [
            a
            for a in self.approvals
            if a.management_status == "approved"
            and not a.timesheet_deleted
            and a.timesheet_status in self.eligible_statuses
            and start <= a.week_start <= end
        ]

    async def find_projects(self, project_ids=None, client_ids=None) -> list[ProjectInfo]:
        project_ids = set(project_ids or ())
        client_ids = set(client_ids or ())
        return [
            p
            for p in self.projects
            if (not project_ids or p.project_id in project_ids)
            and (not client_ids or p.client_id in client_ids)
        ]

    async def find_approved_approvals(self, project_ids, start, end) -> list[ApprovalRecord]:
        project_ids = set(project_ids)
        grouped: dict[tuple[UUID, UUID], list[FakeApproval]] = {}
        for a in self._eligible(start, end):
            if a.project_id in project_ids:
                grouped.setdefault((a.project_id, a.user_id), []).append(a)

        records = []
        for (project_id, user_id), rows in grouped.items():
            stamps = [r.verified_at for r in rows if r.verified_at is not None]
            records.append(
                ApprovalRecord(
                    project_id=project_id,
                    user_id=user_id,
                    worked_hours=sum((r.worked_hours for r in rows), Decimal("0")),
                    base_billable_hours=sum((r.billable_hours for r in rows), Decimal("0")),
                    manager_adjustment=sum((r.manager_adjustment for r in rows), Decimal("0")),
                    verified_at=max(stamps) if stamps else None,
                    entries_count=sum(r.entries_count for r in rows),
                )
            )
        return records

    async def find_approval_timesheet_ids(self, project_ids, start, end) -> dict[UUID, set[UUID]]:
        project_ids = set(project_ids)
        grouped: dict[UUID, set[UUID]] = {}
        for a in self._eligible(start, end):
            if a.project_id in project_ids:
                grouped.setdefault(a.project_id, set()).add(a.timesheet_id)
        return grouped

    async def find_time_entries(self, timesheet_ids, user_id, project_ids) -> list[TimeEntryRecord]:
        self.entry_fetches += 1
        self.active_fetches += 1
        self.max_active_fetches = max(self.max_active_fetches, self.active_fetches)
        try:
            await asyncio.sleep(0)
            timesheet_ids = set(timesheet_ids)
            project_ids = set(project_ids)
            return [
                entry
                for owner, entry in self.entries
                if owner == user_id
                and entry.timesheet_id in timesheet_ids
                and entry.project_id in project_ids
            ]
        finally:
            self.active_fetches -= 1

    async def find_users(self, user_ids) -> list[UserProfile]:
        return [self.users[u] for u in user_ids if u in self.users]

    def _overlapping(self, start: date, end: date) -> list[AdjustmentRecord]:
        return sorted(
            (
                a
                for a in self.active_adjustments()
                if a.period_start <= end and a.period_end >= start
            ),
            key=lambda a: a.adjusted_at,
            reverse=True,
        )

    async def find_active_adjustment(self, project_id, user_id, start, end) -> AdjustmentRecord | None:
        for a in self._overlapping(start, end):
            if a.project_id == project_id and a.user_id == user_id:
                return a
        return None

    async def find_active_adjustments(self, project_ids, user_ids, start, end) -> list[AdjustmentRecord]:
        project_ids = set(project_ids)
        user_ids = set(user_ids)
        return [
            a
            for a in self._overlapping(start, end)
            if a.project_id in project_ids and a.user_id in user_ids
        ]

    async def find_approval_base(self, project_id, user_id, start, end) -> ApprovalBase | None:
        rows = [
            a
            for a in self._eligible(start, end)
            if a.project_id == project_id and a.user_id == user_id
        ]
        if not rows:
            return None
        return ApprovalBase(
            worked_hours=sum((r.worked_hours for r in rows), Decimal("0")),
            base_billable_hours=sum((r.billable_hours for r in rows), Decimal("0")),
            manager_adjustment=sum((r.manager_adjustment for r in rows), Decimal("0")),
        )

    def _find_by_key(self, key: AdjustmentKey) -> int | None:
        for index, a in enumerate(self.adjustments):
            if a.is_active and a.key == key:
                return index
        return None

    async def upsert_adjustment(self, key: AdjustmentKey, values: AdjustmentValues) -> AdjustmentRecord:
        if self.fail_writes:
            raise SQLAlchemyError("simulated write failure")

        index = self._find_by_key(key)
        if index is None:
            record = AdjustmentRecord(
                adjustment_id=uuid4(),
                user_id=key.user_id,
                project_id=key.project_id,
                period_start=key.period_start,
                period_end=key.period_end,
                adjustment_hours=values.adjustment_hours,
                original_billable_hours=values.original_billable_hours,
                adjusted_billable_hours=values.adjusted_billable_hours,
                adjusted_at=values.adjusted_at,
                total_worked_hours=values.total_worked_hours,
                reason=values.reason or DEFAULT_ADJUSTMENT_REASON,
                adjusted_by=values.adjusted_by,
                scope=key.scope,
            )
            self.adjustments.append(record)
            return record

        current = self.adjustments[index]
        record = replace(
            current,
            adjustment_hours=values.adjustment_hours,
            original_billable_hours=values.original_billable_hours,
            adjusted_billable_hours=values.adjusted_billable_hours,
            adjusted_at=values.adjusted_at,
            total_worked_hours=values.total_worked_hours,
            reason=values.reason if values.reason is not None else current.reason,
            adjusted_by=values.adjusted_by if values.adjusted_by is not None else current.adjusted_by,
        )
        self.adjustments[index] = record
        return record

    async def soft_delete_adjustment(self, key: AdjustmentKey, deleted_by=None) -> AdjustmentRecord | None:
        if self.fail_writes:
            raise SQLAlchemyError("simulated write failure")

        index = self._find_by_key(key)
        if index is None:
            return None
        record = replace(self.adjustments[index], deleted_at=datetime.now(timezone.utc))
        self.adjustments[index] = record
        return record


@pytest.fixture
def repository() -> InMemoryBillingRepository:
    """Empty in-memory repository."""
    return InMemoryBillingRepository()


@pytest.fixture
def service(repository: InMemoryBillingRepository) -> ProjectBillingService:
    """Billing service over the in-memory repository."""
    return ProjectBillingService(repository, concurrency=2)


@pytest.fixture
def project(repository: InMemoryBillingRepository) -> ProjectInfo:
    """A client project."""
    return repository.add_project("Website Redesign", client_name="Acme Corp")


@pytest.fixture
def alice(repository: InMemoryBillingRepository) -> UserProfile:
    """Employee billed at 100/h."""
    return repository.add_user("Alice Example", hourly_rate="100")


@pytest.fixture
def bob(repository: InMemoryBillingRepository) -> UserProfile:
    """Lead billed at 80/h."""
    return repository.add_user("Bob Example", hourly_rate="80", role="lead")

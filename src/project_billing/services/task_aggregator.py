"""Per-user task (and optionally weekly) breakdown of approved time."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from uuid import UUID

from project_billing.calculators.task_breakdown import (
    filter_entries,
    group_entries_by_task,
    group_entries_by_week,
)
from project_billing.calculators.types import TaskHours, TimeEntryRecord, WeeklyHours
from project_billing.repositories.base import BillingRepository

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 8


@dataclass
class TaskBreakdown:
    """Aggregator output keyed by (user_id, project_id)."""

    tasks: dict[tuple[UUID, UUID], list[TaskHours]] = field(default_factory=dict)
    weeks: dict[tuple[UUID, UUID], list[WeeklyHours]] | None = None


class TaskBreakdownAggregator:
    """Groups each user's approved time entries by task.

    Users are fetched concurrently, at most ``concurrency`` at a time. An
    entry counts only if its timesheet was approved for the entry's own
    project.
    """

    def __init__(self, repository: BillingRepository, concurrency: int = DEFAULT_CONCURRENCY):
        self.repository = repository
        self.concurrency = max(1, concurrency)

    async def aggregate(
        self,
        project_timesheets: Mapping[UUID, set[UUID]],
        user_ids: Iterable[UUID],
        include_weekly: bool = False,
    ) -> TaskBreakdown:
        user_ids = list(dict.fromkeys(user_ids))
        timesheet_ids = set().union(*project_timesheets.values()) if project_timesheets else set()
        project_ids = list(project_timesheets)

        breakdown = TaskBreakdown(weeks={} if include_weekly else None)
        if not user_ids or not timesheet_ids:
            return breakdown

        semaphore = asyncio.Semaphore(self.concurrency)

        async def fetch(user_id: UUID) -> list[TimeEntryRecord]:
            async with semaphore:
                return await self.repository.find_time_entries(timesheet_ids, user_id, project_ids)

        results = await asyncio.gather(*(fetch(user_id) for user_id in user_ids))

        for user_id, entries in zip(user_ids, results):
            kept = filter_entries(entries, project_timesheets)

            by_project: dict[UUID, list[TimeEntryRecord]] = defaultdict(list)
            for entry in kept:
                by_project[entry.project_id].append(entry)

            for project_id, project_entries in by_project.items():
                breakdown.tasks[(user_id, project_id)] = group_entries_by_task(project_entries)
                if breakdown.weeks is not None:
                    breakdown.weeks[(user_id, project_id)] = group_entries_by_week(project_entries)

        logger.debug(
            "Aggregated task breakdown for %d users across %d projects",
            len(user_ids),
            len(project_ids),
        )
        return breakdown

"""Grouping of time entries into task and weekly totals."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date, timedelta
from uuid import UUID

from project_billing.calculators.types import (
    BILLABLE_ENTRY_CATEGORIES,
    CUSTOM_TASK_ID,
    CUSTOM_TASK_NAME,
    CUSTOM_TASK_TYPE,
    ZERO,
    TaskHours,
    TimeEntryRecord,
    WeeklyHours,
)


def is_billable_category(entry_category: str | None) -> bool:
    """Project and training time count; legacy entries without a category do too."""
    return entry_category is None or entry_category in BILLABLE_ENTRY_CATEGORIES


def resolve_task_name(entry: TimeEntryRecord) -> str | None:
    """Custom tasks are labelled by their description, others by the task name."""
    if entry.task_type == CUSTOM_TASK_TYPE:
        return entry.custom_task_description
    return entry.task_name


def filter_entries(
    entries: Iterable[TimeEntryRecord],
    project_timesheets: Mapping[UUID, set[UUID]] | None = None,
) -> list[TimeEntryRecord]:
    """Keep billable-category entries whose timesheet is approved for the entry's project.

    With no project_timesheets mapping only the category filter applies.
    """
    kept: list[TimeEntryRecord] = []
    for entry in entries:
        if not is_billable_category(entry.entry_category):
            continue
        if project_timesheets is not None:
            approved = project_timesheets.get(entry.project_id)
            if not approved or entry.timesheet_id not in approved:
                continue
        kept.append(entry)
    return kept


def group_entries_by_task(entries: Iterable[TimeEntryRecord]) -> list[TaskHours]:
    """Sum hours per (project, task, task name), in first-seen order."""
    groups: dict[tuple[UUID, UUID | None, str | None], list] = {}

    for entry in entries:
        key = (entry.project_id, entry.task_id, resolve_task_name(entry))
        totals = groups.setdefault(key, [ZERO, ZERO, ZERO])
        totals[0] += entry.hours
        if entry.is_billable:
            totals[1] += entry.hours
        else:
            totals[2] += entry.hours

    return [
        TaskHours(
            project_id=project_id,
            task_id=str(task_id) if task_id is not None else CUSTOM_TASK_ID,
            task_name=task_name or CUSTOM_TASK_NAME,
            total_hours=total,
            billable_hours=billable,
            non_billable_hours=non_billable,
        )
        for (project_id, task_id, task_name), (total, billable, non_billable) in groups.items()
    ]


def week_start(day: date) -> date:
    """Sunday on or before the given day."""
    return day - timedelta(days=(day.weekday() + 1) % 7)


def group_entries_by_week(entries: Iterable[TimeEntryRecord]) -> list[WeeklyHours]:
    """Sum hours per Sunday-starting week, ordered by week."""
    weeks: dict[date, list] = {}

    for entry in entries:
        if entry.entry_date is None:
            continue
        totals = weeks.setdefault(week_start(entry.entry_date), [ZERO, ZERO])
        totals[0] += entry.hours
        if entry.is_billable:
            totals[1] += entry.hours

    return [
        WeeklyHours(week_start=start, total_hours=total, billable_hours=billable)
        for start, (total, billable) in sorted(weeks.items())
    ]

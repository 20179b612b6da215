"""Pivots of a project billing report into user and task views."""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from project_billing.calculators.types import (
    ProjectBillingData,
    TaskBillingSummary,
    TaskResourceData,
    UserBillingData,
    UserProjectBilling,
)


def build_user_billing_view(report: Iterable[ProjectBillingData]) -> list[UserBillingData]:
    """Per-user totals with one line per project, in first-seen order."""
    users: dict[UUID, UserBillingData] = {}

    for project in report:
        for resource in project.resources:
            user = users.get(resource.user_id)
            if user is None:
                user = UserBillingData(
                    user_id=resource.user_id,
                    user_name=resource.user_name,
                    role=resource.role,
                    hourly_rate=resource.hourly_rate,
                )
                users[resource.user_id] = user

            user.projects.append(
                UserProjectBilling(
                    project_id=project.project_id,
                    project_name=project.project_name,
                    client_name=project.client_name,
                    total_hours=resource.worked_hours,
                    billable_hours=resource.final_billable_hours,
                    non_billable_hours=resource.non_billable_hours,
                    amount=resource.total_amount,
                )
            )
            user.total_hours += resource.worked_hours
            user.billable_hours += resource.final_billable_hours
            user.non_billable_hours += resource.non_billable_hours
            user.total_amount += resource.total_amount

    return list(users.values())


def build_task_billing_view(report: Iterable[ProjectBillingData]) -> list[TaskBillingSummary]:
    """Per-task totals with one line per resource that logged time on it."""
    tasks: dict[tuple[UUID, str, str], TaskBillingSummary] = {}

    for project in report:
        for resource in project.resources:
            for task in resource.tasks:
                key = (task.project_id, task.task_id, task.task_name)
                summary = tasks.get(key)
                if summary is None:
                    summary = TaskBillingSummary(
                        task_id=task.task_id,
                        task_name=task.task_name,
                        project_id=task.project_id,
                        project_name=task.project_name,
                    )
                    tasks[key] = summary

                summary.resources.append(
                    TaskResourceData(
                        user_id=resource.user_id,
                        user_name=resource.user_name,
                        hours=task.total_hours,
                        billable_hours=task.billable_hours,
                        rate=resource.hourly_rate,
                        amount=task.amount,
                    )
                )
                summary.total_hours += task.total_hours
                summary.billable_hours += task.billable_hours
                summary.non_billable_hours += task.non_billable_hours
                summary.amount += task.amount

    return list(tasks.values())

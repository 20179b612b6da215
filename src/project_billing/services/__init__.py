"""Project billing services."""

from project_billing.services.adjustment_resolver import ManagementAdjustmentResolver
from project_billing.services.adjustment_service import AdjustmentService
from project_billing.services.billing_service import ProjectBillingService
from project_billing.services.collector import ApprovalDataCollector
from project_billing.services.task_aggregator import TaskBreakdownAggregator

__all__ = [
    "ManagementAdjustmentResolver",
    "AdjustmentService",
    "ProjectBillingService",
    "ApprovalDataCollector",
    "TaskBreakdownAggregator",
]

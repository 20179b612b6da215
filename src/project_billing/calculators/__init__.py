"""Pure billing calculations."""

from project_billing.calculators.assembler import BillingReportAssembler
from project_billing.calculators.distribution import calculate_project_billable_targets
from project_billing.calculators.integrity import validate_adjustment_integrity
from project_billing.calculators.views import build_task_billing_view, build_user_billing_view

__all__ = [
    "BillingReportAssembler",
    "calculate_project_billable_targets",
    "validate_adjustment_integrity",
    "build_task_billing_view",
    "build_user_billing_view",
]

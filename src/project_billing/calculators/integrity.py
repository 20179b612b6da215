"""Consistency checks between the billing tiers of one resource.

The derivation chain is:

    base  = worked + manager_adjustment
    final = base + management_adjustment

Upstream approval data can drift from that chain (manual edits, partial
re-approvals). A mismatch is a data-quality signal for operators; the
report is still produced.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from uuid import UUID

from project_billing.calculators.types import IntegrityResult

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = Decimal("0.01")


def validate_adjustment_integrity(
    worked_hours: Decimal,
    manager_adjustment: Decimal,
    base_billable_hours: Decimal,
    management_adjustment: Decimal,
    final_billable_hours: Decimal,
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> IntegrityResult:
    """Check base and final billable hours against their inputs.

    Returns an IntegrityResult; never raises for inconsistent data.
    """
    errors: list[str] = []

    expected_base = worked_hours + manager_adjustment
    if abs(base_billable_hours - expected_base) > tolerance:
        errors.append(
            f"Base billable hours ({base_billable_hours}) doesn't match "
            f"worked ({worked_hours}) + manager adjustment ({manager_adjustment}). "
            f"Expected: {expected_base}"
        )

    expected_final = base_billable_hours + management_adjustment
    if abs(final_billable_hours - expected_final) > tolerance:
        errors.append(
            f"Final billable hours ({final_billable_hours}) doesn't match "
            f"base ({base_billable_hours}) + management adjustment ({management_adjustment}). "
            f"Expected: {expected_final}"
        )

    return IntegrityResult(valid=not errors, errors=tuple(errors))


def report_integrity_violation(
    result: IntegrityResult,
    *,
    user_id: UUID,
    user_name: str,
    project_id: UUID,
    project_name: str,
) -> None:
    """Log a failed integrity check with the offending resource's identity."""
    if result.valid:
        return
    logger.error(
        "Billing data integrity error for user %s (%s) on project %s (%s): %s",
        user_name,
        user_id,
        project_name,
        project_id,
        "; ".join(result.errors),
    )

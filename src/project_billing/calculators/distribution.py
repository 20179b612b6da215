"""Proportional redistribution of a project's billable hours.

Used when management retargets a project total instead of editing each
resource. The functions here only compute a preview; turning a target
into a stored adjustment is AdjustmentService's job.

Rules:
- Increase: spread by current share of the total (evenly when the total
  is zero); each target is capped at the resource's worked hours.
- Decrease: shrink by current share; each target is floored at zero.
- Decrease with a zero total: nothing to reduce, targets unchanged.
- Increase shortfall: what the capped targets leave short of the new total is
  reported as unallocated and is not moved to uncapped resources. A
  resource already above its worked hours is pulled down to the cap.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from decimal import Decimal

from project_billing.calculators.types import (
    ZERO,
    AllocationTarget,
    DistributionResult,
    ResourceBillingData,
    round_hours,
    to_hours,
)


def initialize_allocations(resources: Iterable[ResourceBillingData]) -> list[AllocationTarget]:
    """Start every resource at its current final billable hours."""
    return [
        AllocationTarget(
            user_id=r.user_id,
            current_hours=r.final_billable_hours,
            worked_hours=r.worked_hours,
            target_hours=r.final_billable_hours,
        )
        for r in resources
    ]


def total_current_hours(allocations: Iterable[AllocationTarget]) -> Decimal:
    return sum((a.current_hours for a in allocations), ZERO)


def _shares(allocations: list[AllocationTarget], hours: Decimal) -> list[Decimal]:
    """Split hours by current share, or evenly when the total is zero."""
    total_current = total_current_hours(allocations)
    if total_current == 0:
        per_user = hours / len(allocations)
        return [per_user for _ in allocations]
    return [hours * (a.current_hours / total_current) for a in allocations]


def distribute_additional_hours(
    allocations: list[AllocationTarget],
    additional_hours: Decimal,
) -> list[AllocationTarget]:
    """Add hours proportionally to current share, capped at worked hours."""
    if not allocations:
        return []

    return [
        replace(a, target_hours=round_hours(min(a.current_hours + share, a.worked_hours)))
        for a, share in zip(allocations, _shares(allocations, additional_hours))
    ]


def reduce_excess_hours(
    allocations: list[AllocationTarget],
    excess_hours: Decimal,
) -> list[AllocationTarget]:
    """Remove hours proportionally to current share, floored at zero."""
    if total_current_hours(allocations) == 0:
        return list(allocations)

    return [
        replace(a, target_hours=round_hours(max(a.current_hours - share, ZERO)))
        for a, share in zip(allocations, _shares(allocations, excess_hours))
    ]


def unallocated_hours(allocations: Iterable[AllocationTarget], target_total: Decimal) -> Decimal:
    """Part of an increased total that the capped targets do not reach."""
    placed = sum((a.target_hours for a in allocations), ZERO)
    return round_hours(max(target_total - placed, ZERO))


def calculate_project_billable_targets(
    resources: Iterable[ResourceBillingData],
    target_total_billable: Decimal | int | float | str,
) -> DistributionResult:
    """Compute per-resource targets that move the project to a new total."""
    target_total = to_hours(target_total_billable)
    allocations = initialize_allocations(resources)
    current_total = total_current_hours(allocations)
    difference = target_total - current_total
    unallocated = ZERO

    if difference > 0:
        allocations = distribute_additional_hours(allocations, difference)
        unallocated = unallocated_hours(allocations, target_total)
    elif difference < 0:
        allocations = reduce_excess_hours(allocations, abs(difference))

    return DistributionResult(
        current_total=current_total,
        target_total=target_total,
        difference=difference,
        allocations=tuple(allocations),
        unallocated_hours=unallocated,
    )

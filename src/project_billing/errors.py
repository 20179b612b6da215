"""Error taxonomy for billing operations.

Report building never raises for data problems; adjustment operations
return an ``AdjustmentResult`` carrying one of these kinds instead.
Exceptions are reserved for caller contract violations detected before
any I/O.
"""

from __future__ import annotations

from datetime import date
from enum import Enum


class BillingErrorKind(str, Enum):
    """Failure categories surfaced in adjustment results."""

    NO_DATA = "no_data"
    INVALID_INPUT = "invalid_input"
    PERSISTENCE_FAILURE = "persistence_failure"


class BillingError(Exception):
    """Base class for billing engine exceptions."""


class InvalidBillingPeriodError(BillingError):
    """Raised when a billing period ends before it starts."""

    def __init__(self, start: date, end: date):
        self.start = start
        self.end = end
        super().__init__(f"Billing period end {end} is before start {start}")


def validate_period(start: date, end: date) -> None:
    """Raise InvalidBillingPeriodError unless start <= end."""
    if end < start:
        raise InvalidBillingPeriodError(start, end)


class InvalidReportViewError(BillingError):
    """Raised for an unknown report view."""

    def __init__(self, view: str):
        self.view = view
        super().__init__(f"Unknown billing view {view!r}")


class InvalidBillingTargetError(BillingError):
    """Raised when a project billable target is not a non-negative number."""

    def __init__(self, target: object):
        self.target = target
        super().__init__(f"Target billable hours must be a non-negative number, got {target!r}")

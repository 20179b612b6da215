"""Billing data access."""

from project_billing.repositories.base import AdjustmentValues, BillingRepository
from project_billing.repositories.sql import SqlBillingRepository

__all__ = [
    "AdjustmentValues",
    "BillingRepository",
    "SqlBillingRepository",
]

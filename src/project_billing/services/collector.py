"""Collection of management-verified approval totals."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date
from uuid import UUID

from project_billing.calculators.types import ApprovalRecord
from project_billing.errors import validate_period
from project_billing.repositories.base import BillingRepository

logger = logging.getLogger(__name__)


class ApprovalDataCollector:
    """Fetches the verified approval base for a set of projects."""

    def __init__(self, repository: BillingRepository):
        self.repository = repository

    async def collect(
        self,
        project_ids: Iterable[UUID],
        start: date,
        end: date,
    ) -> list[ApprovalRecord]:
        """Return one ApprovalRecord per (project, user) with eligible approvals.

        Projects with nothing eligible are simply absent from the result.
        """
        validate_period(start, end)
        project_ids = list(project_ids)
        if not project_ids:
            return []

        approvals = await self.repository.find_approved_approvals(project_ids, start, end)
        logger.debug(
            "Collected %d approval groups for %d projects (%s..%s)",
            len(approvals),
            len(project_ids),
            start,
            end,
        )
        return approvals

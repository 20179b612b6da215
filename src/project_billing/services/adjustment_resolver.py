"""Lookup of the active management adjustment for a resource."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from uuid import UUID

from project_billing.calculators.types import AdjustmentRecord, ResolvedAdjustment
from project_billing.repositories.base import BillingRepository


def pick_latest(
    adjustments: Iterable[AdjustmentRecord],
) -> dict[tuple[UUID, UUID], ResolvedAdjustment]:
    """Keep the most recently adjusted record per (project, user)."""
    latest: dict[tuple[UUID, UUID], AdjustmentRecord] = {}
    for adjustment in adjustments:
        if not adjustment.is_active:
            continue
        pair = (adjustment.project_id, adjustment.user_id)
        current = latest.get(pair)
        if current is None or adjustment.adjusted_at > current.adjusted_at:
            latest[pair] = adjustment

    return {
        pair: ResolvedAdjustment(
            management_adjustment=record.adjustment_hours,
            adjusted_at=record.adjusted_at,
        )
        for pair, record in latest.items()
    }


class ManagementAdjustmentResolver:
    """Resolves management deltas; never creates adjustment records.

    An adjustment applies to a report period when the two periods overlap.
    Missing adjustments resolve to a zero delta.
    """

    def __init__(self, repository: BillingRepository):
        self.repository = repository

    async def resolve(
        self,
        project_id: UUID,
        user_id: UUID,
        start: date,
        end: date,
    ) -> ResolvedAdjustment:
        record = await self.repository.find_active_adjustment(project_id, user_id, start, end)
        if record is None:
            return ResolvedAdjustment()
        return ResolvedAdjustment(
            management_adjustment=record.adjustment_hours,
            adjusted_at=record.adjusted_at,
        )

    async def resolve_many(
        self,
        project_ids: Iterable[UUID],
        user_ids: Iterable[UUID],
        start: date,
        end: date,
    ) -> dict[tuple[UUID, UUID], ResolvedAdjustment]:
        """Resolve every (project, user) pair of a report with one query.

        Pairs without an adjustment are left out; callers default them to zero.
        """
        project_ids = list(project_ids)
        user_ids = list(user_ids)
        if not project_ids or not user_ids:
            return {}

        records = await self.repository.find_active_adjustments(project_ids, user_ids, start, end)
        return pick_latest(records)

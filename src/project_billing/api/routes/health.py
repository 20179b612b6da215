"""Service status endpoints for the billing API.

/health reports whether the billing tables can be read and which
timesheet statuses the engine treats as billable. /ready fails with 503
until the adjustment table is reachable.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from project_billing.api.dependencies import DbSession
from project_billing.config import get_settings
from project_billing.models import BillingAdjustment

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class BillingHealthResponse(BaseModel):
    """Billing engine status."""

    status: str
    timestamp: datetime
    database: str
    billing_schema: str
    eligible_statuses: list[str]
    version: str


async def _check(db: AsyncSession, statement, label: str) -> str:
    try:
        await db.execute(statement)
    except SQLAlchemyError:
        logger.warning("Billing health check failed: %s", label, exc_info=True)
        await db.rollback()
        return "unhealthy"
    return "healthy"


def _adjustment_table_check():
    return select(BillingAdjustment.adjustment_id).limit(1)


@router.get(
    "/health",
    response_model=BillingHealthResponse,
    status_code=status.HTTP_200_OK,
)
async def health_check(db: DbSession) -> BillingHealthResponse:
    """Report database reachability and billing schema status."""
    settings = get_settings()
    database = await _check(db, text("SELECT 1"), "database")
    schema = (
        await _check(db, _adjustment_table_check(), "billing_adjustment table")
        if database == "healthy"
        else "unknown"
    )

    return BillingHealthResponse(
        status="healthy" if schema == "healthy" else "degraded",
        timestamp=datetime.now(timezone.utc),
        database=database,
        billing_schema=schema,
        eligible_statuses=sorted(settings.billing_eligible_statuses),
        version=settings.engine_version,
    )


@router.get(
    "/ready",
    status_code=status.HTTP_200_OK,
    responses={503: {"description": "Billing tables are not reachable"}},
)
async def readiness_check(db: DbSession) -> dict[str, str]:
    """Ready once adjustments can be read."""
    if await _check(db, _adjustment_table_check(), "readiness") != "healthy":
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Billing tables are not reachable",
        )
    return {"status": "ready"}


@router.get("/live", status_code=status.HTTP_200_OK)
async def liveness_check() -> dict[str, str]:
    """Process is up; does not touch the database."""
    return {"status": "alive"}

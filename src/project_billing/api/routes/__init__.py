"""API routes."""

from project_billing.api.routes.billing import router as billing_router
from project_billing.api.routes.health import router as health_router

__all__ = ["billing_router", "health_router"]

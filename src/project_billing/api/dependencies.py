"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from project_billing.config import get_settings
from project_billing.database import init_db
from project_billing.repositories.sql import SqlBillingRepository
from project_billing.services.billing_service import ProjectBillingService


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the application session factory."""
    _, factory = init_db()
    return factory


SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]


async def get_db_session(factory: SessionFactory) -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with factory() as session:
        try:
            yield session
        finally:
            await session.close()


def get_billing_service(factory: SessionFactory) -> ProjectBillingService:
    """Build a request-scoped billing service over the SQL repository."""
    settings = get_settings()
    repository = SqlBillingRepository(factory, settings.billing_eligible_statuses)
    return ProjectBillingService.from_settings(repository, settings)


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
BillingService = Annotated[ProjectBillingService, Depends(get_billing_service)]

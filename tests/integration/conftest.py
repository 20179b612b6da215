"""Integration test fixtures with a real (SQLite) database."""

from collections.abc import AsyncGenerator
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from project_billing.api.app import create_app
from project_billing.api.dependencies import get_session_factory
from project_billing.database import create_session_factory
from project_billing.models import (
    AppUser,
    Base,
    Client,
    Project,
    Task,
    TimeEntry,
    Timesheet,
    TimesheetProjectApproval,
)
from project_billing.repositories.sql import SqlBillingRepository
from project_billing.services.billing_service import ProjectBillingService

PERIOD_START = date(2026, 3, 1)
PERIOD_END = date(2026, 3, 31)
WEEK_1 = date(2026, 3, 1)
WEEK_2 = date(2026, 3, 8)
VERIFIED_AT = datetime(2026, 4, 2, 9, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Create a file-backed SQLite engine with the full schema."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'billing.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(test_engine)


@pytest.fixture
def sql_repository(session_factory) -> SqlBillingRepository:
    return SqlBillingRepository(session_factory)


@pytest.fixture
def sql_service(sql_repository) -> ProjectBillingService:
    return ProjectBillingService(sql_repository, concurrency=2)


class Seeder:
    """Inserts the rows the CRUD services would normally own."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def _add(self, *rows):
        async with self.session_factory() as session:
            session.add_all(rows)
            await session.commit()
        return rows[0] if len(rows) == 1 else rows

    async def client(self, name: str = "Acme Corp") -> Client:
        return await self._add(Client(name=name))

    async def project(self, name: str, client: Client | None = None) -> Project:
        return await self._add(
            Project(name=name, client_id=client.client_id if client else None)
        )

    async def task(self, project: Project, name: str) -> Task:
        return await self._add(Task(project_id=project.project_id, name=name))

    async def user(self, full_name: str, hourly_rate: str | None = "100", role: str = "employee") -> AppUser:
        return await self._add(
            AppUser(
                full_name=full_name,
                role=role,
                hourly_rate=Decimal(hourly_rate) if hourly_rate is not None else None,
            )
        )

    async def timesheet(
        self,
        user: AppUser,
        week_start: date = WEEK_1,
        status: str = "frozen",
        deleted: bool = False,
    ) -> Timesheet:
        return await self._add(
            Timesheet(
                user_id=user.user_id,
                week_start_date=week_start,
                week_end_date=week_start + timedelta(days=6),
                status=status,
                deleted_at=VERIFIED_AT if deleted else None,
            )
        )

    async def approval(
        self,
        timesheet: Timesheet,
        project: Project,
        worked: str,
        billable: str,
        manager_adjustment: str = "0",
        management_status: str = "approved",
    ) -> TimesheetProjectApproval:
        return await self._add(
            TimesheetProjectApproval(
                timesheet_id=timesheet.timesheet_id,
                project_id=project.project_id,
                worked_hours=Decimal(worked),
                billable_hours=Decimal(billable),
                billable_adjustment=Decimal(manager_adjustment),
                entries_count=1,
                manager_status="approved",
                management_status=management_status,
                management_approved_at=VERIFIED_AT,
            )
        )

    async def entry(
        self,
        timesheet: Timesheet,
        project: Project,
        hours: str,
        task: Task | None = None,
        entry_date: date | None = None,
        is_billable: bool = True,
        **kwargs,
    ) -> TimeEntry:
        kwargs.setdefault("entry_category", "project")
        kwargs.setdefault("task_type", "project_task")
        return await self._add(
            TimeEntry(
                timesheet_id=timesheet.timesheet_id,
                project_id=project.project_id,
                task_id=task.task_id if task else None,
                entry_date=entry_date or timesheet.week_start_date,
                hours=Decimal(hours),
                is_billable=is_billable,
                **kwargs,
            )
        )


@pytest.fixture
def seed(session_factory) -> Seeder:
    return Seeder(session_factory)


@pytest.fixture
def app(session_factory) -> FastAPI:
    """Application wired to the test database."""
    app = create_app()
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    return app


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for API testing."""
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

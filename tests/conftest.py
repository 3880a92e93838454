"""Pytest configuration and fixtures for dashboard tests."""

import asyncio
from collections.abc import AsyncGenerator, Sequence
from datetime import datetime, timezone
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from lead_dashboard.datasource import LeadDataSource, RowFilter, to_storage_time
from lead_dashboard.models import Base
from lead_dashboard.models.lead import Lead
from lead_dashboard.notifications import ChangeNotifier

# Test database URL - use SQLite for fast, isolated tests
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def data_source(session_factory: async_sessionmaker[AsyncSession]) -> LeadDataSource:
    """Data source reading from the test database."""
    return LeadDataSource(session_factory)


@pytest.fixture
def change_notifier() -> ChangeNotifier:
    """A notifier isolated from the process-wide one."""
    return ChangeNotifier()


@pytest.fixture
async def client(
    db_session: AsyncSession,
    data_source: LeadDataSource,
    change_notifier: ChangeNotifier,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client with dependency overrides."""
    from lead_dashboard.core.database import get_db
    from lead_dashboard.core.deps import get_data_source, get_notifier
    from lead_dashboard.main import app

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_data_source] = lambda: data_source
    app.dependency_overrides[get_notifier] = lambda: change_notifier

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


# ============================================================================
# Factory Functions
# ============================================================================


class LeadFactory:
    """Factory for creating test leads."""

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session
        self._counter = 0

    async def create(
        self,
        created_at: datetime | None = None,
        *,
        broker: str | None = None,
        development: str | None = None,
        schedule_count: int | None = None,
        client_name: str | None = None,
    ) -> Lead:
        """Create a lead; aware timestamps are stored as naive UTC."""
        self._counter += 1
        lead = Lead(
            client_name=client_name or f"Client {self._counter}",
            client_phone=f"+55 11 9000-{self._counter:04d}",
            development=development,
            broker=broker,
            schedule_count=schedule_count,
            created_at=to_storage_time(created_at or datetime.now(timezone.utc)),
        )
        self.db_session.add(lead)
        await self.db_session.commit()
        await self.db_session.refresh(lead)
        return lead


@pytest.fixture
def lead_factory(db_session: AsyncSession) -> LeadFactory:
    """Factory fixture for creating test leads."""
    return LeadFactory(db_session)


class FakeSource:
    """In-memory stand-in for the data source.

    ``responses`` are returned call by call (falling back to ``rows``), a call
    with a matching entry in ``gates`` waits for that event first, and
    ``error`` is raised instead of answering when set.
    """

    def __init__(self, rows: Sequence[dict[str, Any]] = ()) -> None:
        self.rows = list(rows)
        self.responses: list[list[dict[str, Any]]] = []
        self.gates: list[asyncio.Event] = []
        self.error: Exception | None = None
        self.filters: list[RowFilter | None] = []

    async def query(
        self,
        table: str,
        select_fields: Sequence[str] = (),
        row_filter: RowFilter | None = None,
        order_by: str | None = None,
        ascending: bool = True,
    ) -> list[dict[str, Any]]:
        index = len(self.filters)
        self.filters.append(row_filter)
        rows = self.responses[index] if index < len(self.responses) else self.rows
        if index < len(self.gates):
            await self.gates[index].wait()
        if self.error is not None:
            raise self.error
        return list(rows)

    @property
    def calls(self) -> int:
        return len(self.filters)

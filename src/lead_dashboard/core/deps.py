"""FastAPI dependencies for database access, the data source and notifications."""

from typing import Annotated

from fastapi import Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from lead_dashboard.core.database import async_session_factory, get_db
from lead_dashboard.datasource import LeadDataSource
from lead_dashboard.notifications import ChangeNotifier, notifier
from lead_dashboard.periods import PeriodSelection, PeriodType


def get_data_source() -> LeadDataSource:
    """Dependency that provides the row query interface."""
    return LeadDataSource(async_session_factory)


def get_notifier() -> ChangeNotifier:
    """Dependency that provides the process-wide change notifier."""
    return notifier


def get_period_selection(
    period: PeriodType = Query(PeriodType.ALL_TIME, description="Period to aggregate over"),
    start: str = Query("", description="Custom range start (YYYY-MM-DD)"),
    end: str = Query("", description="Custom range end (YYYY-MM-DD)"),
) -> PeriodSelection:
    """Dependency that reads the period selector from query parameters.

    Custom dates stay raw strings so malformed input resolves softly instead of
    failing validation.
    """
    return PeriodSelection(period, start, end)


# Type aliases for dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db)]
DataSource = Annotated[LeadDataSource, Depends(get_data_source)]
Notifier = Annotated[ChangeNotifier, Depends(get_notifier)]
Period = Annotated[PeriodSelection, Depends(get_period_selection)]

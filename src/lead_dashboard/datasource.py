"""Row queries against the relational lead store.

This is the only place the dashboard reads rows from. Callers name a table,
the fields they need and an inclusive creation-time window; aggregation of
the returned rows happens in :mod:`lead_dashboard.aggregation`.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Column, Table, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lead_dashboard.aggregation import TIMESTAMP_FIELD
from lead_dashboard.models import Base
from lead_dashboard.periods import DateRange

logger = logging.getLogger(__name__)


class QueryError(Exception):
    """The data source could not answer a query.

    ``message`` is suitable for showing next to the affected chart.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


@dataclass(frozen=True)
class RowFilter:
    """Inclusive bounds on a timestamp field plus null exclusions."""

    field: str = TIMESTAMP_FIELD
    gte: datetime | None = None
    lte: datetime | None = None
    not_null: tuple[str, ...] = ()
    matches_nothing: bool = False

    @classmethod
    def for_range(
        cls,
        date_range: DateRange,
        *,
        field: str = TIMESTAMP_FIELD,
        not_null: Sequence[str] = (),
    ) -> "RowFilter":
        """Build a filter from a resolved period.

        A range carrying an unparseable custom bound yields a filter that
        matches no rows instead of an error.
        """
        if not date_range.is_valid:
            return cls(field=field, not_null=tuple(not_null), matches_nothing=True)
        return cls(
            field=field,
            gte=date_range.start,  # type: ignore[arg-type]
            lte=date_range.end,  # type: ignore[arg-type]
            not_null=tuple(not_null),
        )


def to_storage_time(value: datetime) -> datetime:
    """Timestamps are stored as naive UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class LeadDataSource:
    """Query interface over the dashboard tables.

    Every query runs in its own short-lived session so long-lived views can
    share one data source without sharing a session.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @staticmethod
    def _table(name: str) -> Table:
        table = Base.metadata.tables.get(name)
        if table is None:
            raise QueryError(f"Unknown table: {name}")
        return table

    @staticmethod
    def _column(table: Table, name: str) -> Column[Any]:
        try:
            return table.c[name]
        except KeyError:
            raise QueryError(f"Unknown field {name!r} on table {table.name}") from None

    async def query(
        self,
        table: str,
        select_fields: Sequence[str] = (),
        row_filter: RowFilter | None = None,
        order_by: str | None = None,
        ascending: bool = True,
    ) -> list[dict[str, Any]]:
        """Fetch rows as plain dicts; an empty ``select_fields`` selects all columns."""
        source = self._table(table)
        columns = [self._column(source, name) for name in select_fields] or list(source.c)
        statement = select(*columns)

        if row_filter is not None:
            if row_filter.matches_nothing:
                logger.warning("Date range on %s has an invalid bound, returning no rows", table)
                return []
            bounded = self._column(source, row_filter.field)
            if row_filter.gte is not None:
                statement = statement.where(bounded >= to_storage_time(row_filter.gte))
            if row_filter.lte is not None:
                statement = statement.where(bounded <= to_storage_time(row_filter.lte))
            for name in row_filter.not_null:
                statement = statement.where(self._column(source, name).is_not(None))

        if order_by is not None:
            ordered = self._column(source, order_by)
            statement = statement.order_by(ordered.asc() if ascending else ordered.desc())

        try:
            async with self._session_factory() as session:
                result = await session.execute(statement)
                rows = result.mappings().all()
        except SQLAlchemyError as e:
            error_str = str(e.orig) if getattr(e, "orig", None) is not None else str(e)
            logger.error(f"Query on {table} failed: {error_str}")
            raise QueryError(error_str) from e

        return [dict(row) for row in rows]

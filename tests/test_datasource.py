"""Tests for the row query interface."""

import logging
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest
from conftest import LeadFactory
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from lead_dashboard.datasource import LeadDataSource, QueryError, RowFilter, to_storage_time
from lead_dashboard.models import LEADS_TABLE
from lead_dashboard.periods import INVALID_DATE, DateRange, PeriodSelection, resolve_period

UTC = timezone.utc
SAO_PAULO = ZoneInfo("America/Sao_Paulo")


class TestRowFilter:
    """Tests for building filters from date ranges."""

    def test_for_range_copies_bounds(self):
        start = datetime(2025, 3, 1, tzinfo=UTC)
        end = datetime(2025, 3, 31, tzinfo=UTC)

        row_filter = RowFilter.for_range(DateRange(start, end), not_null=["broker"])

        assert row_filter.field == "created_at"
        assert row_filter.gte == start
        assert row_filter.lte == end
        assert row_filter.not_null == ("broker",)
        assert row_filter.matches_nothing is False

    def test_for_invalid_range_matches_nothing(self):
        row_filter = RowFilter.for_range(DateRange(INVALID_DATE, None))

        assert row_filter.matches_nothing is True
        assert row_filter.gte is None

    def test_to_storage_time(self):
        local = datetime(2025, 3, 10, 23, 0, tzinfo=SAO_PAULO)

        assert to_storage_time(local) == datetime(2025, 3, 11, 2, 0)
        assert to_storage_time(datetime(2025, 3, 10, 12, 0)) == datetime(2025, 3, 10, 12, 0)


class TestLeadDataSource:
    """Tests for LeadDataSource.query against SQLite."""

    async def test_query_selected_fields(
        self, data_source: LeadDataSource, lead_factory: LeadFactory
    ):
        """Rows should come back as dicts holding only the selected fields."""
        await lead_factory.create(datetime(2025, 3, 10, 12, tzinfo=UTC), broker="Ana")

        rows = await data_source.query(LEADS_TABLE, ["broker", "created_at"])

        assert rows == [{"broker": "Ana", "created_at": datetime(2025, 3, 10, 12, 0)}]

    async def test_query_all_fields(self, data_source: LeadDataSource, lead_factory: LeadFactory):
        await lead_factory.create(datetime(2025, 3, 10, 12, tzinfo=UTC), schedule_count=2)

        rows = await data_source.query(LEADS_TABLE)

        assert set(rows[0]) == {
            "id",
            "client_name",
            "client_phone",
            "development",
            "broker",
            "schedule_count",
            "created_at",
        }

    async def test_bounds_are_inclusive(
        self, data_source: LeadDataSource, lead_factory: LeadFactory
    ):
        start = datetime(2025, 3, 10, 0, 0, tzinfo=UTC)
        end = datetime(2025, 3, 12, 0, 0, tzinfo=UTC)
        for stamp in (
            datetime(2025, 3, 9, 23, 59, tzinfo=UTC),
            start,
            datetime(2025, 3, 11, tzinfo=UTC),
            end,
            datetime(2025, 3, 12, 0, 1, tzinfo=UTC),
        ):
            await lead_factory.create(stamp)

        rows = await data_source.query(
            LEADS_TABLE,
            ["created_at"],
            RowFilter(gte=start, lte=end),
            order_by="created_at",
        )

        assert [row["created_at"] for row in rows] == [
            datetime(2025, 3, 10, 0, 0),
            datetime(2025, 3, 11, 0, 0),
            datetime(2025, 3, 12, 0, 0),
        ]

    async def test_custom_single_day_in_display_timezone(
        self, data_source: LeadDataSource, lead_factory: LeadFactory
    ):
        """A late-evening local record should be inside its own single-day range."""
        included = await lead_factory.create(datetime(2025, 3, 10, 23, 0, tzinfo=SAO_PAULO))
        await lead_factory.create(datetime(2025, 3, 9, 23, 59, tzinfo=SAO_PAULO))
        await lead_factory.create(datetime(2025, 3, 11, 0, 30, tzinfo=SAO_PAULO))

        date_range = resolve_period(PeriodSelection.custom("2025-03-10", "2025-03-10"), tz=SAO_PAULO)
        rows = await data_source.query(LEADS_TABLE, ["id"], RowFilter.for_range(date_range))

        assert rows == [{"id": included.id}]

    async def test_open_bounds(self, data_source: LeadDataSource, lead_factory: LeadFactory):
        await lead_factory.create(datetime(2025, 3, 1, tzinfo=UTC))
        await lead_factory.create(datetime(2025, 3, 20, tzinfo=UTC))

        after = await data_source.query(
            LEADS_TABLE, ["id"], RowFilter(gte=datetime(2025, 3, 10, tzinfo=UTC))
        )
        before = await data_source.query(
            LEADS_TABLE, ["id"], RowFilter(lte=datetime(2025, 3, 10, tzinfo=UTC))
        )

        assert len(after) == 1
        assert len(before) == 1

    async def test_not_null_filter(self, data_source: LeadDataSource, lead_factory: LeadFactory):
        await lead_factory.create(broker="Ana")
        await lead_factory.create(broker=None)

        rows = await data_source.query(LEADS_TABLE, ["broker"], RowFilter(not_null=("broker",)))

        assert rows == [{"broker": "Ana"}]

    async def test_inverted_range_returns_nothing(
        self, data_source: LeadDataSource, lead_factory: LeadFactory
    ):
        await lead_factory.create(datetime(2025, 3, 11, 12, tzinfo=SAO_PAULO))

        date_range = resolve_period(PeriodSelection.custom("2025-03-12", "2025-03-10"), tz=SAO_PAULO)
        rows = await data_source.query(LEADS_TABLE, ["id"], RowFilter.for_range(date_range))

        assert rows == []

    async def test_invalid_range_returns_nothing(
        self, data_source: LeadDataSource, lead_factory: LeadFactory, caplog
    ):
        """An unparseable custom bound should give no rows and a warning."""
        await lead_factory.create(datetime(2025, 3, 11, 12, tzinfo=SAO_PAULO))

        date_range = resolve_period(PeriodSelection.custom("garbage", ""), tz=SAO_PAULO)
        with caplog.at_level(logging.WARNING, logger="lead_dashboard.datasource"):
            rows = await data_source.query(LEADS_TABLE, ["id"], RowFilter.for_range(date_range))

        assert rows == []
        assert any("invalid bound" in r.getMessage() for r in caplog.records)

    async def test_order_descending(self, data_source: LeadDataSource, lead_factory: LeadFactory):
        first = await lead_factory.create(datetime(2025, 3, 1, tzinfo=UTC))
        second = await lead_factory.create(datetime(2025, 3, 2, tzinfo=UTC))

        rows = await data_source.query(
            LEADS_TABLE, ["id"], order_by="created_at", ascending=False
        )

        assert [row["id"] for row in rows] == [second.id, first.id]

    async def test_unknown_table(self, data_source: LeadDataSource):
        with pytest.raises(QueryError, match="Unknown table"):
            await data_source.query("brokers", ["name"])

    async def test_unknown_field(self, data_source: LeadDataSource):
        with pytest.raises(QueryError, match="Unknown field"):
            await data_source.query(LEADS_TABLE, ["corretor"])

    async def test_database_failure_raises_query_error(self):
        """Errors from the database should surface as QueryError."""
        # Schema never created, so the table is missing
        engine = create_async_engine("sqlite+aiosqlite:///:memory:")
        source = LeadDataSource(async_sessionmaker(engine, class_=AsyncSession))
        try:
            with pytest.raises(QueryError) as exc_info:
                await source.query(LEADS_TABLE, ["id"])
        finally:
            await engine.dispose()

        assert "no such table" in exc_info.value.message

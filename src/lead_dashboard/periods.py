"""Period selection and date range resolution shared by every dashboard view.

A view never derives its own bounds: it holds a :class:`PeriodSelection` and
asks :func:`resolve_period` for the concrete :class:`DateRange` whenever the
selection changes or a fetch is triggered.
"""

import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from enum import Enum
from typing import Final

from lead_dashboard.core.config import settings


class PeriodType(str, Enum):
    """Period tokens offered by the period selector."""

    LAST_7_DAYS = "last-7-days"
    LAST_30_DAYS = "last-30-days"
    LAST_90_DAYS = "last-90-days"
    ALL_TIME = "all-time"
    CUSTOM = "custom"


ROLLING_PERIOD_DAYS: Final[dict[PeriodType, int]] = {
    PeriodType.LAST_7_DAYS: 7,
    PeriodType.LAST_30_DAYS: 30,
    PeriodType.LAST_90_DAYS: 90,
}

END_OF_DAY: Final = time(23, 59, 59, 999000)


class InvalidDate:
    """Bound produced by a custom date string that does not parse.

    Resolution never fails on bad input; the marker travels with the range and
    a range holding it matches no records.
    """

    _instance: "InvalidDate | None" = None

    def __new__(cls) -> "InvalidDate":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "INVALID_DATE"


INVALID_DATE: Final = InvalidDate()

Bound = datetime | InvalidDate | None


@dataclass(frozen=True)
class PeriodSelection:
    """The user's current period choice.

    ``custom_start`` and ``custom_end`` hold the raw ``YYYY-MM-DD`` strings of
    the date inputs and only matter when ``period`` is ``custom``.
    """

    period: PeriodType = PeriodType.ALL_TIME
    custom_start: str = ""
    custom_end: str = ""

    @classmethod
    def custom(cls, start: str = "", end: str = "") -> "PeriodSelection":
        return cls(PeriodType.CUSTOM, start, end)

    @property
    def days_in_range(self) -> int | None:
        if self.period != PeriodType.CUSTOM:
            return None
        return days_in_range(self.custom_start, self.custom_end)


@dataclass(frozen=True)
class DateRange:
    """Inclusive creation-time window; a missing bound is unbounded.

    ``start <= end`` is not checked, an inverted range simply matches nothing.
    """

    start: Bound = None
    end: Bound = None

    @property
    def is_valid(self) -> bool:
        return self.start is not INVALID_DATE and self.end is not INVALID_DATE

    @property
    def is_bounded(self) -> bool:
        return self.start is not None or self.end is not None

    def contains(self, timestamp: datetime) -> bool:
        """Whether ``timestamp`` falls inside the range (bounds inclusive)."""
        if not self.is_valid:
            return False
        if isinstance(self.start, datetime) and timestamp < self.start:
            return False
        if isinstance(self.end, datetime) and timestamp > self.end:
            return False
        return True


def parse_calendar_date(value: str | None) -> date | InvalidDate | None:
    """Parse a ``YYYY-MM-DD`` input; empty means absent, garbage means invalid."""
    value = (value or "").strip()
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return INVALID_DATE


def _day_bound(day: date | InvalidDate | None, at: time, tz: tzinfo) -> Bound:
    if isinstance(day, date):
        return datetime.combine(day, at, tzinfo=tz)
    return day


def resolve_period(
    selection: PeriodSelection,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> DateRange:
    """Turn a period selection into a concrete date range.

    Rolling periods subtract calendar days from ``now`` with wall-clock
    arithmetic and leave the upper bound open. A custom range starts at local
    midnight of its first day and ends at 23:59:59.999 of its last day, so a
    single-day range covers the whole day.
    """
    tz = tz or settings.display_tzinfo

    days = ROLLING_PERIOD_DAYS.get(selection.period)
    if days is not None:
        now = now or datetime.now(tz)
        return DateRange(start=now - timedelta(days=days))

    if selection.period == PeriodType.CUSTOM:
        return DateRange(
            start=_day_bound(parse_calendar_date(selection.custom_start), time.min, tz),
            end=_day_bound(parse_calendar_date(selection.custom_end), END_OF_DAY, tz),
        )

    return DateRange()


def days_in_range(custom_start: str, custom_end: str) -> int | None:
    """Inclusive day count of a custom range, for display next to the inputs."""
    start = parse_calendar_date(custom_start)
    end = parse_calendar_date(custom_end)
    if not isinstance(start, date) or not isinstance(end, date):
        return None
    return math.ceil((end - start) / timedelta(days=1)) + 1

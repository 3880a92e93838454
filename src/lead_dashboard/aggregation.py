"""Client-side aggregation helpers feeding the dashboard charts.

Records are whatever the data source hands back: plain row mappings or
objects exposing the same names as attributes. Every time series is bucketed
by calendar day in the display timezone and turned into running totals; the
category charts count records per field value.
"""

import logging
from collections import Counter
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timezone, tzinfo
from itertools import accumulate as running_totals
from typing import Any, NamedTuple

from lead_dashboard.core.config import settings

logger = logging.getLogger(__name__)

# pt-BR short date, day first
DATE_KEY_FORMAT = "%d/%m/%Y"
TIMESTAMP_FIELD = "created_at"

ValueOf = Callable[[Any], float]


class CumulativeSeries(NamedTuple):
    """Chronological day labels and the running total at each of them."""

    labels: list[str]
    values: list[float]


@dataclass(frozen=True)
class DateBucket:
    date_key: str
    raw_value: float
    cumulative_value: float


@dataclass
class RecordGroup:
    """Records sharing one category value, e.g. all leads of a broker."""

    label: str
    records: list[Any] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.records)


def record_field(record: Any, name: str, default: Any = None) -> Any:
    """Read ``name`` from a row mapping or an attribute-style record."""
    if isinstance(record, Mapping):
        return record.get(name, default)
    return getattr(record, name, default)


def parse_timestamp(value: Any) -> datetime | None:
    """Coerce a stored or serialized timestamp, None when it cannot be read."""
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def to_display_time(timestamp: datetime, tz: tzinfo | None = None) -> datetime:
    """Convert to the display timezone; naive timestamps are UTC."""
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(tz or settings.display_tzinfo)


def format_date_key(timestamp: datetime, tz: tzinfo | None = None) -> str:
    """Day-granularity bucket key, e.g. ``09/01/2025`` for 9 January."""
    return to_display_time(timestamp, tz).strftime(DATE_KEY_FORMAT)


def parse_date_key(key: str) -> date:
    """Rebuild the calendar date behind a bucket key."""
    day, month, year = (int(part) for part in key.split("/"))
    return date(year, month, day)


def sort_date_keys(keys: Iterable[str]) -> list[str]:
    """Order bucket keys chronologically.

    Keys are day first, so plain string order would put 10/01 after 09/02.
    """
    return sorted(keys, key=parse_date_key)


def group_by_date(
    records: Iterable[Any],
    value_of: ValueOf | None = None,
    tz: tzinfo | None = None,
) -> dict[str, float]:
    """Sum ``value_of(record)`` (1 per record by default) per calendar day.

    Records without a readable ``created_at`` are left out and reported once.
    """
    date_map: dict[str, float] = {}
    skipped = 0

    for record in records:
        timestamp = parse_timestamp(record_field(record, TIMESTAMP_FIELD))
        if timestamp is None:
            skipped += 1
            continue
        key = format_date_key(timestamp, tz)
        value = value_of(record) if value_of is not None else 1
        date_map[key] = date_map.get(key, 0) + value

    if skipped:
        logger.warning(
            "Skipped %d record(s) with a missing or unparseable %s",
            skipped,
            TIMESTAMP_FIELD,
        )
    return date_map


def accumulate(date_map: Mapping[str, float], sorted_keys: Iterable[str]) -> list[float]:
    """Running total of the bucket values, in the order of ``sorted_keys``."""
    return list(running_totals(date_map[key] for key in sorted_keys))


def build_buckets(
    records: Iterable[Any],
    value_of: ValueOf | None = None,
    tz: tzinfo | None = None,
) -> list[DateBucket]:
    date_map = group_by_date(records, value_of, tz)
    keys = sort_date_keys(date_map)
    return [
        DateBucket(date_key=key, raw_value=date_map[key], cumulative_value=total)
        for key, total in zip(keys, accumulate(date_map, keys))
    ]


def aggregate(
    records: Iterable[Any],
    value_of: ValueOf | None = None,
    tz: tzinfo | None = None,
) -> CumulativeSeries:
    """Bucket records by day and return ordered labels with cumulative values.

    The result depends only on the set of records, not on their order, and an
    empty input gives two empty lists.
    """
    buckets = build_buckets(records, value_of, tz)
    return CumulativeSeries(
        labels=[bucket.date_key for bucket in buckets],
        values=[bucket.cumulative_value for bucket in buckets],
    )


def _category(record: Any, field_name: str) -> str:
    value = record_field(record, field_name)
    return str(value).strip() if value is not None else ""


def count_by_field(records: Iterable[Any], field_name: str) -> list[tuple[str, int]]:
    """Count records per non-blank ``field_name`` value, largest first."""
    counts = Counter(
        label for label in (_category(record, field_name) for record in records) if label
    )
    return sorted(counts.items(), key=lambda item: (-item[1], item[0]))


def group_records_by_field(records: Iterable[Any], field_name: str) -> list[RecordGroup]:
    """Group records per non-blank ``field_name`` value, largest group first.

    Records keep their input order inside each group.
    """
    groups: dict[str, RecordGroup] = {}
    for record in records:
        label = _category(record, field_name)
        if not label:
            continue
        groups.setdefault(label, RecordGroup(label)).records.append(record)
    return sorted(groups.values(), key=lambda group: (-group.total, group.label))

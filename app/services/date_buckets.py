"""
Date handling shared by every time-series report.

Parses the ISO-8601 query parameters into an inclusive date range and maps
timestamps onto day / week / month bucket labels. All timestamps are handled
as naive UTC, matching how the record store keeps them.
"""
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from app.constants import TIMEFRAMES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DateRange:
    """Inclusive [start, end] filter on run creation time; either bound may be open."""
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @property
    def is_bounded(self) -> bool:
        return self.start is not None or self.end is not None


def to_utc_naive(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed to be UTC already."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 date or datetime string.

    Accepts plain dates ("2023-01-15"), datetimes with or without offset and
    the "Z" suffix. Date-only values resolve to midnight UTC.

    Args:
        value: ISO-8601 string, or None/blank for "no bound"

    Returns:
        Naive UTC datetime, or None when no value was given

    Raises:
        ValueError: If the value is not a valid ISO-8601 date
    """
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None
    if text[-1] in ("Z", "z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise ValueError(f"Invalid ISO-8601 date: '{value}'")
    return to_utc_naive(parsed)


def resolve_date_range(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    time_window_days: Optional[int] = None,
    now: Optional[datetime] = None
) -> DateRange:
    """
    Build the date range for a report request.

    When a time window is given and no explicit start date, the range starts
    ``time_window_days`` days before ``now``.

    Args:
        start_date: Optional ISO-8601 lower bound
        end_date: Optional ISO-8601 upper bound
        time_window_days: Optional look-back window in days
        now: Reference time for the window (defaults to current UTC time)

    Returns:
        DateRange with parsed bounds
    """
    start = parse_iso_datetime(start_date)
    end = parse_iso_datetime(end_date)

    if start is None and time_window_days:
        reference = to_utc_naive(now) if now is not None else utc_now()
        start = reference - timedelta(days=time_window_days)

    return DateRange(start=start, end=end)


def normalize_timeframe(value: Optional[str], default: str = "week") -> str:
    """Return ``value`` if it is a supported timeframe, otherwise ``default``."""
    if value in TIMEFRAMES:
        return value
    if value:
        logger.debug(f"Unsupported timeframe '{value}', falling back to '{default}'")
    return default if default in TIMEFRAMES else "week"


def week_of_month(value: datetime) -> int:
    """
    Week number used for weekly buckets: ceil((day of month + day of week) / 7).

    Day of week counts from Sunday = 0. This is not an ISO week number and the
    resulting labels repeat from month to month within a year.
    """
    day_of_week = (value.weekday() + 1) % 7
    return math.ceil((value.day + day_of_week) / 7)


def format_date(value: datetime, timeframe: str) -> str:
    """
    Map a timestamp onto its bucket label.

    Examples (2023-01-15 is a Sunday):
        >>> format_date(datetime(2023, 1, 15, 12), "day")
        '2023-01-15'
        >>> format_date(datetime(2023, 1, 15, 12), "week")
        '2023-W3'
        >>> format_date(datetime(2023, 1, 15, 12), "month")
        '2023-01'
    """
    value = to_utc_naive(value)
    if timeframe == "week":
        return f"{value.year}-W{week_of_month(value)}"
    if timeframe == "month":
        return f"{value.year:04d}-{value.month:02d}"
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"

"""Date bucketing, timestamp parsing and percentile helpers."""

import math
from decimal import ROUND_HALF_UP, Decimal
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Sequence, Union

DateLike = Union[date, datetime]


def _as_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def week_start(value: DateLike) -> date:
    """Return the Monday on or before the given date (ISO week start)."""
    day = _as_date(value)
    return day - timedelta(days=day.isoweekday() - 1)


def month_start(value: DateLike) -> date:
    """Return the first day of the month containing the given date."""
    return _as_date(value).replace(day=1)


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """Linear-interpolated percentile of an already sorted sequence.

    Args:
        sorted_values: Values in non-descending order
        p: Fraction between 0 and 1

    Returns:
        The interpolated value at rank ``p * (n - 1)``, or 0 for an empty sequence
    """
    if not sorted_values:
        return 0
    rank = p * (len(sorted_values) - 1)
    lower_index = math.floor(rank)
    upper_index = math.ceil(rank)
    lower = sorted_values[lower_index]
    upper = sorted_values[upper_index]
    return lower + (upper - lower) * (rank - lower_index)


def round_half_up(value: float, places: int = 2) -> float:
    """Round to ``places`` decimals with halves going away from zero (1.125 -> 1.13)."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def parse_timestamp(value) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp, returning None when it cannot be parsed.

    Accepts datetime and date objects, unix timestamps and ISO strings with a
    trailing ``Z`` or an explicit UTC offset.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def to_utc(value: datetime) -> datetime:
    """Convert to an aware UTC datetime, treating naive values as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_date_bound(value: Optional[str], end_of_day: bool = False) -> Optional[datetime]:
    """Parse a ``since``/``until`` bound into an aware UTC datetime.

    A bare date (``YYYY-MM-DD``) covers the whole day when ``end_of_day`` is set,
    so an ``until`` bound includes activity on that day.

    Raises:
        ValueError: If the value is not a valid date or timestamp
    """
    if not value:
        return None
    parsed = parse_timestamp(value)
    if parsed is None:
        raise ValueError(f"Invalid date: {value!r}")
    if end_of_day and len(value.strip()) == 10:
        parsed = datetime.combine(parsed.date(), time.max)
    return to_utc(parsed)


def within_bounds(value: Optional[datetime], since: Optional[datetime], until: Optional[datetime]) -> bool:
    """Check an optional timestamp against inclusive since/until bounds."""
    if value is None:
        return False
    moment = to_utc(value)
    if since and moment < since:
        return False
    if until and moment > until:
        return False
    return True

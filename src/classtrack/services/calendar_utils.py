# src/classtrack/services/calendar_utils.py
"""
Civil calendar helpers.

Everything here is a pure function over civil (zone-less) dates. The only
place a time zone matters is deciding which civil day is "today" for a user.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from classtrack.exceptions import ValidationError

# Python's date.weekday(): Monday == 0 ... Sunday == 6
WEEKDAYS: tuple[str, ...] = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
WEEKDAY_NUMBERS: dict[str, int] = {tag: i for i, tag in enumerate(WEEKDAYS)}


def parse_weekday(tag: str) -> int:
    """Map a weekday tag ("Mon".."Sun") to its number."""
    try:
        return WEEKDAY_NUMBERS[tag]
    except (KeyError, TypeError):
        raise ValidationError(
            f"Unknown weekday {tag!r}; expected one of {', '.join(WEEKDAYS)}",
            field="weekdays",
            value=tag,
        ) from None


def weekday_tag(value: date) -> str:
    return WEEKDAYS[value.weekday()]


def next_occurrence_on_or_after(weekday: str | int, reference_date: date) -> date:
    """
    Return ``reference_date`` itself when it falls on ``weekday``, otherwise
    the soonest later date that does.
    """
    target = parse_weekday(weekday) if isinstance(weekday, str) else weekday
    if not 0 <= target <= 6:
        raise ValidationError(f"Weekday number out of range: {target}", field="weekdays", value=target)
    offset = (target - reference_date.weekday() + 7) % 7
    return reference_date + timedelta(days=offset)


def resolve_zone(tz_name: Optional[str]) -> ZoneInfo:
    try:
        return ZoneInfo(tz_name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Unknown time zone {tz_name!r}", field="timezone", value=tz_name) from None


def to_storage_date(value: date | datetime | str, tz: Optional[str] = None) -> date:
    """
    Normalize a civil day to the canonical storage key (a plain ``date``).

    - ``date``             -> itself
    - ISO string           -> parsed ("2026-10-19" or a full ISO timestamp)
    - naive ``datetime``   -> its calendar day
    - aware ``datetime``   -> its calendar day in ``tz`` (or in its own zone)
    """
    if isinstance(value, str):
        raw = value.strip()
        try:
            if len(raw) == 10:
                return date.fromisoformat(raw)
            value = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError(f"Invalid date {value!r}", field="date", value=value) from None

    if isinstance(value, datetime):
        if value.tzinfo is not None and tz:
            value = value.astimezone(resolve_zone(tz))
        return value.date()
    if isinstance(value, date):
        return value
    raise ValidationError(f"Unsupported date value {value!r}", field="date", value=value)


def today_in_zone(tz_name: Optional[str], now: Optional[datetime] = None) -> date:
    """The civil date that is "today" for a user in ``tz_name``."""
    zone = resolve_zone(tz_name)
    current = now.astimezone(zone) if now is not None else datetime.now(zone)
    return current.date()


def week_bounds(reference_date: date, week_offset: int = 0) -> tuple[date, date]:
    """Monday and Sunday of the week containing ``reference_date``, shifted by whole weeks."""
    monday = reference_date - timedelta(days=reference_date.weekday()) + timedelta(weeks=week_offset)
    return monday, monday + timedelta(days=6)


def horizon_end(reference_date: date, horizon_weeks: int) -> date:
    """Exclusive end of a horizon window starting at ``reference_date``."""
    return reference_date + timedelta(days=7 * horizon_weeks)


__all__ = [
    "WEEKDAYS",
    "WEEKDAY_NUMBERS",
    "parse_weekday",
    "weekday_tag",
    "next_occurrence_on_or_after",
    "resolve_zone",
    "to_storage_date",
    "today_in_zone",
    "week_bounds",
    "horizon_end",
]

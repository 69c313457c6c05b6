# src/classtrack/services/rules.py
"""
Validated recurrence rule shape.

Rules enter the engines only as a ``RuleShape`` built by ``RuleShape.build``;
malformed input is rejected here, before anything touches the store.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable

from classtrack.exceptions import ValidationError
from classtrack.services.calendar_utils import WEEKDAYS, WEEKDAY_NUMBERS

_TIME_RE = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")


def normalize_time(value: Any, field: str) -> str:
    """Parse "H:MM"/"HH:MM" (24h) into canonical zero-padded "HH:MM"."""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string in HH:MM format", field=field, value=value)
    m = _TIME_RE.match(value.strip())
    if not m:
        raise ValidationError(f"{field} must be in HH:MM format", field=field, value=value)
    return f"{int(m.group(1)):02d}:{m.group(2)}"


def minutes_of(hhmm: str) -> int:
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)


def normalize_weekdays(values: Any) -> tuple[str, ...]:
    """Deduplicate and order weekday tags Mon..Sun; reject empty or unknown tags."""
    if isinstance(values, str) or not isinstance(values, Iterable):
        raise ValidationError("weekdays must be a list of weekday tags", field="weekdays", value=values)
    tags = list(values)
    if not tags:
        raise ValidationError("weekdays must not be empty", field="weekdays")
    unknown = [t for t in tags if t not in WEEKDAY_NUMBERS]
    if unknown:
        raise ValidationError(
            f"Invalid weekdays {unknown}; must be any of {', '.join(WEEKDAYS)}",
            field="weekdays",
            value=unknown,
        )
    return tuple(sorted(set(tags), key=WEEKDAY_NUMBERS.__getitem__))


@dataclass(frozen=True)
class RuleShape:
    """The validated, storage-independent content of a recurrence rule."""

    weekdays: tuple[str, ...]
    start_time: str
    end_time: str

    @classmethod
    def build(cls, weekdays: Any, start_time: Any, end_time: Any) -> "RuleShape":
        days = normalize_weekdays(weekdays)
        start = normalize_time(start_time, "start_time")
        end = normalize_time(end_time, "end_time")
        if minutes_of(end) <= minutes_of(start):
            raise ValidationError(
                "End time must be after start time",
                field="end_time",
                value=end,
                context={"start_time": start},
            )
        return cls(weekdays=days, start_time=start, end_time=end)

    @classmethod
    def of(cls, rule: Any) -> "RuleShape":
        """Shape of an already-persisted rule row."""
        return cls(
            weekdays=tuple(rule.weekdays or ()),
            start_time=rule.start_time,
            end_time=rule.end_time,
        )

    def as_columns(self) -> dict[str, Any]:
        return {
            "weekdays": list(self.weekdays),
            "start_time": self.start_time,
            "end_time": self.end_time,
        }


__all__ = ["RuleShape", "normalize_time", "normalize_weekdays", "minutes_of"]

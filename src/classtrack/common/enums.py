"""
Enumerations shared by the ORM models, the services and the API schemas.
"""

from enum import Enum


class OccurrenceStatus(str, Enum):
    """
    Outcome of a single class occurrence.

    - PENDING: materialized, outcome not recorded yet (initial state)
    - ATTENDED / MISSED / CANCELLED: terminal, set by marking
    """

    PENDING = "pending"
    ATTENDED = "attended"
    MISSED = "missed"
    CANCELLED = "cancelled"

    @classmethod
    def terminal(cls) -> frozenset["OccurrenceStatus"]:
        return frozenset({cls.ATTENDED, cls.MISSED, cls.CANCELLED})


class DenominatorPolicy(str, Enum):
    """Which occurrences count towards the attendance percentage denominator."""

    CONDUCTED = "conducted"  # total - cancelled - pending
    SCHEDULED = "scheduled"  # total - cancelled
    LOGGED = "logged"  # total - pending


class AttendanceStanding(str, Enum):
    """Traffic-light band of a subject's attendance percentage."""

    GREEN = "green"  # percentage >= ATTENDANCE_GREEN_AT
    YELLOW = "yellow"  # percentage >= ATTENDANCE_YELLOW_AT
    RED = "red"

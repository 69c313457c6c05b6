# src/classtrack/services/attendance.py
"""
Attendance aggregation and marking.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import asdict, dataclass
from datetime import date
from typing import Any, Iterable, Mapping, Optional, Union
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from classtrack.app_logger import get_logger
from classtrack.common.enums import AttendanceStanding, DenominatorPolicy, OccurrenceStatus
from classtrack.core.config import settings
from classtrack.db.models import Occurrence, Subject
from classtrack.db.repositories import OccurrenceRepository, SubjectRepository
from classtrack.exceptions import ValidationError

log = get_logger("attendance")


@dataclass(frozen=True)
class AttendanceSummary:
    total: int = 0
    attended: int = 0
    missed: int = 0
    cancelled: int = 0
    pending: int = 0
    percentage: int = 0
    standing: str = AttendanceStanding.RED.value

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def percentage_half_up(numerator: int, denominator: int) -> int:
    """round(numerator / denominator * 100) with .5 rounded up; 0 when denominator <= 0."""
    if denominator <= 0:
        return 0
    return (numerator * 200 + denominator) // (2 * denominator)


def standing_for(
    percentage: int,
    green_at: Optional[int] = None,
    yellow_at: Optional[int] = None,
) -> AttendanceStanding:
    """Band a percentage: green at >= green_at, yellow at >= yellow_at, red below."""
    green_at = settings.ATTENDANCE_GREEN_AT if green_at is None else green_at
    yellow_at = settings.ATTENDANCE_YELLOW_AT if yellow_at is None else yellow_at
    if percentage >= green_at:
        return AttendanceStanding.GREEN
    if percentage >= yellow_at:
        return AttendanceStanding.YELLOW
    return AttendanceStanding.RED


def denominator_for(counts: Mapping[str, int], total: int, policy: DenominatorPolicy) -> int:
    cancelled = counts.get(OccurrenceStatus.CANCELLED.value, 0)
    pending = counts.get(OccurrenceStatus.PENDING.value, 0)
    if policy is DenominatorPolicy.SCHEDULED:
        return total - cancelled
    if policy is DenominatorPolicy.LOGGED:
        return total - pending
    return total - cancelled - pending


def summarize(
    occurrences: Union[Iterable[Any], Mapping[str, int]],
    policy: Union[DenominatorPolicy, str, None] = None,
) -> AttendanceSummary:
    """
    Count occurrences per status and compute the attendance percentage.

    ``occurrences`` is either an iterable of rows/strings carrying a status or
    an already aggregated ``{status: count}`` mapping.
    """
    policy = DenominatorPolicy(policy or settings.ATTENDANCE_DENOMINATOR)

    if isinstance(occurrences, Mapping):
        counts = Counter({str(k): int(v) for k, v in occurrences.items()})
    else:
        counts = Counter(
            OccurrenceStatus(getattr(o, "status", o)).value for o in occurrences
        )

    unknown = set(counts) - {s.value for s in OccurrenceStatus}
    if unknown:
        raise ValidationError(f"Unknown status value(s): {sorted(unknown)}", field="status")

    total = sum(counts.values())
    percentage = percentage_half_up(
        counts[OccurrenceStatus.ATTENDED.value],
        denominator_for(counts, total, policy),
    )
    return AttendanceSummary(
        total=total,
        attended=counts[OccurrenceStatus.ATTENDED.value],
        missed=counts[OccurrenceStatus.MISSED.value],
        cancelled=counts[OccurrenceStatus.CANCELLED.value],
        pending=counts[OccurrenceStatus.PENDING.value],
        percentage=percentage,
        standing=standing_for(percentage).value,
    )


def parse_mark_status(value: Any) -> OccurrenceStatus:
    """Only terminal statuses can be set by marking; there is no way back to pending."""
    try:
        status = OccurrenceStatus(value)
    except ValueError:
        raise ValidationError(f"Invalid status {value!r}", field="status", value=value) from None
    if status not in OccurrenceStatus.terminal():
        raise ValidationError(
            "Status can only be set to attended, missed or cancelled",
            field="status",
            value=status.value,
        )
    return status


@dataclass(frozen=True)
class SubjectAttendance:
    subject: Subject
    summary: AttendanceSummary


class AttendanceService:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.occurrences = OccurrenceRepository(session)
        self.subjects = SubjectRepository(session)

    async def mark(self, user_id: UUID, occurrence_id: UUID, status: Any) -> Occurrence:
        new_status = parse_mark_status(status)
        occurrence = await self.occurrences.get_owned(occurrence_id, user_id)
        previous = occurrence.status
        occurrence = await self.occurrences.set_status(occurrence, new_status)
        log.info("occurrence %s: %s -> %s", occurrence.id, previous, new_status.value)
        return occurrence

    async def subject_summaries(
        self,
        user_id: UUID,
        reference_today: date,
        subject_id: Optional[UUID] = None,
        include_future: bool = False,
        policy: Union[DenominatorPolicy, str, None] = None,
    ) -> list[SubjectAttendance]:
        """
        One summary per subject of the user (or just ``subject_id``).

        Only occurrences dated on or before ``reference_today`` count unless
        ``include_future`` is set.
        """
        if subject_id is not None:
            subjects = [await self.subjects.get_owned(subject_id, user_id)]
        else:
            subjects = await self.subjects.list_for_user(user_id)

        counts = await self.occurrences.status_counts(
            user_id,
            subject_id=subject_id,
            until=None if include_future else reference_today,
        )
        return [
            SubjectAttendance(subject=s, summary=summarize(counts.get(s.id, {}), policy))
            for s in subjects
        ]


__all__ = [
    "AttendanceSummary",
    "AttendanceService",
    "SubjectAttendance",
    "percentage_half_up",
    "standing_for",
    "parse_mark_status",
    "summarize",
]

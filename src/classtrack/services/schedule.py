# src/classtrack/services/schedule.py
"""
Schedule operations used by the HTTP routers and the CLI.

Input is validated here (RuleShape.build, status parsing, ranges) so the
engines only ever see well-formed rules.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Mapping, Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from classtrack.app_logger import get_logger
from classtrack.common.enums import OccurrenceStatus
from classtrack.core.config import settings
from classtrack.db.models import Occurrence, RecurrenceRule, Subject
from classtrack.db.repositories import OccurrenceRepository, RuleRepository, SubjectRepository
from classtrack.exceptions import ConflictError, ValidationError
from classtrack.services.attendance import AttendanceService, SubjectAttendance
from classtrack.services.calendar_utils import WEEKDAYS, week_bounds
from classtrack.services.materialize import MaterializationEngine, MaterializeResult
from classtrack.services.reconcile import ReconcileResult, ReconciliationEngine
from classtrack.services.rules import RuleShape, minutes_of

log = get_logger("schedule")

_COLOR_RE = re.compile(r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$")
DEFAULT_COLOR = "#3B82F6"


@dataclass
class RuleOutcome:
    rule: RecurrenceRule
    result: ReconcileResult
    created_rule: bool = False


@dataclass
class SlotsOutcome:
    slots: list[RuleOutcome] = field(default_factory=list)
    removed: int = 0  # occurrences deleted with surplus slots


@dataclass
class MarkOutcome:
    occurrence: Occurrence
    attendance: SubjectAttendance


@dataclass(frozen=True)
class TimetableEntry:
    subject_id: UUID
    subject_name: str
    color: str
    rule_id: UUID
    start_time: str
    end_time: str


class ScheduleService:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.subjects = SubjectRepository(session)
        self.rules = RuleRepository(session)
        self.occurrences = OccurrenceRepository(session)
        self.materializer = MaterializationEngine(session)
        self.reconciler = ReconciliationEngine(session)
        self.attendance = AttendanceService(session)

    # ------------------------------------------------------------------
    # subjects
    # ------------------------------------------------------------------
    async def create_subject(self, user_id: UUID, name: Any, color: Any = None) -> Subject:
        clean = name.strip() if isinstance(name, str) else ""
        if not clean:
            raise ValidationError("Subject name is required", field="name", value=name)
        color = color or DEFAULT_COLOR
        if not isinstance(color, str) or not _COLOR_RE.match(color):
            raise ValidationError("Please provide a valid hex color", field="color", value=color)
        subject = await self.subjects.create(user_id, clean, color)
        log.info("user %s: created subject %s (%s)", user_id, subject.id, clean)
        return subject

    async def list_subjects(self, user_id: UUID) -> list[Subject]:
        return await self.subjects.list_for_user(user_id)

    async def get_subject(self, user_id: UUID, subject_id: UUID) -> Subject:
        return await self.subjects.get_owned(subject_id, user_id)

    # ------------------------------------------------------------------
    # rules
    # ------------------------------------------------------------------
    async def create_or_update_rule(
        self,
        user_id: UUID,
        subject_id: UUID,
        weekdays: Any,
        start_time: Any,
        end_time: Any,
        reference_today: date,
        position: int = 0,
    ) -> RuleOutcome:
        """
        Create the subject's rule for ``position`` or update it in place.

        A new rule is materialized over the default horizon; an existing one
        goes through reconciliation.
        """
        shape = RuleShape.build(weekdays, start_time, end_time)
        if position < 0:
            raise ValidationError("position must be >= 0", field="position", value=position)
        await self.subjects.get_owned(subject_id, user_id)

        # the new shape must not overlap the subject's other slots
        slots = {r.position: RuleShape.of(r) for r in await self.rules.list_for_user(user_id, subject_id=subject_id)}
        slots[position] = shape
        _reject_overlaps(slots)

        rule = await self.rules.get_slot(user_id, subject_id, position)
        if rule is None:
            try:
                rule = await self.rules.create(user_id, subject_id, shape, position)
            except ConflictError:
                # same slot created by a concurrent or repeated request
                rule = await self.rules.get_slot(user_id, subject_id, position)
                if rule is None:
                    raise
                log.info("rule slot %s/%d already created; reconciling", subject_id, position)
            else:
                created = await self.materializer.materialize(rule, settings.DEFAULT_HORIZON_WEEKS, reference_today)
                log.info("rule %s created for subject %s: %d occurrence(s)", rule.id, subject_id, created.created)
                return RuleOutcome(rule=rule, result=ReconcileResult(created=created.created), created_rule=True)

        result = await self.reconciler.reconcile(rule, shape, reference_today)
        log.info("rule %s updated: %s", rule.id, result)
        return RuleOutcome(rule=rule, result=result)

    async def replace_subject_slots(
        self,
        user_id: UUID,
        subject_id: UUID,
        slots: Sequence[dict[str, Any]],
        reference_today: date,
    ) -> SlotsOutcome:
        """
        Make the subject's ordered slot list equal to ``slots``.

        Slot i maps to position i; positions past the end of ``slots`` are
        removed like a deleted rule.
        """
        shapes = [RuleShape.build(s.get("weekdays"), s.get("start_time"), s.get("end_time")) for s in slots]
        _reject_overlaps(dict(enumerate(shapes)))
        await self.subjects.get_owned(subject_id, user_id)

        results, removed = await self.reconciler.reconcile_slots(user_id, subject_id, shapes, reference_today)
        return SlotsOutcome(
            slots=[RuleOutcome(rule=r, result=res, created_rule=c) for r, res, c in results],
            removed=removed,
        )

    async def delete_rule(self, user_id: UUID, rule_id: UUID, reference_today: date) -> int:
        rule = await self.rules.get_owned(rule_id, user_id)
        return await self.reconciler.remove(rule, reference_today)

    async def list_rules(self, user_id: UUID, subject_id: Optional[UUID] = None) -> list[RecurrenceRule]:
        if subject_id is not None:
            await self.subjects.get_owned(subject_id, user_id)
        return await self.rules.list_for_user(user_id, subject_id=subject_id)

    async def weekly_timetable(self, user_id: UUID) -> dict[str, list[TimetableEntry]]:
        """Rules laid out per weekday (Mon..Sun), each day sorted by start time."""
        rules = await self.rules.list_for_user(user_id)
        subjects = await self.subjects.by_ids(user_id, {r.subject_id for r in rules})

        table: dict[str, list[TimetableEntry]] = {day: [] for day in WEEKDAYS}
        for rule in rules:
            subject = subjects.get(rule.subject_id)
            for day in rule.weekdays:
                table[day].append(
                    TimetableEntry(
                        subject_id=rule.subject_id,
                        subject_name=subject.name if subject else "",
                        color=subject.color if subject else DEFAULT_COLOR,
                        rule_id=rule.id,
                        start_time=rule.start_time,
                        end_time=rule.end_time,
                    )
                )
        for entries in table.values():
            entries.sort(key=lambda e: e.start_time)
        return table

    async def regenerate_subject(self, user_id: UUID, subject_id: UUID, reference_today: date) -> MaterializeResult:
        """Re-run materialization for every slot of a subject over the default horizon."""
        await self.subjects.get_owned(subject_id, user_id)
        total = MaterializeResult()
        for rule in await self.rules.list_for_user(user_id, subject_id=subject_id):
            total += await self.materializer.materialize(rule, settings.DEFAULT_HORIZON_WEEKS, reference_today)
        return total

    async def ensure_upcoming(self, user_id: UUID, reference_today: date, days_ahead: Optional[int] = None) -> MaterializeResult:
        return await self.materializer.ensure_upcoming(user_id, reference_today, days_ahead)

    # ------------------------------------------------------------------
    # occurrences
    # ------------------------------------------------------------------
    async def list_occurrences(
        self,
        user_id: UUID,
        start: Optional[date] = None,
        end: Optional[date] = None,
        subject_id: Optional[UUID] = None,
        status: Optional[str] = None,
    ) -> list[Occurrence]:
        if start is not None and end is not None and end < start:
            raise ValidationError("end must not be before start", field="end", value=end.isoformat())
        parsed = None
        if status is not None:
            try:
                parsed = OccurrenceStatus(status)
            except ValueError:
                raise ValidationError(f"Invalid status {status!r}", field="status", value=status) from None
        return await self.occurrences.list_range(user_id, start, end, subject_id=subject_id, status=parsed)

    async def todays_classes(self, user_id: UUID, reference_today: date) -> list[Occurrence]:
        return await self.occurrences.list_range(user_id, reference_today, reference_today)

    async def week_classes(self, user_id: UUID, reference_today: date, week_offset: int = 0) -> list[Occurrence]:
        monday, sunday = week_bounds(reference_today, week_offset)
        return await self.occurrences.list_range(user_id, monday, sunday)

    async def mark_occurrence(
        self,
        user_id: UUID,
        occurrence_id: UUID,
        status: Any,
        reference_today: date,
    ) -> MarkOutcome:
        occurrence = await self.attendance.mark(user_id, occurrence_id, status)
        [attendance] = await self.attendance.subject_summaries(
            user_id, reference_today, subject_id=occurrence.subject_id
        )
        return MarkOutcome(occurrence=occurrence, attendance=attendance)

    async def get_summary(
        self,
        user_id: UUID,
        reference_today: date,
        subject_id: Optional[UUID] = None,
        include_future: bool = False,
    ) -> list[SubjectAttendance]:
        return await self.attendance.subject_summaries(
            user_id, reference_today, subject_id=subject_id, include_future=include_future
        )


def _reject_overlaps(slots: Mapping[int, RuleShape]) -> None:
    """Two slots of one subject may not overlap on a shared weekday; ``slots`` maps position to shape."""
    ordered = sorted(slots.items())
    for n, (i, a) in enumerate(ordered):
        for j, b in ordered[n + 1:]:
            shared = set(a.weekdays) & set(b.weekdays)
            if not shared:
                continue
            if minutes_of(a.start_time) < minutes_of(b.end_time) and minutes_of(b.start_time) < minutes_of(a.end_time):
                raise ValidationError(
                    f"Slots {i} and {j} overlap on {', '.join(sorted(shared, key=WEEKDAYS.index))}",
                    field="slots",
                )


__all__ = ["ScheduleService", "RuleOutcome", "SlotsOutcome", "MarkOutcome", "TimetableEntry"]

# src/classtrack/services/materialize.py
"""
Materialization engine: expands a weekly rule into dated occurrences.

Every call is idempotent. Candidates that already exist are filtered with one
range query, the rest go in as a single conflict-tolerant bulk insert, so
repeated or concurrent calls for the same rule converge on the same rows.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Iterable, Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from classtrack.app_logger import get_logger
from classtrack.common.enums import OccurrenceStatus
from classtrack.core.config import settings
from classtrack.db.repositories import OccurrenceRepository, RuleRepository
from classtrack.services.calendar_utils import horizon_end, next_occurrence_on_or_after

log = get_logger("materialize")

WEEK = timedelta(days=7)


class RuleLike(Protocol):
    id: Any
    user_id: Any
    subject_id: Any
    weekdays: Any
    start_time: str
    end_time: str


@dataclass(frozen=True)
class PlannedOccurrence:
    date: date
    start_time: str
    end_time: str


@dataclass
class MaterializeResult:
    planned: int = 0
    created: int = 0
    occurrences: list[PlannedOccurrence] = field(default_factory=list)

    def __iadd__(self, other: "MaterializeResult") -> "MaterializeResult":
        self.planned += other.planned
        self.created += other.created
        self.occurrences.extend(other.occurrences)
        return self


def plan_dates(weekdays: Iterable[str], reference_today: date, until: date) -> list[date]:
    """
    Dates in [reference_today, until) that fall on any of ``weekdays``,
    ascending and without repeats.
    """
    dates: set[date] = set()
    for day in weekdays:
        current = next_occurrence_on_or_after(day, reference_today)
        while current < until:
            dates.add(current)
            current += WEEK
    return sorted(dates)


def plan_occurrences(rule: RuleLike, reference_today: date, until: date) -> list[PlannedOccurrence]:
    return [
        PlannedOccurrence(date=d, start_time=rule.start_time, end_time=rule.end_time)
        for d in plan_dates(rule.weekdays or (), reference_today, until)
    ]


class MaterializationEngine:
    """Keeps the occurrence store in step with recurrence rules."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.occurrences = OccurrenceRepository(session)
        self.rules = RuleRepository(session)

    async def materialize(
        self,
        rule: RuleLike,
        horizon_weeks: Optional[int] = None,
        reference_today: Optional[date] = None,
        *,
        until: Optional[date] = None,
    ) -> MaterializeResult:
        """
        Ensure every occurrence ``rule`` implies inside the horizon exists.

        The window is [reference_today, reference_today + 7 * horizon_weeks),
        or [reference_today, until) when ``until`` is given. An empty window
        or a rule without weekdays is a no-op.

        The upper bound is exclusive: Mon/Wed/Fri from a Monday
        over 4 weeks must give exactly 12 occurrences. An inclusive bound
        would add the Monday four weeks out as a 13th.
        """
        if reference_today is None:
            raise TypeError("materialize() needs an explicit reference_today")
        if until is None:
            weeks = settings.DEFAULT_HORIZON_WEEKS if horizon_weeks is None else horizon_weeks
            until = horizon_end(reference_today, weeks)

        planned = plan_occurrences(rule, reference_today, until)
        if not planned:
            log.debug("rule %s: nothing to plan before %s", rule.id, until)
            return MaterializeResult()

        existing = await self.occurrences.existing_keys(
            rule.user_id, rule.subject_id, reference_today, until
        )
        staged = [
            {
                "id": uuid.uuid4(),
                "user_id": rule.user_id,
                "subject_id": rule.subject_id,
                "rule_id": rule.id,
                "date": p.date,
                "start_time": p.start_time,
                "end_time": p.end_time,
                "status": OccurrenceStatus.PENDING.value,
            }
            for p in planned
            if (p.date, p.start_time) not in existing
        ]

        created = await self.occurrences.insert_ignoring_conflicts(staged)
        log.info(
            "rule %s: planned=%d staged=%d created=%d window=[%s, %s)",
            rule.id, len(planned), len(staged), created, reference_today, until,
        )
        return MaterializeResult(planned=len(planned), created=created, occurrences=planned)

    async def ensure_upcoming(
        self,
        user_id: uuid.UUID,
        reference_today: date,
        days_ahead: Optional[int] = None,
        subject_id: Optional[uuid.UUID] = None,
    ) -> MaterializeResult:
        """
        Materialize every rule of a user over the next ``days_ahead`` days.

        Also the recovery path when a reconcile stopped between its delete
        and its materialize step.
        """
        days = settings.UPCOMING_DAYS if days_ahead is None else days_ahead
        until = reference_today + timedelta(days=days)
        total = MaterializeResult()
        rules = await self.rules.list_for_user(user_id, subject_id=subject_id)
        for rule in rules:
            total += await self.materialize(rule, reference_today=reference_today, until=until)
        log.info("user %s: ensured %d rule(s), created=%d", user_id, len(rules), total.created)
        return total


__all__ = [
    "MaterializationEngine",
    "MaterializeResult",
    "PlannedOccurrence",
    "plan_dates",
    "plan_occurrences",
]

# src/classtrack/services/reconcile.py
"""
Reconciliation engine: brings stored occurrences in line with an edited or
deleted rule without touching attendance that has already been recorded.

The steps commit separately. A failure after the delete leaves fewer
occurrences than the rule implies; repeating the call (or running
``ensure_upcoming``) restores them.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from classtrack.app_logger import get_logger
from classtrack.core.config import settings
from classtrack.db.models import RecurrenceRule
from classtrack.db.repositories import OccurrenceRepository, RuleRepository
from classtrack.exceptions import ConflictError
from classtrack.services.materialize import MaterializationEngine
from classtrack.services.rules import RuleShape

log = get_logger("reconcile")


@dataclass(frozen=True)
class ReconcileResult:
    deleted: int = 0
    created: int = 0

    def as_dict(self) -> dict[str, int]:
        return {"deleted_count": self.deleted, "created_count": self.created}


class ReconciliationEngine:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.occurrences = OccurrenceRepository(session)
        self.rules = RuleRepository(session)
        self.materializer = MaterializationEngine(session)

    async def reconcile(
        self,
        rule: RecurrenceRule,
        new_shape: RuleShape,
        reference_today: date,
        horizon_weeks: Optional[int] = None,
    ) -> ReconcileResult:
        """
        1. delete the rule's future pending occurrences
        2. persist ``new_shape`` on the rule
        3. materialize the new shape over the standard horizon
        """
        deleted = await self.occurrences.delete_future_pending(rule.id, reference_today)
        log.info("rule %s: deleted %d future pending occurrence(s)", rule.id, deleted)

        await self.rules.apply_shape(rule, new_shape)

        weeks = settings.DEFAULT_HORIZON_WEEKS if horizon_weeks is None else horizon_weeks
        result = await self.materializer.materialize(rule, weeks, reference_today)
        return ReconcileResult(deleted=deleted, created=result.created)

    async def reconcile_slots(
        self,
        user_id: UUID,
        subject_id: UUID,
        shapes: Sequence[RuleShape],
        reference_today: date,
        horizon_weeks: Optional[int] = None,
    ) -> tuple[list[tuple[RecurrenceRule, ReconcileResult, bool]], int]:
        """
        Reconcile every slot of a subject at once.

        Future pending rows of all current slots are deleted before any slot
        is re-materialized, so slots that swap times never shadow each other.
        Returns ``[(rule, result, created_rule), ...]`` in slot order and the
        number of occurrences deleted with surplus slots.
        """
        weeks = settings.DEFAULT_HORIZON_WEEKS if horizon_weeks is None else horizon_weeks
        current = {r.position: r for r in await self.rules.list_for_user(user_id, subject_id=subject_id)}

        deleted = {
            position: await self.occurrences.delete_future_pending(rule.id, reference_today)
            for position, rule in current.items()
        }

        removed = 0
        for position, rule in current.items():
            if position >= len(shapes):
                removed += deleted[position] + await self.remove(rule, reference_today)

        outcome = []
        conflicted = False
        for position, shape in enumerate(shapes):
            rule = current.get(position)
            created_rule = rule is None
            if created_rule:
                try:
                    rule = await self.rules.create(user_id, subject_id, shape, position)
                except ConflictError:
                    # another request filled this slot first
                    rule = await self.rules.get_slot(user_id, subject_id, position)
                    if rule is None:
                        raise
                    conflicted, created_rule = True, False
                    await self.rules.apply_shape(rule, shape)
            else:
                await self.rules.apply_shape(rule, shape)
            result = await self.materializer.materialize(rule, weeks, reference_today)
            outcome.append(
                (rule, ReconcileResult(deleted=deleted.get(position, 0), created=result.created), created_rule)
            )
        if conflicted:
            # the rollback expired rules handled before the conflict
            for rule, _, _ in outcome:
                await self.session.refresh(rule)
        log.info("subject %s: reconciled %d slot(s), removed %d occurrence(s)", subject_id, len(shapes), removed)
        return outcome, removed

    async def remove(self, rule: RecurrenceRule, reference_today: date) -> int:
        """
        Delete a rule: its future pending occurrences go with it, everything
        else is kept and unlinked from the rule. Returns the number deleted.
        """
        deleted = await self.occurrences.delete_future_pending(rule.id, reference_today)
        kept = await self.occurrences.detach_rule(rule.id)
        await self.rules.delete(rule)
        log.info("rule %s removed: deleted=%d kept=%d", rule.id, deleted, kept)
        return deleted


__all__ = ["ReconciliationEngine", "ReconcileResult"]

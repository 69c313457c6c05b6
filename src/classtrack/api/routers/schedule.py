# src/classtrack/api/routers/schedule.py
"""
Recurrence rule endpoints. Every write here is followed by materialization
(new rules) or reconciliation (edited/deleted rules) before responding.
"""
from __future__ import annotations

from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from classtrack.auth import CurrentUser, get_reference_today, require_user
from classtrack.db.session import get_session
from classtrack.schemas import (
    MaterializeOut,
    ReconcileOut,
    RuleDeleteOut,
    RuleOut,
    RuleUpsert,
    RuleUpsertOut,
    SlotsOut,
    SlotsReplace,
    TimetableEntryOut,
)
from classtrack.services.schedule import RuleOutcome, ScheduleService

router = APIRouter(prefix="/schedule", tags=["schedule"])


def _upsert_out(outcome: RuleOutcome) -> RuleUpsertOut:
    return RuleUpsertOut(
        rule=RuleOut.model_validate(outcome.rule),
        created=outcome.created_rule,
        reconcile=ReconcileOut(**outcome.result.as_dict()),
    )


@router.put("/rules", response_model=RuleUpsertOut)
async def upsert_rule(
    payload: RuleUpsert,
    user: CurrentUser = Depends(require_user),
    today: date = Depends(get_reference_today),
    session: AsyncSession = Depends(get_session),
) -> RuleUpsertOut:
    outcome = await ScheduleService(session).create_or_update_rule(
        user.id,
        payload.subject_id,
        payload.weekdays,
        payload.start_time,
        payload.end_time,
        today,
        position=payload.position,
    )
    return _upsert_out(outcome)


@router.get("/rules", response_model=list[RuleOut])
async def list_rules(
    subject_id: Optional[UUID] = Query(default=None),
    user: CurrentUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    rules = await ScheduleService(session).list_rules(user.id, subject_id=subject_id)
    return [RuleOut.model_validate(r) for r in rules]


@router.get("/rules/{subject_id}", response_model=list[RuleOut])
async def subject_rules(
    subject_id: UUID,
    user: CurrentUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    rules = await ScheduleService(session).list_rules(user.id, subject_id=subject_id)
    return [RuleOut.model_validate(r) for r in rules]


@router.delete("/rules/{rule_id}", response_model=RuleDeleteOut)
async def delete_rule(
    rule_id: UUID,
    user: CurrentUser = Depends(require_user),
    today: date = Depends(get_reference_today),
    session: AsyncSession = Depends(get_session),
) -> RuleDeleteOut:
    deleted = await ScheduleService(session).delete_rule(user.id, rule_id, today)
    return RuleDeleteOut(deleted_count=deleted)


@router.put("/subjects/{subject_id}/slots", response_model=SlotsOut)
async def replace_slots(
    subject_id: UUID,
    payload: SlotsReplace,
    user: CurrentUser = Depends(require_user),
    today: date = Depends(get_reference_today),
    session: AsyncSession = Depends(get_session),
) -> SlotsOut:
    outcome = await ScheduleService(session).replace_subject_slots(
        user.id, subject_id, [s.model_dump() for s in payload.slots], today
    )
    return SlotsOut(slots=[_upsert_out(o) for o in outcome.slots], removed_count=outcome.removed)


@router.get("/weekly", response_model=dict[str, list[TimetableEntryOut]])
async def weekly_timetable(
    user: CurrentUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    table = await ScheduleService(session).weekly_timetable(user.id)
    return {day: [TimetableEntryOut.model_validate(e) for e in entries] for day, entries in table.items()}


@router.post("/subjects/{subject_id}/regenerate", response_model=MaterializeOut)
async def regenerate_subject(
    subject_id: UUID,
    user: CurrentUser = Depends(require_user),
    today: date = Depends(get_reference_today),
    session: AsyncSession = Depends(get_session),
) -> MaterializeOut:
    result = await ScheduleService(session).regenerate_subject(user.id, subject_id, today)
    return MaterializeOut(
        planned_count=result.planned,
        created_count=result.created,
        message=f"Generated {result.created} class instance(s)",
    )

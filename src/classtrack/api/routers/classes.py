# src/classtrack/api/routers/classes.py
from __future__ import annotations

from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from classtrack.auth import CurrentUser, get_reference_today, require_user
from classtrack.db.session import get_session
from classtrack.schemas import MarkIn, MarkOut, MaterializeOut, OccurrenceOut, SubjectSummaryOut
from classtrack.services.schedule import ScheduleService

router = APIRouter(prefix="/classes", tags=["classes"])


@router.get("", response_model=list[OccurrenceOut])
async def list_classes(
    start: Optional[date] = Query(default=None, description="First date, inclusive"),
    end: Optional[date] = Query(default=None, description="Last date, inclusive"),
    subject_id: Optional[UUID] = Query(default=None),
    status: Optional[str] = Query(default=None),
    user: CurrentUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    rows = await ScheduleService(session).list_occurrences(
        user.id, start, end, subject_id=subject_id, status=status
    )
    return [OccurrenceOut.model_validate(o) for o in rows]


@router.get("/today", response_model=list[OccurrenceOut])
async def todays_classes(
    user: CurrentUser = Depends(require_user),
    today: date = Depends(get_reference_today),
    session: AsyncSession = Depends(get_session),
):
    rows = await ScheduleService(session).todays_classes(user.id, today)
    return [OccurrenceOut.model_validate(o) for o in rows]


@router.get("/week", response_model=list[OccurrenceOut])
async def week_classes(
    week_offset: int = Query(default=0, description="0 = this week, -1 = last week, 1 = next week"),
    user: CurrentUser = Depends(require_user),
    today: date = Depends(get_reference_today),
    session: AsyncSession = Depends(get_session),
):
    rows = await ScheduleService(session).week_classes(user.id, today, week_offset)
    return [OccurrenceOut.model_validate(o) for o in rows]


@router.post("/ensure-upcoming", response_model=MaterializeOut)
async def ensure_upcoming(
    days_ahead: Optional[int] = Query(default=None, ge=0),
    user: CurrentUser = Depends(require_user),
    today: date = Depends(get_reference_today),
    session: AsyncSession = Depends(get_session),
) -> MaterializeOut:
    result = await ScheduleService(session).ensure_upcoming(user.id, today, days_ahead)
    return MaterializeOut(planned_count=result.planned, created_count=result.created)


@router.post("/{occurrence_id}/status", response_model=MarkOut)
async def mark_class(
    occurrence_id: UUID,
    payload: MarkIn,
    user: CurrentUser = Depends(require_user),
    today: date = Depends(get_reference_today),
    session: AsyncSession = Depends(get_session),
) -> MarkOut:
    outcome = await ScheduleService(session).mark_occurrence(user.id, occurrence_id, payload.status, today)
    return MarkOut(
        occurrence=OccurrenceOut.model_validate(outcome.occurrence),
        summary=SubjectSummaryOut.from_attendance(outcome.attendance),
    )

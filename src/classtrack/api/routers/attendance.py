# src/classtrack/api/routers/attendance.py
from __future__ import annotations

from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from classtrack.auth import CurrentUser, get_reference_today, require_user
from classtrack.db.session import get_session
from classtrack.schemas import SubjectSummaryOut
from classtrack.services.schedule import ScheduleService

router = APIRouter(prefix="/attendance", tags=["attendance"])


@router.get("/summary", response_model=list[SubjectSummaryOut])
async def attendance_summary(
    subject_id: Optional[UUID] = Query(default=None),
    include_future: bool = Query(default=False, description="Count occurrences dated after today"),
    user: CurrentUser = Depends(require_user),
    today: date = Depends(get_reference_today),
    session: AsyncSession = Depends(get_session),
):
    items = await ScheduleService(session).get_summary(
        user.id, today, subject_id=subject_id, include_future=include_future
    )
    return [SubjectSummaryOut.from_attendance(i) for i in items]

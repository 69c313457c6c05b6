# src/classtrack/api/routers/subjects.py
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from classtrack.auth import CurrentUser, require_user
from classtrack.db.session import get_session
from classtrack.schemas import SubjectCreate, SubjectOut
from classtrack.services.schedule import ScheduleService

router = APIRouter(prefix="/subjects", tags=["subjects"])


@router.post("", response_model=SubjectOut, status_code=status.HTTP_201_CREATED)
async def create_subject(
    payload: SubjectCreate,
    user: CurrentUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
) -> SubjectOut:
    subject = await ScheduleService(session).create_subject(user.id, payload.name, payload.color)
    return SubjectOut.model_validate(subject)


@router.get("", response_model=list[SubjectOut])
async def list_subjects(
    user: CurrentUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    return [SubjectOut.model_validate(s) for s in await ScheduleService(session).list_subjects(user.id)]


@router.get("/{subject_id}", response_model=SubjectOut)
async def get_subject(
    subject_id: UUID,
    user: CurrentUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
) -> SubjectOut:
    return SubjectOut.model_validate(await ScheduleService(session).get_subject(user.id, subject_id))

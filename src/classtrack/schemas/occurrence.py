# schemas/occurrence.py
from __future__ import annotations

import datetime as dt
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel

from .base import APIModel
from .summary import SubjectSummaryOut


class OccurrenceOut(APIModel):
    id: UUID
    subject_id: UUID
    rule_id: Optional[UUID] = None
    date: dt.date
    weekday: str
    start_time: str
    end_time: str
    status: str
    marked_at: Optional[dt.datetime] = None


class MarkIn(BaseModel):
    status: Literal["attended", "missed", "cancelled"]


class MarkOut(BaseModel):
    occurrence: OccurrenceOut
    summary: SubjectSummaryOut

# schemas/summary.py
from __future__ import annotations

from typing import Literal
from uuid import UUID

from pydantic import BaseModel


class SubjectSummaryOut(BaseModel):
    subject_id: UUID
    subject_name: str
    color: str
    total: int
    attended: int
    missed: int
    cancelled: int
    pending: int
    percentage: int
    standing: Literal["green", "yellow", "red"]

    @classmethod
    def from_attendance(cls, item) -> "SubjectSummaryOut":
        return cls(
            subject_id=item.subject.id,
            subject_name=item.subject.name,
            color=item.subject.color,
            **item.summary.as_dict(),
        )

# schemas/recurrence_rule.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from .base import APIModel


class RuleUpsert(BaseModel):
    # loosely typed on purpose: RuleShape.build owns the validation rules
    subject_id: UUID
    weekdays: list[Any] = Field(..., description="Weekday tags: Mon, Tue, Wed, Thu, Fri, Sat, Sun")
    start_time: Any = Field(..., description="HH:MM, 24h")
    end_time: Any = Field(..., description="HH:MM, 24h, after start_time")
    position: int = Field(default=0, ge=0, description="Slot number within the subject")


class SlotIn(BaseModel):
    weekdays: list[Any]
    start_time: Any
    end_time: Any


class SlotsReplace(BaseModel):
    slots: list[SlotIn]


class RuleOut(APIModel):
    id: UUID
    subject_id: UUID
    position: int
    weekdays: list[str]
    start_time: str
    end_time: str
    created_at: datetime
    updated_at: datetime


class ReconcileOut(BaseModel):
    deleted_count: int = 0
    created_count: int = 0


class RuleUpsertOut(BaseModel):
    rule: RuleOut
    created: bool
    reconcile: ReconcileOut


class SlotsOut(BaseModel):
    slots: list[RuleUpsertOut]
    removed_count: int


class RuleDeleteOut(BaseModel):
    deleted_count: int


class TimetableEntryOut(APIModel):
    subject_id: UUID
    subject_name: str
    color: str
    rule_id: UUID
    start_time: str
    end_time: str


class MaterializeOut(BaseModel):
    planned_count: int
    created_count: int
    message: Optional[str] = None

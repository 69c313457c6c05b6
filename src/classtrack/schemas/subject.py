# schemas/subject.py
from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from .base import APIModel


class SubjectCreate(BaseModel):
    name: str = Field(..., description="Subject name, unique per user")
    color: Optional[str] = Field(default=None, description="Hex color, e.g. '#3B82F6'")


class SubjectOut(APIModel):
    id: UUID
    name: str
    color: str
    created_at: datetime

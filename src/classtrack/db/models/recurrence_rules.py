from __future__ import annotations

import uuid
from typing import ClassVar

import sqlalchemy as sa
from sqlalchemy import ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from classtrack.db.base import Base, UUIDMixin, GUID, JSONB


class RecurrenceRule(UUIDMixin, Base):
    __tablename__ = "recurrence_rules"

    NOTE: ClassVar[str] = (
        "description=Weekly recurrence of one time slot of a subject. "
        "weekdays holds canonical tags (Mon..Sun); start_time/end_time are civil HH:MM strings. "
        "position orders the slots of a subject; the simple schedule uses position 0 only."
    )

    __table_args__ = (
        UniqueConstraint("user_id", "subject_id", "position", name="uq_recurrence_rules_slot"),
        {"comment": "Weekly recurrence of one time slot of a subject.", "info": {"note": NOTE}},
    )

    user_id: Mapped[uuid.UUID] = mapped_column(GUID(), nullable=False, index=True)
    subject_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(sa.Integer, nullable=False, server_default="0", default=0)
    weekdays: Mapped[list[str]] = mapped_column(JSONB(), nullable=False)
    start_time: Mapped[str] = mapped_column(sa.String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(sa.String(5), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<RecurrenceRule id={self.id} subject={self.subject_id} slot={self.position} "
            f"{','.join(self.weekdays or [])} {self.start_time}-{self.end_time}>"
        )

from __future__ import annotations

import uuid
import datetime as dt
from typing import ClassVar, Optional

import sqlalchemy as sa
from sqlalchemy import CheckConstraint, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from classtrack.common.enums import OccurrenceStatus
from classtrack.db.base import Base, UUIDMixin, GUID

STATUS_VALUES = tuple(s.value for s in OccurrenceStatus)


class Occurrence(UUIDMixin, Base):
    __tablename__ = "occurrences"

    NOTE: ClassVar[str] = (
        "description=Materialized, dated class instances. "
        "date is a zone-less civil DATE; times are copied from the rule when materialized. "
        "(user_id, subject_id, date, start_time) is unique and is the only concurrency control. "
        "rule_id is detached (NULL) once the originating rule is deleted; marked rows survive."
    )

    __table_args__ = (
        UniqueConstraint("user_id", "subject_id", "date", "start_time", name="uq_occurrences_slot"),
        CheckConstraint(
            "status IN ('pending', 'attended', 'missed', 'cancelled')",
            name="status_valid",
        ),
        Index("ix_occurrences_user_date", "user_id", "date"),
        Index("ix_occurrences_rule_date_status", "rule_id", "date", "status"),
        {"comment": "Materialized, dated class instances.", "info": {"note": NOTE}},
    )

    user_id: Mapped[uuid.UUID] = mapped_column(GUID(), nullable=False)
    subject_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    rule_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        GUID(), ForeignKey("recurrence_rules.id", ondelete="SET NULL"), nullable=True
    )
    date: Mapped[dt.date] = mapped_column(sa.Date, nullable=False)
    start_time: Mapped[str] = mapped_column(sa.String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(sa.String(5), nullable=False)
    status: Mapped[str] = mapped_column(
        sa.String(16), nullable=False, default=OccurrenceStatus.PENDING.value,
        server_default=OccurrenceStatus.PENDING.value,
    )
    marked_at: Mapped[Optional[dt.datetime]] = mapped_column(sa.DateTime(timezone=True), nullable=True)

    @property
    def weekday(self) -> str:
        from classtrack.services.calendar_utils import weekday_tag

        return weekday_tag(self.date)

    def __repr__(self) -> str:
        return f"<Occurrence id={self.id} {self.date} {self.start_time} status={self.status}>"

from __future__ import annotations

import uuid
from typing import ClassVar

import sqlalchemy as sa
from sqlalchemy import UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from classtrack.db.base import Base, UUIDMixin, GUID


class Subject(UUIDMixin, Base):
    __tablename__ = "subjects"

    NOTE: ClassVar[str] = (
        "description=Subjects a user attends classes for. "
        "Owned by the user identified by user_id; name is unique per user."
    )

    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_subjects_user_name"),
        {"comment": "Subjects a user attends classes for.", "info": {"note": NOTE}},
    )

    user_id: Mapped[uuid.UUID] = mapped_column(GUID(), nullable=False, index=True)
    name: Mapped[str] = mapped_column(sa.Text, nullable=False)
    color: Mapped[str] = mapped_column(sa.String(7), nullable=False, server_default="#3B82F6")

    def __repr__(self) -> str:
        return f"<Subject id={self.id} name={self.name!r}>"

"""
Repository for subjects.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from classtrack.app_logger import get_logger
from classtrack.db.models import Subject
from classtrack.db.repositories.base import BaseRepository, store_guard
from classtrack.exceptions import ConflictError

logger = get_logger("repositories.subjects")


class SubjectRepository(BaseRepository[Subject]):
    entity = "subject"

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, Subject)

    async def create(self, user_id: UUID, name: str, color: str) -> Subject:
        try:
            return await self.add(Subject(user_id=user_id, name=name, color=color))
        except IntegrityError as e:
            await self.session.rollback()
            logger.info("subject name clash for user %s: %r", user_id, name)
            raise ConflictError(
                f"Subject {name!r} already exists",
                constraint="uq_subjects_user_name",
                cause=e,
            ) from e

    async def list_for_user(self, user_id: UUID) -> list[Subject]:
        async with store_guard("list subjects", self.session):
            stmt = select(Subject).where(Subject.user_id == user_id).order_by(Subject.name)
            return list((await self.session.execute(stmt)).scalars().all())

    async def by_ids(self, user_id: UUID, ids: set[UUID]) -> dict[UUID, Subject]:
        if not ids:
            return {}
        async with store_guard("load subjects", self.session):
            stmt = select(Subject).where(Subject.user_id == user_id, Subject.id.in_(ids))
            return {s.id: s for s in (await self.session.execute(stmt)).scalars().all()}

"""
Repository for recurrence rules (one row per subject time slot).
"""

from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from classtrack.app_logger import get_logger
from classtrack.db.models import RecurrenceRule
from classtrack.db.repositories.base import BaseRepository, store_guard
from classtrack.exceptions import ConflictError
from classtrack.services.rules import RuleShape

logger = get_logger("repositories.rules")


class RuleRepository(BaseRepository[RecurrenceRule]):
    entity = "rule"

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, RecurrenceRule)

    async def get_slot(self, user_id: UUID, subject_id: UUID, position: int = 0) -> Optional[RecurrenceRule]:
        async with store_guard("get rule", self.session):
            stmt = select(RecurrenceRule).where(
                RecurrenceRule.user_id == user_id,
                RecurrenceRule.subject_id == subject_id,
                RecurrenceRule.position == position,
            ).execution_options(populate_existing=True)
            return (await self.session.execute(stmt)).scalar_one_or_none()

    async def list_for_user(self, user_id: UUID, subject_id: Optional[UUID] = None) -> list[RecurrenceRule]:
        async with store_guard("list rules", self.session):
            stmt = select(RecurrenceRule).where(RecurrenceRule.user_id == user_id)
            if subject_id is not None:
                stmt = stmt.where(RecurrenceRule.subject_id == subject_id)
            stmt = stmt.order_by(RecurrenceRule.subject_id, RecurrenceRule.position)
            return list((await self.session.execute(stmt)).scalars().all())

    async def create(self, user_id: UUID, subject_id: UUID, shape: RuleShape, position: int = 0) -> RecurrenceRule:
        rule = RecurrenceRule(
            user_id=user_id,
            subject_id=subject_id,
            position=position,
            **shape.as_columns(),
        )
        try:
            return await self.add(rule)
        except IntegrityError as e:
            await self.session.rollback()
            logger.info("rule slot %s/%d already exists for user %s", subject_id, position, user_id)
            raise ConflictError(
                f"Slot {position} of subject {subject_id} already has a rule",
                constraint="uq_recurrence_rules_slot",
                cause=e,
            ) from e

    async def apply_shape(self, rule: RecurrenceRule, shape: RuleShape) -> RecurrenceRule:
        """Overwrite the rule's pattern in place and commit."""
        async with store_guard("update rule", self.session):
            for key, value in shape.as_columns().items():
                setattr(rule, key, value)
            await self.session.commit()
            await self.session.refresh(rule)
        logger.debug("Updated rule %s -> %s", rule.id, shape)
        return rule

    async def delete(self, rule: RecurrenceRule) -> None:
        async with store_guard("delete rule", self.session):
            await self.session.delete(rule)
            await self.session.commit()

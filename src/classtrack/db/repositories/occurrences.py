"""
Occurrence store.

The unique index on (user_id, subject_id, date, start_time) is the only
concurrency control: inserts are unordered and tolerate per-row conflicts,
deletes never touch rows whose status has left ``pending``.
"""

from collections import Counter, defaultdict
from datetime import date, datetime, timezone
from typing import Any, Iterable, Optional
from uuid import UUID

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from classtrack.app_logger import get_logger
from classtrack.common.enums import OccurrenceStatus
from classtrack.db.models import Occurrence
from classtrack.db.repositories.base import BaseRepository, store_guard

logger = get_logger("repositories.occurrences")

SLOT_KEY = ("user_id", "subject_id", "date", "start_time")

# Rows per multi-VALUES statement; keeps SQLite under its bound-parameter limit.
INSERT_CHUNK = 500


class OccurrenceRepository(BaseRepository[Occurrence]):
    entity = "occurrence"

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, Occurrence)

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------
    async def existing_keys(
        self,
        user_id: UUID,
        subject_id: UUID,
        start: date,
        end_exclusive: date,
    ) -> set[tuple[date, str]]:
        """All (date, start_time) slots already stored for a subject in [start, end)."""
        async with store_guard("check existing occurrences", self.session):
            stmt = select(Occurrence.date, Occurrence.start_time).where(
                Occurrence.user_id == user_id,
                Occurrence.subject_id == subject_id,
                Occurrence.date >= start,
                Occurrence.date < end_exclusive,
            )
            rows = (await self.session.execute(stmt)).all()
        return {(r.date, r.start_time) for r in rows}

    async def list_range(
        self,
        user_id: UUID,
        start: Optional[date] = None,
        end: Optional[date] = None,
        subject_id: Optional[UUID] = None,
        status: Optional[OccurrenceStatus] = None,
    ) -> list[Occurrence]:
        """Occurrences of a user between ``start`` and ``end`` inclusive, by date then start time."""
        stmt = select(Occurrence).where(Occurrence.user_id == user_id)
        if start is not None:
            stmt = stmt.where(Occurrence.date >= start)
        if end is not None:
            stmt = stmt.where(Occurrence.date <= end)
        if subject_id is not None:
            stmt = stmt.where(Occurrence.subject_id == subject_id)
        if status is not None:
            stmt = stmt.where(Occurrence.status == OccurrenceStatus(status).value)
        stmt = stmt.order_by(Occurrence.date, Occurrence.start_time, Occurrence.subject_id)
        # bulk UPDATE/DELETE skip session sync; reload whatever is already mapped
        stmt = stmt.execution_options(populate_existing=True)

        async with store_guard("list occurrences", self.session):
            return list((await self.session.execute(stmt)).scalars().all())

    async def list_for_rule(self, rule_id: UUID) -> list[Occurrence]:
        async with store_guard("list rule occurrences", self.session):
            stmt = (
                select(Occurrence)
                .where(Occurrence.rule_id == rule_id)
                .order_by(Occurrence.date, Occurrence.start_time)
                .execution_options(populate_existing=True)
            )
            return list((await self.session.execute(stmt)).scalars().all())

    async def status_counts(
        self,
        user_id: UUID,
        subject_id: Optional[UUID] = None,
        until: Optional[date] = None,
    ) -> dict[UUID, Counter]:
        """Per-subject counts of each status, optionally limited to dates <= ``until``."""
        stmt = (
            select(Occurrence.subject_id, Occurrence.status, func.count())
            .where(Occurrence.user_id == user_id)
            .group_by(Occurrence.subject_id, Occurrence.status)
        )
        if subject_id is not None:
            stmt = stmt.where(Occurrence.subject_id == subject_id)
        if until is not None:
            stmt = stmt.where(Occurrence.date <= until)

        async with store_guard("count occurrences", self.session):
            rows = (await self.session.execute(stmt)).all()

        counts: dict[UUID, Counter] = defaultdict(Counter)
        for sid, status, n in rows:
            counts[sid][status] += n
        return dict(counts)

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------
    async def insert_ignoring_conflicts(self, rows: Iterable[dict[str, Any]]) -> int:
        """
        Insert ``rows`` and commit; rows whose slot already exists are skipped.

        Returns the number of rows actually inserted. Never raises on a
        unique-slot conflict, including one created concurrently by another
        request after the caller's existence check.
        """
        rows = list(rows)
        if not rows:
            return 0

        dialect = self.session.get_bind().dialect.name
        async with store_guard("insert occurrences", self.session):
            if dialect in ("postgresql", "sqlite"):
                inserted = await self._insert_on_conflict_do_nothing(dialect, rows)
            else:
                inserted = await self._insert_per_row_savepoint(rows)
            await self.session.commit()

        skipped = len(rows) - inserted
        if skipped:
            logger.debug("skipped %d occurrence(s) that already exist", skipped)
        return inserted

    async def _insert_on_conflict_do_nothing(self, dialect: str, rows: list[dict[str, Any]]) -> int:
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert as dialect_insert
        else:
            from sqlalchemy.dialects.sqlite import insert as dialect_insert

        table = Occurrence.__table__
        inserted = 0
        for i in range(0, len(rows), INSERT_CHUNK):
            chunk = rows[i:i + INSERT_CHUNK]
            stmt = (
                dialect_insert(table)
                .values(chunk)
                .on_conflict_do_nothing(index_elements=list(SLOT_KEY))
                .returning(table.c.id)
            )
            result = await self.session.execute(stmt)
            inserted += len(result.all())
        return inserted

    async def _insert_per_row_savepoint(self, rows: list[dict[str, Any]]) -> int:
        # conditional put: one SAVEPOINT per row, a conflict only rolls back that row
        table = Occurrence.__table__
        inserted = 0
        for row in rows:
            try:
                async with self.session.begin_nested():
                    await self.session.execute(insert(table).values(**row))
            except IntegrityError:
                logger.debug("slot already exists: %s %s", row.get("date"), row.get("start_time"))
                continue
            inserted += 1
        return inserted

    async def delete_future_pending(self, rule_id: UUID, reference_today: date) -> int:
        """Delete the rule's still-pending occurrences dated today or later; commit."""
        stmt = (
            delete(Occurrence)
            .where(
                Occurrence.rule_id == rule_id,
                Occurrence.date >= reference_today,
                Occurrence.status == OccurrenceStatus.PENDING.value,
            )
            .execution_options(synchronize_session=False)
        )
        async with store_guard("delete pending occurrences", self.session):
            result = await self.session.execute(stmt)
            await self.session.commit()
        return result.rowcount or 0

    async def detach_rule(self, rule_id: UUID) -> int:
        """Unlink surviving occurrences from a rule that is about to be deleted."""
        stmt = (
            update(Occurrence)
            .where(Occurrence.rule_id == rule_id)
            .values(rule_id=None)
            .execution_options(synchronize_session=False)
        )
        async with store_guard("detach occurrences", self.session):
            result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def set_status(self, occurrence: Occurrence, status: OccurrenceStatus) -> Occurrence:
        """Record an outcome; ``marked_at`` is stamped the first time it leaves pending."""
        async with store_guard("mark occurrence", self.session):
            occurrence.status = status.value
            if occurrence.marked_at is None:
                occurrence.marked_at = datetime.now(timezone.utc)
            await self.session.commit()
            await self.session.refresh(occurrence)
        return occurrence

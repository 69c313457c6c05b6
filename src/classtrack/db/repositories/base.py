"""
Base repository class with the owner-scoped operations shared by all tables.
"""

from abc import ABC
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Generic, Protocol, TypeVar
from uuid import UUID

from sqlalchemy import exc as sa_exc
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from classtrack.app_logger import get_logger
from classtrack.exceptions import NotFoundError, StoreUnavailableError

logger = get_logger("repositories")

# Errors that mean "the store could not be reached", as opposed to errors in
# the statement itself. Only these become StoreUnavailableError.
TRANSPORT_ERRORS: tuple[type[BaseException], ...] = (
    sa_exc.OperationalError,
    sa_exc.InterfaceError,
    sa_exc.DisconnectionError,
    sa_exc.TimeoutError,
    ConnectionError,
    TimeoutError,
)


@asynccontextmanager
async def store_guard(operation: str, session: AsyncSession | None = None) -> AsyncIterator[None]:
    """
    Translate transport failures raised inside the block into
    StoreUnavailableError; everything else propagates untouched.
    """
    try:
        yield
    except TRANSPORT_ERRORS as e:
        logger.warning("store unavailable during %s: %s", operation, e)
        if session is not None:
            try:
                await session.rollback()
            except Exception as rb_err:  # the connection is already gone
                logger.debug("rollback after %s failed: %s", operation, rb_err)
        raise StoreUnavailableError(operation, cause=e) from e


# Generic type for model classes with id + user_id attributes
class OwnedRow(Protocol):
    id: Any
    user_id: Any


ModelType = TypeVar("ModelType", bound=OwnedRow)


class BaseRepository(Generic[ModelType], ABC):
    """
    Base repository providing owner-scoped lookups.

    Implements the Repository pattern with async SQLAlchemy operations,
    standardized error handling, and logging.
    """

    entity: str = "record"

    def __init__(self, session: AsyncSession, model_class: type[ModelType]) -> None:
        self.session = session
        self.model_class = model_class
        self.model_name = model_class.__name__

    async def get_owned(self, id: UUID, user_id: UUID) -> ModelType:
        """
        Fetch a row by id that belongs to ``user_id``.

        Raises NotFoundError both when the row is missing and when another
        user owns it.
        """
        async with store_guard(f"get {self.entity}", self.session):
            stmt = select(self.model_class).where(
                self.model_class.id == id,
                self.model_class.user_id == user_id,
            ).execution_options(populate_existing=True)
            instance = (await self.session.execute(stmt)).scalar_one_or_none()

        if instance is None:
            logger.debug("%s not found: %s (user %s)", self.model_name, id, user_id)
            raise NotFoundError(self.entity, id)
        return instance

    async def add(self, instance: ModelType) -> ModelType:
        """Persist a new row and commit."""
        async with store_guard(f"create {self.entity}", self.session):
            self.session.add(instance)
            await self.session.commit()
            await self.session.refresh(instance)
        logger.debug("Created %s: %s", self.model_name, instance.id)
        return instance

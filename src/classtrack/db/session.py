# src/classtrack/db/session.py
from __future__ import annotations

import logging
import re
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import AsyncGenerator, AsyncIterator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from classtrack.core.config import settings
from classtrack.db.base import Base

log = logging.getLogger("classtrack.db")


def _mask(url: str) -> str:
    return re.sub(r'//([^:@/]+)(?::[^@/]+)?@', r'//\1:*****@', url)


# ---------------------------------------------------------------------------
# Engine configuration
# ---------------------------------------------------------------------------

@lru_cache
def get_engine() -> AsyncEngine:
    """Build the async engine once per process."""
    url = settings.DATABASE_URL
    kwargs: dict = {"echo": settings.DB_ECHO}

    u = make_url(url)
    if u.get_backend_name() != "sqlite":
        kwargs["pool_pre_ping"] = True  # protects against stale connections
    # NullPool in tests avoids sharing one connection across event loops
    if settings.TESTING:
        kwargs["poolclass"] = NullPool

    log.info(
        "DB: connecting (driver=%s host=%s db=%s)",
        f"{u.get_backend_name()}+{u.get_driver_name()}", u.host, u.database,
    )
    log.debug("DB: using DATABASE_URL=%s", _mask(url))
    return create_async_engine(url, **kwargs)


@lru_cache
def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Return the app-wide async sessionmaker."""
    return async_sessionmaker(bind=get_engine(), expire_on_commit=False, class_=AsyncSession)


async def init_models(engine: AsyncEngine | None = None) -> None:
    """Create all tables directly (dev/CLI); production uses Alembic."""
    import classtrack.db.models  # noqa: F401  (register mappers)

    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# ---------------------------------------------------------------------------
# FastAPI dependencies
#   - session_scope: async context manager (use with `async with`)
#   - get_session: async generator (use with `Depends(get_session)`)
# ---------------------------------------------------------------------------

@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    async with get_sessionmaker()() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with session_scope() as session:
        yield session

# src/classtrack/tests/conftest.py
from __future__ import annotations

import logging
import os
import sys
import uuid
from datetime import date

import pytest

# Settings are read at import time; point them at the test setup first.
os.environ.setdefault("TESTING", "1")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from httpx import AsyncClient, ASGITransport  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from classtrack.auth import get_reference_today  # noqa: E402
from classtrack.db.base import Base  # noqa: E402
from classtrack.db.session import get_session  # noqa: E402
import classtrack.db.models  # noqa: E402,F401

# Monday
TODAY = date(2024, 9, 2)


# =========================
# Logging -> stdout
# =========================
@pytest.fixture(scope="session", autouse=True)
def _tests_log_to_stdout():
    """
    Ensure test logs go to stdout so they show up under pytest -s or log_cli=true.
    Avoid duplicates if handler is already present.
    """
    root = logging.getLogger()
    want = None
    for h in root.handlers:
        if isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stdout:
            want = h
            break
    if want is None:
        want = logging.StreamHandler(sys.stdout)
        want.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        root.addHandler(want)

    root.setLevel(os.getenv("TEST_LOG_LEVEL", "INFO").upper())


# Make anyio run on asyncio (so our async fixtures work everywhere)
@pytest.fixture(scope="session", autouse=True)
def anyio_backend():
    return "asyncio"


# ==============================================================
# Database: one in-memory SQLite per test
# ==============================================================

@pytest.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield eng
    finally:
        await eng.dispose()


@pytest.fixture
def sessionmaker(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def session(sessionmaker):
    async with sessionmaker() as s:
        yield s


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def user_id() -> uuid.UUID:
    return uuid.uuid4()


# ==============================================================
# App + client
# ==============================================================

@pytest.fixture
def app(sessionmaker, today):
    from classtrack.main import create_app

    application = create_app()

    async def _session_override():
        async with sessionmaker() as s:
            yield s

    application.dependency_overrides[get_session] = _session_override
    application.dependency_overrides[get_reference_today] = lambda: today
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def auth_headers(user_id) -> dict:
    return {"X-User-Id": str(user_id), "Accept": "application/json"}

from classtrack.db.base import Base, GUID, JSONB, UUIDMixin
from classtrack.db.session import get_engine, get_session, get_sessionmaker, init_models, session_scope

__all__ = [
    "Base",
    "GUID",
    "JSONB",
    "UUIDMixin",
    "get_engine",
    "get_session",
    "get_sessionmaker",
    "init_models",
    "session_scope",
]

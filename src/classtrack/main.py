# src/classtrack/main.py
from __future__ import annotations

import logging
import logging.config
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from starlette.responses import JSONResponse

from classtrack.api.routers import attendance, classes, health, schedule, subjects
from classtrack.core.config import settings
from classtrack.db.session import get_engine
from classtrack.exceptions import (
    ClasstrackError,
    ConflictError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "json": {
            "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
            "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s %(process)d %(module)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "stream": "ext://sys.stdout",
        },
    },
    "loggers": {
        "":               {"handlers": ["console"], "level": "INFO"},
        "uvicorn":        {"handlers": ["console"], "level": "INFO", "propagate": False},
        "uvicorn.error":  {"handlers": ["console"], "level": "INFO", "propagate": False},
        "uvicorn.access": {"handlers": ["console"], "level": "INFO", "propagate": False},
    },
}

log = logging.getLogger("classtrack.main")

# seconds a client should wait before retrying after a store outage
RETRY_AFTER_SECONDS = 5

_STATUS_FOR = (
    (ValidationError, 422),
    (NotFoundError, 404),
    (ConflictError, 409),
    (StoreUnavailableError, 503),
)


def _error_response(exc: ClasstrackError) -> JSONResponse:
    status_code = next((code for cls, code in _STATUS_FOR if isinstance(exc, cls)), 500)
    body = {"detail": exc.message, "error_code": exc.error_code, "context": exc.context}
    headers = {"Retry-After": str(RETRY_AFTER_SECONDS)} if exc.is_retryable() else None
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def create_app() -> FastAPI:
    if not settings.TESTING:
        logging.config.dictConfig(LOGGING)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info("[startup] %s %s", settings.APP_NAME, settings.APP_VERSION)
        yield
        # engine is cached per process; dispose pooled connections on shutdown
        if get_engine.cache_info().currsize:
            await get_engine().dispose()
        log.info("[shutdown] engine disposed")

    app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, lifespan=lifespan)

    @app.exception_handler(ClasstrackError)
    async def classtrack_error_handler(request: Request, exc: ClasstrackError):
        """
        Map the error taxonomy to HTTP:
        - ValidationError -> 422
        - NotFoundError -> 404
        - ConflictError -> 409
        - StoreUnavailableError -> 503 with Retry-After
        """
        if isinstance(exc, StoreUnavailableError):
            log.warning("%s %s: %s", request.method, request.url.path, exc, extra={"error": exc.to_dict()})
        else:
            log.info("%s %s: %s", request.method, request.url.path, exc)
        return _error_response(exc)

    app.include_router(health.router)
    app.include_router(subjects.router)
    app.include_router(schedule.router)
    app.include_router(classes.router)
    app.include_router(attendance.router)
    return app


app = create_app()

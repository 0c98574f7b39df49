"""Application factory for the student course registration service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import anyio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .auth import AuthenticationService
from .catalog import seed_courses
from .config import Settings, load_settings
from .database import Database
from .enrollment import EnrollmentService
from .sessions import SessionManager
from .web import register_routes

logger = logging.getLogger("registrar.service")


def _initialise_database(database: Database) -> Database:
    database.initialize()
    return database


def create_app(
    *,
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    session_manager: Optional[SessionManager] = None,
    seed: bool = True,
) -> FastAPI:
    """Instantiate the FastAPI application.

    ``settings`` defaults to :func:`load_settings` and ``database`` to the
    SQLite file the settings point at. When ``seed`` is true the default
    courses are inserted on startup if the catalog is empty.
    """

    settings = settings if settings is not None else load_settings()
    db = _initialise_database(database if database is not None else Database(settings.database_path))
    sessions = session_manager if session_manager is not None else SessionManager(settings)

    if not settings.session_cookie_secure:
        logger.warning(
            "Session cookies are not marked as secure. Set REGISTRAR_SESSION_SECURE=1"
            " when serving over HTTPS."
        )
    if settings.enrollment_strategy == "sequential":
        logger.warning(
            "Sequential enrollment is enabled; concurrent requests may overfill a course."
        )

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        if seed:
            await anyio.to_thread.run_sync(seed_courses, db)
        yield

    app = FastAPI(
        title="Student Course Registration",
        version="0.1.0",
        description="Student signup, login and capacity-limited course enrollment.",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    auth = AuthenticationService(db)
    enrollment = EnrollmentService(db, settings)

    app.state.settings = settings
    app.state.database = db
    app.state.session_manager = sessions
    app.state.auth = auth
    app.state.enrollment = enrollment

    register_routes(
        app,
        settings=settings,
        auth=auth,
        enrollment=enrollment,
        session_manager=sessions,
    )
    return app


__all__ = ["create_app"]

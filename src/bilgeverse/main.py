from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bilgeverse.core.config import get_settings
from bilgeverse.core.errors import install_error_handlers
from bilgeverse.db import init_db, session_scope
from bilgeverse.routers import (
    admin_audit,
    admin_periods,
    admin_point_reasons,
    admin_users,
    admin_weekly_questions,
    admin_weekly_reports,
    auth,
    points,
    system,
    tutor_weekly_reports,
)
from bilgeverse.services.bootstrap import ensure_admin_user


def create_app() -> FastAPI:
    settings = get_settings()
    logging.getLogger("bilgeverse").setLevel(str(settings.log_level).upper())

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        init_db()
        # Optional bootstrap admin (ADMIN_USERNAME / ADMIN_PASSWORD)
        with session_scope() as session:
            ensure_admin_user(session)
        yield

    app = FastAPI(title=settings.app_name, lifespan=lifespan)

    # Dev only: let a local frontend call the API
    if settings.env == "dev":
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[
                "http://127.0.0.1:3000",
                "http://localhost:3000",
                "http://127.0.0.1:8000",
                "http://localhost:8000",
            ],
            allow_credentials=False,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    install_error_handlers(app)

    app.include_router(auth.router)
    app.include_router(system.router)
    app.include_router(points.router)
    app.include_router(tutor_weekly_reports.router)

    # Admin API. Questions live under the weekly-reports prefix, so they go first.
    app.include_router(admin_periods.router)
    app.include_router(admin_weekly_questions.router)
    app.include_router(admin_weekly_reports.router)
    app.include_router(admin_point_reasons.router)
    app.include_router(admin_users.router)
    app.include_router(admin_audit.router)

    return app


app = create_app()

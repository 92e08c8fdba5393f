"""
FastAPI application for the coursework engine.

Provides REST API for:
- Course catalog
- Enrollment requests, review and progress
- Timed assessments and results
- Certificate requests and admin review
- Analytics and dashboards

Every engine failure is answered with its structured form and an HTTP
status chosen by its kind.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from coursework import __version__
from coursework.api.attempts import AttemptRegistry
from coursework.api.routers import (
    analytics_router,
    assessments_router,
    certificates_router,
    courses_router,
    enrollments_router,
)
from coursework.core.errors import ErrorKind, LMSError
from coursework.core.log_config import configure_logging
from coursework.db.database import check_database_health
from coursework.db.sql_store import SQLDocumentStore
from coursework.db.store import utcnow
from coursework.engine import LearningEngine, build_engine

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_STATE: 409,
    ErrorKind.DUPLICATE_REQUEST: 409,
    ErrorKind.VALIDATION_ERROR: 422,
    ErrorKind.PRECONDITION_FAILED: 409,
    ErrorKind.STORAGE_UNAVAILABLE: 503,
}


def create_app(engine: LearningEngine | None = None, configure_logs: bool = True) -> FastAPI:
    """Build the app. Without ``engine`` one is built from settings at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        if configure_logs:
            configure_logging()
        if getattr(app.state, "engine", None) is None:
            app.state.engine = build_engine()
        settings = app.state.engine.settings
        logger.info("Coursework API started on {}:{}", settings.api_host, settings.api_port)

        yield

        # Shutdown
        app.state.attempts.cancel_all()
        logger.info("Shutting down coursework API...")

    app = FastAPI(
        title="Coursework",
        description="Course catalog, enrollment, timed assessments, certificates and analytics.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.engine = engine
    app.state.attempts = AttemptRegistry()

    # CORS middleware for local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Restrict in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(LMSError)
    async def lms_error_handler(request: Request, exc: LMSError) -> JSONResponse:
        status = STATUS_BY_KIND.get(exc.kind, 400)
        if status >= 500:
            logger.error("{} {} failed: {}", request.method, request.url.path, exc.message)
        else:
            logger.debug("{} {} -> {} {}", request.method, request.url.path, status, exc.code)
        return JSONResponse(status_code=status, content=jsonable_encoder(exc.to_dict()))

    # ========================================
    # Health & Status Endpoints
    # ========================================

    @app.get("/", tags=["Health"])
    def root() -> dict[str, str]:
        """Root endpoint returning service info."""
        return {"service": "coursework", "version": __version__, "status": "ok"}

    @app.get("/health", tags=["Health"])
    def health_check(request: Request) -> dict[str, Any]:
        """Health check with an actual storage round-trip for the SQL backend."""
        store = request.app.state.engine.store
        if isinstance(store, SQLDocumentStore):
            db_status, db_error = check_database_health(store.engine)
        else:
            db_status, db_error = "ok", None

        result: dict[str, Any] = {
            "status": "healthy" if db_status == "ok" else "unhealthy",
            "timestamp": utcnow().isoformat(),
            "components": {
                "store": type(store).__name__,
                "database": db_status,
                "open_attempts": len(request.app.state.attempts),
            },
        }
        if db_error:
            result["errors"] = {"database": db_error}
        return result

    # ========================================
    # Routers
    # ========================================

    app.include_router(courses_router.router, prefix="/api/courses", tags=["Courses"])
    app.include_router(enrollments_router.router, prefix="/api/enrollments", tags=["Enrollments"])
    app.include_router(assessments_router.router, prefix="/api/assessments", tags=["Assessments"])
    app.include_router(certificates_router.router, prefix="/api/certificates", tags=["Certificates"])
    app.include_router(analytics_router.router, prefix="/api/analytics", tags=["Analytics"])
    return app


app = create_app()

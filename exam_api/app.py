"""Main FastAPI application."""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import sessionmaker

from core.logging_setup import setup_console_logging
from exam_api.config import LOG_LEVEL, AccessPolicy, SessionSettings
from exam_api.database import SessionLocal, init_db
from exam_api.routes import admin, exams, sessions
from exam_api.services.attempt_service import SqlAttemptGateway
from exam_api.services.exam_service import SqlExamProvider
from exam_api.services.scheduler import Scheduler, ThreadScheduler
from exam_api.services.session_registry import SessionRegistry

# Idle session sweep, every 5 minutes
SESSION_CLEANUP_INTERVAL_SECONDS = 300

logger = logging.getLogger(__name__)


def create_app(
    session_factory: sessionmaker = SessionLocal,
    scheduler: Scheduler | None = None,
    settings: SessionSettings | None = None,
    access_policy: AccessPolicy | None = None,
    background_writes: bool = True,
    create_tables: bool = True,
) -> FastAPI:
    """Build the application with its session registry."""
    scheduler = scheduler or ThreadScheduler()

    app = FastAPI(title="Exam Sessions API")
    app.state.session_factory = session_factory
    app.state.access_policy = access_policy or AccessPolicy()
    app.state.sessions = SessionRegistry(
        exams=SqlExamProvider(session_factory),
        attempts=SqlAttemptGateway(session_factory),
        scheduler=scheduler,
        settings=settings,
        background_writes=background_writes,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    def startup_events() -> None:
        """Initialize database and schedule idle session cleanup on startup."""
        if create_tables:
            init_db(session_factory.kw.get("bind"))
        app.state.cleanup_timer = scheduler.every(
            SESSION_CLEANUP_INTERVAL_SECONDS,
            app.state.sessions.cleanup_idle,
            name="sessions_cleanup",
        )
        logger.info("Exam sessions API started")

    @app.on_event("shutdown")
    def shutdown_events() -> None:
        """Save and stop live sessions."""
        timer = getattr(app.state, "cleanup_timer", None)
        if timer is not None:
            timer.cancel()
        app.state.sessions.shutdown()

    @app.get("/api/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    # Include routers
    app.include_router(exams.router)
    app.include_router(sessions.router)
    app.include_router(admin.router)
    return app


setup_console_logging(LOG_LEVEL)
app = create_app()

from __future__ import annotations
"""
AskCPA — FastAPI Backend
=========================
Main application entry point. Builds settings, wires the record store,
notification sink, dispatcher, lifecycle engine and session gate, and
includes route modules. All route handlers live in askcpa/routes/.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import askcpa.database as database
from askcpa.config import Settings
from askcpa.email_utils import SmtpNotificationSink
from askcpa.errors import AskCPAError, ConfigurationError, NotFoundError, PersistenceError
from askcpa.lifecycle import QuestionLifecycle
from askcpa.notifications import NotificationDispatcher
from askcpa.routes.dashboard import router as dashboard_router
from askcpa.routes.questions import router as questions_router
from askcpa.session_gate import SessionGate
from askcpa.status import StatusLookup

logger = logging.getLogger("askcpa")


def create_app(settings: Settings | None = None, sink=None) -> FastAPI:
    """Build the app. ``sink`` overrides the SMTP sink's ``send`` (tests)."""
    settings = settings or Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if sink is None:
        smtp = SmtpNotificationSink(settings)
        if not smtp.is_configured():
            logger.warning("[startup] SMTP not configured — notifications will be logged and dropped")
        sink = smtp.send

    dispatcher = NotificationDispatcher(
        sink,
        max_attempts=settings.notify_max_attempts,
        backoff_seconds=settings.notify_backoff_seconds,
    )
    lifecycle = QuestionLifecycle(dispatcher, admin_email=settings.admin_email)

    # -----------------------------------------------------------------------
    # Lifespan (startup / shutdown)
    # -----------------------------------------------------------------------

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        database.set_db_path(settings.database_path)
        if database.is_configured():
            await database.init_db()
            logger.info(f"[startup] Database initialized at: {settings.database_path}")
        else:
            logger.warning("[startup] DATABASE_PATH is empty — store calls will fail until configured")

        if not settings.dashboard_secret:
            logger.warning("[startup] DASHBOARD_SECRET not set — dashboard is disabled")

        yield

        # Shutdown: let queued emails finish, then drop the store binding
        await dispatcher.drain(timeout=30)
        database.set_db_path("")

    app = FastAPI(
        title="AskCPA",
        description="Ask the CPA Guy: submit accounting questions, get answers from a CPA",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.dispatcher = dispatcher
    app.state.lifecycle = lifecycle
    app.state.status_lookup = StatusLookup(lifecycle)
    app.state.session_gate = SessionGate(
        settings.dashboard_secret,
        session_hours=settings.dashboard_session_hours,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -----------------------------------------------------------------------
    # Error handling
    # -----------------------------------------------------------------------

    @app.exception_handler(AskCPAError)
    async def askcpa_error_handler(request: Request, exc: AskCPAError) -> JSONResponse:
        where = f"{request.method} {request.url.path}"
        if isinstance(exc, (PersistenceError, ConfigurationError)):
            logger.error(f"[{where}] {type(exc).__name__}: {exc}")
        elif isinstance(exc, NotFoundError):
            logger.info(f"[{where}] {exc}")
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_dict()})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        # Body-shape failures (missing field, oversize value) report like engine validation.
        first = exc.errors()[0] if exc.errors() else {"loc": ("body",), "msg": "Invalid request"}
        field = str(first["loc"][-1]) if first.get("loc") else "body"
        return JSONResponse(
            status_code=400,
            content={"detail": {"error": "validation_error", "field": field, "message": first["msg"]}},
        )

    # -----------------------------------------------------------------------
    # Health check (inline — too small for its own module)
    # -----------------------------------------------------------------------

    @app.get("/api/health")
    async def health():
        return {
            "status": "ok",
            "service": "askcpa",
            "database_configured": database.is_configured(),
            "pending_notifications": dispatcher.pending,
        }

    # -----------------------------------------------------------------------
    # Include route modules
    # -----------------------------------------------------------------------

    app.include_router(questions_router, tags=["Questions"])
    app.include_router(dashboard_router, tags=["Dashboard"])

    return app


app = create_app()

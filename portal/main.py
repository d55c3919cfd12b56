"""FastAPI entrypoint for the B2B ordering portal."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from portal.api.v1.api import api_router
from portal.core.config import settings
from portal.core.errors import PortalError
from portal.db import session as db_session
from portal.db.base import Base
from portal.db.seed import ensure_order_statuses
from portal.services.account_service import ensure_default_admin
from portal.services.scheduler import JobRunner, OrderScheduler, session_status_updater
from portal.services.settings_service import DatabaseSettingsProvider, get_settings

logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)
app.include_router(api_router, prefix="/api/v1")
app.state.order_scheduler = None


def error_body(message: str, *, error: str | None = None, **extra: Any) -> dict[str, Any]:
    """Common failure body; the raw cause is only exposed in development."""
    body: dict[str, Any] = {"success": False, "message": message, **extra}
    if error and settings.is_development:
        body["error"] = error
    return body


@app.exception_handler(PortalError)
async def handle_portal_error(request: Request, exc: PortalError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "[API] %s %s failed with %s: %s (error=%s)",
            request.method,
            request.url.path,
            type(exc).__name__,
            exc.message,
            exc.error,
        )
    else:
        logger.info("[API] %s %s rejected (%s): %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, error=exc.error, **exc.extra))


@app.exception_handler(StarletteHTTPException)
async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = "Datos de entrada inválidos"
    if location:
        message = f"{message}: {location}"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(message, error=str(first.get("msg", ""))),
    )


def build_order_scheduler() -> OrderScheduler:
    """Wire the scheduler to fresh sessions from the current session factory."""
    session_factory = lambda: db_session.SessionLocal()  # noqa: E731
    return OrderScheduler(
        DatabaseSettingsProvider(session_factory),
        session_status_updater(session_factory),
        JobRunner(poll_seconds=settings.scheduler_poll_seconds, timezone=settings.app_timezone),
        offset_minutes=settings.scheduler_offset_minutes,
        weekdays=settings.scheduler_weekdays,
        default_order_time_limit=settings.default_order_time_limit,
    )


@app.on_event("startup")
def startup() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    Base.metadata.create_all(bind=db_session.engine)
    with db_session.SessionLocal() as session:
        try:
            ensure_order_statuses(session)
            admin_present = ensure_default_admin(session)
            logger.info("[BOOTSTRAP] default admin present: %s", "yes" if admin_present else "no")
            row = get_settings(session)
            logger.info("[BOOTSTRAP] order time limit: %s", row.order_time_limit)
        except Exception:
            logger.exception("[BOOTSTRAP] Seed/bootstrap failed; continuing startup.")

    scheduler = build_order_scheduler()
    scheduler.initialize()
    if settings.scheduler_enabled:
        scheduler.runner.start()
    else:
        logger.info("[BOOTSTRAP] Order scheduler runner disabled (ORDER_SCHEDULER_ENABLED=0)")
    app.state.order_scheduler = scheduler


@app.on_event("shutdown")
def shutdown() -> None:
    scheduler: OrderScheduler | None = app.state.order_scheduler
    if scheduler is not None:
        scheduler.shutdown()
        app.state.order_scheduler = None


@app.get("/health")
def health() -> dict[str, Any]:
    scheduler: OrderScheduler | None = app.state.order_scheduler
    return {"success": True, "status": "ok", "scheduler": scheduler is not None and scheduler.initialized}

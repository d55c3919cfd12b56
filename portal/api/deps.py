"""Shared request dependencies and the success envelope."""

from typing import Any

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from portal.db import session as db_session
from portal.db.session import get_db
from portal.services.scheduler import OrderScheduler, session_status_updater
from portal.services.settings_service import SessionSettingsProvider, SettingsProvider


def ok(data: Any = None, **extra: Any) -> dict[str, Any]:
    """Wrap a payload in the common ``{"success": true, "data": ...}`` body."""
    return {"success": True, "data": data, **extra}


def get_settings_provider(db: Session = Depends(get_db)) -> SettingsProvider:
    return SessionSettingsProvider(db)


def get_order_scheduler(request: Request) -> OrderScheduler | None:
    return getattr(request.app.state, "order_scheduler", None)


def run_status_batch(scheduler: OrderScheduler | None, settings_provider: SettingsProvider, **options: Any):
    """Run the status batch through the scheduler, or directly when none is wired."""
    if scheduler is not None:
        return scheduler.run_status_update(**options)
    updater = session_status_updater(lambda: db_session.SessionLocal())
    return updater(settings_provider.get_order_time_limit(), **options)

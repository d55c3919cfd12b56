"""Admin settings store and the cutoff provider built on top of it."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Protocol

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.core.errors import ConfigurationError, ValidationError
from portal.db.session import transaction
from portal.models.admin_setting import ADMIN_SETTINGS_ID, AdminSetting
from portal.models.user import User
from portal.services.audit_service import log_action
from portal.services.delivery_dates import is_valid_order_time_limit
from portal.utils.time import now_local

logger = logging.getLogger(__name__)


class SettingsProvider(Protocol):
    """Source of the admin-configured daily cutoff."""

    def get_order_time_limit(self) -> str: ...


def _dialect_insert(db: Session) -> Callable[..., Any]:
    dialect_name = db.get_bind().dialect.name
    if dialect_name == "postgresql":
        return postgresql.insert
    if dialect_name == "sqlite":
        return sqlite.insert
    raise ConfigurationError(error=f"Unsupported database dialect for settings upsert: {dialect_name}")


def _read_settings_row(db: Session) -> AdminSetting | None:
    return db.scalar(
        select(AdminSetting)
        .where(AdminSetting.id == ADMIN_SETTINGS_ID)
        .execution_options(populate_existing=True)
    )


def get_settings(db: Session) -> AdminSetting:
    """Return the settings row, creating the default one on first access."""
    row = _read_settings_row(db)
    if row is not None:
        return row

    insert = _dialect_insert(db)
    now = now_local()
    statement = (
        insert(AdminSetting)
        .values(
            id=ADMIN_SETTINGS_ID,
            order_time_limit=settings.default_order_time_limit,
            home_banner_image_url=None,
            created_at=now,
            updated_at=now,
        )
        .on_conflict_do_nothing(index_elements=[AdminSetting.id])
    )
    with transaction(db):
        db.execute(statement)
    logger.info("[SETTINGS] Default admin settings created (order_time_limit=%s)", settings.default_order_time_limit)

    row = _read_settings_row(db)
    if row is None:
        raise ConfigurationError(error="Admin settings row missing after default insert")
    return row


def update_settings(
    db: Session,
    *,
    order_time_limit: str,
    home_banner_image_url: str | None = None,
    actor: User | None = None,
) -> AdminSetting:
    """Write the cutoff (and optionally the banner) with a single upsert.

    When ``actor`` is given, the ``SETTINGS_UPDATED`` audit row commits with
    the change or not at all.
    """
    if not is_valid_order_time_limit(order_time_limit):
        raise ValidationError("Formato de hora límite inválido. Use HH:MM (24 horas)")

    insert = _dialect_insert(db)
    now = now_local()
    statement = insert(AdminSetting).values(
        id=ADMIN_SETTINGS_ID,
        order_time_limit=order_time_limit,
        home_banner_image_url=home_banner_image_url,
        created_at=now,
        updated_at=now,
    )
    statement = statement.on_conflict_do_update(
        index_elements=[AdminSetting.id],
        set_={
            "order_time_limit": statement.excluded.order_time_limit,
            "home_banner_image_url": func.coalesce(
                statement.excluded.home_banner_image_url,
                AdminSetting.home_banner_image_url,
            ),
            "updated_at": statement.excluded.updated_at,
        },
    )
    with transaction(db):
        before = db.scalar(select(AdminSetting.order_time_limit).where(AdminSetting.id == ADMIN_SETTINGS_ID))
        db.execute(statement)
        if actor is not None:
            log_action(
                db,
                actor=actor,
                action_type="SETTINGS_UPDATED",
                before_snapshot={"orderTimeLimit": before},
                after_snapshot={"orderTimeLimit": order_time_limit},
            )
    logger.info("[SETTINGS] Admin settings updated (order_time_limit=%s)", order_time_limit)

    row = _read_settings_row(db)
    if row is None:
        raise ConfigurationError(error="Admin settings row missing after update")
    return row


def require_order_time_limit(row: AdminSetting) -> str:
    """Return a usable cutoff or fail as a server misconfiguration."""
    value = (row.order_time_limit or "").strip()
    if not value:
        raise ConfigurationError(error="order_time_limit is empty")
    return value


class DatabaseSettingsProvider:
    """Reads the cutoff through a fresh short-lived session on every call."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def get_order_time_limit(self) -> str:
        with self._session_factory() as db:
            return require_order_time_limit(get_settings(db))


class SessionSettingsProvider:
    """Provider bound to an already open request session."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def get_order_time_limit(self) -> str:
        return require_order_time_limit(get_settings(self._db))

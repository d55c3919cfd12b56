"""Admin settings endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from portal.api.deps import get_order_scheduler, ok
from portal.core.security import get_current_user, require_admin
from portal.db.session import get_db
from portal.models import User
from portal.schemas.settings import SettingsRead, SettingsUpdate
from portal.services.scheduler import OrderScheduler
from portal.services.settings_service import get_settings, update_settings

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/settings")
def read_settings(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict[str, Any]:
    """Admins get the full row; everyone else only the cutoff."""
    row = get_settings(db)
    if not current_user.is_admin:
        return ok({"orderTimeLimit": row.order_time_limit})
    return ok(SettingsRead.model_validate(row).model_dump(mode="json", by_alias=True))


@router.put("/settings")
def write_settings(
    payload: SettingsUpdate,
    db: Session = Depends(get_db),
    scheduler: OrderScheduler | None = Depends(get_order_scheduler),
    current_user: User = Depends(require_admin),
) -> dict[str, Any]:
    row = update_settings(
        db,
        order_time_limit=payload.order_time_limit,
        home_banner_image_url=payload.home_banner_image_url,
        actor=current_user,
    )

    if scheduler is not None:
        try:
            scheduler.update_task_settings({"orderTimeLimit": row.order_time_limit})
        except Exception:
            # Settings are already stored; the next restart picks them up.
            logger.exception("[SETTINGS] Failed to reschedule status task (order_time_limit=%s)", row.order_time_limit)

    return ok(
        SettingsRead.model_validate(row).model_dump(mode="json", by_alias=True),
        message="Configuración actualizada exitosamente",
    )


@router.get("/scheduler")
def read_scheduler_state(
    scheduler: OrderScheduler | None = Depends(get_order_scheduler),
    current_user: User = Depends(require_admin),
) -> dict[str, Any]:
    if scheduler is None:
        return ok({"initialized": False})
    return ok({"initialized": scheduler.initialized, **scheduler.describe()})

"""Account provisioning and credential checks."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.core.security import get_password_hash, verify_password
from portal.models import User
from portal.services.user_service import create_user, get_user_by_email
from portal.utils.time import now_local

logger = logging.getLogger(__name__)


def ensure_default_admin(db: Session) -> bool:
    """Ensure the bootstrap admin account exists and is active.

    Returns:
        bool: True when the admin account existed before this call.
    """
    email = settings.admin_email.strip().lower()
    existing_admin = get_user_by_email(db, email)
    if existing_admin is not None:
        updates_applied = False
        if not existing_admin.is_active:
            existing_admin.is_active = True
            updates_applied = True
            logger.info("[BOOTSTRAP] Admin exists but was inactive; account re-activated.")
        if existing_admin.role != "ADMIN":
            logger.warning("[BOOTSTRAP] Bootstrap admin had role=%s; restoring ADMIN.", existing_admin.role)
            existing_admin.role = "ADMIN"
            updates_applied = True
        if updates_applied:
            db.commit()
        return True

    create_user(
        db,
        name=settings.admin_username,
        email=email,
        hashed_password=get_password_hash(settings.admin_password),
        role="ADMIN",
    )
    logger.warning("[SECURITY] Default admin account created: %s. Change the default password.", email)
    return False


def authenticate_user(db: Session, email: str, password: str) -> User | None:
    user = get_user_by_email(db, email)
    if user is None or not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        return None
    user.last_login_at = now_local()
    db.commit()
    db.refresh(user)
    return user

"""Admin settings ORM model."""

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from portal.db.base import Base
from portal.utils.time import now_local

ADMIN_SETTINGS_ID: int = 1


class AdminSetting(Base):
    """Singleton row holding the order cutoff and the home banner."""

    __tablename__ = "admin_settings"

    id: Mapped[int] = mapped_column(primary_key=True, default=ADMIN_SETTINGS_ID)
    order_time_limit: Mapped[str] = mapped_column(String(5), nullable=False, default="18:00")
    home_banner_image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=now_local)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=now_local, onupdate=now_local)

    __table_args__ = (CheckConstraint(f"id = {ADMIN_SETTINGS_ID}", name="ck_admin_settings_singleton"),)

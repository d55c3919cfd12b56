"""User ORM model."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portal.db.base import Base
from portal.utils.time import now_local

USER_ROLES = ("ADMIN", "CLIENT")


def normalize_user_role(role: str) -> str:
    """Return canonical upper-case role or raise for unknown values."""
    normalized = str(role or "").strip().upper()
    if normalized not in USER_ROLES:
        raise ValueError(f"Unknown role: {role}")
    return normalized


class User(Base):
    """Portal account owning orders; admins act on any order."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(Enum(*USER_ROLES, name="user_role"), nullable=False, default="CLIENT")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=now_local)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    orders: Mapped[list["Order"]] = relationship(back_populates="user")

    @property
    def is_admin(self) -> bool:
        return self.role == "ADMIN"

"""Shared SQLAlchemy base declarative class and model imports."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for ORM models."""


# Import model modules so metadata is populated before create_all.
from portal.models import admin_setting as _admin_setting  # noqa: E402,F401
from portal.models import audit_log as _audit_log  # noqa: E402,F401
from portal.models import order as _order  # noqa: E402,F401
from portal.models import product as _product  # noqa: E402,F401
from portal.models import user as _user  # noqa: E402,F401

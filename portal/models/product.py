"""Product catalog ORM model."""

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from portal.db.base import Base


class Product(Base):
    """Catalog product referenced by order line items.

    Prices come from the ERP price lists; only identity is kept here.
    """

    __tablename__ = "products"

    product_id: Mapped[int] = mapped_column(primary_key=True)
    code: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

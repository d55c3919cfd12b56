"""Order, line item and status lookup models."""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portal.db.base import Base
from portal.utils.time import now_local


class OrderStatusRow(Base):
    """Lookup table mirroring the ``OrderStatus`` enumeration."""

    __tablename__ = "order_status"

    status_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    status_name: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    status_color: Mapped[str | None] = mapped_column(String(16), nullable=True)


class Order(Base):
    """Customer order with its delivery date and lifecycle status."""

    __tablename__ = "orders"

    order_id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    branch_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    invoice_total: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    delivery_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status_id: Mapped[int] = mapped_column(ForeignKey("order_status.status_id"), nullable=False, default=1)
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=now_local)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=now_local, onupdate=now_local)
    last_status_update: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    user: Mapped["User"] = relationship(back_populates="orders")
    status: Mapped[OrderStatusRow] = relationship()
    details: Mapped[list["OrderDetail"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="OrderDetail.order_detail_id",
    )

    __table_args__ = (
        Index("ix_orders_status_delivery_date", "status_id", "delivery_date"),
        Index("ix_orders_user_id", "user_id"),
    )

    @property
    def status_name(self) -> str | None:
        return self.status.status_name if self.status is not None else None

    @property
    def user_name(self) -> str | None:
        return self.user.name if self.user is not None else None

    @property
    def item_count(self) -> int:
        return len(self.details)

    @property
    def total_items(self) -> int:
        return sum(detail.quantity for detail in self.details)


class OrderDetail(Base):
    """Line item owned by exactly one order."""

    __tablename__ = "order_details"

    order_detail_id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.order_id", ondelete="CASCADE"), nullable=False, index=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.product_id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    order: Mapped[Order] = relationship(back_populates="details")
    product: Mapped["Product"] = relationship()

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_details_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_order_details_unit_price_non_negative"),
    )

    @property
    def product_name(self) -> str | None:
        return self.product.name if self.product is not None else None

"""Order engine: transactional creation, updates and batch status transitions."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from sqlalchemy import and_, delete, distinct, extract, func, insert, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from portal.core.config import settings
from portal.core.errors import InvalidOrderError, OrderCreationError, PortalError, ValidationError
from portal.db.session import transaction
from portal.models import Order, OrderDetail, OrderStatusRow, Product, User
from portal.services.audit_service import log_action
from portal.services.delivery_dates import parse_order_time_limit
from portal.services.order_status import OrderStatus, ensure_transition, is_terminal, to_status
from portal.utils.time import at_time, now_local

logger = logging.getLogger(__name__)

TWO_PLACES: Decimal = Decimal("0.01")
UNSET: Any = object()


@dataclass(frozen=True)
class LineItem:
    product_id: int
    quantity: int
    unit_price: Decimal


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal


@dataclass(frozen=True)
class OrderCreationResult:
    order_id: int
    details_count: int


@dataclass
class StatusUpdateResult:
    """Outcome of one bulk status pass."""

    updated_ids: list[int] = field(default_factory=list)
    cancelled_ids: list[int] = field(default_factory=list)

    @property
    def updated_count(self) -> int:
        return len(self.updated_ids)

    @property
    def cancelled_count(self) -> int:
        return len(self.cancelled_ids)

    def as_dict(self) -> dict[str, Any]:
        return {
            "updatedCount": self.updated_count,
            "cancelledCount": self.cancelled_count,
            "updatedIds": list(self.updated_ids),
            "cancelledIds": list(self.cancelled_ids),
        }


def _field(item: Any, name: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def validate_line_items(details: Iterable[Any] | None) -> list[LineItem]:
    """Normalize raw line items, enforcing quantity > 0 and unit price >= 0."""
    raw_items = list(details or [])
    if not raw_items:
        raise InvalidOrderError()

    items: list[LineItem] = []
    for position, raw in enumerate(raw_items, start=1):
        try:
            product_id = int(_field(raw, "product_id"))
            quantity = int(_field(raw, "quantity"))
            unit_price = Decimal(str(_field(raw, "unit_price")))
        except (TypeError, ValueError, InvalidOperation) as exc:
            raise ValidationError(f"Detalle {position} de la orden es inválido") from exc
        if quantity <= 0:
            raise ValidationError(f"La cantidad del detalle {position} debe ser mayor a cero")
        if unit_price < 0:
            raise ValidationError(f"El precio unitario del detalle {position} no puede ser negativo")
        items.append(LineItem(product_id=product_id, quantity=quantity, unit_price=unit_price))
    return items


def calculate_totals(items: Iterable[LineItem], tax_rate: Decimal | None = None) -> OrderTotals:
    """Subtotal, tax and total rounded to cents."""
    rate = tax_rate if tax_rate is not None else Decimal(settings.order_tax_rate)
    subtotal = sum((item.unit_price * item.quantity for item in items), Decimal("0"))
    subtotal = subtotal.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    tax_amount = (subtotal * rate).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    return OrderTotals(subtotal=subtotal, tax_amount=tax_amount, total_amount=subtotal + tax_amount)


def _detail_rows(order_id: int, items: list[LineItem]) -> list[dict[str, Any]]:
    return [
        {
            "order_id": order_id,
            "product_id": item.product_id,
            "quantity": item.quantity,
            "unit_price": item.unit_price,
        }
        for item in items
    ]


def order_snapshot(order: Order) -> dict[str, Any]:
    """JSON-safe view of an order used for audit trails."""
    return {
        "order_id": order.order_id,
        "user_id": order.user_id,
        "status_id": order.status_id,
        "delivery_date": order.delivery_date.isoformat() if order.delivery_date else None,
        "total_amount": str(order.total_amount) if order.total_amount is not None else None,
        "comments": order.comments,
    }


def create_order(
    db: Session,
    *,
    user_id: int,
    total_amount: Decimal | int | float | str,
    details: Iterable[Any],
    delivery_date: date | None = None,
    status: int | OrderStatus = OrderStatus.OPEN,
    branch_id: int | None = None,
    comments: str | None = None,
    actor: User | None = None,
) -> OrderCreationResult:
    """Insert an order and all of its line items atomically.

    The stored amounts are recomputed from the line items; ``total_amount``
    only has to be positive. Any database failure rolls the whole order back
    and surfaces as ``OrderCreationError``.
    """
    items = validate_line_items(details)
    try:
        requested_total = Decimal(str(total_amount))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError("El monto total es inválido") from exc
    if requested_total <= 0:
        raise ValidationError("El monto total debe ser mayor a cero")
    initial_status = to_status(status)

    totals = calculate_totals(items)
    if totals.total_amount != requested_total.quantize(TWO_PLACES, rounding=ROUND_HALF_UP):
        logger.debug(
            "[ORDERS] Provided total differs from calculated total (user_id=%s provided=%s calculated=%s)",
            user_id,
            requested_total,
            totals.total_amount,
        )

    now = now_local()
    try:
        with transaction(db):
            order = Order(
                user_id=user_id,
                branch_id=branch_id,
                total_amount=totals.total_amount,
                subtotal=totals.subtotal,
                tax_amount=totals.tax_amount,
                delivery_date=delivery_date,
                status_id=int(initial_status),
                comments=comments,
                created_at=now,
                updated_at=now,
                last_status_update=now,
            )
            db.add(order)
            db.flush()
            order_id = order.order_id

            db.execute(insert(OrderDetail), _detail_rows(order_id, items))
            log_action(
                db,
                actor=actor,
                action_type="ORDER_CREATED",
                order_id=order_id,
                after_snapshot={**order_snapshot(order), "details_count": len(items)},
            )
    except SQLAlchemyError as exc:
        logger.exception("[ORDERS] create_order failed and was rolled back (user_id=%s)", user_id)
        raise OrderCreationError(error=str(exc)) from exc

    logger.info(
        "[ORDERS] Order created (order_id=%s user_id=%s details=%s delivery_date=%s)",
        order_id,
        user_id,
        len(items),
        delivery_date,
    )
    return OrderCreationResult(order_id=order_id, details_count=len(items))


def update_pending_orders_status(
    db: Session,
    order_time_limit: str,
    *,
    now: datetime | None = None,
    ignore_time_limit: bool = False,
    ignore_creation_date: bool = False,
    ignore_delivery_date: bool = False,
) -> StatusUpdateResult:
    """Cancel expired Open orders and move the day's Open orders to production.

    Both buckets are written by set-based statements in one transaction.
    Expired orders (delivery date before today) are cancelled first, so an
    order never lands in both buckets. Re-running with nothing newly eligible
    changes nothing.
    """
    cutoff = parse_order_time_limit(order_time_limit)
    current: datetime = now or now_local()
    today: date = current.date()
    cutoff_moment: datetime = at_time(current, cutoff)
    result = StatusUpdateResult()

    expired = and_(
        Order.status_id == int(OrderStatus.OPEN),
        Order.delivery_date.is_not(None),
        Order.delivery_date < today,
    )

    with transaction(db):
        result.cancelled_ids = list(
            db.scalars(select(Order.order_id).where(expired).order_by(Order.order_id).with_for_update())
        )
        if result.cancelled_ids:
            db.execute(
                update(Order)
                .where(Order.order_id.in_(result.cancelled_ids), expired)
                .values(status_id=int(OrderStatus.CANCELLED), last_status_update=current, updated_at=current)
            )

        if ignore_time_limit or current >= cutoff_moment:
            conditions = [
                Order.status_id == int(OrderStatus.OPEN),
                or_(Order.delivery_date.is_(None), Order.delivery_date >= today),
            ]
            if not (ignore_creation_date or ignore_delivery_date):
                conditions.append(Order.created_at <= cutoff_moment)
            eligible = and_(*conditions)

            result.updated_ids = list(
                db.scalars(select(Order.order_id).where(eligible).order_by(Order.order_id).with_for_update())
            )
            if result.updated_ids:
                db.execute(
                    update(Order)
                    .where(Order.order_id.in_(result.updated_ids), eligible)
                    .values(status_id=int(OrderStatus.IN_PRODUCTION), last_status_update=current, updated_at=current)
                )

        if result.updated_ids or result.cancelled_ids:
            log_action(
                db,
                actor=None,
                action_type="ORDER_STATUS_BATCH",
                after_snapshot={
                    **result.as_dict(),
                    "orderTimeLimit": order_time_limit,
                    "ignoreTimeLimit": ignore_time_limit,
                    "ignoreCreationDate": ignore_creation_date or ignore_delivery_date,
                },
            )

    if result.updated_ids or result.cancelled_ids:
        logger.info(
            "[ORDERS] Status batch done (in_production=%s cancelled=%s updated_ids=%s cancelled_ids=%s)",
            result.updated_count,
            result.cancelled_count,
            result.updated_ids,
            result.cancelled_ids,
        )
    else:
        logger.debug("[ORDERS] Status batch found no eligible orders")
    return result


def _order_query():
    return select(Order).options(
        selectinload(Order.details).selectinload(OrderDetail.product),
        selectinload(Order.user),
        selectinload(Order.status),
    )


def get_order_with_details(db: Session, order_id: int) -> Order | None:
    return db.scalar(_order_query().where(Order.order_id == order_id))


def get_user_orders(db: Session, user_id: int) -> list[Order]:
    return list(
        db.scalars(_order_query().where(Order.user_id == user_id).order_by(Order.created_at.desc(), Order.order_id.desc()))
    )


def get_orders_by_delivery_date(
    db: Session,
    delivery_date: date,
    *,
    status_id: int | None = None,
    user_id: int | None = None,
) -> list[Order]:
    """Orders due on a calendar date, optionally narrowed to a status or owner."""
    query = _order_query().where(Order.delivery_date == delivery_date)
    if status_id is not None:
        query = query.where(Order.status_id == int(to_status(status_id)))
    if user_id is not None:
        query = query.where(Order.user_id == user_id)
    return list(db.scalars(query.order_by(Order.delivery_date, Order.created_at.desc())))


def get_orders_by_status(db: Session, status_id: int) -> list[Order]:
    query = _order_query().where(Order.status_id == int(to_status(status_id)))
    return list(db.scalars(query.order_by(Order.created_at.desc())))


def list_order_statuses(db: Session) -> list[OrderStatusRow]:
    return list(db.scalars(select(OrderStatusRow).order_by(OrderStatusRow.status_id)))


MONTH_LABELS: tuple[str, ...] = ("Ene", "Feb", "Mar", "Abr", "May", "Jun", "Jul", "Ago", "Sep", "Oct", "Nov", "Dic")
MAX_STATS_MONTHS: int = 24


@dataclass(frozen=True)
class ProductSales:
    product_id: int
    product_name: str
    quantity: int
    total_orders: int

    def as_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "total_orders": self.total_orders,
        }


@dataclass(frozen=True)
class MonthlyOrderStats:
    year: int
    month: int
    count: int
    total_amount: Decimal

    @property
    def label(self) -> str:
        return f"{MONTH_LABELS[self.month - 1]} {self.year}"

    def as_dict(self) -> dict[str, Any]:
        return {"month": self.label, "count": self.count, "totalAmount": str(self.total_amount)}


def get_top_selling_products(
    db: Session,
    *,
    limit: int = 5,
    start_date: date | None = None,
    end_date: date | None = None,
    user_id: int | None = None,
) -> list[ProductSales]:
    """Best sellers by units over ``start_date``..``end_date`` (both inclusive).

    The period defaults to the current month up to today. Cancelled orders
    are left out.
    """
    if limit < 1:
        raise ValidationError("El parámetro limit debe ser mayor a cero")
    today = now_local().date()
    start = start_date or today.replace(day=1)
    end = end_date or today
    if start > end:
        raise ValidationError("La fecha inicial no puede ser posterior a la fecha final")

    conditions = [
        Order.created_at >= datetime.combine(start, time.min),
        Order.created_at < datetime.combine(end + timedelta(days=1), time.min),
        Order.status_id != int(OrderStatus.CANCELLED),
    ]
    if user_id is not None:
        conditions.append(Order.user_id == user_id)

    quantity = func.sum(OrderDetail.quantity).label("quantity")
    query = (
        select(
            Product.product_id,
            Product.name,
            quantity,
            func.count(distinct(Order.order_id)).label("total_orders"),
        )
        .select_from(OrderDetail)
        .join(Order, OrderDetail.order_id == Order.order_id)
        .join(Product, OrderDetail.product_id == Product.product_id)
        .where(*conditions)
        .group_by(Product.product_id, Product.name)
        .order_by(quantity.desc(), Product.product_id)
        .limit(limit)
    )

    rows = [
        ProductSales(
            product_id=row.product_id,
            product_name=row.name,
            quantity=int(row.quantity),
            total_orders=int(row.total_orders),
        )
        for row in db.execute(query)
    ]
    logger.debug("[ORDERS] Top products %s..%s user_id=%s -> %s rows", start, end, user_id, len(rows))
    return rows


def _shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def get_monthly_stats(db: Session, user_id: int, months: int = 6) -> list[MonthlyOrderStats]:
    """Order count and amount per calendar month, oldest first, current month last.

    Months without orders are reported with zeros.
    """
    if not 1 <= months <= MAX_STATS_MONTHS:
        raise ValidationError(f"El parámetro months debe estar entre 1 y {MAX_STATS_MONTHS}")
    today = now_local().date()
    first_year, first_month = _shift_month(today.year, today.month, -(months - 1))
    year_col = extract("year", Order.created_at)
    month_col = extract("month", Order.created_at)
    query = (
        select(
            year_col.label("year"),
            month_col.label("month"),
            func.count(Order.order_id).label("order_count"),
            func.coalesce(func.sum(Order.total_amount), 0).label("total_amount"),
        )
        .where(
            Order.user_id == user_id,
            Order.created_at >= datetime(first_year, first_month, 1),
        )
        .group_by(year_col, month_col)
    )
    buckets = {
        (int(row.year), int(row.month)): (int(row.order_count), Decimal(str(row.total_amount)))
        for row in db.execute(query)
    }

    stats = []
    for offset in range(months):
        year, month = _shift_month(first_year, first_month, offset)
        count, total = buckets.get((year, month), (0, Decimal("0")))
        stats.append(MonthlyOrderStats(year=year, month=month, count=count, total_amount=total.quantize(TWO_PLACES)))
    return stats


def update_order(
    db: Session,
    order: Order,
    *,
    actor: User | None,
    delivery_date: date | None = UNSET,
    status: int | OrderStatus | None = None,
    comments: str | None = UNSET,
    details: Iterable[Any] | None = None,
) -> Order:
    """Apply a partial update; replacing details recomputes the totals."""
    if is_terminal(order.status_id):
        raise ValidationError("No se puede modificar una orden en estado Entregado, Cerrado o Cancelado")

    items = validate_line_items(details) if details is not None else None
    before = order_snapshot(order)
    now = now_local()
    try:
        with transaction(db):
            if status is not None and int(status) != order.status_id:
                target = ensure_transition(order.status_id, status)
                order.status_id = int(target)
                order.last_status_update = now
            if delivery_date is not UNSET:
                order.delivery_date = delivery_date
            if comments is not UNSET:
                order.comments = comments
            if items is not None:
                totals = calculate_totals(items)
                db.execute(
                    delete(OrderDetail)
                    .where(OrderDetail.order_id == order.order_id)
                    .execution_options(synchronize_session=False)
                )
                db.execute(insert(OrderDetail), _detail_rows(order.order_id, items))
                order.subtotal = totals.subtotal
                order.tax_amount = totals.tax_amount
                order.total_amount = totals.total_amount
            order.updated_at = now
            log_action(
                db,
                actor=actor,
                action_type="ORDER_UPDATED",
                order_id=order.order_id,
                before_snapshot=before,
                after_snapshot=order_snapshot(order),
            )
    except SQLAlchemyError as exc:
        logger.exception("[ORDERS] update_order failed and was rolled back (order_id=%s)", before["order_id"])
        raise PortalError("Error al actualizar la orden", error=str(exc)) from exc

    logger.info("[ORDERS] Order updated (order_id=%s status_id=%s)", order.order_id, order.status_id)
    return order


def cancel_order(db: Session, order: Order, *, actor: User | None, reason: str | None = None) -> Order:
    """Cancel an order unless it already reached a terminal status."""
    if is_terminal(order.status_id):
        raise ValidationError("No se puede cancelar una orden en estado Entregado, Cerrado o Cancelado")
    target = ensure_transition(order.status_id, OrderStatus.CANCELLED)

    before = order_snapshot(order)
    now = now_local()
    with transaction(db):
        order.status_id = int(target)
        order.last_status_update = now
        order.updated_at = now
        log_action(
            db,
            actor=actor,
            action_type="ORDER_CANCELLED",
            order_id=order.order_id,
            before_snapshot=before,
            after_snapshot={**order_snapshot(order), "reason": reason},
        )

    logger.info(
        "[ORDERS] Order cancelled (order_id=%s by_user_id=%s reason=%s)",
        order.order_id,
        actor.id if actor is not None else None,
        bool(reason),
    )
    return order

"""Order endpoints."""

import logging
from datetime import date, datetime
from typing import Any

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from portal.api.deps import get_order_scheduler, get_settings_provider, ok, run_status_batch
from portal.core.errors import AuthorizationError, NotFoundError, ValidationError
from portal.core.security import get_current_user
from portal.db.session import get_db
from portal.models import Order, User
from portal.schemas.order import (
    OrderCancel,
    OrderCreate,
    OrderCreatedResponse,
    OrderRead,
    OrderStatusRead,
    OrderSummaryRead,
    OrderUpdate,
    ProcessPendingRequest,
)
from portal.services import order_service
from portal.services.delivery_dates import (
    calculate_delivery_date,
    format_delivery_date,
    is_acceptable_delivery_date,
    minimum_delivery_date,
    parse_requested_date,
)
from portal.services.order_status import OrderStatus, to_status
from portal.services.scheduler import OrderScheduler
from portal.services.security_guards import (
    ensure_active_user,
    ensure_admin,
    ensure_can_access_order,
    ensure_self_or_admin,
)
from portal.services.settings_service import SettingsProvider
from portal.services.user_service import get_user_by_id
from portal.utils.time import now_local

router: APIRouter = APIRouter()
logger = logging.getLogger(__name__)


def _ensure_acceptable_date(requested: date, now: datetime, order_time_limit: str) -> None:
    if is_acceptable_delivery_date(requested, now, order_time_limit):
        return
    min_date = format_delivery_date(minimum_delivery_date(now, order_time_limit))
    raise ValidationError(
        f"La fecha de entrega debe ser igual o posterior a {min_date}",
        minDeliveryDate=min_date,
    )


def _load_order(db: Session, order_id: int, current_user: User) -> Order:
    order = order_service.get_order_with_details(db, order_id)
    if order is None:
        raise NotFoundError("Orden no encontrada")
    ensure_can_access_order(current_user, order)
    return order


def _serialize_orders(orders: list[Order]) -> list[dict[str, Any]]:
    return [OrderSummaryRead.model_validate(order).model_dump(mode="json") for order in orders]


@router.get("/statuses")
def list_statuses(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict[str, Any]:
    rows = order_service.list_order_statuses(db)
    return ok([OrderStatusRead.model_validate(row).model_dump() for row in rows])


@router.get("/delivery-date")
def get_delivery_date(
    settings_provider: SettingsProvider = Depends(get_settings_provider),
    current_user: User = Depends(get_current_user),
) -> dict[str, Any]:
    """Earliest delivery date for an order placed right now."""
    order_time_limit = settings_provider.get_order_time_limit()
    now = now_local()
    delivery_date = calculate_delivery_date(now, order_time_limit)
    return ok(
        {
            "deliveryDate": format_delivery_date(delivery_date),
            "orderTimeLimit": order_time_limit,
            "currentTime": now.isoformat(timespec="seconds"),
        }
    )


@router.get("/byDeliveryDate")
def list_orders_by_delivery_date(
    delivery_date: str = Query(alias="deliveryDate"),
    status_id: int | None = Query(default=None, alias="statusId"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict[str, Any]:
    target_date = parse_requested_date(delivery_date, field="deliveryDate")
    if target_date is None:
        raise ValidationError("El parámetro deliveryDate es requerido")
    owner_id = None if current_user.is_admin else current_user.id
    orders = order_service.get_orders_by_delivery_date(db, target_date, status_id=status_id, user_id=owner_id)
    return ok(_serialize_orders(orders))


@router.post("/process-pending")
def process_pending_orders(
    payload: ProcessPendingRequest | None = None,
    settings_provider: SettingsProvider = Depends(get_settings_provider),
    scheduler: OrderScheduler | None = Depends(get_order_scheduler),
    current_user: User = Depends(get_current_user),
) -> dict[str, Any]:
    """Run the daily status batch now."""
    ensure_admin(current_user)
    options = payload or ProcessPendingRequest()
    result = run_status_batch(
        scheduler,
        settings_provider,
        ignore_time_limit=options.ignore_time_limit,
        ignore_creation_date=options.ignore_creation_date,
        ignore_delivery_date=options.ignore_delivery_date,
    )
    logger.info(
        "[ORDERS] Manual status batch by user_id=%s (updated=%s cancelled=%s)",
        current_user.id,
        result.updated_count,
        result.cancelled_count,
    )
    return ok(result.as_dict())


@router.get("/status/{status_id}")
def list_orders_by_status(
    status_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict[str, Any]:
    ensure_admin(current_user)
    return ok(_serialize_orders(order_service.get_orders_by_status(db, status_id)))


@router.get("/user/{user_id}")
def list_user_orders(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict[str, Any]:
    ensure_self_or_admin(current_user, user_id)
    return ok(_serialize_orders(order_service.get_user_orders(db, user_id)))


@router.get("/can-create/{user_id}")
def check_user_can_create_orders(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict[str, Any]:
    """Whether ``user_id`` may place orders; unknown users are a 404."""
    ensure_self_or_admin(current_user, user_id)
    try:
        ensure_active_user(get_user_by_id(db, user_id))
    except AuthorizationError as exc:
        return ok({"userId": user_id, "canCreate": False, "reason": exc.message})
    return ok({"userId": user_id, "canCreate": True, "reason": None})


@router.get("/top-products")
def list_top_products(
    limit: int = Query(default=5),
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
    user_id: int | None = Query(default=None, alias="userId"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict[str, Any]:
    """Best-selling products; non-admins only ever see their own orders."""
    if user_id is not None:
        ensure_self_or_admin(current_user, user_id)
    elif not current_user.is_admin:
        user_id = current_user.id
    products = order_service.get_top_selling_products(
        db,
        limit=limit,
        start_date=parse_requested_date(start_date, field="startDate"),
        end_date=parse_requested_date(end_date, field="endDate"),
        user_id=user_id,
    )
    return ok([product.as_dict() for product in products])


@router.get("/monthly-stats")
def read_monthly_stats(
    user_id: int | None = Query(default=None, alias="userId"),
    months: int = Query(default=6),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict[str, Any]:
    if user_id is None:
        raise ValidationError("El parámetro userId es requerido")
    ensure_self_or_admin(current_user, user_id)
    stats = order_service.get_monthly_stats(db, user_id, months)
    return ok([row.as_dict() for row in stats])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OrderCreate,
    db: Session = Depends(get_db),
    settings_provider: SettingsProvider = Depends(get_settings_provider),
    current_user: User = Depends(get_current_user),
) -> dict[str, Any]:
    """Create an order with its line items for an active user."""
    ensure_self_or_admin(current_user, payload.user_id)
    ensure_active_user(get_user_by_id(db, payload.user_id))
    if payload.total_amount <= 0:
        raise ValidationError("El monto total debe ser mayor a cero")
    if not payload.details:
        raise ValidationError("No se puede insertar una orden sin detalles.")

    initial_status = OrderStatus.OPEN
    if payload.status_id is not None:
        initial_status = to_status(payload.status_id)
        if initial_status != OrderStatus.OPEN:
            ensure_admin(current_user)

    order_time_limit = settings_provider.get_order_time_limit()
    now = now_local()
    requested_date = parse_requested_date(payload.delivery_date)
    if requested_date is not None:
        _ensure_acceptable_date(requested_date, now, order_time_limit)
        delivery_date = requested_date
    else:
        delivery_date = calculate_delivery_date(now, order_time_limit)

    result = order_service.create_order(
        db,
        user_id=payload.user_id,
        total_amount=payload.total_amount,
        details=payload.details,
        delivery_date=delivery_date,
        status=initial_status,
        branch_id=payload.branch_id,
        comments=payload.comments,
        actor=current_user,
    )
    return ok(
        OrderCreatedResponse(order_id=result.order_id, details_count=result.details_count).model_dump(),
        message="Orden creada exitosamente",
    )


@router.get("/{order_id}")
def get_order(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict[str, Any]:
    order = _load_order(db, order_id, current_user)
    return ok(OrderRead.model_validate(order).model_dump(mode="json"))


@router.put("/{order_id}")
def update_order(
    order_id: int,
    payload: OrderUpdate,
    db: Session = Depends(get_db),
    settings_provider: SettingsProvider = Depends(get_settings_provider),
    current_user: User = Depends(get_current_user),
) -> dict[str, Any]:
    """Partial update; status changes are reserved to administrators."""
    order = _load_order(db, order_id, current_user)
    fields_set = payload.model_fields_set
    changes: dict[str, Any] = {}

    if payload.status_id is not None and payload.status_id != order.status_id:
        ensure_admin(current_user)
        changes["status"] = payload.status_id
    if "delivery_date" in fields_set:
        requested_date = parse_requested_date(payload.delivery_date)
        if requested_date is None:
            raise ValidationError("La fecha de entrega no puede estar vacía")
        if requested_date != order.delivery_date:
            _ensure_acceptable_date(requested_date, now_local(), settings_provider.get_order_time_limit())
        changes["delivery_date"] = requested_date
    if "comments" in fields_set:
        changes["comments"] = payload.comments
    if payload.details is not None:
        changes["details"] = payload.details

    order_service.update_order(db, order, actor=current_user, **changes)
    refreshed = order_service.get_order_with_details(db, order_id)
    return ok(OrderRead.model_validate(refreshed).model_dump(mode="json"), message="Orden actualizada exitosamente")


@router.put("/{order_id}/cancel")
def cancel_order(
    order_id: int,
    payload: OrderCancel | None = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict[str, Any]:
    order = _load_order(db, order_id, current_user)
    reason = payload.reason if payload is not None else None
    order_service.cancel_order(db, order, actor=current_user, reason=reason)
    return ok(
        {"order_id": order.order_id, "status_id": order.status_id},
        message="Orden cancelada exitosamente",
    )

"""Order status enumeration and transition helpers."""

from __future__ import annotations

from enum import IntEnum

from portal.core.errors import ValidationError


class OrderStatus(IntEnum):
    OPEN = 1
    IN_PRODUCTION = 2
    SHIPPED = 3
    DELIVERED = 4
    CANCELLED = 5
    INVOICED = 6
    CLOSED = 7

    @property
    def label(self) -> str:
        return STATUS_LABELS[self][0]

    @property
    def color(self) -> str:
        return STATUS_LABELS[self][1]


STATUS_LABELS: dict[OrderStatus, tuple[str, str]] = {
    OrderStatus.OPEN: ("Abierto", "#3b82f6"),
    OrderStatus.IN_PRODUCTION: ("En Producción", "#f59e0b"),
    OrderStatus.SHIPPED: ("Enviado", "#8b5cf6"),
    OrderStatus.DELIVERED: ("Entregado", "#10b981"),
    OrderStatus.CANCELLED: ("Cancelado", "#ef4444"),
    OrderStatus.INVOICED: ("Facturado", "#14b8a6"),
    OrderStatus.CLOSED: ("Cerrado", "#6b7280"),
}

ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.OPEN: frozenset({OrderStatus.IN_PRODUCTION, OrderStatus.CANCELLED}),
    OrderStatus.IN_PRODUCTION: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.INVOICED, OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.INVOICED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.CLOSED}),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.CLOSED: frozenset(),
}

# No API-driven change is accepted once an order reaches one of these.
TERMINAL_STATUSES: frozenset[OrderStatus] = frozenset(
    {OrderStatus.DELIVERED, OrderStatus.CLOSED, OrderStatus.CANCELLED}
)


def to_status(value: int | OrderStatus) -> OrderStatus:
    """Coerce a raw status id, raising ``ValidationError`` for unknown ids."""
    try:
        return OrderStatus(int(value))
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Estado de orden desconocido: {value}") from exc


def is_terminal(status: int | OrderStatus) -> bool:
    return to_status(status) in TERMINAL_STATUSES


def can_transition(current: int | OrderStatus, new: int | OrderStatus) -> bool:
    """Return whether an order can move from current to new status."""
    return to_status(new) in ALLOWED_TRANSITIONS.get(to_status(current), frozenset())


def ensure_transition(current: int | OrderStatus, new: int | OrderStatus) -> OrderStatus:
    """Validate a status change and return the target status."""
    target = to_status(new)
    if not can_transition(current, target):
        source = to_status(current)
        raise ValidationError(f"Transición de estado inválida: {source.label} -> {target.label}")
    return target

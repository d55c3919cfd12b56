"""Centralized ownership and role guards for order operations."""

from __future__ import annotations

from portal.core.errors import AuthorizationError, NotFoundError
from portal.models import Order, User


def ensure_admin(user: User) -> None:
    if not user.is_admin:
        raise AuthorizationError("Acceso restringido a administradores")


def ensure_self_or_admin(user: User, user_id: int) -> None:
    """Allow acting on ``user_id``'s data only for that user or an admin."""
    if user.is_admin or user.id == user_id:
        return
    raise AuthorizationError("No tiene permisos para acceder a los datos de otro usuario")


def ensure_can_access_order(user: User, order: Order) -> None:
    if user.is_admin or order.user_id == user.id:
        return
    raise AuthorizationError("No tiene permisos para acceder a esta orden")


def ensure_active_user(user: User | None) -> User:
    """Target user of a new order must exist and be active."""
    if user is None:
        raise NotFoundError("Usuario no encontrado")
    if not user.is_active:
        raise AuthorizationError("Usuario inactivo")
    return user

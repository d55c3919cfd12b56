"""Error taxonomy shared by services and API handlers."""

from __future__ import annotations

from typing import Any


class PortalError(Exception):
    """Base application error mapped to an HTTP response."""

    status_code: int = 500
    default_message: str = "Error interno del servidor"

    def __init__(self, message: str | None = None, *, error: str | None = None, **extra: Any) -> None:
        self.message = message or self.default_message
        # Internal detail; only echoed to clients in development.
        self.error = error
        self.extra: dict[str, Any] = extra
        super().__init__(self.message)


class ConfigurationError(PortalError):
    """Cutoff time missing or malformed."""

    status_code = 500
    default_message = "Error en la configuración del sistema"


class ValidationError(PortalError):
    status_code = 400
    default_message = "Datos de entrada inválidos"


class InvalidOrderError(ValidationError):
    """Raised when an order is submitted without line items."""

    default_message = "No se puede insertar una orden sin detalles."


class AuthorizationError(PortalError):
    status_code = 403
    default_message = "No tiene permisos para realizar esta acción"


class NotFoundError(PortalError):
    status_code = 404
    default_message = "Recurso no encontrado"


class OrderCreationError(PortalError):
    """Wraps a database failure raised inside the create-order transaction."""

    status_code = 500
    default_message = "Error al crear la orden"


class AuthenticationError(PortalError):
    """Bearer token missing, unreadable or pointing at an unusable account."""

    status_code = 401
    default_message = "Token inválido o expirado"

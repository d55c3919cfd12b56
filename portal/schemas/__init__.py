"""Schema exports."""

from portal.schemas.auth import AuthUserResponse, LoginRequest, TokenResponse
from portal.schemas.order import (
    OrderCancel,
    OrderCreate,
    OrderCreatedResponse,
    OrderDetailPayload,
    OrderDetailRead,
    OrderRead,
    OrderStatusRead,
    OrderSummaryRead,
    OrderUpdate,
    ProcessPendingRequest,
)
from portal.schemas.settings import SettingsRead, SettingsUpdate

__all__ = [
    "AuthUserResponse",
    "LoginRequest",
    "TokenResponse",
    "OrderCancel",
    "OrderCreate",
    "OrderCreatedResponse",
    "OrderDetailPayload",
    "OrderDetailRead",
    "OrderRead",
    "OrderStatusRead",
    "OrderSummaryRead",
    "OrderUpdate",
    "ProcessPendingRequest",
    "SettingsRead",
    "SettingsUpdate",
]

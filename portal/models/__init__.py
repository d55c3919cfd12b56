"""Application models package."""

from portal.models.admin_setting import AdminSetting
from portal.models.audit_log import AuditLog
from portal.models.order import Order, OrderDetail, OrderStatusRow
from portal.models.product import Product
from portal.models.user import User

__all__ = ["AdminSetting", "AuditLog", "Order", "OrderDetail", "OrderStatusRow", "Product", "User"]

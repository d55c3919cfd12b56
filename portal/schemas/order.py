"""Order API schemas."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class OrderDetailPayload(BaseModel):
    """Single line item payload."""

    product_id: int
    quantity: int
    unit_price: Decimal


class OrderCreate(BaseModel):
    """Order header plus its line items."""

    user_id: int
    total_amount: Decimal
    details: list[OrderDetailPayload] = Field(default_factory=list)
    delivery_date: str | None = None
    status_id: int | None = None
    branch_id: int | None = None
    comments: str | None = None


class OrderUpdate(BaseModel):
    """Partial update; omitted fields are left untouched."""

    delivery_date: str | None = None
    status_id: int | None = None
    comments: str | None = None
    details: list[OrderDetailPayload] | None = None


class OrderCancel(BaseModel):
    reason: str | None = None


class ProcessPendingRequest(BaseModel):
    """Options for a manual run of the daily status batch."""

    ignore_time_limit: bool = Field(default=False, alias="ignoreTimeLimit")
    ignore_creation_date: bool = Field(default=False, alias="ignoreCreationDate")
    ignore_delivery_date: bool = Field(default=False, alias="ignoreDeliveryDate")

    model_config = ConfigDict(populate_by_name=True)


class OrderCreatedResponse(BaseModel):
    order_id: int
    details_count: int


class OrderDetailRead(BaseModel):
    """Serialized line item."""

    order_detail_id: int
    product_id: int
    product_name: str | None = None
    quantity: int
    unit_price: Decimal

    model_config = ConfigDict(from_attributes=True)


class OrderSummaryRead(BaseModel):
    """Order header as shown in listings."""

    order_id: int
    user_id: int
    user_name: str | None = None
    branch_id: int | None = None
    status_id: int
    status_name: str | None = None
    delivery_date: date | None = None
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    invoice_total: Decimal | None = None
    comments: str | None = None
    item_count: int
    total_items: int
    created_at: datetime
    updated_at: datetime
    last_status_update: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class OrderRead(OrderSummaryRead):
    """Order with its line items."""

    details: list[OrderDetailRead]


class OrderStatusRead(BaseModel):
    status_id: int
    status_name: str
    status_color: str | None = None

    model_config = ConfigDict(from_attributes=True)

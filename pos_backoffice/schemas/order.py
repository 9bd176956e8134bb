"""
Request/response schemas for orders
"""

from sqlmodel import Field, SQLModel
from datetime import datetime
from typing import List, Optional
from decimal import Decimal
import uuid

from pos_backoffice.models.order import PaymentType


class LineItemCreate(SQLModel):
    product_id: uuid.UUID
    quantity: int = Field(gt=0)
    unit_price: Decimal = Field(gt=0)


class OrderCreate(SQLModel):
    location_id: uuid.UUID
    items: List[LineItemCreate] = Field(min_length=1)
    total_amount: Decimal
    cash_amount: Optional[Decimal] = None
    upi_amount: Optional[Decimal] = None
    # Legacy single-channel payment; the whole total goes to this channel
    payment_type: Optional[PaymentType] = None
    table_id: Optional[uuid.UUID] = None
    sold_by: Optional[str] = None
    sale_date: Optional[datetime] = None


class OrderItemsAppend(SQLModel):
    items: List[LineItemCreate] = Field(min_length=1)


class OrderPaymentUpdate(SQLModel):
    cash_amount: Optional[Decimal] = None
    upi_amount: Optional[Decimal] = None
    payment_type: Optional[PaymentType] = None
    is_paid: Optional[bool] = None


class OrderLineItemRead(SQLModel):
    id: uuid.UUID
    order_id: uuid.UUID
    product_id: uuid.UUID
    name: str
    quantity: int
    unit_price: Decimal
    cost_price: Decimal
    subtotal: Decimal
    position: int
    created_at: datetime

    class Config:
        from_attributes = True


class OrderRead(SQLModel):
    id: uuid.UUID
    tenant_id: uuid.UUID
    location_id: uuid.UUID
    table_id: Optional[uuid.UUID] = None
    total_amount: Decimal
    cash_amount: Decimal
    upi_amount: Decimal
    payment_type: PaymentType
    is_paid: bool
    sold_by: Optional[str] = None
    sale_date: datetime
    opened_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    version: int
    line_items: List[OrderLineItemRead] = []

    class Config:
        from_attributes = True


class OrderListResponse(SQLModel):
    items: List[OrderRead]
    total: int
    page: int
    page_size: int


class PaymentTotals(SQLModel):
    """Cash/UPI breakdown of paid orders"""
    cash: Decimal
    upi: Decimal
    total: Decimal
    order_count: int

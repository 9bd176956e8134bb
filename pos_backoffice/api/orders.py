"""
Order API endpoints
Create orders, append line items and record payment
"""

from fastapi import APIRouter, Depends, Query, status
from datetime import datetime
from typing import Optional, Set
import uuid

from pos_backoffice.core.dependencies import get_order_manager, get_tenant_id, get_tenant_settings
from pos_backoffice.core.permissions import Permission, require_permission
from pos_backoffice.models.order import PaymentType
from pos_backoffice.schemas.order import (
    OrderCreate, OrderItemsAppend, OrderListResponse, OrderPaymentUpdate, OrderRead, PaymentTotals
)
from pos_backoffice.schemas.settings import TenantSettings
from pos_backoffice.services.order_manager import OrderManager

router = APIRouter()


@router.post("/", response_model=OrderRead, status_code=status.HTTP_201_CREATED)
def create_order(
    order_data: OrderCreate,
    tenant_id: uuid.UUID = Depends(get_tenant_id),
    settings: TenantSettings = Depends(get_tenant_settings),
    manager: OrderManager = Depends(get_order_manager),
    _: Set[Permission] = Depends(require_permission(Permission.ORDER_CREATE))
):
    """Create an order; consumes stock and optionally seats it at a table"""
    return manager.create(order_data, tenant_id, settings)


@router.get("/", response_model=OrderListResponse)
def list_orders(
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    is_paid: Optional[bool] = None,
    table_id: Optional[uuid.UUID] = None,
    payment_type: Optional[PaymentType] = None,
    product_id: Optional[uuid.UUID] = None,
    staff: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    tenant_id: uuid.UUID = Depends(get_tenant_id),
    manager: OrderManager = Depends(get_order_manager)
):
    items, total = manager.list(
        tenant_id,
        page=page,
        page_size=page_size,
        date_from=date_from,
        date_to=date_to,
        is_paid=is_paid,
        table_id=table_id,
        payment_type=payment_type,
        product_id=product_id,
        staff=staff
    )
    return OrderListResponse(items=items, total=total, page=page, page_size=page_size)


@router.get("/payment-totals", response_model=PaymentTotals)
def get_payment_totals(
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    staff: Optional[str] = None,
    tenant_id: uuid.UUID = Depends(get_tenant_id),
    manager: OrderManager = Depends(get_order_manager)
):
    """Cash/UPI breakdown of paid orders"""
    return manager.payment_totals(tenant_id, date_from=date_from, date_to=date_to, staff=staff)


@router.get("/{order_id}", response_model=OrderRead)
def get_order(
    order_id: uuid.UUID,
    tenant_id: uuid.UUID = Depends(get_tenant_id),
    manager: OrderManager = Depends(get_order_manager)
):
    return manager.get(order_id, tenant_id)


@router.post("/{order_id}/items", response_model=OrderRead)
def append_items(
    order_id: uuid.UUID,
    data: OrderItemsAppend,
    tenant_id: uuid.UUID = Depends(get_tenant_id),
    manager: OrderManager = Depends(get_order_manager),
    _: Set[Permission] = Depends(require_permission(Permission.ORDER_APPEND))
):
    """Append line items to an unpaid order"""
    return manager.add_items(order_id, data.items, tenant_id)


@router.patch("/{order_id}", response_model=OrderRead)
def update_payment(
    order_id: uuid.UUID,
    patch: OrderPaymentUpdate,
    tenant_id: uuid.UUID = Depends(get_tenant_id),
    settings: TenantSettings = Depends(get_tenant_settings),
    manager: OrderManager = Depends(get_order_manager),
    permissions: Set[Permission] = Depends(require_permission(Permission.ORDER_RECORD_PAYMENT))
):
    """Record payment (full replacement of the cash/UPI split)"""
    return manager.update(
        order_id,
        patch,
        tenant_id,
        settings,
        allow_override=Permission.ORDER_OVERRIDE_PAYMENT in permissions
    )

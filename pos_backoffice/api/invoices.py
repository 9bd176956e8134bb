"""
Invoice API endpoints
"""

from fastapi import APIRouter, Depends, Query, status
from datetime import datetime
from typing import Optional, Set
import uuid

from pos_backoffice.core.dependencies import (
    get_current_user_id, get_invoice_allocator, get_tenant_id, get_tenant_settings
)
from pos_backoffice.core.permissions import Permission, require_permission
from pos_backoffice.schemas.invoice import InvoiceCreate, InvoiceListResponse, InvoiceRead
from pos_backoffice.schemas.settings import TenantSettings
from pos_backoffice.services.invoice_allocator import InvoiceAllocator

router = APIRouter()


@router.post("/", response_model=InvoiceRead, status_code=status.HTTP_201_CREATED)
def issue_invoice(
    data: InvoiceCreate,
    tenant_id: uuid.UUID = Depends(get_tenant_id),
    current_user_id: uuid.UUID = Depends(get_current_user_id),
    settings: TenantSettings = Depends(get_tenant_settings),
    allocator: InvoiceAllocator = Depends(get_invoice_allocator),
    _: Set[Permission] = Depends(require_permission(Permission.INVOICE_ISSUE))
):
    """Issue the invoice for an order; repeated calls return the same invoice"""
    invoice = allocator.allocate(
        data.order_id,
        tenant_id,
        settings,
        branch_id=data.branch_id,
        branch_code=data.branch_code,
        customer=data.customer,
        created_by=current_user_id,
        sync_render=data.sync_render
    )
    return InvoiceRead.model_validate(invoice.model_dump())


@router.get("/", response_model=InvoiceListResponse)
def list_invoices(
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    customer: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=200),
    tenant_id: uuid.UUID = Depends(get_tenant_id),
    allocator: InvoiceAllocator = Depends(get_invoice_allocator),
    _: Set[Permission] = Depends(require_permission(Permission.INVOICE_VIEW))
):
    invoices, total = allocator.list(
        tenant_id,
        date_from=date_from,
        date_to=date_to,
        customer=customer,
        page=page,
        page_size=page_size
    )
    return InvoiceListResponse(
        items=[InvoiceRead.model_validate(i.model_dump()) for i in invoices],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/{invoice_id}", response_model=InvoiceRead)
def get_invoice(
    invoice_id: uuid.UUID,
    tenant_id: uuid.UUID = Depends(get_tenant_id),
    allocator: InvoiceAllocator = Depends(get_invoice_allocator),
    _: Set[Permission] = Depends(require_permission(Permission.INVOICE_VIEW))
):
    return InvoiceRead.model_validate(allocator.get(invoice_id, tenant_id).model_dump())


@router.post("/{invoice_id}/render", response_model=InvoiceRead)
def render_invoice(
    invoice_id: uuid.UUID,
    tenant_id: uuid.UUID = Depends(get_tenant_id),
    settings: TenantSettings = Depends(get_tenant_settings),
    allocator: InvoiceAllocator = Depends(get_invoice_allocator),
    _: Set[Permission] = Depends(require_permission(Permission.INVOICE_ISSUE))
):
    """Re-render the invoice document and store its reference"""
    return InvoiceRead.model_validate(allocator.render(invoice_id, tenant_id, settings).model_dump())

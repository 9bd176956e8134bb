"""
Request/response schemas for invoices
"""

from sqlmodel import SQLModel
from datetime import datetime
from typing import Any, Dict, List, Optional
from decimal import Decimal
import uuid


class CustomerDetails(SQLModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    gstin: Optional[str] = None


class InvoiceCreate(SQLModel):
    order_id: uuid.UUID
    branch_id: Optional[uuid.UUID] = None
    branch_code: Optional[str] = None
    customer: Optional[CustomerDetails] = None
    # Render before responding instead of in the background
    sync_render: bool = False


class InvoiceRead(SQLModel):
    id: uuid.UUID
    tenant_id: uuid.UUID
    branch_id: Optional[uuid.UUID] = None
    order_id: uuid.UUID
    invoice_number: str
    invoice_prefix: str
    invoice_serial: int
    invoice_period: str
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_gstin: Optional[str] = None
    items: List[Dict[str, Any]]
    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total: Decimal
    document_url: Optional[str] = None
    created_by: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class InvoiceListResponse(SQLModel):
    items: List[InvoiceRead]
    total: int
    page: int
    page_size: int

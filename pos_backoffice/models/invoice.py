"""
Invoice model
Issued once per order; line items are captured by value so later catalog
edits never change an issued invoice
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import Column, JSON, UniqueConstraint
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
import uuid


class Invoice(SQLModel, table=True):
    """Tax invoice issued from an order snapshot"""

    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("order_id", name="uq_invoice_order"),
        UniqueConstraint("tenant_id", "branch_key", "invoice_number", name="uq_invoice_branch_number"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    tenant_id: uuid.UUID = Field(foreign_key="tenants.id", index=True)
    branch_id: Optional[uuid.UUID] = Field(default=None, nullable=True)
    # Same key as the counter the serial came from; "" without a branch
    branch_key: str = Field(default="", max_length=64)
    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
        description="Order this invoice was issued for (at most one invoice per order)"
    )

    # Numbering
    invoice_number: str = Field(max_length=64, index=True)
    invoice_prefix: str = Field(max_length=20)
    invoice_serial: int
    invoice_period: str = Field(max_length=16)

    # Customer (optional, printed on the invoice)
    customer_name: Optional[str] = Field(default=None, max_length=200)
    customer_phone: Optional[str] = Field(default=None, max_length=50)
    customer_gstin: Optional[str] = Field(default=None, max_length=50)

    # Line snapshot: [{product_id, name, quantity, rate, tax, total}]
    items: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    subtotal: Decimal = Field(default=Decimal("0.00"), max_digits=14, decimal_places=2)
    tax_amount: Decimal = Field(default=Decimal("0.00"), max_digits=14, decimal_places=2)
    discount_amount: Decimal = Field(default=Decimal("0.00"), max_digits=14, decimal_places=2)
    total: Decimal = Field(default=Decimal("0.00"), max_digits=14, decimal_places=2)

    # Rendered document, attached after the fact
    document_url: Optional[str] = Field(default=None, max_length=500)

    created_by: Optional[uuid.UUID] = Field(default=None, nullable=True)
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    updated_at: Optional[datetime] = None

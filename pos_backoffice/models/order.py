"""
Order model (aka sale)
Mutable only while unpaid: line items are appended and payment recorded
until the order settles, which happens exactly once
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import CheckConstraint
from datetime import datetime
from typing import Optional
from decimal import Decimal
from enum import Enum
import uuid

from pos_backoffice.core.money import ZERO, round2


class PaymentType(str, Enum):
    """Payment channel mix of an order"""
    CASH = "cash"
    UPI = "UPI"
    MIXED = "mixed"


class Order(SQLModel, table=True):
    """Customer order with its payment state and optional table binding"""

    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("cash_amount >= 0 AND upi_amount >= 0", name="ck_order_payment_non_negative"),
    )

    # Primary key
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    tenant_id: uuid.UUID = Field(
        foreign_key="tenants.id",
        index=True,
        description="Tenant ID for multi-tenant isolation"
    )
    location_id: uuid.UUID = Field(
        index=True,
        description="Outlet whose stock this order consumes"
    )
    table_id: Optional[uuid.UUID] = Field(
        default=None,
        foreign_key="dining_tables.id",
        index=True,
        nullable=True,
        description="Dining table this order is seated at"
    )

    # Financial amounts
    total_amount: Decimal = Field(
        default=ZERO,
        max_digits=14,
        decimal_places=2,
        description="round2 of the sum of line item subtotals"
    )
    cash_amount: Decimal = Field(
        default=ZERO,
        max_digits=14,
        decimal_places=2,
        description="Amount received in cash"
    )
    upi_amount: Decimal = Field(
        default=ZERO,
        max_digits=14,
        decimal_places=2,
        description="Amount received over UPI"
    )
    payment_type: PaymentType = Field(
        default=PaymentType.CASH,
        index=True,
        description="Derived from the cash/UPI split unless overridden"
    )
    is_paid: bool = Field(default=False, index=True)

    sold_by: Optional[str] = Field(
        default=None,
        max_length=120,
        nullable=True,
        description="Staff member who rang up the sale"
    )

    # Timestamps
    sale_date: datetime = Field(
        default_factory=datetime.utcnow,
        index=True,
        description="Business date of the sale, drives invoice periods"
    )
    opened_at: Optional[datetime] = Field(
        default=None,
        nullable=True,
        description="When the order was first seated at a table"
    )
    closed_at: Optional[datetime] = Field(
        default=None,
        nullable=True,
        description="When the order was fully paid"
    )
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    updated_at: Optional[datetime] = Field(default=None, nullable=True)

    # Optimistic concurrency control
    version: int = Field(
        default=1,
        description="Version number, incremented on every mutation"
    )

    def paid_amount(self) -> Decimal:
        """Rounded sum of both payment channels"""
        return round2(self.cash_amount + self.upi_amount)

    def is_fully_covered(self) -> bool:
        """Check if the recorded payment settles the total"""
        return self.paid_amount() == round2(self.total_amount)

    def derive_payment_type(self) -> PaymentType:
        """Payment type implied by the current split"""
        if self.cash_amount > 0 and self.upi_amount > 0:
            return PaymentType.MIXED
        if self.upi_amount > 0:
            return PaymentType.UPI
        return PaymentType.CASH

    def touch(self) -> None:
        """Record a mutation"""
        self.updated_at = datetime.utcnow()
        self.version += 1

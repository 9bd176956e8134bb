"""
Order Line Item model
Individual items in an order with price snapshots; append-only
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import CheckConstraint
from decimal import Decimal
from datetime import datetime
import uuid

from pos_backoffice.core.money import round2


class OrderLineItem(SQLModel, table=True):
    """Immutable line item of an order"""

    __tablename__ = "order_line_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_line_item_quantity_positive"),
    )

    # Primary key
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    tenant_id: uuid.UUID = Field(
        foreign_key="tenants.id",
        index=True,
        description="Tenant ID for multi-tenant isolation"
    )
    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
        description="Order this item belongs to"
    )
    product_id: uuid.UUID = Field(
        foreign_key="products.id",
        index=True,
        description="Product this line item represents"
    )

    # Item details (snapshot from catalog at time of sale)
    name: str = Field(
        max_length=255,
        description="Product name (snapshot)"
    )

    # Quantity and pricing
    quantity: int = Field(description="Quantity sold")
    unit_price: Decimal = Field(
        max_digits=12,
        decimal_places=2,
        description="Unit price at time of sale"
    )
    cost_price: Decimal = Field(
        default=Decimal("0.00"),
        max_digits=12,
        decimal_places=2,
        description="Cost price at time of sale (snapshot)"
    )
    subtotal: Decimal = Field(
        max_digits=14,
        decimal_places=2,
        description="round2(quantity * unit_price)"
    )

    # Append order within the order
    position: int = Field(default=0, description="Position in the order")

    created_at: datetime = Field(default_factory=datetime.utcnow)

    @staticmethod
    def line_subtotal(quantity: int, unit_price: Decimal) -> Decimal:
        """Calculate line total based on quantity and price"""
        return round2(quantity * unit_price)

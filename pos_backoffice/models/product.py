"""
Product model - read-only catalog data consumed at sale time
"""

from sqlmodel import Field, SQLModel
from decimal import Decimal
from datetime import datetime
from typing import Optional
import uuid


class Product(SQLModel, table=True):
    """Sellable product; catalog CRUD lives outside the order engine"""

    __tablename__ = "products"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    tenant_id: uuid.UUID = Field(
        foreign_key="tenants.id",
        index=True,
        description="Tenant ID for multi-tenant isolation"
    )

    # Item details
    name: str = Field(max_length=255, nullable=False, description="Product name")

    # Pricing
    unit_price: Decimal = Field(
        default=Decimal("0.00"),
        max_digits=12,
        decimal_places=2,
        description="Current selling price"
    )
    cost_price: Decimal = Field(
        default=Decimal("0.00"),
        max_digits=12,
        decimal_places=2,
        description="Current cost price"
    )

    # Inventory alerting
    low_stock_threshold: Optional[int] = Field(
        default=None,
        description="Alert threshold; tenant default applies when unset"
    )

    is_active: bool = Field(default=True, index=True)

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

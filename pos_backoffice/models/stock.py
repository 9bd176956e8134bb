"""
Stock record model
One row per (product, location); an absent row means quantity 0
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import CheckConstraint, UniqueConstraint
from datetime import datetime
from typing import Optional
import uuid


class StockRecord(SQLModel, table=True):
    """Authoritative on-hand quantity of a product at a location"""

    __tablename__ = "stock_records"
    __table_args__ = (
        UniqueConstraint("product_id", "location_id", name="uq_stock_product_location"),
        CheckConstraint("quantity >= 0", name="ck_stock_quantity_non_negative"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    tenant_id: uuid.UUID = Field(
        foreign_key="tenants.id",
        index=True,
        description="Tenant ID for multi-tenant isolation"
    )
    product_id: uuid.UUID = Field(
        foreign_key="products.id",
        index=True,
        description="Product this stock belongs to"
    )
    location_id: uuid.UUID = Field(
        index=True,
        description="Outlet/branch holding the stock"
    )

    quantity: int = Field(default=0, description="On-hand quantity, never negative")

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

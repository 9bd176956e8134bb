"""
Request/response schemas for stock
"""

from sqlmodel import Field, SQLModel
from typing import Optional
import uuid


class StockAdjust(SQLModel):
    product_id: uuid.UUID
    location_id: uuid.UUID
    delta: int


class StockSet(SQLModel):
    product_id: uuid.UUID
    location_id: uuid.UUID
    quantity: int = Field(ge=0)


class StockLevel(SQLModel):
    product_id: uuid.UUID
    location_id: uuid.UUID
    quantity: int


class LowStockItem(SQLModel):
    product_id: uuid.UUID
    name: str
    quantity: int
    threshold: int
    location_id: Optional[uuid.UUID] = None

"""
Request/response schemas for dining tables
"""

from sqlmodel import Field, SQLModel
from datetime import datetime
from typing import List, Optional
import uuid

from pos_backoffice.models.table import TableStatus
from pos_backoffice.schemas.order import OrderRead


class TableCreate(SQLModel):
    name: str = Field(min_length=1, max_length=100)
    capacity: int = Field(default=4, gt=0)
    area: Optional[str] = None


class TableRead(SQLModel):
    id: uuid.UUID
    tenant_id: uuid.UUID
    name: str
    capacity: int
    area: Optional[str] = None
    status: TableStatus
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TableBind(SQLModel):
    order_id: uuid.UUID


class TableSwitch(SQLModel):
    order_id: uuid.UUID
    from_table_id: uuid.UUID
    to_table_id: uuid.UUID


class TableMerge(SQLModel):
    source_table_ids: List[uuid.UUID] = Field(min_length=1)
    target_table_id: uuid.UUID


class TableStatusUpdate(SQLModel):
    # Plain string so unknown statuses reach the state machine as a ValidationError
    status: str


class TableWithOrders(SQLModel):
    table: TableRead
    active_orders: List[OrderRead]
    recent_paid_orders: List[OrderRead]

"""
Dining table model with occupancy status
"""

from sqlmodel import Field, SQLModel
from datetime import datetime
from typing import Optional
from enum import Enum
import uuid


class TableStatus(str, Enum):
    """Occupancy status of a dining table"""
    AVAILABLE = "AVAILABLE"     # Free to seat a new order
    OCCUPIED = "OCCUPIED"       # At least one unpaid order references it
    RESERVED = "RESERVED"       # Held for a booking, can still be seated
    CLEANING = "CLEANING"       # Being reset after guests left
    BLOCKED = "BLOCKED"         # Retired (e.g. merged away) pending reactivation


# Statuses from which a table accepts a new order
SEATABLE_STATUSES = (TableStatus.AVAILABLE, TableStatus.RESERVED)


class DiningTable(SQLModel, table=True):
    """Dining table; orders point at it, it never owns them"""

    __tablename__ = "dining_tables"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    tenant_id: uuid.UUID = Field(foreign_key="tenants.id", index=True, description="Tenant ID for multi-tenant isolation")

    # Table details
    name: str = Field(max_length=100, nullable=False, description="Table identifier (e.g. 'T1', 'Patio-1')")
    capacity: int = Field(default=4, description="Maximum number of guests")
    area: Optional[str] = Field(default=None, max_length=100, description="Area label: Indoor, Outdoor, AC, Balcony")

    # Status
    status: TableStatus = Field(default=TableStatus.AVAILABLE, index=True)
    is_active: bool = Field(default=True, index=True)

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    def is_seatable(self) -> bool:
        """Check if a new order may be bound to this table"""
        return self.status in SEATABLE_STATUSES

    def transition_to(self, new_status: TableStatus) -> Optional[TableStatus]:
        """Set status and return the previous one, or None if unchanged"""
        if self.status == new_status:
            return None
        previous = self.status
        self.status = new_status
        self.updated_at = datetime.utcnow()
        return previous

"""
Invoice counter model
Last issued serial per (tenant, branch, period)
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import CheckConstraint, UniqueConstraint
from datetime import datetime
from typing import Optional
import uuid


class InvoiceCounter(SQLModel, table=True):
    """Monotonic serial source; only touched under a row lock"""

    __tablename__ = "invoice_counters"
    __table_args__ = (
        UniqueConstraint("tenant_id", "branch_key", "period", name="uq_invoice_counter_scope"),
        CheckConstraint("last_serial >= 0", name="ck_invoice_counter_non_negative"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    tenant_id: uuid.UUID = Field(foreign_key="tenants.id", index=True)
    branch_id: Optional[uuid.UUID] = Field(default=None, nullable=True)
    # branch_id as text, "" for tenant-wide numbering; NULLs never collide in a unique index
    branch_key: str = Field(default="", max_length=64)
    period: str = Field(max_length=16, description="'global', 'YYYY' or 'YYYY-MM'")

    last_serial: int = Field(default=0)

    updated_at: Optional[datetime] = None

    @staticmethod
    def key_for(branch_id: Optional[uuid.UUID]) -> str:
        return str(branch_id) if branch_id else ""

"""
Tenant configuration consumed by the order engine
"""

from pydantic import BaseModel, Field
from decimal import Decimal
from enum import Enum


class InvoiceResetCycle(str, Enum):
    """When invoice numbering restarts at 1"""
    NEVER = "never"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class TenantSettings(BaseModel):
    """Read-only per-tenant feature flags and invoice numbering options"""

    # Tables
    enable_tables: bool = False
    auto_free_table_on_payment: bool = True
    allow_table_merge: bool = True

    # Invoicing
    enable_invoices: bool = True
    invoice_reset_cycle: InvoiceResetCycle = InvoiceResetCycle.MONTHLY
    invoice_prefix: str = Field(default="INV", max_length=20)
    invoice_padding: int = Field(default=5, ge=1, le=12)
    invoice_branch_prefix: bool = True

    # Tax
    gst_enabled: bool = False
    tax_rate: Decimal = Field(default=Decimal("0"), ge=0, description="Percentage, e.g. 5 for 5%")

    # Inventory
    default_low_stock_threshold: int = Field(default=10, ge=0)

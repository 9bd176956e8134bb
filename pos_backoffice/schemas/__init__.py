"""
Schemas module
"""

from pos_backoffice.schemas.settings import InvoiceResetCycle, TenantSettings
from pos_backoffice.schemas.order import (
    LineItemCreate, OrderCreate, OrderItemsAppend, OrderPaymentUpdate,
    OrderLineItemRead, OrderRead, OrderListResponse, PaymentTotals
)
from pos_backoffice.schemas.table import (
    TableCreate, TableRead, TableBind, TableSwitch, TableMerge,
    TableStatusUpdate, TableWithOrders
)
from pos_backoffice.schemas.invoice import (
    CustomerDetails, InvoiceCreate, InvoiceRead, InvoiceListResponse
)
from pos_backoffice.schemas.stock import StockAdjust, StockSet, StockLevel, LowStockItem

__all__ = [
    "InvoiceResetCycle",
    "TenantSettings",
    "LineItemCreate",
    "OrderCreate",
    "OrderItemsAppend",
    "OrderPaymentUpdate",
    "OrderLineItemRead",
    "OrderRead",
    "OrderListResponse",
    "PaymentTotals",
    "TableCreate",
    "TableRead",
    "TableBind",
    "TableSwitch",
    "TableMerge",
    "TableStatusUpdate",
    "TableWithOrders",
    "CustomerDetails",
    "InvoiceCreate",
    "InvoiceRead",
    "InvoiceListResponse",
    "StockAdjust",
    "StockSet",
    "StockLevel",
    "LowStockItem",
]

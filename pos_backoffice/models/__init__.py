from pos_backoffice.models.tenant import Tenant
from pos_backoffice.models.product import Product
from pos_backoffice.models.stock import StockRecord
from pos_backoffice.models.table import DiningTable, TableStatus
from pos_backoffice.models.order import Order, PaymentType
from pos_backoffice.models.order_line_item import OrderLineItem
from pos_backoffice.models.invoice_counter import InvoiceCounter
from pos_backoffice.models.invoice import Invoice

"""
Invoice sequence allocator

Issues invoice numbers {prefix}[-{branch}]-{period}-{serial}. The serial for a
(tenant, branch, period) comes only from the counter row, read and
incremented under SELECT ... FOR UPDATE, so concurrent issuers never see the
same previous value. An order gets at most one invoice; the unique
constraint on invoices.order_id settles races the existence check misses.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
import uuid

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select
import structlog

from pos_backoffice.core.database import atomic
from pos_backoffice.core.events import EventBus, InvoiceIssued, event_bus
from pos_backoffice.core.exceptions import ForbiddenError, InternalError, NotFoundError
from pos_backoffice.core.money import ZERO, round2, sum2
from pos_backoffice.models.invoice import Invoice
from pos_backoffice.models.invoice_counter import InvoiceCounter
from pos_backoffice.models.order import Order
from pos_backoffice.models.order_line_item import OrderLineItem
from pos_backoffice.schemas.invoice import CustomerDetails
from pos_backoffice.schemas.settings import InvoiceResetCycle, TenantSettings
from pos_backoffice.services.rendering import DocumentDispatcher

logger = structlog.get_logger(__name__)


def compute_period(cycle: InvoiceResetCycle, when: datetime) -> str:
    if cycle == InvoiceResetCycle.MONTHLY:
        return f"{when.year:04d}-{when.month:02d}"
    if cycle == InvoiceResetCycle.YEARLY:
        return f"{when.year:04d}"
    return "global"


def branch_code_for(branch_id: Optional[uuid.UUID], code: Optional[str] = None) -> Optional[str]:
    """Explicit code, else the first two characters of the branch id"""
    if code:
        return code.upper()
    if branch_id:
        return str(branch_id)[:2].upper()
    return None


def compose_invoice_number(
    settings: TenantSettings,
    period: str,
    serial: int,
    branch_code: Optional[str] = None
) -> str:
    prefix = settings.invoice_prefix or "INV"
    padded = str(serial).zfill(settings.invoice_padding)
    if settings.invoice_branch_prefix and branch_code:
        return f"{prefix}-{branch_code}-{period}-{padded}"
    return f"{prefix}-{period}-{padded}"


class InvoiceAllocator:
    """Issues one invoice per order with a gap-tolerant, duplicate-free serial"""

    def __init__(
        self,
        session: Session,
        dispatcher: Optional[DocumentDispatcher] = None,
        events: Optional[EventBus] = None
    ):
        self.session = session
        self.dispatcher = dispatcher
        self.events = events or event_bus

    def _existing(self, order_id: uuid.UUID) -> Optional[Invoice]:
        return self.session.exec(
            select(Invoice).where(Invoice.order_id == order_id)
        ).first()

    def _next_serial(self, tenant_id: uuid.UUID, branch_id: Optional[uuid.UUID], period: str) -> int:
        """Lock the counter row and bump it; the only path to a serial"""
        branch_key = InvoiceCounter.key_for(branch_id)
        statement = select(InvoiceCounter).where(
            InvoiceCounter.tenant_id == tenant_id,
            InvoiceCounter.branch_key == branch_key,
            InvoiceCounter.period == period
        ).with_for_update().execution_options(populate_existing=True)

        counter = self.session.exec(statement).first()
        if counter is None:
            try:
                with self.session.begin_nested():
                    self.session.add(InvoiceCounter(
                        tenant_id=tenant_id,
                        branch_id=branch_id,
                        branch_key=branch_key,
                        period=period,
                        last_serial=1,
                        updated_at=datetime.utcnow()
                    ))
                return 1
            except IntegrityError:
                # Lost the insert race; the winner's row is now lockable
                counter = self.session.exec(statement).one()

        counter.last_serial += 1
        counter.updated_at = datetime.utcnow()
        self.session.add(counter)
        self.session.flush()
        return counter.last_serial

    def _snapshot(
        self,
        order: Order,
        settings: TenantSettings
    ) -> Tuple[List[Dict[str, Any]], Decimal, Decimal, Decimal]:
        """Line items by value with per-line tax"""
        rate = settings.tax_rate / Decimal(100) if settings.gst_enabled else ZERO
        lines = self.session.exec(
            select(OrderLineItem).where(OrderLineItem.order_id == order.id)
            .order_by(OrderLineItem.position)
        ).all()

        items = []
        for line in lines:
            tax = round2(line.subtotal * rate)
            items.append({
                "product_id": str(line.product_id),
                "name": line.name,
                "quantity": line.quantity,
                "rate": str(round2(line.unit_price)),
                "tax": str(tax),
                "total": str(round2(line.subtotal + tax)),
            })

        subtotal = sum2(line.subtotal for line in lines)
        tax_amount = sum2(Decimal(item["tax"]) for item in items)
        return items, subtotal, tax_amount, round2(subtotal + tax_amount)

    def allocate(
        self,
        order_id: uuid.UUID,
        tenant_id: uuid.UUID,
        settings: TenantSettings,
        branch_id: Optional[uuid.UUID] = None,
        branch_code: Optional[str] = None,
        customer: Optional[CustomerDetails] = None,
        created_by: Optional[uuid.UUID] = None,
        sync_render: bool = False
    ) -> Invoice:
        """Issue the order's invoice, or return the one already issued"""
        order = self.session.get(Order, order_id)
        if not order or order.tenant_id != tenant_id:
            raise NotFoundError("Order not found", {"order_id": str(order_id)})

        existing = self._existing(order_id)
        if existing:
            logger.info("invoice_exists", order_id=str(order_id), invoice_id=str(existing.id))
            return existing

        if not settings.enable_invoices:
            raise ForbiddenError("Invoices are disabled for this tenant")

        period = compute_period(settings.invoice_reset_cycle, order.sale_date or order.created_at)
        customer = customer or CustomerDetails()

        try:
            with atomic(self.session):
                serial = self._next_serial(tenant_id, branch_id, period)
                number = compose_invoice_number(
                    settings, period, serial, branch_code_for(branch_id, branch_code)
                )
                items, subtotal, tax_amount, total = self._snapshot(order, settings)

                invoice = Invoice(
                    tenant_id=tenant_id,
                    branch_id=branch_id,
                    branch_key=InvoiceCounter.key_for(branch_id),
                    order_id=order_id,
                    invoice_number=number,
                    invoice_prefix=settings.invoice_prefix,
                    invoice_serial=serial,
                    invoice_period=period,
                    customer_name=customer.name,
                    customer_phone=customer.phone,
                    customer_gstin=customer.gstin,
                    items=items,
                    subtotal=subtotal,
                    tax_amount=tax_amount,
                    discount_amount=ZERO,
                    total=total,
                    created_by=created_by
                )
                self.session.add(invoice)
                self.session.flush()
                invoice_id = invoice.id
                logger.info(
                    "invoice_allocated",
                    invoice_id=str(invoice_id),
                    order_id=str(order_id),
                    invoice_number=number,
                    serial=serial,
                    period=period
                )
        except IntegrityError:
            # A concurrent request issued this order's invoice first
            winner = self._existing(order_id)
            if winner is None:
                raise InternalError("Invoice allocation failed", {"order_id": str(order_id)})
            logger.info("invoice_race_lost", order_id=str(order_id), invoice_id=str(winner.id))
            return winner

        if self.dispatcher is not None:
            if sync_render:
                try:
                    self.dispatcher.render_and_attach(self.session, invoice, settings)
                except Exception as e:
                    # The serial is committed; the document can be rendered again later
                    logger.error("invoice_render_failed", invoice_id=str(invoice_id), error=str(e), exc_info=True)
            else:
                self.dispatcher.dispatch(invoice_id, settings)

        self.events.publish(InvoiceIssued(invoice_id, order_id, tenant_id, number))
        self.session.refresh(invoice)
        return invoice

    def render(self, invoice_id: uuid.UUID, tenant_id: uuid.UUID, settings: TenantSettings) -> Invoice:
        """Render now and store the document reference; used for retries"""
        if self.dispatcher is None:
            raise InternalError("No document renderer configured")
        invoice = self.get(invoice_id, tenant_id)
        try:
            self.dispatcher.render_and_attach(self.session, invoice, settings)
        except Exception as e:
            logger.error("invoice_render_failed", invoice_id=str(invoice_id), error=str(e), exc_info=True)
            raise InternalError("Invoice document could not be rendered", {"invoice_id": str(invoice_id)})
        self.session.refresh(invoice)
        return invoice

    def get(self, invoice_id: uuid.UUID, tenant_id: uuid.UUID) -> Invoice:
        invoice = self.session.get(Invoice, invoice_id)
        if not invoice or invoice.tenant_id != tenant_id:
            raise NotFoundError("Invoice not found", {"invoice_id": str(invoice_id)})
        return invoice

    def list(
        self,
        tenant_id: uuid.UUID,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        customer: Optional[str] = None,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[Invoice], int]:
        conditions = [Invoice.tenant_id == tenant_id]
        if date_from:
            conditions.append(Invoice.created_at >= date_from)
        if date_to:
            conditions.append(Invoice.created_at <= date_to)
        if customer:
            pattern = f"%{customer}%"
            conditions.append(or_(
                Invoice.customer_name.ilike(pattern),
                Invoice.customer_phone.ilike(pattern)
            ))

        total = self.session.exec(select(func.count(Invoice.id)).where(*conditions)).one()
        invoices = self.session.exec(
            select(Invoice).where(*conditions)
            .order_by(Invoice.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).all()
        return list(invoices), total

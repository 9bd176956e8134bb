"""
Order aggregate manager

Owns orders and their line items. Creation consumes stock and optionally
seats the order at a table; payment updates settle the order exactly once
and free its table when it was the last unpaid order there. Each public
operation is one transaction; domain events go out only after commit.
"""

from collections import OrderedDict
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple
import uuid

from sqlalchemy import func
from sqlmodel import Session, select
import structlog

from pos_backoffice.core.database import atomic
from pos_backoffice.core.events import DomainEvent, EventBus, OrderCreated, OrderPaid, event_bus
from pos_backoffice.core.exceptions import (
    ConflictError, ForbiddenError, NotFoundError, PaymentSplitError,
    TotalMismatchError, ValidationError
)
from pos_backoffice.core.money import ZERO, round2, sum2, to_decimal
from pos_backoffice.models.order import Order, PaymentType
from pos_backoffice.models.order_line_item import OrderLineItem
from pos_backoffice.schemas.order import (
    LineItemCreate, OrderCreate, OrderPaymentUpdate, OrderRead, PaymentTotals
)
from pos_backoffice.schemas.settings import TenantSettings
from pos_backoffice.services.catalog import Catalog, ProductSnapshot
from pos_backoffice.services.stock_ledger import StockLedger
from pos_backoffice.services.table_state import TableStateMachine

logger = structlog.get_logger(__name__)


def build_order_reads(session: Session, orders: Sequence[Order]) -> List[OrderRead]:
    """Attach line items (in append order) to each order"""
    if not orders:
        return []
    items = session.exec(
        select(OrderLineItem).where(
            OrderLineItem.order_id.in_([o.id for o in orders])
        ).order_by(OrderLineItem.position)
    ).all()
    by_order: Dict[uuid.UUID, List[dict]] = {}
    for item in items:
        by_order.setdefault(item.order_id, []).append(item.model_dump())
    return [
        OrderRead.model_validate({**order.model_dump(), "line_items": by_order.get(order.id, [])})
        for order in orders
    ]


class OrderManager:
    """Creates and mutates orders against the stock ledger and table state machine"""

    def __init__(
        self,
        session: Session,
        catalog: Catalog,
        stock: StockLedger,
        tables: TableStateMachine,
        events: Optional[EventBus] = None
    ):
        self.session = session
        self.catalog = catalog
        self.stock = stock
        self.tables = tables
        self.events = events or event_bus

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _aggregate_quantities(items: Sequence[LineItemCreate]) -> Dict[uuid.UUID, int]:
        quantities: Dict[uuid.UUID, int] = OrderedDict()
        for item in items:
            quantities[item.product_id] = quantities.get(item.product_id, 0) + item.quantity
        return quantities

    @staticmethod
    def _validate_items(items: Sequence[LineItemCreate]) -> None:
        if not items:
            raise ValidationError("An order needs at least one line item")
        for item in items:
            if item.quantity <= 0:
                raise ValidationError(
                    "Quantity must be a positive integer",
                    {"product_id": str(item.product_id), "quantity": item.quantity}
                )
            if to_decimal(item.unit_price) <= 0:
                raise ValidationError(
                    "Unit price must be positive",
                    {"product_id": str(item.product_id), "unit_price": str(item.unit_price)}
                )

    @staticmethod
    def _validate_split(cash: Decimal, upi: Decimal, total: Decimal) -> None:
        if cash < 0 or upi < 0:
            raise PaymentSplitError(
                "Payment amounts cannot be negative",
                {"cash_amount": str(cash), "upi_amount": str(upi)}
            )
        if round2(cash + upi) > round2(total):
            raise PaymentSplitError(
                "Payment amounts exceed the order total",
                {"cash_amount": str(cash), "upi_amount": str(upi), "total_amount": str(total)}
            )

    def _resolve_split(
        self,
        total: Decimal,
        cash: Optional[Decimal],
        upi: Optional[Decimal],
        payment_type: Optional[PaymentType]
    ) -> Tuple[Decimal, Decimal]:
        if cash is None and upi is None:
            if payment_type is None:
                return ZERO, ZERO
            if payment_type == PaymentType.CASH:
                return total, ZERO
            if payment_type == PaymentType.UPI:
                return ZERO, total
            raise PaymentSplitError("A mixed payment needs explicit cash and UPI amounts")

        cash = round2(cash if cash is not None else ZERO)
        upi = round2(upi if upi is not None else ZERO)
        self._validate_split(cash, upi, total)
        return cash, upi

    def _resolve_products(
        self,
        product_ids: Sequence[uuid.UUID],
        tenant_id: uuid.UUID
    ) -> Dict[uuid.UUID, ProductSnapshot]:
        snapshots = {p.id: p for p in self.catalog.lookup_by_ids(product_ids, tenant_id)}
        missing = [str(pid) for pid in product_ids if pid not in snapshots]
        if missing:
            raise ValidationError(
                f"Product {missing[0]} not found",
                {"product_ids": missing}
            )
        return snapshots

    def _lock_order(self, order_id: uuid.UUID, tenant_id: uuid.UUID) -> Order:
        order = self.session.exec(
            select(Order).where(Order.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).first()
        if not order or order.tenant_id != tenant_id:
            raise NotFoundError("Order not found", {"order_id": str(order_id)})
        return order

    def _append_line_items(
        self,
        order: Order,
        items: Sequence[LineItemCreate],
        products: Dict[uuid.UUID, ProductSnapshot],
        start_position: int = 0
    ) -> List[OrderLineItem]:
        created = []
        for offset, item in enumerate(items):
            product = products[item.product_id]
            unit_price = round2(item.unit_price)
            line = OrderLineItem(
                tenant_id=order.tenant_id,
                order_id=order.id,
                product_id=item.product_id,
                name=product.name,
                quantity=item.quantity,
                unit_price=unit_price,
                cost_price=round2(product.cost_price),
                subtotal=OrderLineItem.line_subtotal(item.quantity, to_decimal(item.unit_price)),
                position=start_position + offset
            )
            self.session.add(line)
            created.append(line)
        return created

    def _line_items(self, order_id: uuid.UUID) -> List[OrderLineItem]:
        return list(self.session.exec(
            select(OrderLineItem).where(OrderLineItem.order_id == order_id)
            .order_by(OrderLineItem.position)
        ).all())

    def _read(self, order: Order) -> OrderRead:
        return build_order_reads(self.session, [order])[0]

    def _publish(self, events: List[DomainEvent]) -> None:
        for event in events:
            self.events.publish(event)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create(self, draft: OrderCreate, tenant_id: uuid.UUID, settings: TenantSettings) -> OrderRead:
        """Create an order with its initial line items in one transaction"""
        self._validate_items(draft.items)

        total = sum2(
            OrderLineItem.line_subtotal(item.quantity, to_decimal(item.unit_price))
            for item in draft.items
        )
        declared = round2(draft.total_amount)
        if total != declared:
            raise TotalMismatchError(
                "total_amount does not match the sum of line items",
                {"declared_total": str(declared), "computed_total": str(total)}
            )

        cash, upi = self._resolve_split(total, draft.cash_amount, draft.upi_amount, draft.payment_type)

        if draft.table_id and not settings.enable_tables:
            raise ForbiddenError("Table management is not enabled for this tenant")

        events: List[DomainEvent] = []
        with atomic(self.session):
            quantities = self._aggregate_quantities(draft.items)
            products = self._resolve_products(list(quantities), tenant_id)

            self.stock.consume(
                quantities,
                draft.location_id,
                tenant_id,
                names={pid: p.name for pid, p in products.items()}
            )

            now = datetime.utcnow()
            order = Order(
                tenant_id=tenant_id,
                location_id=draft.location_id,
                total_amount=total,
                cash_amount=cash,
                upi_amount=upi,
                sold_by=draft.sold_by,
                sale_date=draft.sale_date or now,
                created_at=now
            )
            order.payment_type = (
                draft.payment_type
                if draft.payment_type and draft.cash_amount is None and draft.upi_amount is None
                else order.derive_payment_type()
            )
            order.is_paid = total > 0 and order.is_fully_covered()
            if order.is_paid:
                order.closed_at = now
            self.session.add(order)
            self.session.flush()

            self._append_line_items(order, draft.items, products)
            self.session.flush()

            if draft.table_id:
                if order.is_paid:
                    # Settled on the spot: the table is recorded but never occupied
                    self.tables.get(draft.table_id, tenant_id)
                    order.table_id = draft.table_id
                    order.opened_at = now
                    self.session.add(order)
                    self.session.flush()
                else:
                    self.tables.bind(draft.table_id, order.id, tenant_id)

            result = self._read(order)
            logger.info(
                "order_created",
                order_id=str(order.id),
                tenant_id=str(tenant_id),
                table_id=str(order.table_id) if order.table_id else None,
                total_amount=str(total),
                is_paid=order.is_paid
            )
            events.append(OrderCreated(order.id, tenant_id, order.table_id, total))
            if order.is_paid:
                events.append(OrderPaid(order.id, tenant_id, total, cash, upi, order.table_id))

        self._publish(events)
        return result

    def add_items(
        self,
        order_id: uuid.UUID,
        items: Sequence[LineItemCreate],
        tenant_id: uuid.UUID
    ) -> OrderRead:
        """Append line items to an unpaid order; payment fields are left alone"""
        self._validate_items(items)

        with atomic(self.session):
            order = self._lock_order(order_id, tenant_id)
            if order.is_paid:
                raise ConflictError("Cannot add items to a paid order", {"order_id": str(order_id)})

            quantities = self._aggregate_quantities(items)
            products = self._resolve_products(list(quantities), tenant_id)
            self.stock.consume(
                quantities,
                order.location_id,
                tenant_id,
                names={pid: p.name for pid, p in products.items()}
            )

            existing = self._line_items(order.id)
            self._append_line_items(order, items, products, start_position=len(existing))
            self.session.flush()

            order.total_amount = sum2(li.subtotal for li in self._line_items(order.id))
            order.touch()
            self.session.add(order)
            self.session.flush()

            result = self._read(order)
            logger.info(
                "order_items_added",
                order_id=str(order_id),
                added=len(items),
                total_amount=str(order.total_amount)
            )
        return result

    def update(
        self,
        order_id: uuid.UUID,
        patch: OrderPaymentUpdate,
        tenant_id: uuid.UUID,
        settings: TenantSettings,
        allow_override: bool = False
    ) -> OrderRead:
        """Record payment; settles the order and frees its table when fully covered"""
        events: List[DomainEvent] = []
        with atomic(self.session):
            order = self._lock_order(order_id, tenant_id)
            was_paid = order.is_paid
            fields = patch.model_dump(exclude_unset=True)

            amounts_supplied = "cash_amount" in fields or "upi_amount" in fields
            if amounts_supplied:
                # A channel left out of the patch keeps its recorded amount
                cash = round2(
                    (patch.cash_amount or ZERO) if "cash_amount" in fields else order.cash_amount
                )
                upi = round2(
                    (patch.upi_amount or ZERO) if "upi_amount" in fields else order.upi_amount
                )
                self._validate_split(cash, upi, order.total_amount)
                order.cash_amount = cash
                order.upi_amount = upi
                order.payment_type = order.derive_payment_type()

            if patch.payment_type is not None:
                order.payment_type = patch.payment_type

            derived_paid = order.total_amount > 0 and order.is_fully_covered()
            if patch.is_paid is not None and patch.is_paid != derived_paid:
                if not allow_override:
                    raise ForbiddenError(
                        "Overriding the paid flag requires override permission",
                        {"order_id": str(order_id), "derived_is_paid": derived_paid}
                    )
                is_paid = patch.is_paid
            elif patch.is_paid is None and not amounts_supplied:
                # payment_type-only edits leave a settled order settled
                is_paid = was_paid or derived_paid
            else:
                is_paid = derived_paid

            if was_paid and not is_paid:
                raise ConflictError("A paid order cannot be reopened", {"order_id": str(order_id)})

            order.is_paid = is_paid
            now = datetime.utcnow()
            if is_paid and not was_paid:
                order.closed_at = now
            order.touch()
            self.session.add(order)
            self.session.flush()

            if is_paid and not was_paid:
                if order.table_id and settings.auto_free_table_on_payment:
                    self.tables.unbind_if_last(order.table_id, tenant_id, except_order_id=order.id)
                logger.info(
                    "order_paid",
                    order_id=str(order_id),
                    cash_amount=str(order.cash_amount),
                    upi_amount=str(order.upi_amount)
                )
                events.append(OrderPaid(
                    order.id,
                    tenant_id,
                    order.total_amount,
                    order.cash_amount,
                    order.upi_amount,
                    order.table_id
                ))

            result = self._read(order)

        self._publish(events)
        return result

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, order_id: uuid.UUID, tenant_id: uuid.UUID) -> OrderRead:
        order = self.session.get(Order, order_id)
        if not order or order.tenant_id != tenant_id:
            raise NotFoundError("Order not found", {"order_id": str(order_id)})
        return self._read(order)

    def _filtered(
        self,
        query,
        tenant_id: uuid.UUID,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        is_paid: Optional[bool] = None,
        table_id: Optional[uuid.UUID] = None,
        payment_type: Optional[PaymentType] = None,
        product_id: Optional[uuid.UUID] = None,
        staff: Optional[str] = None
    ):
        query = query.where(Order.tenant_id == tenant_id)
        if date_from:
            query = query.where(Order.sale_date >= date_from)
        if date_to:
            query = query.where(Order.sale_date <= date_to)
        if is_paid is not None:
            query = query.where(Order.is_paid == is_paid)
        if table_id:
            query = query.where(Order.table_id == table_id)
        if payment_type:
            query = query.where(Order.payment_type == payment_type)
        if staff:
            query = query.where(Order.sold_by.ilike(f"%{staff}%"))
        if product_id:
            query = query.where(
                Order.id.in_(
                    select(OrderLineItem.order_id).where(OrderLineItem.product_id == product_id)
                )
            )
        return query

    def list(
        self,
        tenant_id: uuid.UUID,
        page: int = 1,
        page_size: int = 50,
        **filters
    ) -> Tuple[List[OrderRead], int]:
        """Newest first by business date"""
        total = self.session.exec(
            self._filtered(select(func.count(Order.id)), tenant_id, **filters)
        ).one()
        orders = self.session.exec(
            self._filtered(select(Order), tenant_id, **filters)
            .order_by(Order.sale_date.desc(), Order.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).all()
        return build_order_reads(self.session, orders), total

    def payment_totals(
        self,
        tenant_id: uuid.UUID,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        staff: Optional[str] = None
    ) -> PaymentTotals:
        """Cash/UPI received on paid orders"""
        cash, upi, count = self.session.exec(
            self._filtered(
                select(
                    func.coalesce(func.sum(Order.cash_amount), 0),
                    func.coalesce(func.sum(Order.upi_amount), 0),
                    func.count(Order.id)
                ),
                tenant_id,
                date_from=date_from,
                date_to=date_to,
                is_paid=True,
                staff=staff
            )
        ).one()
        cash, upi = round2(cash), round2(upi)
        return PaymentTotals(cash=cash, upi=upi, total=round2(cash + upi), order_count=count)

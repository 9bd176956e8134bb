"""
Stock ledger

Authoritative on-hand quantity per (product, location). Every write locks
the row first; an absent row reads as 0 and is materialized on first write.
"""

from datetime import datetime
from typing import Dict, List, Mapping, Optional
import uuid

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select
import structlog

from pos_backoffice.core.database import atomic
from pos_backoffice.core.exceptions import InsufficientStockError, NotFoundError, ValidationError
from pos_backoffice.models.product import Product
from pos_backoffice.models.stock import StockRecord
from pos_backoffice.schemas.stock import LowStockItem

logger = structlog.get_logger(__name__)


class StockLedger:
    """Atomic adjust/set over stock rows with a non-negative invariant"""

    def __init__(self, session: Session):
        self.session = session

    # ------------------------------------------------------------------
    # Reads (never lock, never materialize)
    # ------------------------------------------------------------------

    def _find(self, product_id: uuid.UUID, location_id: uuid.UUID) -> Optional[StockRecord]:
        return self.session.exec(
            select(StockRecord).where(
                StockRecord.product_id == product_id,
                StockRecord.location_id == location_id
            )
        ).first()

    def get_quantity(self, product_id: uuid.UUID, location_id: uuid.UUID) -> int:
        record = self._find(product_id, location_id)
        return record.quantity if record else 0

    def low_stock(self, product_id: uuid.UUID, location_id: uuid.UUID, threshold: int) -> bool:
        """Alerting only; order creation never consults this"""
        return self.get_quantity(product_id, location_id) < threshold

    def low_stock_items(
        self,
        location_id: uuid.UUID,
        tenant_id: uuid.UUID,
        default_threshold: int
    ) -> List[LowStockItem]:
        """Active products below their threshold (or the tenant default) at a location"""
        products = self.session.exec(
            select(Product).where(
                Product.tenant_id == tenant_id,
                Product.is_active == True  # noqa: E712
            ).order_by(Product.name)
        ).all()
        records = self.session.exec(
            select(StockRecord).where(
                StockRecord.tenant_id == tenant_id,
                StockRecord.location_id == location_id
            )
        ).all()
        on_hand = {r.product_id: r.quantity for r in records}

        items = []
        for product in products:
            threshold = product.low_stock_threshold
            if threshold is None:
                threshold = default_threshold
            quantity = on_hand.get(product.id, 0)
            if quantity < threshold:
                items.append(LowStockItem(
                    product_id=product.id,
                    name=product.name,
                    quantity=quantity,
                    threshold=threshold,
                    location_id=location_id,
                ))
        return items

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def require_product(self, product_id: uuid.UUID, tenant_id: uuid.UUID) -> Product:
        product = self.session.get(Product, product_id)
        if not product or product.tenant_id != tenant_id:
            raise NotFoundError("Product not found", {"product_id": str(product_id)})
        return product

    def _lock(self, product_id: uuid.UUID, location_id: uuid.UUID, tenant_id: uuid.UUID) -> StockRecord:
        """SELECT ... FOR UPDATE, inserting a zero row when none exists"""
        statement = select(StockRecord).where(
            StockRecord.product_id == product_id,
            StockRecord.location_id == location_id
        ).with_for_update().execution_options(populate_existing=True)

        record = self.session.exec(statement).first()
        if record:
            return record

        try:
            with self.session.begin_nested():
                record = StockRecord(
                    tenant_id=tenant_id,
                    product_id=product_id,
                    location_id=location_id,
                    quantity=0
                )
                self.session.add(record)
        except IntegrityError:
            # Another transaction inserted the row first; wait for its lock
            record = self.session.exec(statement).one()
        return record

    def adjust(
        self,
        product_id: uuid.UUID,
        location_id: uuid.UUID,
        delta: int,
        tenant_id: uuid.UUID,
        product_name: Optional[str] = None
    ) -> StockRecord:
        """Add delta (negative to consume); rejects if the result would be negative"""
        with atomic(self.session):
            if product_name is None:
                product_name = self.require_product(product_id, tenant_id).name

            record = self._lock(product_id, location_id, tenant_id)
            new_quantity = record.quantity + delta
            if new_quantity < 0:
                raise InsufficientStockError(
                    f"Insufficient stock for {product_name}: available {record.quantity}, requested {-delta}",
                    product_id=product_id,
                    product_name=product_name,
                    available=record.quantity,
                    requested=-delta,
                )

            record.quantity = new_quantity
            record.updated_at = datetime.utcnow()
            self.session.add(record)
            self.session.flush()

            logger.info(
                "stock_adjusted",
                product_id=str(product_id),
                location_id=str(location_id),
                delta=delta,
                quantity=new_quantity
            )
        self.session.refresh(record)
        return record

    def consume(
        self,
        quantities: Mapping[uuid.UUID, int],
        location_id: uuid.UUID,
        tenant_id: uuid.UUID,
        names: Optional[Dict[uuid.UUID, str]] = None
    ) -> None:
        """
        Decrement several products at once.

        Rows are locked in product-id order so two orders touching the same
        products cannot deadlock; every row is checked before any is written.
        """
        names = names or {}
        with atomic(self.session):
            locked = []
            for product_id in sorted(quantities, key=str):
                record = self._lock(product_id, location_id, tenant_id)
                requested = quantities[product_id]
                if record.quantity < requested:
                    name = names.get(product_id) or str(product_id)
                    raise InsufficientStockError(
                        f"Insufficient stock for {name}: available {record.quantity}, requested {requested}",
                        product_id=product_id,
                        product_name=names.get(product_id),
                        available=record.quantity,
                        requested=requested,
                    )
                locked.append((record, requested))

            now = datetime.utcnow()
            for record, requested in locked:
                record.quantity -= requested
                record.updated_at = now
                self.session.add(record)
            self.session.flush()

    def set(
        self,
        product_id: uuid.UUID,
        location_id: uuid.UUID,
        quantity: int,
        tenant_id: uuid.UUID
    ) -> StockRecord:
        """Absolute assignment"""
        if quantity < 0:
            raise ValidationError(
                "Stock quantity cannot be negative",
                {"product_id": str(product_id), "quantity": quantity}
            )

        with atomic(self.session):
            self.require_product(product_id, tenant_id)
            record = self._lock(product_id, location_id, tenant_id)
            record.quantity = quantity
            record.updated_at = datetime.utcnow()
            self.session.add(record)
            self.session.flush()
            logger.info(
                "stock_set",
                product_id=str(product_id),
                location_id=str(location_id),
                quantity=quantity
            )
        self.session.refresh(record)
        return record

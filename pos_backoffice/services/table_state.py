"""
Table occupancy state machine

Tables never own orders; an order points at its table and the table status
follows the number of unpaid orders pointing at it:

    AVAILABLE/RESERVED --bind--> OCCUPIED --last unpaid order gone--> AVAILABLE
    any --merge (as source)--> BLOCKED
    any --set_status--> RESERVED | CLEANING | BLOCKED

Lock order is orders first, then tables sorted by id.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple
import uuid

from sqlalchemy import func
from sqlmodel import Session, select
import structlog

from pos_backoffice.core.database import atomic
from pos_backoffice.core.exceptions import (
    ConflictError, ForbiddenError, NotFoundError, TableStateError, ValidationError
)
from pos_backoffice.models.order import Order
from pos_backoffice.models.table import DiningTable, TableStatus
from pos_backoffice.schemas.settings import TenantSettings

logger = structlog.get_logger(__name__)

# Statuses an administrator may set without checking bound orders
UNCONDITIONAL_STATUSES = (TableStatus.RESERVED, TableStatus.CLEANING, TableStatus.BLOCKED)


class TableStateMachine:
    """Guards every table status change against the orders bound to it"""

    def __init__(self, session: Session):
        self.session = session

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, table_id: uuid.UUID, tenant_id: uuid.UUID) -> DiningTable:
        table = self.session.get(DiningTable, table_id)
        if not table or table.tenant_id != tenant_id:
            raise NotFoundError("Table not found", {"table_id": str(table_id)})
        return table

    def list(
        self,
        tenant_id: uuid.UUID,
        status: Optional[TableStatus] = None,
        area: Optional[str] = None,
        include_inactive: bool = False
    ) -> List[DiningTable]:
        query = select(DiningTable).where(DiningTable.tenant_id == tenant_id)
        if not include_inactive:
            query = query.where(DiningTable.is_active == True)  # noqa: E712
        if status:
            query = query.where(DiningTable.status == status)
        if area:
            query = query.where(DiningTable.area == area)
        return list(self.session.exec(query.order_by(DiningTable.name)).all())

    def unpaid_count(self, table_id: uuid.UUID, except_order_id: Optional[uuid.UUID] = None) -> int:
        """Number of unpaid orders referencing a table"""
        query = select(func.count(Order.id)).where(
            Order.table_id == table_id,
            Order.is_paid == False  # noqa: E712
        )
        if except_order_id:
            query = query.where(Order.id != except_order_id)
        return self.session.exec(query).one()

    def active_orders(self, table_id: uuid.UUID, tenant_id: uuid.UUID) -> List[Order]:
        self.get(table_id, tenant_id)
        return list(self.session.exec(
            select(Order).where(
                Order.tenant_id == tenant_id,
                Order.table_id == table_id,
                Order.is_paid == False  # noqa: E712
            ).order_by(Order.created_at.desc())
        ).all())

    def active_order(self, table_id: uuid.UUID, tenant_id: uuid.UUID) -> Optional[Order]:
        """Most recent unpaid order seated at the table"""
        orders = self.active_orders(table_id, tenant_id)
        return orders[0] if orders else None

    def table_with_orders(
        self,
        table_id: uuid.UUID,
        tenant_id: uuid.UUID,
        history_limit: int = 10
    ) -> Tuple[DiningTable, List[Order], List[Order]]:
        """Table, its unpaid orders and its most recently paid orders"""
        table = self.get(table_id, tenant_id)
        active = self.active_orders(table_id, tenant_id)
        history = list(self.session.exec(
            select(Order).where(
                Order.tenant_id == tenant_id,
                Order.table_id == table_id,
                Order.is_paid == True  # noqa: E712
            ).order_by(Order.created_at.desc()).limit(history_limit)
        ).all())
        return table, active, history

    # ------------------------------------------------------------------
    # Locking helpers
    # ------------------------------------------------------------------

    def _lock_order(self, order_id: uuid.UUID, tenant_id: uuid.UUID) -> Order:
        order = self.session.exec(
            select(Order).where(Order.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).first()
        if not order or order.tenant_id != tenant_id:
            raise NotFoundError("Order not found", {"order_id": str(order_id)})
        return order

    def _lock_tables(self, table_ids: Iterable[uuid.UUID], tenant_id: uuid.UUID) -> Dict[uuid.UUID, DiningTable]:
        locked = {}
        for table_id in sorted(set(table_ids), key=str):
            table = self.session.exec(
                select(DiningTable).where(DiningTable.id == table_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).first()
            if not table or table.tenant_id != tenant_id:
                raise NotFoundError("Table not found", {"table_id": str(table_id)})
            locked[table_id] = table
        return locked

    def _set_status(self, table: DiningTable, status: TableStatus) -> None:
        previous = table.transition_to(status)
        if previous is None:
            return
        self.session.add(table)
        logger.info(
            "table_status_changed",
            table_id=str(table.id),
            from_status=previous.value,
            to_status=status.value
        )

    def _free_if_last(self, table: DiningTable, except_order_id: Optional[uuid.UUID] = None) -> None:
        self.session.flush()
        if table.status == TableStatus.OCCUPIED and self.unpaid_count(table.id, except_order_id) == 0:
            self._set_status(table, TableStatus.AVAILABLE)

    @staticmethod
    def _ensure_seatable(table: DiningTable, order: Order) -> None:
        if not table.is_active:
            raise TableStateError(
                f"Table {table.name} is inactive",
                {"table_id": str(table.id)}
            )
        if table.is_seatable() or order.table_id == table.id:
            return
        raise TableStateError(
            f"Table {table.name} is currently {table.status.value.lower()}",
            {"table_id": str(table.id), "status": table.status.value}
        )

    @staticmethod
    def _ensure_unpaid(order: Order) -> None:
        if order.is_paid:
            raise ConflictError(
                "Order is already paid",
                {"order_id": str(order.id)}
            )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def create(
        self,
        tenant_id: uuid.UUID,
        settings: TenantSettings,
        name: str,
        capacity: int = 4,
        area: Optional[str] = None
    ) -> DiningTable:
        if not settings.enable_tables:
            raise ForbiddenError("Table management is not enabled for this tenant")

        with atomic(self.session):
            duplicate = self.session.exec(
                select(DiningTable).where(
                    DiningTable.tenant_id == tenant_id,
                    DiningTable.name == name,
                    DiningTable.is_active == True  # noqa: E712
                )
            ).first()
            if duplicate:
                raise ConflictError(f"Table {name} already exists", {"table_id": str(duplicate.id)})

            table = DiningTable(
                tenant_id=tenant_id,
                name=name,
                capacity=capacity,
                area=area,
                status=TableStatus.AVAILABLE
            )
            self.session.add(table)
            self.session.flush()
            logger.info("table_created", table_id=str(table.id), tenant_id=str(tenant_id))
        self.session.refresh(table)
        return table

    def bind(self, table_id: uuid.UUID, order_id: uuid.UUID, tenant_id: uuid.UUID) -> DiningTable:
        """Seat an unpaid order at a table; a previous table is freed if it empties"""
        with atomic(self.session):
            order = self._lock_order(order_id, tenant_id)
            self._ensure_unpaid(order)

            previous_table_id = order.table_id if order.table_id != table_id else None
            tables = self._lock_tables(
                [table_id] + ([previous_table_id] if previous_table_id else []),
                tenant_id
            )
            table = tables[table_id]
            self._ensure_seatable(table, order)

            order.table_id = table.id
            if order.opened_at is None:
                order.opened_at = datetime.utcnow()
            order.touch()
            self.session.add(order)
            self._set_status(table, TableStatus.OCCUPIED)

            if previous_table_id:
                self._free_if_last(tables[previous_table_id])
            self.session.flush()
        self.session.refresh(table)
        return table

    def unbind_if_last(
        self,
        table_id: uuid.UUID,
        tenant_id: uuid.UUID,
        except_order_id: Optional[uuid.UUID] = None
    ) -> DiningTable:
        """Free an occupied table once no unpaid order (other than except_order_id) references it"""
        with atomic(self.session):
            table = self._lock_tables([table_id], tenant_id)[table_id]
            self._free_if_last(table, except_order_id)
            self.session.flush()
        self.session.refresh(table)
        return table

    def switch(
        self,
        order_id: uuid.UUID,
        from_table_id: uuid.UUID,
        to_table_id: uuid.UUID,
        tenant_id: uuid.UUID
    ) -> Tuple[DiningTable, DiningTable]:
        with atomic(self.session):
            order = self._lock_order(order_id, tenant_id)
            self._ensure_unpaid(order)
            if order.table_id != from_table_id:
                raise TableStateError(
                    "Order is not seated at the source table",
                    {"order_id": str(order_id), "table_id": str(from_table_id)}
                )

            tables = self._lock_tables([from_table_id, to_table_id], tenant_id)
            from_table, to_table = tables[from_table_id], tables[to_table_id]
            self._ensure_seatable(to_table, order)

            order.table_id = to_table.id
            order.touch()
            self.session.add(order)
            self._set_status(to_table, TableStatus.OCCUPIED)
            if from_table_id != to_table_id:
                self._free_if_last(from_table)
            self.session.flush()

            logger.info(
                "order_table_switched",
                order_id=str(order_id),
                from_table_id=str(from_table_id),
                to_table_id=str(to_table_id)
            )
        self.session.refresh(from_table)
        self.session.refresh(to_table)
        return from_table, to_table

    def merge(
        self,
        source_ids: List[uuid.UUID],
        target_id: uuid.UUID,
        tenant_id: uuid.UUID,
        settings: TenantSettings
    ) -> Tuple[DiningTable, List[DiningTable]]:
        """Move every unpaid order of the sources onto the target; sources become BLOCKED"""
        if not settings.allow_table_merge:
            raise ForbiddenError("Table merging is not enabled for this tenant")

        source_ids = [sid for sid in dict.fromkeys(source_ids) if sid != target_id]
        if not source_ids:
            raise ValidationError("At least one source table other than the target is required")

        with atomic(self.session):
            moving = list(self.session.exec(
                select(Order).where(
                    Order.tenant_id == tenant_id,
                    Order.table_id.in_(source_ids),
                    Order.is_paid == False  # noqa: E712
                ).order_by(Order.id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).all())

            tables = self._lock_tables(source_ids + [target_id], tenant_id)
            target = tables[target_id]
            if not target.is_active or not target.is_seatable():
                raise TableStateError(
                    "Target table must be available for merging",
                    {"table_id": str(target_id), "status": target.status.value}
                )

            for order in moving:
                order.table_id = target_id
                order.touch()
                self.session.add(order)

            sources = [tables[sid] for sid in source_ids]
            for source in sources:
                self._set_status(source, TableStatus.BLOCKED)

            self.session.flush()
            if self.unpaid_count(target_id) > 0:
                self._set_status(target, TableStatus.OCCUPIED)
            self.session.flush()

            logger.info(
                "tables_merged",
                target_id=str(target_id),
                source_ids=[str(sid) for sid in source_ids],
                moved_orders=len(moving)
            )
        for table in [target] + sources:
            self.session.refresh(table)
        return target, sources

    def set_status(self, table_id: uuid.UUID, requested: str, tenant_id: uuid.UUID) -> DiningTable:
        """Administrative transition, checked against the bound unpaid orders"""
        try:
            status = TableStatus(requested)
        except ValueError:
            raise ValidationError(f"Unknown table status: {requested}", {"status": requested})

        with atomic(self.session):
            table = self._lock_tables([table_id], tenant_id)[table_id]
            if status not in UNCONDITIONAL_STATUSES:
                unpaid = self.unpaid_count(table_id)
                if status == TableStatus.OCCUPIED and unpaid == 0:
                    raise TableStateError(
                        "Cannot set table to OCCUPIED without an active order",
                        {"table_id": str(table_id)}
                    )
                if status == TableStatus.AVAILABLE and unpaid > 0:
                    raise TableStateError(
                        "Cannot set table to AVAILABLE while it has active orders",
                        {"table_id": str(table_id), "active_orders": unpaid}
                    )
            self._set_status(table, status)
            self.session.flush()
        self.session.refresh(table)
        return table

    def deactivate(self, table_id: uuid.UUID, tenant_id: uuid.UUID) -> DiningTable:
        """Soft delete"""
        with atomic(self.session):
            table = self._lock_tables([table_id], tenant_id)[table_id]
            unpaid = self.unpaid_count(table_id)
            if unpaid > 0:
                raise ConflictError(
                    "Cannot deactivate a table with active orders",
                    {"table_id": str(table_id), "active_orders": unpaid}
                )
            table.is_active = False
            table.updated_at = datetime.utcnow()
            self.session.add(table)
            self.session.flush()
            logger.info("table_deactivated", table_id=str(table_id))
        self.session.refresh(table)
        return table

"""
Tables API endpoints
Dining table lifecycle: seat, switch, merge and administrative status
"""

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session
from typing import List, Optional, Set
import uuid

from pos_backoffice.core.database import get_session
from pos_backoffice.core.dependencies import get_table_state_machine, get_tenant_id, get_tenant_settings
from pos_backoffice.core.permissions import Permission, require_permission
from pos_backoffice.models.table import TableStatus
from pos_backoffice.schemas.order import OrderRead
from pos_backoffice.schemas.settings import TenantSettings
from pos_backoffice.schemas.table import (
    TableBind, TableCreate, TableMerge, TableRead, TableStatusUpdate, TableSwitch, TableWithOrders
)
from pos_backoffice.services.order_manager import build_order_reads
from pos_backoffice.services.table_state import TableStateMachine

router = APIRouter()


@router.post("/", response_model=TableRead, status_code=status.HTTP_201_CREATED)
def create_table(
    data: TableCreate,
    tenant_id: uuid.UUID = Depends(get_tenant_id),
    settings: TenantSettings = Depends(get_tenant_settings),
    tables: TableStateMachine = Depends(get_table_state_machine),
    _: Set[Permission] = Depends(require_permission(Permission.TABLES_EDIT))
):
    """Create a new table"""
    return tables.create(tenant_id, settings, data.name, capacity=data.capacity, area=data.area)


@router.get("/", response_model=List[TableRead])
def list_tables(
    status_filter: Optional[TableStatus] = Query(None, alias="status"),
    area: Optional[str] = None,
    include_inactive: bool = False,
    tenant_id: uuid.UUID = Depends(get_tenant_id),
    tables: TableStateMachine = Depends(get_table_state_machine)
):
    return tables.list(tenant_id, status=status_filter, area=area, include_inactive=include_inactive)


@router.get("/{table_id}", response_model=TableRead)
def get_table(
    table_id: uuid.UUID,
    tenant_id: uuid.UUID = Depends(get_tenant_id),
    tables: TableStateMachine = Depends(get_table_state_machine)
):
    return tables.get(table_id, tenant_id)


@router.get("/{table_id}/orders", response_model=TableWithOrders)
def get_table_with_orders(
    table_id: uuid.UUID,
    tenant_id: uuid.UUID = Depends(get_tenant_id),
    tables: TableStateMachine = Depends(get_table_state_machine),
    session: Session = Depends(get_session)
):
    """Table with its unpaid orders and the last paid ones"""
    table, active, history = tables.table_with_orders(table_id, tenant_id)
    return TableWithOrders(
        table=TableRead.model_validate(table.model_dump()),
        active_orders=build_order_reads(session, active),
        recent_paid_orders=build_order_reads(session, history)
    )


@router.get("/{table_id}/active-order", response_model=Optional[OrderRead])
def get_active_order(
    table_id: uuid.UUID,
    tenant_id: uuid.UUID = Depends(get_tenant_id),
    tables: TableStateMachine = Depends(get_table_state_machine),
    session: Session = Depends(get_session)
):
    order = tables.active_order(table_id, tenant_id)
    if order is None:
        return None
    return build_order_reads(session, [order])[0]


@router.post("/{table_id}/bind", response_model=TableRead)
def bind_order(
    table_id: uuid.UUID,
    data: TableBind,
    tenant_id: uuid.UUID = Depends(get_tenant_id),
    tables: TableStateMachine = Depends(get_table_state_machine),
    _: Set[Permission] = Depends(require_permission(Permission.TABLES_OPERATE))
):
    """Seat an unpaid order at a table"""
    return tables.bind(table_id, data.order_id, tenant_id)


@router.post("/switch", response_model=List[TableRead])
def switch_table(
    data: TableSwitch,
    tenant_id: uuid.UUID = Depends(get_tenant_id),
    tables: TableStateMachine = Depends(get_table_state_machine),
    _: Set[Permission] = Depends(require_permission(Permission.TABLES_OPERATE))
):
    """Move an order to another table; returns [from_table, to_table]"""
    from_table, to_table = tables.switch(data.order_id, data.from_table_id, data.to_table_id, tenant_id)
    return [from_table, to_table]


@router.post("/merge", response_model=TableRead)
def merge_tables(
    data: TableMerge,
    tenant_id: uuid.UUID = Depends(get_tenant_id),
    settings: TenantSettings = Depends(get_tenant_settings),
    tables: TableStateMachine = Depends(get_table_state_machine),
    _: Set[Permission] = Depends(require_permission(Permission.TABLES_OPERATE))
):
    """Merge source tables into the target; returns the target"""
    target, _sources = tables.merge(data.source_table_ids, data.target_table_id, tenant_id, settings)
    return target


@router.patch("/{table_id}/status", response_model=TableRead)
def update_table_status(
    table_id: uuid.UUID,
    data: TableStatusUpdate,
    tenant_id: uuid.UUID = Depends(get_tenant_id),
    tables: TableStateMachine = Depends(get_table_state_machine),
    _: Set[Permission] = Depends(require_permission(Permission.TABLES_EDIT))
):
    return tables.set_status(table_id, data.status, tenant_id)


@router.delete("/{table_id}", response_model=TableRead)
def deactivate_table(
    table_id: uuid.UUID,
    tenant_id: uuid.UUID = Depends(get_tenant_id),
    tables: TableStateMachine = Depends(get_table_state_machine),
    _: Set[Permission] = Depends(require_permission(Permission.TABLES_EDIT))
):
    """Soft delete a table"""
    return tables.deactivate(table_id, tenant_id)

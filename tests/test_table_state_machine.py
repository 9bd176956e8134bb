"""
Unit tests for the table occupancy state machine
"""

import pytest
import uuid

from sqlmodel import Session

from pos_backoffice.core.exceptions import (
    ConflictError, ForbiddenError, NotFoundError, TableStateError, ValidationError
)
from pos_backoffice.models.order import Order, PaymentType
from pos_backoffice.models.table import TableStatus
from pos_backoffice.schemas.order import OrderPaymentUpdate
from pos_backoffice.schemas.settings import TenantSettings
from pos_backoffice.services.table_state import TableStateMachine


@pytest.fixture
def t1(tables: TableStateMachine, tenant, settings):
    return tables.create(tenant.id, settings, "T1", capacity=4, area="Indoor")


@pytest.fixture
def t2(tables: TableStateMachine, tenant, settings):
    return tables.create(tenant.id, settings, "T2", capacity=2, area="Outdoor")


@pytest.fixture
def t3(tables: TableStateMachine, tenant, settings):
    return tables.create(tenant.id, settings, "T3", capacity=6, area="Indoor")


@pytest.fixture
def open_order(manager, draft, coffee, tenant, settings):
    """Factory for unpaid single-coffee orders, optionally seated"""

    def _open(table=None):
        return manager.create(
            draft((coffee, 1), total="50.00", table_id=table.id if table else None),
            tenant.id,
            settings
        )

    return _open


# ----------------------------------------------------------------------
# Create / deactivate
# ----------------------------------------------------------------------

def test_create_table(t1):
    assert t1.status == TableStatus.AVAILABLE
    assert t1.is_active
    assert t1.area == "Indoor"


def test_create_requires_tables_enabled(tables: TableStateMachine, tenant):
    with pytest.raises(ForbiddenError):
        tables.create(tenant.id, TenantSettings(enable_tables=False), "T9")


def test_create_duplicate_name(tables: TableStateMachine, tenant, settings, t1):
    with pytest.raises(ConflictError):
        tables.create(tenant.id, settings, "T1")


def test_deactivate_free_table(tables: TableStateMachine, tenant, t1, t2):
    table = tables.deactivate(t1.id, tenant.id)

    assert table.is_active is False
    assert [t.name for t in tables.list(tenant.id)] == ["T2"]
    assert [t.name for t in tables.list(tenant.id, include_inactive=True)] == ["T1", "T2"]


def test_deactivate_with_active_order(tables: TableStateMachine, tenant, t1, open_order):
    open_order(t1)

    with pytest.raises(ConflictError):
        tables.deactivate(t1.id, tenant.id)

    assert tables.get(t1.id, tenant.id).is_active


def test_tables_are_tenant_scoped(tables: TableStateMachine, other_tenant, t1):
    with pytest.raises(NotFoundError):
        tables.get(t1.id, other_tenant.id)
    assert tables.list(other_tenant.id) == []


# ----------------------------------------------------------------------
# Bind
# ----------------------------------------------------------------------

def test_bind_occupies_table(db: Session, tables: TableStateMachine, tenant, t1, open_order):
    order = open_order()

    table = tables.bind(t1.id, order.id, tenant.id)

    assert table.status == TableStatus.OCCUPIED
    stored = db.get(Order, order.id)
    assert stored.table_id == t1.id
    assert stored.opened_at is not None
    assert stored.version > order.version


def test_bind_reserved_table(tables: TableStateMachine, tenant, t1, open_order):
    tables.set_status(t1.id, "RESERVED", tenant.id)
    order = open_order()

    assert tables.bind(t1.id, order.id, tenant.id).status == TableStatus.OCCUPIED


@pytest.mark.parametrize("status", ["CLEANING", "BLOCKED"])
def test_bind_rejects_unseatable_table(tables: TableStateMachine, tenant, t1, open_order, status):
    tables.set_status(t1.id, status, tenant.id)
    order = open_order()

    with pytest.raises(TableStateError):
        tables.bind(t1.id, order.id, tenant.id)

    assert tables.get(t1.id, tenant.id).status == TableStatus(status)


def test_bind_rejects_table_occupied_by_another_order(tables: TableStateMachine, tenant, t1, open_order):
    open_order(t1)
    second = open_order()

    with pytest.raises(TableStateError):
        tables.bind(t1.id, second.id, tenant.id)


def test_bind_rejects_inactive_table(tables: TableStateMachine, tenant, t1, open_order):
    tables.deactivate(t1.id, tenant.id)
    order = open_order()

    with pytest.raises(TableStateError):
        tables.bind(t1.id, order.id, tenant.id)


def test_bind_rejects_paid_order(tables: TableStateMachine, manager, draft, coffee, tenant, settings, t1):
    paid = manager.create(draft((coffee, 1), total="50.00", payment_type=PaymentType.CASH), tenant.id, settings)

    with pytest.raises(ConflictError):
        tables.bind(t1.id, paid.id, tenant.id)

    assert tables.get(t1.id, tenant.id).status == TableStatus.AVAILABLE


def test_rebind_frees_previous_table(tables: TableStateMachine, tenant, t1, t2, open_order):
    order = open_order(t1)

    tables.bind(t2.id, order.id, tenant.id)

    assert tables.get(t1.id, tenant.id).status == TableStatus.AVAILABLE
    assert tables.get(t2.id, tenant.id).status == TableStatus.OCCUPIED


# ----------------------------------------------------------------------
# Switch
# ----------------------------------------------------------------------

def test_switch_moves_order(db: Session, tables: TableStateMachine, tenant, t1, t2, open_order):
    order = open_order(t1)

    from_table, to_table = tables.switch(order.id, t1.id, t2.id, tenant.id)

    assert from_table.status == TableStatus.AVAILABLE
    assert to_table.status == TableStatus.OCCUPIED
    assert db.get(Order, order.id).table_id == t2.id


def test_switch_keeps_source_occupied_with_remaining_orders(
    tables: TableStateMachine, tenant, settings, t1, t2, t3, open_order
):
    first = open_order(t1)
    second = open_order(t2)
    tables.merge([t1.id, t2.id], t3.id, tenant.id, settings)
    t4 = tables.create(tenant.id, settings, "T4")

    from_table, to_table = tables.switch(second.id, t3.id, t4.id, tenant.id)

    assert from_table.status == TableStatus.OCCUPIED
    assert to_table.status == TableStatus.OCCUPIED
    assert tables.unpaid_count(t3.id) == 1
    assert tables.active_order(t3.id, tenant.id).id == first.id


def test_switch_requires_order_at_source(tables: TableStateMachine, tenant, t1, t2, t3, open_order):
    order = open_order(t1)

    with pytest.raises(TableStateError):
        tables.switch(order.id, t3.id, t2.id, tenant.id)

    assert tables.get(t1.id, tenant.id).status == TableStatus.OCCUPIED


def test_switch_into_occupied_table(tables: TableStateMachine, tenant, t1, t2, open_order):
    order = open_order(t1)
    open_order(t2)

    with pytest.raises(TableStateError):
        tables.switch(order.id, t1.id, t2.id, tenant.id)


def test_switch_unknown_order(tables: TableStateMachine, tenant, t1, t2):
    with pytest.raises(NotFoundError):
        tables.switch(uuid.uuid4(), t1.id, t2.id, tenant.id)


# ----------------------------------------------------------------------
# Merge
# ----------------------------------------------------------------------

def test_merge_moves_orders_and_blocks_sources(tables: TableStateMachine, tenant, settings, t1, t2, t3, open_order):
    first = open_order(t1)
    second = open_order(t2)

    target, sources = tables.merge([t1.id, t2.id], t3.id, tenant.id, settings)

    assert target.status == TableStatus.OCCUPIED
    assert {s.status for s in sources} == {TableStatus.BLOCKED}
    assert {o.id for o in tables.active_orders(t3.id, tenant.id)} == {first.id, second.id}
    assert tables.unpaid_count(t1.id) == 0


def test_merge_of_empty_sources_leaves_target_available(tables: TableStateMachine, tenant, settings, t1, t2):
    target, sources = tables.merge([t1.id], t2.id, tenant.id, settings)

    assert target.status == TableStatus.AVAILABLE
    assert sources[0].status == TableStatus.BLOCKED


def test_merge_requires_seatable_target(tables: TableStateMachine, tenant, settings, t1, t2, open_order):
    open_order(t1)
    open_order(t2)

    with pytest.raises(TableStateError):
        tables.merge([t1.id], t2.id, tenant.id, settings)

    assert tables.get(t1.id, tenant.id).status == TableStatus.OCCUPIED
    assert tables.unpaid_count(t1.id) == 1


def test_merge_ignores_target_in_sources(tables: TableStateMachine, tenant, settings, t1):
    with pytest.raises(ValidationError):
        tables.merge([t1.id, t1.id], t1.id, tenant.id, settings)


def test_merge_disabled(tables: TableStateMachine, tenant, t1, t2):
    settings = TenantSettings(enable_tables=True, allow_table_merge=False)

    with pytest.raises(ForbiddenError):
        tables.merge([t1.id], t2.id, tenant.id, settings)


# ----------------------------------------------------------------------
# Administrative status and release
# ----------------------------------------------------------------------

def test_set_status_unknown(tables: TableStateMachine, tenant, t1):
    with pytest.raises(ValidationError):
        tables.set_status(t1.id, "DIRTY", tenant.id)


def test_set_occupied_without_orders(tables: TableStateMachine, tenant, t1):
    with pytest.raises(TableStateError):
        tables.set_status(t1.id, "OCCUPIED", tenant.id)


def test_set_available_with_orders(tables: TableStateMachine, tenant, t1, open_order):
    open_order(t1)

    with pytest.raises(TableStateError):
        tables.set_status(t1.id, "AVAILABLE", tenant.id)


def test_set_cleaning_then_available(tables: TableStateMachine, tenant, t1):
    assert tables.set_status(t1.id, "CLEANING", tenant.id).status == TableStatus.CLEANING
    assert tables.set_status(t1.id, "AVAILABLE", tenant.id).status == TableStatus.AVAILABLE


def test_unbind_if_last_frees_only_when_empty(
    tables: TableStateMachine, manager, tenant, settings, t1, t2, t3, open_order
):
    first = open_order(t1)
    second = open_order(t2)
    tables.merge([t1.id, t2.id], t3.id, tenant.id, settings)

    assert tables.unbind_if_last(t3.id, tenant.id, except_order_id=first.id).status == TableStatus.OCCUPIED

    # Paying one of two seated orders keeps the table occupied
    manager.update(second.id, OrderPaymentUpdate(cash_amount="50.00"), tenant.id, settings)
    assert tables.get(t3.id, tenant.id).status == TableStatus.OCCUPIED

    assert tables.unbind_if_last(t3.id, tenant.id, except_order_id=first.id).status == TableStatus.AVAILABLE


def test_table_with_orders(tables: TableStateMachine, manager, tenant, settings, t1, open_order):
    first = open_order(t1)
    manager.update(first.id, OrderPaymentUpdate(upi_amount="50.00"), tenant.id, settings)
    second = open_order(t1)

    table, active, history = tables.table_with_orders(t1.id, tenant.id)

    assert table.status == TableStatus.OCCUPIED
    assert [o.id for o in active] == [second.id]
    assert [o.id for o in history] == [first.id]

"""
Concurrency tests for invoice numbering

Each worker runs in its own thread with its own session, the way
concurrent API requests do.
"""

import pytest
from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

from sqlmodel import Session, select

from pos_backoffice.core.events import EventBus
from pos_backoffice.models.invoice import Invoice
from pos_backoffice.models.invoice_counter import InvoiceCounter
from pos_backoffice.models.order import PaymentType
from pos_backoffice.schemas.settings import TenantSettings
from pos_backoffice.services.invoice_allocator import InvoiceAllocator

WORKERS = 8


@pytest.fixture
def paid_orders(db: Session, manager, draft, make_product, tenant, settings):
    product = make_product("Samosa", "20.00", stock=WORKERS)
    order_ids = [
        manager.create(draft((product, 1), total="20.00", payment_type=PaymentType.CASH), tenant.id, settings).id
        for _ in range(WORKERS)
    ]
    tenant_id = tenant.id
    # Release the test session's connection before the workers start
    db.close()
    return tenant_id, order_ids


def allocate_in_thread(engine, barrier: Barrier, order_id, tenant_id):
    barrier.wait()
    with Session(engine) as session:
        invoice = InvoiceAllocator(session, events=EventBus()).allocate(order_id, tenant_id, TenantSettings())
        return invoice.id, invoice.invoice_serial, invoice.invoice_number


def test_concurrent_orders_get_distinct_serials(db: Session, engine, paid_orders):
    tenant_id, order_ids = paid_orders
    barrier = Barrier(WORKERS)

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        futures = [
            pool.submit(allocate_in_thread, engine, barrier, order_id, tenant_id)
            for order_id in order_ids
        ]
        results = [f.result() for f in futures]

    assert sorted(serial for _, serial, _ in results) == list(range(1, WORKERS + 1))
    assert len({number for _, _, number in results}) == WORKERS
    counter = db.exec(select(InvoiceCounter)).one()
    assert counter.last_serial == WORKERS


def test_concurrent_requests_for_one_order_issue_one_invoice(db: Session, engine, paid_orders):
    tenant_id, order_ids = paid_orders
    order_id = order_ids[0]
    barrier = Barrier(WORKERS)

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        futures = [
            pool.submit(allocate_in_thread, engine, barrier, order_id, tenant_id)
            for _ in range(WORKERS)
        ]
        results = [f.result() for f in futures]

    assert len({invoice_id for invoice_id, _, _ in results}) == 1
    assert {serial for _, serial, _ in results} == {1}
    assert len(db.exec(select(Invoice)).all()) == 1
    assert db.exec(select(InvoiceCounter)).one().last_serial == 1

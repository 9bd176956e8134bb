"""
Concurrency tests for stock decrements

Order creations racing for the same (product, location) row must serialize
on that row: the sum of what they take never exceeds what was on hand.
"""

import pytest
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from threading import Barrier

from sqlmodel import Session, select

from pos_backoffice.core.events import EventBus
from pos_backoffice.core.exceptions import InsufficientStockError
from pos_backoffice.models.order import Order
from pos_backoffice.schemas.settings import TenantSettings
from pos_backoffice.services.catalog import SqlCatalog
from pos_backoffice.services.order_manager import OrderManager
from pos_backoffice.services.stock_ledger import StockLedger
from pos_backoffice.services.table_state import TableStateMachine

WORKERS = 8
ON_HAND = 10
PER_ORDER = 2


@pytest.fixture
def contended(db: Session, make_product, draft, tenant):
    product = make_product("Veg Puff", "30.00", stock=ON_HAND)
    order = draft((product, PER_ORDER), total=str(product.unit_price * PER_ORDER))
    product_id, tenant_id = product.id, tenant.id
    # Release the test session's connection before the workers start
    db.close()
    return product_id, tenant_id, order


def create_in_thread(engine, barrier: Barrier, order, tenant_id):
    barrier.wait()
    with Session(engine) as session:
        stock = StockLedger(session)
        manager = OrderManager(
            session,
            catalog=SqlCatalog(session),
            stock=stock,
            tables=TableStateMachine(session),
            events=EventBus()
        )
        try:
            return manager.create(order, tenant_id, TenantSettings()).id
        except InsufficientStockError:
            return None


def test_concurrent_orders_never_oversell(db: Session, engine, contended, location_id):
    product_id, tenant_id, order = contended
    barrier = Barrier(WORKERS)

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        futures = [
            pool.submit(create_in_thread, engine, barrier, order, tenant_id)
            for _ in range(WORKERS)
        ]
        results = [f.result() for f in futures]

    created = [order_id for order_id in results if order_id is not None]
    assert len(created) == ON_HAND // PER_ORDER
    assert results.count(None) == WORKERS - ON_HAND // PER_ORDER

    assert StockLedger(db).get_quantity(product_id, location_id) == 0
    assert len(db.exec(select(Order)).all()) == len(created)
    assert all(o.total_amount == Decimal("60.00") for o in db.exec(select(Order)).all())

"""
Test configuration for pytest
"""

import pytest
import json
import os
import uuid
from concurrent.futures import Executor, Future
from decimal import Decimal
from typing import Generator

# Test environment variables (read when pos_backoffice.core.config is first imported)
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret"

from sqlmodel import SQLModel, Session  # noqa: E402

import pos_backoffice.models  # noqa: E402,F401
from pos_backoffice.core.database import build_engine  # noqa: E402
from pos_backoffice.core.events import EventBus  # noqa: E402
from pos_backoffice.models import Product, Tenant  # noqa: E402
from pos_backoffice.schemas.order import LineItemCreate, OrderCreate  # noqa: E402
from pos_backoffice.schemas.settings import TenantSettings  # noqa: E402
from pos_backoffice.services.catalog import SqlCatalog  # noqa: E402
from pos_backoffice.services.order_manager import OrderManager  # noqa: E402
from pos_backoffice.services.rendering import DocumentDispatcher, TextInvoiceRenderer  # noqa: E402
from pos_backoffice.services.stock_ledger import StockLedger  # noqa: E402
from pos_backoffice.services.table_state import TableStateMachine  # noqa: E402


class InlineExecutor(Executor):
    """Runs submitted work immediately on the calling thread"""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


@pytest.fixture(scope="function")
def engine(tmp_path):
    """File-backed SQLite so separate sessions (and threads) see committed data"""
    test_engine = build_engine(f"sqlite:///{tmp_path / 'pos_backoffice.db'}")
    SQLModel.metadata.create_all(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture(scope="function")
def db(engine) -> Generator[Session, None, None]:
    """Create a clean database session for each test"""
    with Session(engine) as session:
        yield session


@pytest.fixture
def settings() -> TenantSettings:
    return TenantSettings(enable_tables=True)


@pytest.fixture
def tenant(db: Session) -> Tenant:
    """Create a test tenant with tables enabled"""
    tenant = Tenant(
        name="Test Cafe",
        slug="test-cafe",
        settings=json.dumps({"enable_tables": True})
    )
    db.add(tenant)
    db.commit()
    db.refresh(tenant)
    return tenant


@pytest.fixture
def other_tenant(db: Session) -> Tenant:
    tenant = Tenant(name="Other Cafe", slug="other-cafe")
    db.add(tenant)
    db.commit()
    db.refresh(tenant)
    return tenant


@pytest.fixture
def location_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def make_product(db: Session, tenant: Tenant, location_id: uuid.UUID):
    """Factory for catalog products of the test tenant, optionally stocked"""

    def _make(name: str, price: str, cost: str = "0.00", stock=None, threshold=None) -> Product:
        product = Product(
            tenant_id=tenant.id,
            name=name,
            unit_price=Decimal(price),
            cost_price=Decimal(cost),
            low_stock_threshold=threshold
        )
        db.add(product)
        db.commit()
        db.refresh(product)
        if stock is not None:
            StockLedger(db).set(product.id, location_id, stock, tenant.id)
        return product

    return _make


@pytest.fixture
def coffee(make_product) -> Product:
    return make_product("Filter Coffee", "50.00", cost="18.00", stock=20)


@pytest.fixture
def cake(make_product) -> Product:
    return make_product("Plum Cake", "25.00", cost="9.50", stock=10)


@pytest.fixture
def draft(location_id: uuid.UUID):
    """Build an OrderCreate from (product, quantity) pairs at catalog price"""

    def _draft(*lines, total, **kwargs) -> OrderCreate:
        return OrderCreate(
            location_id=kwargs.pop("location_id", location_id),
            items=[
                LineItemCreate(product_id=product.id, quantity=quantity, unit_price=product.unit_price)
                for product, quantity in lines
            ],
            total_amount=Decimal(total),
            **kwargs
        )

    return _draft


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def ledger(db: Session) -> StockLedger:
    return StockLedger(db)


@pytest.fixture
def tables(db: Session) -> TableStateMachine:
    return TableStateMachine(db)


@pytest.fixture
def manager(db: Session, ledger: StockLedger, tables: TableStateMachine, bus: EventBus) -> OrderManager:
    return OrderManager(
        db,
        catalog=SqlCatalog(db),
        stock=ledger,
        tables=tables,
        events=bus
    )


@pytest.fixture
def inline_executor() -> InlineExecutor:
    return InlineExecutor()


@pytest.fixture
def dispatcher(engine, tmp_path, inline_executor) -> DocumentDispatcher:
    return DocumentDispatcher(
        TextInvoiceRenderer(str(tmp_path / "invoices")),
        session_factory=lambda: Session(engine),
        executor=inline_executor
    )

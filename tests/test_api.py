"""
Integration tests for the HTTP layer: auth, permissions and error mapping
"""

import pytest
import uuid

from fastapi import status
from fastapi.testclient import TestClient
from sqlmodel import Session

from pos_backoffice.core.auth import create_access_token
from pos_backoffice.core.database import get_session
from pos_backoffice.main import app
from pos_backoffice.services.rendering import get_document_dispatcher


@pytest.fixture
def client(db: Session, dispatcher):
    """Test client sharing the test session and rendering inline"""

    def _session_override():
        yield db

    app.dependency_overrides[get_session] = _session_override
    app.dependency_overrides[get_document_dispatcher] = lambda: dispatcher
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth(tenant):
    """Authorization headers for a role in the test tenant"""
    tenant_id = tenant.id

    def _auth(role: str = "manager", tenant_id: uuid.UUID = tenant_id):
        token = create_access_token(uuid.uuid4(), tenant_id, role)
        return {"Authorization": f"Bearer {token}"}

    return _auth


def order_payload(location_id, *lines, total, **extra):
    payload = {
        "location_id": str(location_id),
        "items": [
            {"product_id": str(product.id), "quantity": quantity, "unit_price": str(product.unit_price)}
            for product, quantity in lines
        ],
        "total_amount": total,
    }
    payload.update(extra)
    return payload


def test_health_check(client: TestClient):
    response = client.get("/health")

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "healthy"


def test_requests_require_token(client: TestClient):
    response = client.get("/api/v1/orders/")

    assert response.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN)


def test_invalid_token(client: TestClient):
    response = client.get("/api/v1/orders/", headers={"Authorization": "Bearer not-a-token"})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED


# ----------------------------------------------------------------------
# Orders
# ----------------------------------------------------------------------

def test_create_and_fetch_order(client: TestClient, auth, coffee, cake, location_id):
    response = client.post(
        "/api/v1/orders/",
        json=order_payload(location_id, (coffee, 2), (cake, 1), total="125.00"),
        headers=auth("waiter")
    )

    assert response.status_code == status.HTTP_201_CREATED
    order = response.json()
    assert order["total_amount"] == "125.00"
    assert order["is_paid"] is False
    assert len(order["line_items"]) == 2

    fetched = client.get(f"/api/v1/orders/{order['id']}", headers=auth("waiter"))
    assert fetched.status_code == status.HTTP_200_OK
    assert fetched.json()["id"] == order["id"]


def test_total_mismatch_is_422(client: TestClient, auth, coffee, cake, location_id):
    response = client.post(
        "/api/v1/orders/",
        json=order_payload(location_id, (coffee, 2), (cake, 1), total="124.99"),
        headers=auth()
    )

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert response.json()["error"] == "total_mismatch"


def test_insufficient_stock_is_409(client: TestClient, auth, cake, location_id):
    response = client.post(
        "/api/v1/orders/",
        json=order_payload(location_id, (cake, 12), total="300.00"),
        headers=auth()
    )

    assert response.status_code == status.HTTP_409_CONFLICT
    body = response.json()
    assert body["error"] == "insufficient_stock"
    assert body["available"] == 10
    assert body["requested"] == 12

    stock = client.get(f"/api/v1/stock/{location_id}/{cake.id}", headers=auth())
    assert stock.json()["quantity"] == 10


def test_unknown_order_is_404(client: TestClient, auth):
    response = client.get(f"/api/v1/orders/{uuid.uuid4()}", headers=auth())

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["error"] == "not_found"


def test_orders_are_tenant_scoped(client: TestClient, auth, other_tenant, coffee, location_id):
    created = client.post(
        "/api/v1/orders/",
        json=order_payload(location_id, (coffee, 1), total="50.00"),
        headers=auth()
    ).json()

    response = client.get(f"/api/v1/orders/{created['id']}", headers=auth(tenant_id=other_tenant.id))

    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_waiter_cannot_take_payment(client: TestClient, auth, coffee, location_id):
    created = client.post(
        "/api/v1/orders/",
        json=order_payload(location_id, (coffee, 1), total="50.00"),
        headers=auth("waiter")
    ).json()

    response = client.patch(
        f"/api/v1/orders/{created['id']}",
        json={"cash_amount": "50.00"},
        headers=auth("waiter")
    )

    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_cashier_records_payment(client: TestClient, auth, coffee, location_id):
    created = client.post(
        "/api/v1/orders/",
        json=order_payload(location_id, (coffee, 2), total="100.00"),
        headers=auth("cashier")
    ).json()

    response = client.patch(
        f"/api/v1/orders/{created['id']}",
        json={"cash_amount": "60.00", "upi_amount": "40.00"},
        headers=auth("cashier")
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["is_paid"] is True
    assert response.json()["payment_type"] == "mixed"

    totals = client.get("/api/v1/orders/payment-totals", headers=auth("cashier")).json()
    assert totals["cash"] == "60.00"
    assert totals["upi"] == "40.00"
    assert totals["order_count"] == 1


def test_split_exceeding_total_is_422(client: TestClient, auth, coffee, location_id):
    created = client.post(
        "/api/v1/orders/",
        json=order_payload(location_id, (coffee, 2), total="100.00"),
        headers=auth()
    ).json()

    response = client.patch(
        f"/api/v1/orders/{created['id']}",
        json={"cash_amount": "60.00", "upi_amount": "50.00"},
        headers=auth()
    )

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert response.json()["error"] == "payment_split_invalid"


def test_paid_override_needs_override_permission(client: TestClient, auth, coffee, location_id):
    created = client.post(
        "/api/v1/orders/",
        json=order_payload(location_id, (coffee, 1), total="50.00"),
        headers=auth()
    ).json()

    denied = client.patch(f"/api/v1/orders/{created['id']}", json={"is_paid": True}, headers=auth("cashier"))
    assert denied.status_code == status.HTTP_403_FORBIDDEN
    assert denied.json()["error"] == "forbidden"

    allowed = client.patch(f"/api/v1/orders/{created['id']}", json={"is_paid": True}, headers=auth("manager"))
    assert allowed.status_code == status.HTTP_200_OK
    assert allowed.json()["is_paid"] is True


def test_append_to_paid_order_is_409(client: TestClient, auth, coffee, cake, location_id):
    created = client.post(
        "/api/v1/orders/",
        json=order_payload(location_id, (coffee, 1), total="50.00", payment_type="cash"),
        headers=auth()
    ).json()

    response = client.post(
        f"/api/v1/orders/{created['id']}/items",
        json={"items": [{"product_id": str(cake.id), "quantity": 1, "unit_price": "25.00"}]},
        headers=auth()
    )

    assert response.status_code == status.HTTP_409_CONFLICT


# ----------------------------------------------------------------------
# Tables
# ----------------------------------------------------------------------

def test_table_lifecycle(client: TestClient, auth, coffee, location_id):
    table = client.post("/api/v1/tables/", json={"name": "T1", "area": "Indoor"}, headers=auth())
    assert table.status_code == status.HTTP_201_CREATED
    table_id = table.json()["id"]

    order = client.post(
        "/api/v1/orders/",
        json=order_payload(location_id, (coffee, 1), total="50.00", table_id=table_id),
        headers=auth("waiter")
    ).json()

    occupied = client.get("/api/v1/tables/", params={"status": "OCCUPIED"}, headers=auth())
    assert [t["id"] for t in occupied.json()] == [table_id]

    active = client.get(f"/api/v1/tables/{table_id}/active-order", headers=auth())
    assert active.json()["id"] == order["id"]

    client.patch(f"/api/v1/orders/{order['id']}", json={"upi_amount": "50.00"}, headers=auth("cashier"))

    detail = client.get(f"/api/v1/tables/{table_id}/orders", headers=auth()).json()
    assert detail["table"]["status"] == "AVAILABLE"
    assert detail["active_orders"] == []
    assert [o["id"] for o in detail["recent_paid_orders"]] == [order["id"]]


def test_table_status_errors(client: TestClient, auth):
    table_id = client.post("/api/v1/tables/", json={"name": "T1"}, headers=auth()).json()["id"]

    unknown = client.patch(f"/api/v1/tables/{table_id}/status", json={"status": "DIRTY"}, headers=auth())
    assert unknown.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    occupied = client.patch(f"/api/v1/tables/{table_id}/status", json={"status": "OCCUPIED"}, headers=auth())
    assert occupied.status_code == status.HTTP_409_CONFLICT
    assert occupied.json()["error"] == "invalid_table_state"


def test_waiter_cannot_edit_tables(client: TestClient, auth):
    response = client.post("/api/v1/tables/", json={"name": "T1"}, headers=auth("waiter"))

    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_tables_disabled_for_tenant(client: TestClient, auth, other_tenant):
    response = client.post("/api/v1/tables/", json={"name": "T1"}, headers=auth(tenant_id=other_tenant.id))

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["error"] == "forbidden"


# ----------------------------------------------------------------------
# Invoices and stock
# ----------------------------------------------------------------------

def test_issue_invoice_is_idempotent(client: TestClient, auth, coffee, location_id):
    order = client.post(
        "/api/v1/orders/",
        json=order_payload(location_id, (coffee, 1), total="50.00", payment_type="UPI"),
        headers=auth()
    ).json()

    first = client.post(
        "/api/v1/invoices/",
        json={"order_id": order["id"], "customer": {"name": "Meera Nair"}},
        headers=auth("cashier")
    )
    second = client.post("/api/v1/invoices/", json={"order_id": order["id"]}, headers=auth("cashier"))

    assert first.status_code == status.HTTP_201_CREATED
    invoice = first.json()
    assert invoice["invoice_serial"] == 1
    assert invoice["invoice_number"].startswith("INV-")
    assert invoice["invoice_number"].endswith("-00001")
    assert invoice["customer_name"] == "Meera Nair"
    assert invoice["document_url"] is not None
    assert second.json()["id"] == invoice["id"]

    listed = client.get("/api/v1/invoices/", headers=auth("cashier")).json()
    assert listed["total"] == 1


def test_waiter_cannot_issue_invoice(client: TestClient, auth, coffee, location_id):
    order = client.post(
        "/api/v1/orders/",
        json=order_payload(location_id, (coffee, 1), total="50.00"),
        headers=auth("waiter")
    ).json()

    response = client.post("/api/v1/invoices/", json={"order_id": order["id"]}, headers=auth("waiter"))

    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_stock_endpoints(client: TestClient, auth, coffee, cake, location_id):
    adjusted = client.post(
        "/api/v1/stock/adjust",
        json={"product_id": str(cake.id), "location_id": str(location_id), "delta": -4},
        headers=auth()
    )
    assert adjusted.status_code == status.HTTP_200_OK
    assert adjusted.json()["quantity"] == 6

    rejected = client.post(
        "/api/v1/stock/adjust",
        json={"product_id": str(cake.id), "location_id": str(location_id), "delta": -7},
        headers=auth()
    )
    assert rejected.status_code == status.HTTP_409_CONFLICT

    low = client.get(f"/api/v1/stock/{location_id}/low-stock", headers=auth())
    assert low.status_code == status.HTTP_200_OK
    assert [item["name"] for item in low.json()] == ["Plum Cake"]

    reset = client.put(
        "/api/v1/stock/",
        json={"product_id": str(cake.id), "location_id": str(location_id), "quantity": 30},
        headers=auth()
    )
    assert reset.json()["quantity"] == 30


def test_cashier_cannot_adjust_stock(client: TestClient, auth, cake, location_id):
    response = client.post(
        "/api/v1/stock/adjust",
        json={"product_id": str(cake.id), "location_id": str(location_id), "delta": 5},
        headers=auth("cashier")
    )

    assert response.status_code == status.HTTP_403_FORBIDDEN

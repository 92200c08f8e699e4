"""HTTP tests via TestClient with services wired to the test database."""
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from checkout.api import create_app
from checkout import main
from checkout.api.routers import carts, orders, payments
from checkout.domain.errors import Rejection, Reason
from checkout.services.cart_service import CartService
from checkout.services.order_service import OrderService
from checkout.services.payment_providers import CashOnDeliveryProvider, VNPayProvider, PayPalProvider
from checkout.services.payment_service import PaymentService
from checkout.utils import signing

SECRET = "api-secret"


class FakePayPalClient:
    def __init__(self):
        self.created = []

    def create_order(self, amount_usd, description, return_url, cancel_url):
        token = f"PP-{len(self.created) + 1}"
        self.created.append({"token": token, "return_url": return_url, "cancel_url": cancel_url})
        return {"id": token, "approval_url": f"https://paypal.test/checkoutnow?token={token}"}

    def capture_order(self, paypal_order_id):
        return {"id": f"CAP-{paypal_order_id}", "status": "COMPLETED"}


@pytest.fixture
def paypal_client():
    return FakePayPalClient()


@pytest.fixture
def client(db, cart_cache, state_store, notifier, catalog, paypal_client):
    app = create_app()
    providers = {
        p.method: p
        for p in [
            CashOnDeliveryProvider(),
            VNPayProvider(tmn_code="T", hash_secret=SECRET),
            PayPalProvider(client=paypal_client),
        ]
    }

    app.dependency_overrides[carts.get_service] = lambda: CartService(db, cart_cache=cart_cache)
    app.dependency_overrides[orders.get_service] = lambda: OrderService(
        db, notification_service=notifier, cart_cache=cart_cache
    )
    app.dependency_overrides[payments.get_service] = lambda: PaymentService(
        db, providers=providers, state_store=state_store, notification_service=notifier
    )
    return TestClient(app)


def _buy_now(client, catalog, method="COD", **overrides):
    body = {
        "user_id": 1,
        "product_variant_id": catalog.shirt_v,
        "quantity": 1,
        "address_id": catalog.alice_addr,
        "payment_method": method,
        **overrides,
    }
    return client.post("/orders/buy-now", json=body)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_cart_endpoints(client, catalog):
    response = client.post("/carts/items", params={"user_id": 1}, json={"product_variant_id": catalog.shirt_v, "quantity": 2})
    assert response.status_code == 200
    item = response.json()["items"][0]
    assert item["quantity"] == 2
    assert Decimal(response.json()["total_price"]) == Decimal("200000")

    response = client.patch(f"/carts/items/{item['id']}", params={"user_id": 1}, json={"quantity": 3})
    assert response.status_code == 200
    assert response.json()["items"][0]["quantity"] == 3

    response = client.get("/carts", params={"user_id": 1})
    assert response.status_code == 200
    assert response.json()["selected_count"] == 1

    response = client.delete(f"/carts/items/{item['id']}", params={"user_id": 1})
    assert response.status_code == 200
    assert response.json()["items"] == []


def test_cart_rejections_map_to_http(client, catalog):
    response = client.post("/carts/items", params={"user_id": 1}, json={"product_variant_id": 999, "quantity": 1})
    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "VariantNotFound"

    response = client.post("/carts/items", params={"user_id": 1}, json={"product_variant_id": catalog.mug_v, "quantity": 1})
    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "ProductUnavailable"

    response = client.delete("/carts/items/999", params={"user_id": 1})
    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "CartItemNotFound"


def test_request_validation(client, catalog):
    response = client.post("/carts/items", params={"user_id": 1}, json={"product_variant_id": catalog.shirt_v, "quantity": 0})
    assert response.status_code == 422

    response = _buy_now(client, catalog, method="Bitcoin")
    assert response.status_code == 422


def test_order_from_cart_and_cancel(client, catalog):
    client.post("/carts/items", params={"user_id": 1}, json={"product_variant_id": catalog.hat_v, "quantity": 2})

    response = client.post(
        "/orders",
        json={"user_id": 1, "address_id": catalog.alice_addr, "payment_method": "COD", "select_all": True},
    )
    assert response.status_code == 201
    order = response.json()
    assert order["status"] == "pending"
    assert Decimal(order["total_price"]) == Decimal("430000")
    assert order["items"][0]["quantity"] == 2

    response = client.get("/orders", params={"user_id": 1})
    assert response.status_code == 200
    assert response.json()["total"] == 1

    response = client.get(f"/orders/{order['id']}", params={"user_id": 2})
    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "NotFound"

    response = client.put(f"/orders/{order['id']}/cancel", params={"user_id": 1})
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"

    response = client.put(f"/orders/{order['id']}/cancel", params={"user_id": 1})
    assert response.status_code == 400
    assert response.json()["detail"] == {"error": "NotCancellable", "detail": "Only pending orders can be canceled"}


def test_buy_now_with_promotion(client, catalog):
    response = _buy_now(client, catalog, promotion_code="SAVE10")

    assert response.status_code == 201
    assert Decimal(response.json()["discount"]) == Decimal("10000")

    response = _buy_now(client, catalog, user_id=2, address_id=catalog.bob_addr, promotion_code="SAVE10")
    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "MaxUsesReached"


def test_cod_payment(client, catalog):
    order = _buy_now(client, catalog).json()

    response = client.post("/payments/initiate", json={"order_id": order["id"], "user_id": 1})

    assert response.status_code == 200
    assert response.json()["result"] == "completed"
    assert response.json()["order_status"] == "processing"


def test_vnpay_round_trip(client, catalog):
    order = _buy_now(client, catalog, method="VNPay").json()

    started = client.post("/payments/initiate", json={"order_id": order["id"], "user_id": 1}).json()
    assert started["result"] == "redirect"

    params = {"vnp_ResponseCode": "00", "vnp_TransactionNo": "99", "vnp_TxnRef": str(started["transaction_id"])}
    forged = {**params, "vnp_SecureHash": signing.sign({**params, "vnp_ResponseCode": "24"}, SECRET)}
    response = client.get("/payments/vnpay-callback", params=forged)
    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "SignatureMismatch"

    signed = {**params, "vnp_SecureHash": signing.sign(params, SECRET)}
    response = client.get("/payments/vnpay-callback", params=signed)
    assert response.status_code == 200
    assert response.json()["order_status"] == "completed"

    response = client.get("/payments/vnpay-callback", params=signed)
    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "AlreadyProcessed"


def test_paypal_cancel_without_attempt(client, catalog):
    order = _buy_now(client, catalog).json()

    response = client.get("/payments/paypal-cancel", params={"orderId": order["id"], "user_id": 1})

    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "TransactionNotFound"


def test_paypal_return_url_reaches_reconciliation(client, catalog, paypal_client):
    """The browser comes back on the exact URL handed to PayPal, plus the token."""
    order = _buy_now(client, catalog, method="PayPal").json()
    started = client.post("/payments/initiate", json={"order_id": order["id"], "user_id": 1}).json()
    session = paypal_client.created[0]
    assert started["payment_url"].endswith(session["token"])

    response = client.get(f"{session['return_url']}&token={session['token']}&PayerID=PAYER1")

    assert response.status_code == 200
    assert response.json()["order_status"] == "completed"
    assert response.json()["transaction_status"] == "completed"


def test_paypal_cancel_url_reaches_cancel(client, catalog, paypal_client):
    order = _buy_now(client, catalog, method="PayPal").json()
    client.post("/payments/initiate", json={"order_id": order["id"], "user_id": 1})
    session = paypal_client.created[0]

    response = client.get(f"{session['cancel_url']}&token={session['token']}")

    assert response.status_code == 200
    assert response.json()["transaction_status"] == "canceled"
    assert response.json()["order_status"] == "failed"


def test_cart_view_rejection_is_an_http_error(client, catalog, monkeypatch):
    monkeypatch.setattr(
        CartService,
        "get_cart",
        lambda self, user_id: Rejection(Reason.TRANSIENT_CONFLICT, "Could not acquire locks, please retry"),
    )

    response = client.get("/carts", params={"user_id": 1})

    assert response.status_code == 503
    assert response.json()["detail"]["error"] == "TransientConflict"


def test_startup_initializes_database(monkeypatch):
    calls = []
    monkeypatch.setattr(main, "init_db", lambda: calls.append(1))

    with TestClient(main.app) as c:
        assert c.get("/health").status_code == 200

    assert calls == [1]

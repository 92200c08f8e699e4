"""Tests for the PayPal REST client against a fake requests session."""
from decimal import Decimal

import pytest
import requests

from checkout.domain.errors import GatewayError
from checkout.services.paypal_client import PayPalClient


class FakeResponse:
    def __init__(self, payload=None, status=200, body_is_json=True):
        self.payload = payload
        self.status_code = status
        self.body_is_json = body_is_json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if not self.body_is_json:
            raise ValueError("not json")
        return self.payload


class FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []

    def post(self, url, **kwargs):
        self.requests.append((url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


TOKEN = FakeResponse({"access_token": "A21AA", "token_type": "Bearer"})


def _client(*responses):
    session = FakeSession(responses)
    client = PayPalClient(
        base_url="https://api.paypal.test/",
        client_id="cid",
        client_secret="csecret",
        timeout=5,
        session=session,
    )
    return client, session


def test_create_order_returns_approval_link():
    order = FakeResponse(
        {
            "id": "5O190127TN364715T",
            "status": "CREATED",
            "links": [
                {"rel": "self", "href": "https://api.paypal.test/v2/checkout/orders/5O190127TN364715T"},
                {"rel": "approve", "href": "https://paypal.test/checkoutnow?token=5O190127TN364715T"},
            ],
        }
    )
    client, session = _client(TOKEN, order)

    result = client.create_order(Decimal("10.00"), "Payment for order #1", "http://r", "http://c")

    assert result == {
        "id": "5O190127TN364715T",
        "approval_url": "https://paypal.test/checkoutnow?token=5O190127TN364715T",
    }
    token_url, token_kwargs = session.requests[0]
    assert token_url == "https://api.paypal.test/v1/oauth2/token"
    assert token_kwargs["auth"] == ("cid", "csecret")
    order_url, order_kwargs = session.requests[1]
    assert order_url == "https://api.paypal.test/v2/checkout/orders"
    assert order_kwargs["headers"]["Authorization"] == "Bearer A21AA"
    assert order_kwargs["json"]["purchase_units"][0]["amount"] == {"currency_code": "USD", "value": "10.00"}
    assert order_kwargs["timeout"] == 5


def test_capture_order():
    client, session = _client(TOKEN, FakeResponse({"id": "CAP-1", "status": "COMPLETED"}))

    assert client.capture_order("5O19") == {"id": "CAP-1", "status": "COMPLETED"}
    assert session.requests[1][0] == "https://api.paypal.test/v2/checkout/orders/5O19/capture"


def test_order_response_without_approval_link():
    client, _ = _client(TOKEN, FakeResponse({"id": "X", "links": []}))

    with pytest.raises(GatewayError):
        client.create_order(Decimal("1.00"), "d", "r", "c")


def test_network_error_is_not_retried():
    client, session = _client(requests.ConnectionError("refused"))

    with pytest.raises(GatewayError):
        client.access_token()
    assert len(session.requests) == 1


def test_http_error_status():
    client, _ = _client(FakeResponse({"error": "invalid_client"}, status=401))

    with pytest.raises(GatewayError):
        client.access_token()


def test_non_json_body():
    client, _ = _client(TOKEN, FakeResponse(body_is_json=False))

    with pytest.raises(GatewayError):
        client.capture_order("5O19")


def test_token_response_without_token():
    client, _ = _client(FakeResponse({"token_type": "Bearer"}))

    with pytest.raises(GatewayError):
        client.access_token()

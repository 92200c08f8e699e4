# checkout/services/paypal_client.py
from decimal import Decimal

import requests
from requests import RequestException

from checkout.domain.errors import GatewayError
from checkout.utils.settings import (
    PAYPAL_API_URL,
    PAYPAL_CLIENT_ID,
    PAYPAL_CLIENT_SECRET,
    PROVIDER_TIMEOUT_SECONDS,
)
from checkout.utils.logging import get_logger

logger = get_logger(__name__)


class PayPalClient:
    """
    Thin REST client for PayPal Orders v2.
    No retries here: a failed provider call surfaces once as GatewayError.
    """

    def __init__(
        self,
        base_url: str | None = None,
        client_id: str | None = None,
        client_secret: str | None = None,
        timeout: int = PROVIDER_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ):
        self.base_url = (base_url or PAYPAL_API_URL).rstrip("/")
        self.client_id = client_id or PAYPAL_CLIENT_ID
        self.client_secret = client_secret or PAYPAL_CLIENT_SECRET
        self.timeout = timeout
        self.session = session or requests.Session()

    def _post(self, path: str, **kwargs) -> dict:
        url = f"{self.base_url}{path}"
        logger.info(f"PayPalClient POST {url}")
        try:
            resp = self.session.post(url, timeout=self.timeout, **kwargs)
            resp.raise_for_status()
            return resp.json()
        except RequestException as e:
            raise GatewayError(f"PayPal request to {path} failed: {e}") from e
        except ValueError as e:
            raise GatewayError(f"PayPal returned a non-JSON response for {path}") from e

    def access_token(self) -> str:
        data = self._post(
            "/v1/oauth2/token",
            data={"grant_type": "client_credentials"},
            auth=(self.client_id, self.client_secret),
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        token = data.get("access_token")
        if not token:
            raise GatewayError("PayPal token response without access_token")
        return token

    def create_order(self, amount_usd: Decimal, description: str, return_url: str, cancel_url: str) -> dict:
        """Returns {"id": <paypal order id>, "approval_url": <href>}."""
        body = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "amount": {"currency_code": "USD", "value": str(amount_usd)},
                    "description": description,
                }
            ],
            "application_context": {
                "return_url": return_url,
                "cancel_url": cancel_url,
            },
        }
        data = self._post(
            "/v2/checkout/orders",
            json=body,
            headers={"Authorization": f"Bearer {self.access_token()}"},
        )

        approval = next((link.get("href") for link in data.get("links", []) if link.get("rel") == "approve"), None)
        if not data.get("id") or not approval:
            raise GatewayError("PayPal order response without id or approval link")
        return {"id": data["id"], "approval_url": approval}

    def capture_order(self, paypal_order_id: str) -> dict:
        """Returns {"id": <capture id>, "status": <COMPLETED|...>}."""
        data = self._post(
            f"/v2/checkout/orders/{paypal_order_id}/capture",
            json={},
            headers={"Authorization": f"Bearer {self.access_token()}"},
        )
        if "status" not in data:
            raise GatewayError("PayPal capture response without status")
        return {"id": data.get("id"), "status": data["status"]}

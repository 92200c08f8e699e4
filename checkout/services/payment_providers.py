# checkout/services/payment_providers.py
import hmac
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Mapping

from checkout.data.models import OrderModel, PaymentTransactionModel
from checkout.domain.errors import RejectionError, Reason
from checkout.domain.statuses import PaymentMethod
from checkout.services.paypal_client import PayPalClient
from checkout.utils import signing
from checkout.utils.clock import utcnow
from checkout.utils.settings import (
    VNPAY_TMN_CODE,
    VNPAY_HASH_SECRET,
    VNPAY_URL,
    VNPAY_RETURN_URL,
    PAYPAL_RETURN_URL,
    PAYPAL_CANCEL_URL,
    USD_EXCHANGE_RATE,
    CURRENCY,
)
from checkout.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class Checkout:
    """What a provider hands back when a payment attempt starts."""

    completed: bool = False
    redirect_url: str | None = None
    #stored on the transaction row
    reference: str | None = None
    #stored in the short-lived state store
    state: dict | None = None


@dataclass
class CallbackData:
    transaction_id: int | None = None
    order_id: int | None = None
    reference: str | None = None
    response_code: str | None = None
    external_id: str | None = None


@dataclass
class Settlement:
    success: bool
    external_id: str | None
    response_code: str | None
    message: str


class PaymentProvider(ABC):
    method: str

    def open_session(self, order: OrderModel) -> dict | None:
        """Remote setup done before any row lock is taken."""
        return None

    @abstractmethod
    def begin(
        self,
        order: OrderModel,
        txn: PaymentTransactionModel,
        session: dict | None,
        client_ip: str,
    ) -> Checkout:
        """Runs inside the locked transaction, after the attempt row exists."""

    def verify_callback(self, payload: Mapping[str, str]) -> CallbackData:
        raise RejectionError(Reason.UNSUPPORTED_PAYMENT_METHOD, f"{self.method} has no callbacks")

    def check_state(self, callback: CallbackData, state: dict | None) -> None:
        """Compare the callback with the correlation data saved at begin()."""

    def settle(self, txn: PaymentTransactionModel, callback: CallbackData) -> Settlement:
        raise RejectionError(Reason.UNSUPPORTED_PAYMENT_METHOD, f"{self.method} has no callbacks")


class CashOnDeliveryProvider(PaymentProvider):
    method = PaymentMethod.COD.value

    def begin(self, order, txn, session, client_ip) -> Checkout:
        return Checkout(completed=True)


class VNPayProvider(PaymentProvider):
    """
    Redirect flow with an HMAC-SHA512 signed query string.

    Outbound and inbound use the same canonical form: parameters sorted by
    key, form-encoded, signed with the shared hash secret. vnp_TxnRef is our
    payment transaction id, vnp_ResponseCode "00" means paid.
    """

    method = PaymentMethod.VNPAY.value
    SUCCESS_CODE = "00"
    SIGNATURE_FIELDS = ("vnp_SecureHash", "vnp_SecureHashType")

    def __init__(
        self,
        tmn_code: str = VNPAY_TMN_CODE,
        hash_secret: str = VNPAY_HASH_SECRET,
        pay_url: str = VNPAY_URL,
        return_url: str = VNPAY_RETURN_URL,
    ):
        self.tmn_code = tmn_code
        self.hash_secret = hash_secret
        self.pay_url = pay_url
        self.return_url = return_url

    def begin(self, order, txn, session, client_ip) -> Checkout:
        if order.total_price < 0:
            raise RejectionError(Reason.NEGATIVE_AMOUNT, "Order amount cannot be negative")

        params = {
            "vnp_Version": "2.1.0",
            "vnp_Command": "pay",
            "vnp_TmnCode": self.tmn_code,
            #amount in the smallest unit x100
            "vnp_Amount": int((Decimal(order.total_price) * 100).to_integral_value(ROUND_HALF_UP)),
            "vnp_CreateDate": utcnow().strftime("%Y%m%d%H%M%S"),
            "vnp_CurrCode": CURRENCY,
            "vnp_IpAddr": client_ip,
            "vnp_Locale": "vn",
            "vnp_OrderInfo": f"Payment for order #{order.id}",
            "vnp_OrderType": "250000",
            "vnp_ReturnUrl": self.return_url,
            "vnp_TxnRef": str(txn.id),
        }
        secure_hash = signing.sign(params, self.hash_secret)
        url = f"{self.pay_url}?{signing.canonical_query(params)}&vnp_SecureHash={secure_hash}"

        return Checkout(
            redirect_url=url,
            reference=str(txn.id),
            state={**params, "vnp_SecureHash": secure_hash},
        )

    def verify_callback(self, payload) -> CallbackData:
        params = dict(payload)
        signature = params.pop("vnp_SecureHash", None)
        for field in self.SIGNATURE_FIELDS:
            params.pop(field, None)

        if not signing.verify(params, signature, self.hash_secret):
            logger.warning(
                f"VNPay checksum mismatch for TxnRef={params.get('vnp_TxnRef')}: possible forged callback"
            )
            raise RejectionError(Reason.SIGNATURE_MISMATCH, "Checksum verification failed")

        try:
            txn_id = int(params["vnp_TxnRef"])
        except (KeyError, ValueError):
            raise RejectionError(Reason.INVALID_INPUT, "Missing or malformed vnp_TxnRef")

        return CallbackData(
            transaction_id=txn_id,
            response_code=params.get("vnp_ResponseCode"),
            external_id=params.get("vnp_TransactionNo"),
        )

    def settle(self, txn, callback) -> Settlement:
        success = callback.response_code == self.SUCCESS_CODE
        return Settlement(
            success=success,
            external_id=callback.external_id,
            response_code=callback.response_code,
            message="Payment successful" if success else "Payment failed",
        )


class PayPalProvider(PaymentProvider):
    """
    Orders v2 redirect flow. The PayPal order id (the `token` PayPal appends
    to the return URL) is the correlation secret: it is kept on the attempt
    row and in the state store, and the capture call decides the outcome.
    """

    method = PaymentMethod.PAYPAL.value
    SUCCESS_STATUS = "COMPLETED"

    def __init__(
        self,
        client: PayPalClient | None = None,
        return_url: str = PAYPAL_RETURN_URL,
        cancel_url: str = PAYPAL_CANCEL_URL,
        exchange_rate: Decimal = USD_EXCHANGE_RATE,
    ):
        self.client = client or PayPalClient()
        self.return_url = return_url
        self.cancel_url = cancel_url
        self.exchange_rate = exchange_rate

    def to_usd(self, amount: Decimal) -> Decimal:
        return (Decimal(amount) / self.exchange_rate).quantize(Decimal("0.01"), ROUND_HALF_UP)

    def open_session(self, order) -> dict:
        if order.total_price < 0:
            raise RejectionError(Reason.NEGATIVE_AMOUNT, "Order amount cannot be negative")

        return self.client.create_order(
            amount_usd=self.to_usd(order.total_price),
            description=f"Payment for order #{order.id}",
            return_url=f"{self.return_url}?orderId={order.id}&user_id={order.user_id}",
            cancel_url=f"{self.cancel_url}?orderId={order.id}&user_id={order.user_id}",
        )

    def begin(self, order, txn, session, client_ip) -> Checkout:
        return Checkout(
            redirect_url=session["approval_url"],
            reference=session["id"],
            state={"token": session["id"]},
        )

    def verify_callback(self, payload) -> CallbackData:
        token = payload.get("token")
        try:
            order_id = int(payload["orderId"])
        except (KeyError, TypeError, ValueError):
            raise RejectionError(Reason.INVALID_INPUT, "Missing or malformed orderId")
        if not token:
            raise RejectionError(Reason.INVALID_INPUT, "Missing PayPal token")
        return CallbackData(order_id=order_id, reference=token)

    def check_state(self, callback, state) -> None:
        stored = (state or {}).get("token")
        if not stored or not hmac.compare_digest(stored, callback.reference):
            logger.warning(
                f"PayPal token mismatch for order {callback.order_id}: possible forged callback"
            )
            raise RejectionError(Reason.SIGNATURE_MISMATCH, "Invalid PayPal token")

    def settle(self, txn, callback) -> Settlement:
        capture = self.client.capture_order(callback.reference)
        success = capture["status"] == self.SUCCESS_STATUS
        return Settlement(
            success=success,
            external_id=capture.get("id"),
            response_code=capture["status"],
            message="Payment successful" if success else "Payment failed",
        )


def default_providers() -> Dict[str, PaymentProvider]:
    providers = [CashOnDeliveryProvider(), VNPayProvider(), PayPalProvider()]
    return {p.method: p for p in providers}

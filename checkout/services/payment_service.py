# checkout/services/payment_service.py
from datetime import timedelta
from typing import Any, Dict, Mapping

import redis
from sqlalchemy.orm import Session

from checkout.data.models import OrderModel, PaymentTransactionModel
from checkout.domain.errors import GatewayError, Rejection, RejectionError, Reason
from checkout.domain.statuses import OrderStatus, PaymentStatus
from checkout.repos.order_repo import OrderRepo
from checkout.repos.payment_repo import PaymentRepo
from checkout.services.notification_service import NotificationService
from checkout.services.payment_providers import (
    CallbackData,
    PaymentProvider,
    Settlement,
    default_providers,
)
from checkout.services.state_store import PaymentStateStore
from checkout.services.unit_of_work import execute
from checkout.utils.clock import utcnow, as_utc
from checkout.utils.settings import MAX_PAYMENT_ATTEMPTS, PAYMENT_WINDOW_HOURS, CURRENCY
from checkout.utils.logging import get_logger

logger = get_logger(__name__)


class PaymentService:
    """
    Payment Gateway Adapter.

    Providers are looked up by the order's payment method. Network calls
    (PayPal order creation / capture) happen outside any row lock; state
    transitions happen inside one transaction holding the order and
    payment transaction locks. No retries: a failed provider call surfaces once.
    """

    def __init__(
        self,
        db: Session,
        providers: Dict[str, PaymentProvider] | None = None,
        state_store: PaymentStateStore | None = None,
        notification_service: NotificationService | None = None,
    ):
        self.db = db
        self.orders = OrderRepo(db)
        self.payments = PaymentRepo(db)
        self.providers = providers if providers is not None else default_providers()
        self.state_store = state_store or PaymentStateStore()
        self.notification_service = notification_service or NotificationService()

    def provider_for(self, method: str) -> PaymentProvider:
        provider = self.providers.get(method)
        if not provider:
            raise RejectionError(Reason.UNSUPPORTED_PAYMENT_METHOD, f"Unsupported payment method {method}")
        return provider

    # =====================================================
    # initiate
    # =====================================================
    def initiate(self, order_id: int, user_id: int, client_ip: str = "127.0.0.1") -> Dict[str, Any] | Rejection:
        #pre-check without locks, so a doomed request never reaches the provider
        def precheck():
            order = self.orders.get_order(order_id, user_id=user_id)
            if not order:
                raise RejectionError(Reason.NOT_FOUND, "Order not found")
            self._assert_payable(order)
            return order, self.provider_for(order.payment_method)

        checked = execute(self.db, precheck)
        if isinstance(checked, Rejection):
            return checked
        order, provider = checked

        try:
            session = provider.open_session(order)
        except RejectionError as e:
            return e.rejection
        except GatewayError as e:
            logger.error(f"{provider.method} session for order {order_id} failed: {e}")
            return Rejection(Reason.GATEWAY_ERROR, "Payment provider is unavailable")

        def work():
            locked = self.orders.get_order(order_id, user_id=user_id, lock=True)
            if not locked:
                raise RejectionError(Reason.NOT_FOUND, "Order not found")
            self._assert_payable(locked)

            txn = self.payments.create_transaction(
                PaymentTransactionModel(
                    order_id=locked.id,
                    payment_method=provider.method,
                    status=PaymentStatus.INITIATED.value,
                    amount=locked.total_price,
                    currency=CURRENCY,
                )
            )

            checkout = provider.begin(locked, txn, session, client_ip)
            txn.provider_reference = checkout.reference

            if checkout.completed:
                txn.status = PaymentStatus.COMPLETED.value
                locked.status = OrderStatus.PROCESSING.value

            self.db.flush()
            return locked, txn, checkout

        result = execute(self.db, work)
        if isinstance(result, Rejection):
            return result
        locked, txn, checkout = result

        #correlation state goes to redis only after the row locks are released
        if not checkout.completed and checkout.state is not None:
            try:
                self.state_store.save(provider.method, txn.id, checkout.state)
            except redis.RedisError as e:
                logger.error(f"Could not store {provider.method} state for txn {txn.id}: {e}")
                return Rejection(Reason.GATEWAY_ERROR, "Payment session could not be stored, please retry")

        if checkout.completed:
            logger.info(f"Order {order_id} accepted for cash on delivery (txn {txn.id})")
            self.notification_service.payment_event(
                user_id, order_id, "Order Processing", "is being processed for Cash on Delivery."
            )
            return {
                "method": provider.method,
                "result": "completed",
                "transaction_id": txn.id,
                "order_status": locked.status,
                "payment_url": None,
            }

        logger.info(f"Order {order_id} payment initiated via {provider.method} (txn {txn.id})")
        self.notification_service.payment_event(
            user_id, order_id, "Payment Initiated", f"payment has been initiated via {provider.method}."
        )
        return {
            "method": provider.method,
            "result": "redirect",
            "transaction_id": txn.id,
            "order_status": locked.status,
            "payment_url": checkout.redirect_url,
        }

    def _assert_payable(self, order: OrderModel):
        if order.status != OrderStatus.PENDING.value:
            raise RejectionError(Reason.ORDER_NOT_PAYABLE, "Order cannot be processed")

        attempts = self.payments.initiated_for_order(order.id)
        if len(attempts) >= MAX_PAYMENT_ATTEMPTS:
            raise RejectionError(Reason.TOO_MANY_ATTEMPTS, "Maximum payment initiation attempts reached")

        if attempts:
            first = as_utc(attempts[0].created_at)
            if utcnow() - first > timedelta(hours=PAYMENT_WINDOW_HOURS):
                raise RejectionError(
                    Reason.ATTEMPT_WINDOW_EXPIRED,
                    f"Payment initiation window ({PAYMENT_WINDOW_HOURS} hours) has expired. Please create a new order.",
                )

    # =====================================================
    # reconcile (provider callbacks)
    # =====================================================
    def reconcile(
        self,
        method: str,
        payload: Mapping[str, str],
        user_id: int | None = None,
    ) -> Dict[str, Any] | Rejection:
        try:
            provider = self.provider_for(method)
            #signature / shape check first, nothing is read or written before it passes
            callback = provider.verify_callback(payload)
        except RejectionError as e:
            return e.rejection

        def locate():
            txn = self._locate(provider, callback)
            if user_id is not None:
                owner = self.orders.get_order(txn.order_id, user_id=user_id)
                if not owner:
                    raise RejectionError(Reason.NOT_FOUND, "Order not found")
            if txn.status != PaymentStatus.INITIATED.value:
                raise RejectionError(Reason.ALREADY_PROCESSED, "Payment transaction already processed")
            return txn

        txn = execute(self.db, locate)
        if isinstance(txn, Rejection):
            return txn

        try:
            provider.check_state(callback, self.state_store.load(provider.method, txn.id))
            settlement = provider.settle(txn, callback)
        except RejectionError as e:
            return e.rejection
        except redis.RedisError as e:
            logger.error(f"Could not load {provider.method} state for txn {txn.id}: {e}")
            return Rejection(Reason.GATEWAY_ERROR, "Payment state is unavailable, please retry")
        except GatewayError as e:
            logger.error(f"{provider.method} settlement for txn {txn.id} failed: {e}")
            return Rejection(Reason.GATEWAY_ERROR, "Payment provider is unavailable")

        def work():
            return self._apply(txn.id, txn.order_id, settlement)

        result = execute(self.db, work)
        if isinstance(result, Rejection):
            return result
        order, locked_txn = result

        self._clear_state(provider.method, locked_txn.id)

        if settlement.success:
            self.notification_service.payment_event(
                order.user_id, order.id, "Payment Successful", f"your payment via {provider.method} was successful."
            )
        else:
            self.notification_service.payment_event(
                order.user_id, order.id, "Payment Failed", f"your payment via {provider.method} failed."
            )

        return {
            "transaction_id": locked_txn.id,
            "transaction_status": locked_txn.status,
            "order_id": order.id,
            "order_status": order.status,
            "response_code": settlement.response_code,
        }

    def _clear_state(self, method: str, txn_id: int):
        #the key expires on its own, the db already holds the outcome
        try:
            self.state_store.clear(method, txn_id)
        except redis.RedisError as e:
            logger.warning(f"Could not clear {method} state for txn {txn_id}: {e}")

    def _locate(self, provider: PaymentProvider, callback: CallbackData) -> PaymentTransactionModel:
        if callback.transaction_id is not None:
            txn = self.payments.get_transaction(callback.transaction_id)
            if not txn or txn.payment_method != provider.method:
                raise RejectionError(Reason.TRANSACTION_NOT_FOUND, "Payment transaction not found")
            return txn

        txn = self.payments.find_by_reference(callback.order_id, provider.method, callback.reference)
        if not txn:
            #token we never issued for this order
            logger.warning(
                f"{provider.method} callback with unknown reference for order {callback.order_id}: possible forged callback"
            )
            raise RejectionError(Reason.SIGNATURE_MISMATCH, "Unknown payment reference")
        return txn

    def _apply(self, txn_id: int, order_id: int, settlement: Settlement):
        #same lock order as initiate/cancel: order first, then transaction
        order = self.orders.get_order(order_id, lock=True)
        txn = self.payments.get_transaction(txn_id, lock=True)
        if not order or not txn:
            raise RejectionError(Reason.TRANSACTION_NOT_FOUND, "Payment transaction not found")

        #duplicate delivery raced us between locate and lock
        if txn.status != PaymentStatus.INITIATED.value:
            raise RejectionError(Reason.ALREADY_PROCESSED, "Payment transaction already processed")

        txn.status = PaymentStatus.COMPLETED.value if settlement.success else PaymentStatus.FAILED.value
        txn.transaction_id = settlement.external_id
        txn.response_code = settlement.response_code
        txn.response_message = settlement.message

        if order.status == OrderStatus.PENDING.value:
            order.status = OrderStatus.COMPLETED.value if settlement.success else OrderStatus.FAILED.value
        else:
            logger.warning(
                f"Txn {txn.id} settled as {txn.status} but order {order.id} is already {order.status}; "
                f"order status left unchanged"
            )

        self.db.flush()
        logger.info(f"Txn {txn.id} -> {txn.status}, order {order.id} -> {order.status}")
        return order, txn

    # =====================================================
    # user cancel before completion
    # =====================================================
    def cancel(self, order_id: int, user_id: int) -> Dict[str, Any] | Rejection:
        def work():
            order = self.orders.get_order(order_id, user_id=user_id, lock=True)
            if not order:
                raise RejectionError(Reason.NOT_FOUND, "Order not found")

            txn = self.payments.latest_initiated(order.id, lock=True)
            if not txn:
                raise RejectionError(Reason.TRANSACTION_NOT_FOUND, "Payment transaction not found")

            if order.status != OrderStatus.PENDING.value:
                raise RejectionError(Reason.ORDER_NOT_PAYABLE, "Order cannot be processed")

            txn.status = PaymentStatus.CANCELED.value
            txn.response_message = "Payment canceled by user"
            order.status = OrderStatus.FAILED.value
            self.db.flush()
            return order, txn

        result = execute(self.db, work)
        if isinstance(result, Rejection):
            return result
        order, txn = result

        self._clear_state(txn.payment_method, txn.id)
        logger.info(f"Payment txn {txn.id} for order {order_id} canceled by user {user_id}")
        self.notification_service.payment_event(
            user_id, order_id, "Payment Canceled", f"your payment via {txn.payment_method} was canceled."
        )
        return {
            "transaction_id": txn.id,
            "transaction_status": txn.status,
            "order_id": order.id,
            "order_status": order.status,
            "response_code": None,
        }

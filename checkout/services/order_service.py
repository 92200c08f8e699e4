# checkout/services/order_service.py
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Tuple

from sqlalchemy.orm import Session

from checkout.data.models import OrderModel, OrderItemModel
from checkout.domain.errors import Rejection, RejectionError, Reason
from checkout.domain.statuses import OrderStatus, PaymentMethod
from checkout.repos.cart_repo import CartRepo
from checkout.repos.order_repo import OrderRepo
from checkout.services.inventory_ledger import InventoryLedger
from checkout.services.notification_service import NotificationService
from checkout.services.promotion_evaluator import PromotionEvaluator, OrderContext, CENT
from checkout.services.state_store import CartCache
from checkout.services.unit_of_work import execute
from checkout.utils.settings import FREE_SHIPPING_THRESHOLD, SHIPPING_FEE, ORDER_RETRY_ATTEMPTS
from checkout.utils.logging import get_logger

logger = get_logger(__name__)


def shipping_fee_for(amount: Decimal) -> Decimal:
    return Decimal("0.00") if amount >= FREE_SHIPPING_THRESHOLD else SHIPPING_FEE


class OrderService:
    """
    Order Assembler.

    Turns a cart selection (or a single "buy now" line) into an order inside
    one transaction: stock reservation, promotion redemption, order rows and
    cart cleanup commit together or not at all. Lock conflicts replay the
    whole unit up to ORDER_RETRY_ATTEMPTS times.
    """

    def __init__(
        self,
        db: Session,
        notification_service: NotificationService | None = None,
        cart_cache: CartCache | None = None,
        attempts: int = ORDER_RETRY_ATTEMPTS,
    ):
        self.db = db
        self.repo = OrderRepo(db)
        self.carts = CartRepo(db)
        self.ledger = InventoryLedger(db)
        self.promotions = PromotionEvaluator(db)
        self.notification_service = notification_service or NotificationService()
        self.cart_cache = cart_cache or CartCache()
        self.attempts = attempts

    # =====================================================
    # COMMANDS
    # =====================================================
    def create_order_from_cart(
        self,
        user_id: int,
        address_id: int,
        payment_method: str,
        cart_item_ids: List[int] | None = None,
        select_all: bool = False,
        promotion_code: str | None = None,
    ) -> Dict[str, Any] | Rejection:
        if payment_method not in {m.value for m in PaymentMethod}:
            return Rejection(Reason.UNSUPPORTED_PAYMENT_METHOD, f"Unsupported payment method {payment_method}")
        if not select_all and not cart_item_ids:
            return Rejection(Reason.NO_ITEMS_SELECTED, "Either cart_item_ids or select_all must be provided")

        def work():
            cart = self.carts.get_cart_by_user(user_id, lock=True)
            if not cart:
                raise RejectionError(Reason.NO_ITEMS_SELECTED, "No valid items selected")

            if select_all:
                items = self.carts.get_items(cart.id, selected_only=True, lock=True)
            else:
                items = self.carts.get_items(cart.id, item_ids=cart_item_ids, lock=True)

            if not items:
                raise RejectionError(Reason.NO_ITEMS_SELECTED, "No valid items selected")

            order = self._assemble(
                user_id=user_id,
                address_id=address_id,
                payment_method=payment_method,
                lines=[(i.product_variant_id, i.quantity) for i in items],
                promotion_code=promotion_code,
            )

            #ordered items leave the cart
            self.carts.delete_items(cart.id, [i.id for i in items])
            return order

        result = execute(self.db, work, attempts=self.attempts)
        if isinstance(result, Rejection):
            return result

        logger.info(f"Order {result.id} created from cart of user {user_id}")
        self._after_create(user_id, result)
        return self.to_dict(result)

    def buy_now(
        self,
        user_id: int,
        variant_id: int,
        quantity: int,
        address_id: int,
        payment_method: str,
        promotion_code: str | None = None,
    ) -> Dict[str, Any] | Rejection:
        if quantity <= 0:
            return Rejection(Reason.INVALID_INPUT, "Quantity must be greater than 0")
        if payment_method not in {m.value for m in PaymentMethod}:
            return Rejection(Reason.UNSUPPORTED_PAYMENT_METHOD, f"Unsupported payment method {payment_method}")

        def work():
            return self._assemble(
                user_id=user_id,
                address_id=address_id,
                payment_method=payment_method,
                lines=[(variant_id, quantity)],
                promotion_code=promotion_code,
            )

        result = execute(self.db, work, attempts=self.attempts)
        if isinstance(result, Rejection):
            return result

        logger.info(f"Order {result.id} created via buy-now for user {user_id}")
        self._after_create(user_id, result)
        return self.to_dict(result)

    def cancel_order(self, order_id: int, user_id: int) -> Dict[str, Any] | Rejection:
        def work():
            order = self.repo.get_order(order_id, user_id=user_id, lock=True)
            if not order:
                raise RejectionError(Reason.NOT_FOUND, "Order not found")

            if order.status != OrderStatus.PENDING.value:
                raise RejectionError(Reason.NOT_CANCELLABLE, "Only pending orders can be canceled")

            order.status = OrderStatus.CANCELLED.value

            #give back exactly what was reserved, variant id order like reserve
            for item in sorted(order.items, key=lambda i: i.product_variant_id):
                self.ledger.release(item.product_variant_id, item.quantity)

            self.db.flush()
            return order

        result = execute(self.db, work, attempts=self.attempts)
        if isinstance(result, Rejection):
            return result

        logger.info(f"Order {order_id} canceled by user {user_id}")
        self.notification_service.order_cancelled(user_id, order_id)
        return self.to_dict(result)

    # =====================================================
    # QUERIES
    # =====================================================
    def get_order(self, order_id: int, user_id: int) -> Dict[str, Any] | Rejection:
        order = self.repo.get_order(order_id, user_id=user_id)
        if not order:
            return Rejection(Reason.NOT_FOUND, "Order not found")
        return self.to_dict(order)

    def list_orders(
        self,
        user_id: int,
        page: int = 1,
        limit: int = 10,
        status: str | None = None,
    ) -> Dict[str, Any]:
        rows, total = self.repo.list_for_user(user_id, status, offset=(page - 1) * limit, limit=limit)
        return {
            "orders": [self.to_dict(o) for o in rows],
            "total": total,
            "total_pages": (total + limit - 1) // limit,
            "current_page": page,
        }

    # =====================================================
    # internals
    # =====================================================
    def _assemble(
        self,
        user_id: int,
        address_id: int,
        payment_method: str,
        lines: Iterable[Tuple[int, int]],
        promotion_code: str | None,
    ) -> OrderModel:
        """Steps 2-8 of order creation. Must run inside a unit of work."""
        if not self.repo.get_address(address_id, user_id):
            raise RejectionError(Reason.ADDRESS_NOT_FOUND, "Address not found")

        if self.repo.count_pending_online(user_id) > 0:
            raise RejectionError(
                Reason.PENDING_ORDER_EXISTS,
                "You have a pending order. Please complete or cancel it first.",
            )

        #lock variants in id order so concurrent orders cannot deadlock each other
        reserved = []
        for variant_id, quantity in sorted(lines):
            variant = self.ledger.reserve(variant_id, quantity)
            reserved.append((variant, quantity))

        subtotal = Decimal("0.00")
        context_lines = []
        for variant, quantity in reserved:
            product = variant.product
            subtotal += Decimal(product.effective_price) * quantity
            context_lines.append((product.id, product.category_id))
        subtotal = subtotal.quantize(CENT)

        discount = Decimal("0.00")
        promotion_id = None
        if promotion_code:
            redemption = self.promotions.evaluate(
                promotion_code,
                OrderContext(user_id=user_id, subtotal=subtotal, lines=tuple(context_lines)),
            )
            discount = redemption.discount_amount
            promotion_id = redemption.promotion_id

        discounted = subtotal - discount
        shipping_fee = shipping_fee_for(discounted)

        order = OrderModel(
            user_id=user_id,
            address_id=address_id,
            promotion_id=promotion_id,
            status=OrderStatus.PENDING.value,
            payment_method=payment_method,
            subtotal=subtotal,
            discount=discount,
            shipping_fee=shipping_fee,
            total_price=discounted + shipping_fee,
        )
        for variant, quantity in reserved:
            order.items.append(
                OrderItemModel(
                    product_variant_id=variant.id,
                    quantity=quantity,
                    price=variant.product.effective_price,
                )
            )

        return self.repo.create_order(order)

    def _after_create(self, user_id: int, order: OrderModel):
        self.notification_service.order_created(user_id, order.id)
        self.cart_cache.invalidate(user_id)

    @staticmethod
    def to_dict(order: OrderModel) -> Dict[str, Any]:
        return {
            "id": order.id,
            "user_id": order.user_id,
            "address_id": order.address_id,
            "promotion_id": order.promotion_id,
            "status": order.status,
            "payment_method": order.payment_method,
            "subtotal": order.subtotal,
            "discount": order.discount,
            "shipping_fee": order.shipping_fee,
            "total_price": order.total_price,
            "created_at": order.created_at,
            "items": [
                {
                    "id": i.id,
                    "product_variant_id": i.product_variant_id,
                    "quantity": i.quantity,
                    "price": i.price,
                }
                for i in order.items
            ],
        }

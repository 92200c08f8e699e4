from decimal import Decimal
from typing import Dict, Any, List
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from checkout.data.models import CartModel, CartItemModel
from checkout.domain.errors import Rejection, RejectionError, Reason
from checkout.repos.cart_repo import CartRepo
from checkout.services.inventory_ledger import InventoryLedger
from checkout.services.order_service import shipping_fee_for
from checkout.services.state_store import CartCache
from checkout.services.unit_of_work import execute
from checkout.utils.settings import MAX_CART_ITEMS
from checkout.utils.logging import get_logger

logger = get_logger(__name__)

class CartService:
    """
    Cart collaborator for the checkout flow.
    commands (add, update, select, remove) write through the db and drop the cached view,
    query (get) reads the cache first and lazily creates the cart.
    Lock order matches order creation: cart row first, then variant rows.
    """

    def __init__(self, db: Session, cart_cache: CartCache | None = None):
        self.db = db
        self.repo = CartRepo(db)
        self.ledger = InventoryLedger(db)
        self.cart_cache = cart_cache or CartCache()

    #query - read
    def get_cart(self, user_id: int) -> Dict[str, Any] | Rejection:
        cached = self.cart_cache.get(user_id)
        if cached:
            logger.info(f"Cart of user {user_id} served from cache")
            return cached

        cart = self._ensure_cart(user_id)
        if isinstance(cart, Rejection):
            return cart

        view = execute(self.db, lambda: self._view(cart))
        if isinstance(view, Rejection):
            return view

        self.cart_cache.put(user_id, view)
        return view

    #commands
    def add_item(self, user_id: int, variant_id: int, quantity: int) -> Dict[str, Any] | Rejection:
        if quantity <= 0:
            return Rejection(Reason.INVALID_INPUT, "Quantity must be greater than 0")

        ensured = self._ensure_cart(user_id)
        if isinstance(ensured, Rejection):
            return ensured

        def work():
            cart = self.repo.get_cart_by_user(user_id, lock=True)

            #lock the variant so the stock check holds until commit
            variant = self.ledger.lock_variant(variant_id)

            if not variant.product.is_available:
                raise RejectionError(Reason.PRODUCT_UNAVAILABLE, "Product is not available")

            if variant.stock < quantity:
                raise RejectionError(Reason.INSUFFICIENT_STOCK, "Insufficient stock")

            existing_item = self.repo.get_item_by_variant(cart.id, variant_id)
            if existing_item:
                new_quantity = existing_item.quantity + quantity
                if variant.stock < new_quantity:
                    raise RejectionError(Reason.INSUFFICIENT_STOCK, "Insufficient stock for updated quantity")
                logger.info(
                    f"Variant {variant_id} already in cart {cart.id}, quantity "
                    f"{existing_item.quantity} -> {new_quantity}"
                )
                existing_item.quantity = new_quantity
            else:
                if self.repo.count_items(cart.id) >= MAX_CART_ITEMS:
                    raise RejectionError(Reason.CART_FULL, f"Maximum {MAX_CART_ITEMS} items allowed in cart")
                logger.info(f"Adding variant {variant_id} to cart {cart.id}")
                self.repo.add_item(
                    CartItemModel(
                        cart_id=cart.id,
                        product_variant_id=variant_id,
                        quantity=quantity,
                        is_selected=True,
                    )
                )
            self.db.flush()

        return self._write(user_id, work)

    def update_item(
        self,
        user_id: int,
        item_id: int,
        quantity: int | None = None,
        is_selected: bool | None = None,
    ) -> Dict[str, Any] | Rejection:
        if quantity is not None and quantity < 0:
            return Rejection(Reason.INVALID_INPUT, "Quantity must be a non-negative integer")

        def work():
            item = self._owned_item(user_id, item_id)

            #quantity 0 removes the line
            if quantity == 0:
                self.repo.delete_items(item.cart_id, [item.id])
                return

            if quantity is not None:
                variant = self.ledger.lock_variant(item.product_variant_id)
                if variant.stock < quantity:
                    raise RejectionError(Reason.INSUFFICIENT_STOCK, "Insufficient stock")
                item.quantity = quantity

            if is_selected is not None:
                item.is_selected = is_selected
            self.db.flush()

        return self._write(user_id, work)

    def set_selection(
        self,
        user_id: int,
        selected_ids: List[int] | None = None,
        select_all: bool = False,
        deselect_all: bool = False,
    ) -> Dict[str, Any] | Rejection:
        def work():
            cart = self.repo.get_cart_by_user(user_id, lock=True)
            if not cart:
                return
            for item in self.repo.get_items(cart.id):
                if select_all:
                    item.is_selected = True
                elif deselect_all:
                    item.is_selected = False
                elif selected_ids is not None:
                    item.is_selected = item.id in selected_ids
            self.db.flush()

        return self._write(user_id, work)

    def remove_item(self, user_id: int, item_id: int) -> Dict[str, Any] | Rejection:
        def work():
            item = self._owned_item(user_id, item_id)
            logger.info(f"Removing item {item_id} from cart {item.cart_id}")
            self.repo.delete_items(item.cart_id, [item.id])

        return self._write(user_id, work)

    # internals
    def _write(self, user_id: int, work) -> Dict[str, Any] | Rejection:
        result = execute(self.db, work)
        if isinstance(result, Rejection):
            return result
        self.cart_cache.invalidate(user_id)
        return self.get_cart(user_id)

    def _ensure_cart(self, user_id: int) -> CartModel | Rejection:
        def work():
            cart = self.repo.get_cart_by_user(user_id)
            if not cart:
                cart = self.repo.create_cart(CartModel(user_id=user_id))
                logger.info(f"Created cart {cart.id} for user {user_id}")
            return cart

        try:
            return execute(self.db, work)
        except IntegrityError:
            #a concurrent first request created the cart, use that one
            logger.info(f"Cart of user {user_id} created concurrently, reloading")
            return execute(self.db, work)

    def _owned_item(self, user_id: int, item_id: int) -> CartItemModel:
        cart = self.repo.get_cart_by_user(user_id, lock=True)
        item = self.repo.get_item(cart.id, item_id) if cart else None
        if not item:
            raise RejectionError(Reason.CART_ITEM_NOT_FOUND, "Cart item not found")
        return item

    def _view(self, cart: CartModel) -> Dict[str, Any]:
        items = self.repo.get_items(cart.id)

        lines = []
        total = Decimal("0.00")
        selected_total = Decimal("0.00")
        selected_count = 0
        for i in items:
            product = i.variant.product
            price = Decimal(product.effective_price)
            line_total = price * i.quantity
            total += line_total
            if i.is_selected:
                selected_total += line_total
                selected_count += 1
            lines.append(
                {
                    "id": i.id,
                    "product_variant_id": i.product_variant_id,
                    "product_id": product.id,
                    "name": product.name,
                    "size": i.variant.size,
                    "color": i.variant.color,
                    "quantity": i.quantity,
                    "price": price,
                    "is_selected": i.is_selected,
                }
            )

        return {
            "cart_id": cart.id,
            "user_id": cart.user_id,
            "items": lines,
            "total_price": total,
            "selected_price": selected_total,
            "selected_count": selected_count,
            "selected_shipping_fee": shipping_fee_for(selected_total) if selected_count else Decimal("0.00"),
        }

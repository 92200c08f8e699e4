# checkout/repos/cart_repo.py
from typing import Iterable, List

from sqlalchemy import select, delete, func
from sqlalchemy.orm import Session

from checkout.data.models import CartModel, CartItemModel


class CartRepo:
    """Cart reads/writes. Never commits; the caller owns the transaction."""

    def __init__(self, db: Session):
        self.db = db

    def get_cart_by_user(self, user_id: int, lock: bool = False) -> CartModel | None:
        stmt = select(CartModel).where(CartModel.user_id == user_id)
        if lock:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()

    def create_cart(self, cart: CartModel) -> CartModel:
        self.db.add(cart)
        self.db.flush()
        return cart

    def get_items(
        self,
        cart_id: int,
        item_ids: Iterable[int] | None = None,
        selected_only: bool = False,
        lock: bool = False,
    ) -> List[CartItemModel]:
        stmt = select(CartItemModel).where(CartItemModel.cart_id == cart_id)
        if item_ids is not None:
            stmt = stmt.where(CartItemModel.id.in_(list(item_ids)))
        if selected_only:
            stmt = stmt.where(CartItemModel.is_selected.is_(True))
        if lock:
            stmt = stmt.with_for_update()
        return list(self.db.execute(stmt.order_by(CartItemModel.id)).scalars().all())

    def get_item(self, cart_id: int, item_id: int) -> CartItemModel | None:
        return self.db.execute(
            select(CartItemModel).where(
                CartItemModel.cart_id == cart_id,
                CartItemModel.id == item_id,
            )
        ).scalar_one_or_none()

    def get_item_by_variant(self, cart_id: int, variant_id: int) -> CartItemModel | None:
        return self.db.execute(
            select(CartItemModel).where(
                CartItemModel.cart_id == cart_id,
                CartItemModel.product_variant_id == variant_id,
            )
        ).scalar_one_or_none()

    def count_items(self, cart_id: int) -> int:
        return self.db.execute(
            select(func.count()).select_from(CartItemModel).where(CartItemModel.cart_id == cart_id)
        ).scalar_one()

    def add_item(self, item: CartItemModel) -> CartItemModel:
        self.db.add(item)
        self.db.flush()
        return item

    def delete_items(self, cart_id: int, item_ids: Iterable[int]) -> int:
        result = self.db.execute(
            delete(CartItemModel)
            .where(CartItemModel.cart_id == cart_id, CartItemModel.id.in_(list(item_ids)))
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

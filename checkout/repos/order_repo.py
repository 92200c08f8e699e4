# checkout/repos/order_repo.py
from typing import List, Tuple

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from checkout.data.models import OrderModel, AddressModel
from checkout.domain.statuses import OrderStatus, PaymentMethod


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def create_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def get_order(self, order_id: int, user_id: int | None = None, lock: bool = False) -> OrderModel | None:
        stmt = select(OrderModel).where(OrderModel.id == order_id)
        if user_id is not None:
            stmt = stmt.where(OrderModel.user_id == user_id)
        if lock:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()

    def count_pending_online(self, user_id: int) -> int:
        return self.db.execute(
            select(func.count())
            .select_from(OrderModel)
            .where(
                OrderModel.user_id == user_id,
                OrderModel.status == OrderStatus.PENDING.value,
                OrderModel.payment_method != PaymentMethod.COD.value,
            )
        ).scalar_one()

    def list_for_user(
        self,
        user_id: int,
        status: str | None,
        offset: int,
        limit: int,
    ) -> Tuple[List[OrderModel], int]:
        where = [OrderModel.user_id == user_id]
        if status:
            where.append(OrderModel.status == status)

        total = self.db.execute(
            select(func.count()).select_from(OrderModel).where(*where)
        ).scalar_one()
        rows = self.db.execute(
            select(OrderModel)
            .where(*where)
            .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            .offset(offset)
            .limit(limit)
        ).scalars().all()
        return list(rows), total

    def get_address(self, address_id: int, user_id: int) -> AddressModel | None:
        return self.db.execute(
            select(AddressModel).where(
                AddressModel.id == address_id,
                AddressModel.user_id == user_id,
            )
        ).scalar_one_or_none()

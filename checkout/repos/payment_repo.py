# checkout/repos/payment_repo.py
from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from checkout.data.models import PaymentTransactionModel
from checkout.domain.statuses import PaymentStatus


class PaymentRepo:
    def __init__(self, db: Session):
        self.db = db

    def create_transaction(self, txn: PaymentTransactionModel) -> PaymentTransactionModel:
        self.db.add(txn)
        self.db.flush()
        return txn

    def get_transaction(self, txn_id: int, lock: bool = False) -> PaymentTransactionModel | None:
        stmt = select(PaymentTransactionModel).where(PaymentTransactionModel.id == txn_id)
        if lock:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()

    def initiated_for_order(self, order_id: int) -> List[PaymentTransactionModel]:
        return list(
            self.db.execute(
                select(PaymentTransactionModel)
                .where(
                    PaymentTransactionModel.order_id == order_id,
                    PaymentTransactionModel.status == PaymentStatus.INITIATED.value,
                )
                .order_by(PaymentTransactionModel.created_at, PaymentTransactionModel.id)
            ).scalars().all()
        )

    def latest_initiated(self, order_id: int, lock: bool = False) -> PaymentTransactionModel | None:
        stmt = (
            select(PaymentTransactionModel)
            .where(
                PaymentTransactionModel.order_id == order_id,
                PaymentTransactionModel.status == PaymentStatus.INITIATED.value,
            )
            .order_by(PaymentTransactionModel.created_at.desc(), PaymentTransactionModel.id.desc())
            .limit(1)
        )
        if lock:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()

    def find_by_reference(self, order_id: int, method: str, reference: str) -> PaymentTransactionModel | None:
        return self.db.execute(
            select(PaymentTransactionModel).where(
                PaymentTransactionModel.order_id == order_id,
                PaymentTransactionModel.payment_method == method,
                PaymentTransactionModel.provider_reference == reference,
            )
        ).scalar_one_or_none()

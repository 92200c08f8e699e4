# checkout/repos/promotion_repo.py
from datetime import datetime

from sqlalchemy import select, or_
from sqlalchemy.orm import Session

from checkout.data.models import PromotionModel


class PromotionRepo:
    def __init__(self, db: Session):
        self.db = db

    def find_redeemable(self, code: str, user_id: int, now: datetime, lock: bool = True) -> PromotionModel | None:
        """
        Active, in-window code visible to this user.
        Expired and unknown codes look the same to the caller.
        """
        stmt = select(PromotionModel).where(
            PromotionModel.code == code,
            PromotionModel.is_active.is_(True),
            PromotionModel.start_date <= now,
            PromotionModel.end_date >= now,
            or_(
                PromotionModel.user_specific.is_(None),
                PromotionModel.user_specific == user_id,
            ),
        )
        if lock:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()

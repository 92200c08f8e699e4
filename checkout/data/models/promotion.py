from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Numeric, Boolean, CheckConstraint

from checkout.data.database import Base
from checkout.domain.statuses import DiscountType


class PromotionModel(Base):
    __tablename__ = "promotions"

    id = Column(Integer, primary_key=True)
    code = Column(String(64), nullable=False, unique=True)

    discount_type = Column(String(20), nullable=False, default=DiscountType.PERCENTAGE.value)
    discount = Column(Numeric(12, 2), nullable=False)
    min_order_value = Column(Numeric(12, 2), nullable=False, default=0)

    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)

    max_uses = Column(Integer, nullable=False)
    used_count = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    user_specific = Column(Integer, ForeignKey("users.id"), nullable=True)
    applicable_category_id = Column(Integer, nullable=True)
    applicable_product_id = Column(Integer, ForeignKey("products.id"), nullable=True)

    __table_args__ = (CheckConstraint("used_count <= max_uses", name="ck_promotion_used_count"),)

# checkout/data/seed.py
from datetime import timedelta
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from checkout.data.database import SessionLocal
from checkout.data.models import (
    UserModel,
    AddressModel,
    ProductModel,
    ProductVariantModel,
    PromotionModel,
)
from checkout.domain.statuses import DiscountType
from checkout.utils.clock import utcnow
from checkout.utils.logging import get_logger

logger = get_logger(__name__)


def seed(db: Session | None = None):
    """Demo catalog for local runs. Does nothing if users already exist."""
    own_session = db is None
    db = db or SessionLocal()
    try:
        # not forcing: only seed if empty
        if db.execute(select(UserModel.id).limit(1)).first():
            return

        user = UserModel(id=1, name="Demo User")
        db.add(user)
        db.add(AddressModel(user_id=1, address="1 Demo Street, Ho Chi Minh City", is_default=True))

        shirt = ProductModel(name="Basic T-Shirt", price=Decimal("200000"), category_id=1, is_available=True)
        jacket = ProductModel(
            name="Rain Jacket",
            price=Decimal("900000"),
            discount_price=Decimal("750000"),
            category_id=2,
            is_available=True,
        )
        db.add_all([shirt, jacket])
        db.flush()

        db.add_all(
            [
                ProductVariantModel(product_id=shirt.id, size="M", color="white", stock=20),
                ProductVariantModel(product_id=shirt.id, size="L", color="black", stock=10),
                ProductVariantModel(product_id=jacket.id, size="L", color="navy", stock=5),
            ]
        )

        now = utcnow()
        db.add(
            PromotionModel(
                code="SAVE10",
                discount_type=DiscountType.PERCENTAGE.value,
                discount=Decimal("10"),
                min_order_value=Decimal("100000"),
                start_date=now - timedelta(days=1),
                end_date=now + timedelta(days=30),
                max_uses=100,
                used_count=0,
                is_active=True,
            )
        )
        db.commit()
        logger.info("Seeded demo user, products and promotion SAVE10")
    finally:
        if own_session:
            db.close()

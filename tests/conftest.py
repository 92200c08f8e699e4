"""Pytest fixtures: in-memory SQLite, in-memory Redis double, recording notifier."""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import checkout.data.models  # noqa: F401
from checkout.celery_worker import celery_app
from checkout.data.database import Base
from checkout.data.models import (
    UserModel,
    AddressModel,
    ProductModel,
    ProductVariantModel,
    PromotionModel,
    OrderModel,
)
from checkout.domain.statuses import DiscountType, OrderStatus
from checkout.services.notification_service import NotificationService
from checkout.services.state_store import CartCache, PaymentStateStore
from checkout.utils.clock import utcnow

celery_app.conf.task_always_eager = True


class FakeRedis:
    """Just enough of redis.Redis for the state store and cart cache."""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttls[key] = ttl
        return True

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed


class RecordingNotifier(NotificationService):
    def __init__(self):
        self.sent = []

    def notify(self, user_id, title, message, type="system"):
        self.sent.append({"user_id": user_id, "title": title, "message": message, "type": type})

    @property
    def titles(self):
        return [n["title"] for n in self.sent]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def redis_client():
    return FakeRedis()


@pytest.fixture
def cart_cache(redis_client):
    return CartCache(client=redis_client, enabled=True)


@pytest.fixture
def state_store(redis_client):
    return PaymentStateStore(client=redis_client)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def catalog(db):
    """
    users 1 and 2 with one address each,
    shirt 100000 (stock 5), jeans 300000 -> 250000 (stock 10), hat 200000 (stock 3),
    an unavailable mug, promotion SAVE10 (10%, one use).
    """
    now = utcnow()

    db.add_all([UserModel(id=1, name="Alice"), UserModel(id=2, name="Bob")])
    alice_addr = AddressModel(user_id=1, address="1 Nguyen Hue, HCMC", is_default=True)
    bob_addr = AddressModel(user_id=2, address="2 Le Loi, Hanoi", is_default=True)
    db.add_all([alice_addr, bob_addr])

    shirt = ProductModel(name="Shirt", price=Decimal("100000"), category_id=1, is_available=True)
    jeans = ProductModel(
        name="Jeans", price=Decimal("300000"), discount_price=Decimal("250000"), category_id=2, is_available=True
    )
    hat = ProductModel(name="Hat", price=Decimal("200000"), category_id=3, is_available=True)
    mug = ProductModel(name="Mug", price=Decimal("50000"), category_id=4, is_available=False)
    db.add_all([shirt, jeans, hat, mug])
    db.flush()

    shirt_v = ProductVariantModel(product_id=shirt.id, size="M", color="white", stock=5)
    jeans_v = ProductVariantModel(product_id=jeans.id, size="32", color="blue", stock=10)
    hat_v = ProductVariantModel(product_id=hat.id, size="L", color="red", stock=3)
    mug_v = ProductVariantModel(product_id=mug.id, size=None, color="black", stock=7)
    db.add_all([shirt_v, jeans_v, hat_v, mug_v])

    save10 = PromotionModel(
        code="SAVE10",
        discount_type=DiscountType.PERCENTAGE.value,
        discount=Decimal("10"),
        min_order_value=Decimal("0"),
        start_date=now - timedelta(days=1),
        end_date=now + timedelta(days=30),
        max_uses=1,
        used_count=0,
        is_active=True,
    )
    db.add(save10)
    db.commit()

    return SimpleNamespace(
        alice=1,
        bob=2,
        alice_addr=alice_addr.id,
        bob_addr=bob_addr.id,
        shirt=shirt,
        jeans=jeans,
        hat=hat,
        mug=mug,
        shirt_v=shirt_v.id,
        jeans_v=jeans_v.id,
        hat_v=hat_v.id,
        mug_v=mug_v.id,
        save10=save10,
    )


@pytest.fixture
def add_promotion(db):
    def _add(code, discount_type=DiscountType.PERCENTAGE.value, discount="10", **overrides):
        now = utcnow()
        fields = dict(
            code=code,
            discount_type=discount_type,
            discount=Decimal(discount),
            min_order_value=Decimal("0"),
            start_date=now - timedelta(days=1),
            end_date=now + timedelta(days=30),
            max_uses=100,
            used_count=0,
            is_active=True,
        )
        fields.update(overrides)
        promotion = PromotionModel(**fields)
        db.add(promotion)
        db.commit()
        return promotion

    return _add


@pytest.fixture
def make_order(db, catalog):
    """Pending order written straight to the table, for payment tests."""

    def _make(total="200000", payment_method="COD", user_id=1, address_id=None, status=OrderStatus.PENDING.value):
        total = Decimal(total)
        order = OrderModel(
            user_id=user_id,
            address_id=address_id or (catalog.alice_addr if user_id == 1 else catalog.bob_addr),
            status=status,
            payment_method=payment_method,
            subtotal=total,
            discount=Decimal("0"),
            shipping_fee=Decimal("0"),
            total_price=total,
        )
        db.add(order)
        db.commit()
        return order

    return _make


@pytest.fixture
def stock_of(db):
    def _stock(variant_id):
        db.expire_all()
        return db.get(ProductVariantModel, variant_id).stock

    return _stock

from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Numeric
from datetime import datetime, timezone

from checkout.data.database import Base
from checkout.domain.statuses import PaymentStatus


class PaymentTransactionModel(Base):
    __tablename__ = "payment_transactions"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)

    payment_method = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default=PaymentStatus.INITIATED.value)  # initiated, completed, failed, canceled

    #provider-side id, set on settlement
    transaction_id = Column(String(128), nullable=True)
    #correlation token issued at initiation (PayPal order id)
    provider_reference = Column(String(128), nullable=True, index=True)

    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="VND")
    response_code = Column(String(32), nullable=True)
    response_message = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

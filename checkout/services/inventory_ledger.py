# checkout/services/inventory_ledger.py
from sqlalchemy import select
from sqlalchemy.orm import Session

from checkout.data.models import ProductVariantModel
from checkout.domain.errors import RejectionError, Reason
from checkout.utils.logging import get_logger

logger = get_logger(__name__)


class InventoryLedger:
    """
    Per-variant stock counters.

    Both operations lock the variant row (SELECT ... FOR UPDATE) and must run
    inside the caller's unit of work; the lock is released at commit/rollback.
    """

    def __init__(self, db: Session):
        self.db = db

    def lock_variant(self, variant_id: int) -> ProductVariantModel:
        variant = self.db.execute(
            select(ProductVariantModel)
            .where(ProductVariantModel.id == variant_id)
            .with_for_update()
        ).scalar_one_or_none()

        if not variant:
            raise RejectionError(Reason.VARIANT_NOT_FOUND, f"Product variant {variant_id} not found")
        return variant

    def reserve(self, variant_id: int, quantity: int) -> ProductVariantModel:
        if quantity <= 0:
            raise RejectionError(Reason.INVALID_INPUT, "Quantity must be greater than 0")

        variant = self.lock_variant(variant_id)

        if variant.stock < quantity:
            raise RejectionError(
                Reason.INSUFFICIENT_STOCK,
                f"Insufficient stock for variant {variant_id}: have={variant.stock}, need={quantity}",
            )

        variant.stock -= quantity
        self.db.flush()

        logger.info(f"Reserved {quantity} of variant {variant_id} (stock={variant.stock})")
        return variant

    def release(self, variant_id: int, quantity: int) -> ProductVariantModel:
        #no upper bound, every release pairs with an earlier reserve
        variant = self.lock_variant(variant_id)
        variant.stock += quantity
        self.db.flush()

        logger.info(f"Released {quantity} of variant {variant_id} (stock={variant.stock})")
        return variant

# checkout/services/promotion_evaluator.py
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Tuple

from sqlalchemy.orm import Session

from checkout.domain.errors import RejectionError, Reason
from checkout.domain.statuses import DiscountType
from checkout.repos.promotion_repo import PromotionRepo
from checkout.utils.clock import utcnow
from checkout.utils.logging import get_logger

logger = get_logger(__name__)

CENT = Decimal("0.01")


@dataclass(frozen=True)
class OrderContext:
    user_id: int
    subtotal: Decimal
    #(product_id, category_id) for every selected line
    lines: Tuple[Tuple[int, int], ...]


@dataclass(frozen=True)
class Redemption:
    promotion_id: int
    discount_amount: Decimal


class PromotionEvaluator:
    """
    Validates a discount code against an order and redeems it.

    Runs inside the order's unit of work: the promotion row is locked for
    update and used_count is bumped in that same transaction, so two orders
    racing for the last use serialize on the row lock.
    """

    def __init__(self, db: Session):
        self.repo = PromotionRepo(db)

    def evaluate(self, code: str, context: OrderContext) -> Redemption:
        promotion = self.repo.find_redeemable(code, context.user_id, utcnow(), lock=True)

        #unknown, inactive, expired and foreign codes are all InvalidCode
        if not promotion:
            raise RejectionError(Reason.INVALID_CODE, "Invalid promotion code")

        if promotion.used_count >= promotion.max_uses:
            raise RejectionError(Reason.MAX_USES_REACHED, "Promotion code has reached maximum uses")

        if context.subtotal < promotion.min_order_value:
            raise RejectionError(
                Reason.BELOW_MINIMUM,
                f"Order total must be at least {promotion.min_order_value} to apply this promotion",
            )

        if promotion.applicable_category_id or promotion.applicable_product_id:
            if not self._matches_any(promotion, context.lines):
                raise RejectionError(
                    Reason.NOT_APPLICABLE,
                    "Promotion code is not applicable to any selected item",
                )

        discount = self.discount_for(promotion.discount_type, Decimal(promotion.discount), context.subtotal)

        promotion.used_count += 1
        self.repo.db.flush()

        logger.info(
            f"Promotion {promotion.code} redeemed by user {context.user_id}: "
            f"discount={discount} used={promotion.used_count}/{promotion.max_uses}"
        )
        return Redemption(promotion_id=promotion.id, discount_amount=discount)

    @staticmethod
    def discount_for(discount_type: str, discount: Decimal, subtotal: Decimal) -> Decimal:
        if discount_type == DiscountType.PERCENTAGE.value:
            return (subtotal * discount / Decimal(100)).quantize(CENT)
        #fixed amount is not clamped to the subtotal
        return discount.quantize(CENT)

    @staticmethod
    def _matches_any(promotion, lines: Iterable[Tuple[int, int]]) -> bool:
        for product_id, category_id in lines:
            if promotion.applicable_category_id and category_id == promotion.applicable_category_id:
                return True
            if promotion.applicable_product_id and product_id == promotion.applicable_product_id:
                return True
        return False

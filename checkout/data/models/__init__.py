#import all models so SQLAlchemy registers them in Base.metadata

from checkout.data.models.user import UserModel
from checkout.data.models.address import AddressModel
from checkout.data.models.product import ProductModel
from checkout.data.models.product_variant import ProductVariantModel
from checkout.data.models.cart import CartModel
from checkout.data.models.cart_item import CartItemModel
from checkout.data.models.promotion import PromotionModel
from checkout.data.models.order import OrderModel
from checkout.data.models.order_item import OrderItemModel
from checkout.data.models.payment_transaction import PaymentTransactionModel

__all__ = [
    "UserModel",
    "AddressModel",
    "ProductModel",
    "ProductVariantModel",
    "CartModel",
    "CartItemModel",
    "PromotionModel",
    "OrderModel",
    "OrderItemModel",
    "PaymentTransactionModel",
]

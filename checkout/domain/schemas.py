# checkout/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict
from typing import List, Literal
from decimal import Decimal
from datetime import datetime

PaymentMethodName = Literal["COD", "VNPay", "PayPal"]


# =====================================================
# carts
# =====================================================
class CartItemIn(BaseModel):
    """Add a product variant to the cart."""

    product_variant_id: int = Field(..., gt=0, description="Product variant id (> 0)")
    quantity: int = Field(..., gt=0, description="Quantity (> 0)")


class CartItemUpdate(BaseModel):
    """Change quantity and/or selection of a cart line. Quantity 0 removes the line."""

    quantity: int | None = Field(None, ge=0)
    is_selected: bool | None = None


class CartSelectionIn(BaseModel):
    selected_ids: List[int] | None = None
    select_all: bool = False
    deselect_all: bool = False


class CartItemOut(BaseModel):
    id: int
    product_variant_id: int
    product_id: int
    name: str
    size: str | None = None
    color: str | None = None
    quantity: int
    price: Decimal
    is_selected: bool


class CartOut(BaseModel):
    cart_id: int
    user_id: int
    items: List[CartItemOut]
    total_price: Decimal
    selected_price: Decimal
    selected_count: int
    selected_shipping_fee: Decimal


# =====================================================
# orders
# =====================================================
class OrderFromCartIn(BaseModel):
    """Create an order from selected cart lines (or every selected line with select_all)."""

    user_id: int = Field(..., gt=0)
    address_id: int = Field(..., gt=0)
    payment_method: PaymentMethodName
    cart_item_ids: List[int] | None = None
    select_all: bool = False
    promotion_code: str | None = Field(None, max_length=50)


class BuyNowIn(BaseModel):
    """Single-line order that skips the cart."""

    user_id: int = Field(..., gt=0)
    product_variant_id: int = Field(..., gt=0)
    quantity: int = Field(..., gt=0)
    address_id: int = Field(..., gt=0)
    payment_method: PaymentMethodName
    promotion_code: str | None = Field(None, max_length=50)


class OrderItemOut(BaseModel):
    id: int
    product_variant_id: int
    quantity: int
    price: Decimal

    model_config = ConfigDict(from_attributes=True)


class OrderOut(BaseModel):
    id: int
    user_id: int
    address_id: int
    promotion_id: int | None = None
    status: str
    payment_method: str
    subtotal: Decimal
    discount: Decimal
    shipping_fee: Decimal
    total_price: Decimal
    created_at: datetime | None = None
    items: List[OrderItemOut]

    model_config = ConfigDict(from_attributes=True)


class OrderListOut(BaseModel):
    orders: List[OrderOut]
    total: int
    total_pages: int
    current_page: int


# =====================================================
# payments
# =====================================================
class PaymentInitiateIn(BaseModel):
    order_id: int = Field(..., gt=0)
    user_id: int = Field(..., gt=0)


class PaymentInitiateOut(BaseModel):
    method: str
    result: Literal["completed", "redirect"]
    transaction_id: int
    order_status: str
    payment_url: str | None = None


class PaymentResultOut(BaseModel):
    transaction_id: int
    transaction_status: str
    order_id: int
    order_status: str
    response_code: str | None = None
